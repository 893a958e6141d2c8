import os
from collections import namedtuple
from logzero import logger

from chaosos.common import ExecutionKind, FileIOError, NoEntryPointError

EntryPoint = namedtuple('EntryPoint', ['path', 'kind', 'record'])

# First match wins
RECOVER_ENTRIES = ['recover.sh', 'recover.py']
# A bare 'main' is what older single-file packages ship
MAIN_ENTRIES = ['main.sh', 'main.py', 'main']


def kind_of(path: str) -> ExecutionKind:
    if path.endswith('.py'):
        return ExecutionKind.INTERPRETED
    return ExecutionKind.SHELL


def make_executable(path: str):
    try:
        os.chmod(path, 0o777)
    except OSError as e:
        logger.error("Failed to make %s executable", path)
        raise FileIOError("chmod", path, e) from e


def entry_for_file(path: str, want_shell_recording: bool = True) -> EntryPoint:
    """
    Build the entry point for a script that was not shipped in an archive.
    """
    path = os.path.abspath(path)
    kind = kind_of(path)
    make_executable(path)
    return EntryPoint(path, kind,
                      want_shell_recording and kind == ExecutionKind.SHELL)


def select(work_dir: str, want_recovery: bool = False,
           want_shell_recording: bool = True) -> EntryPoint:
    """
    Choose the file to run from an extracted script package.

    recover.sh/recover.py when want_recovery is set, otherwise
    main.sh/main.py/main. Interpreted (.py) entries are never recorded.

    :param work_dir: The extracted package directory.
    :type work_dir: str
    :param want_recovery: Select the recovery entry.
        Optional. (Default: False)
    :type want_recovery: bool
    :param want_shell_recording: Record shell entries in a terminal session.
        Optional. (Default: True)
    :type want_shell_recording: bool
    :return: EntryPoint
    """
    candidates = RECOVER_ENTRIES if want_recovery else MAIN_ENTRIES
    for name in candidates:
        path = os.path.join(work_dir, name)
        if os.path.isfile(path):
            logger.debug("Selected entry point %s", path)
            return entry_for_file(path, want_shell_recording)
    logger.error("None of %s found in %s", candidates, work_dir)
    raise NoEntryPointError(work_dir, " or ".join(candidates))
