import os
import shlex
from collections import namedtuple
from logzero import logger

from chaosos.common import (DEFAULT_CHAOS_COMMAND_TIMEOUT,
                            DEFAULT_CHAOS_PYTHON_INTERPRETER,
                            DEFAULT_CHAOS_RECORDING_DIR, ExecutionKind,
                            ExperimentResult, FileIOError)
from chaosos.execute.execute import Channel, to_experiment_result
from chaosos.script.entry import EntryPoint
from chaosos.script.flags import join_file_args

from typing import List, Tuple

RecordingSession = namedtuple('RecordingSession', ['timing', 'output'])


def recording_session(uid: str,
                      recording_dir: str = DEFAULT_CHAOS_RECORDING_DIR) -> RecordingSession:
    return RecordingSession(os.path.join(recording_dir, "{}.time".format(uid)),
                            os.path.join(recording_dir, "{}.out".format(uid)))


def reset_session(session: RecordingSession):
    """
    Remove transcript files left behind by an earlier run with the same uid.

    Both commands append to their output file, so a stale transcript would
    otherwise be delivered along with the new one.
    """
    for path in session:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.error("Failed to remove stale transcript %s", path)
            raise FileIOError("transcript", path, e) from e
        logger.debug("Removed stale transcript %s", path)


def is_bsd(platform: str) -> bool:
    platform = platform.lower()
    return platform.startswith('darwin') or 'bsd' in platform


def build_recording_command(entry_path: str, args: str, timing: str,
                            output: str, platform: str) -> str:
    """
    Build the `script` command line that records a shell entry point.

    Both forms append the terminal output to `output` and write timing data
    to `timing` (script's stderr).

    BSD:  script -a -t 0 <output> <entry> <args> 2><timing>
    GNU:  script -e -t 2><timing> -a <output> -c "<entry> <args>"

    :param entry_path: The script to run.
    :type entry_path: str
    :param args: Positional arguments, already joined for the shell.
    :type args: str
    :param timing: Timing transcript path.
    :type timing: str
    :param output: Output transcript path.
    :type output: str
    :param platform: Target platform, e.g. 'linux' or 'darwin'.
    :type platform: str
    :return: str
    """
    command = shlex.quote(entry_path)
    if args:
        command = "{} {}".format(command, args)
    if is_bsd(platform):
        return "script -a -t 0 {} {} 2>{}".format(shlex.quote(output), command,
                                                  shlex.quote(timing))
    return "script -e -t 2>{} -a {} -c {}".format(shlex.quote(timing),
                                                  shlex.quote(output),
                                                  shlex.quote(command))


def build_direct_command(entry_path: str, args: str, output: str,
                         interpreter: str = None) -> str:
    command = shlex.quote(entry_path)
    if interpreter:
        command = "{} {}".format(interpreter, command)
    if args:
        command = "{} {}".format(command, args)
    return "{} >>{} 2>&1".format(command, shlex.quote(output))


def run(entry: EntryPoint, file_args: List[str], uid: str, channel: Channel,
        recording_dir: str = DEFAULT_CHAOS_RECORDING_DIR,
        interpreter: str = DEFAULT_CHAOS_PYTHON_INTERPRETER,
        timeout=DEFAULT_CHAOS_COMMAND_TIMEOUT) -> Tuple[RecordingSession, ExperimentResult]:
    """
    Run a script entry point, capturing its transcript.

    Transcripts of an earlier run with the same uid are removed first.
    Shell entries marked for recording run under `script`; everything else
    runs directly with its output redirected into the output transcript, and
    no timing file is written. A non-zero exit is reported as a failed
    result, not raised, so the transcript can still be delivered.

    :param entry: The entry point to run.
    :type entry: EntryPoint
    :param file_args: Positional arguments for the script.
    :type file_args: List[str]
    :param uid: The invocation id, names the transcript files.
    :type uid: str
    :param channel: The channel running the command.
    :type channel: Channel
    :param recording_dir: Directory holding the transcript files.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_RECORDING_DIR)
    :type recording_dir: str
    :param interpreter: Interpreter for .py entries.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_PYTHON_INTERPRETER)
    :type interpreter: str
    :param timeout: Seconds the script may run. None defers to the channel.
        Optional. (Default: None)
    :return: Tuple[RecordingSession, ExperimentResult]
    """
    session = recording_session(uid, recording_dir)
    reset_session(session)
    args = join_file_args(file_args)
    if entry.record:
        command = build_recording_command(entry.path, args, session.timing,
                                          session.output, channel.platform)
    else:
        if entry.kind != ExecutionKind.INTERPRETED:
            interpreter = None
        command = build_direct_command(entry.path, args, session.output,
                                       interpreter)
    logger.info("Running %s entry point %s with args >%s<", entry.kind.value,
                entry.path, args)
    rtn = channel.run(command, timeout=timeout)
    if rtn.return_code != 0:
        logger.error("Script %s exited with code %s", entry.path,
                     rtn.return_code)
    return session, to_experiment_result(rtn, "script")
