import os
import shutil
import tarfile
import time
from logzero import logger

from chaosos.common import ExtractError


def work_dir_for(archive_path: str, token: str = None) -> str:
    """
    Pick a fresh working directory next to the archive.

    An existing directory is never reused; a nanosecond suffix keeps prior
    invocations' files intact.
    """
    base = os.path.dirname(os.path.abspath(archive_path))
    token = token or str(time.time_ns())
    work_dir = os.path.join(base, token)
    if os.path.exists(work_dir):
        work_dir = "{}-{}".format(work_dir, time.time_ns())
    return work_dir


def _member_path(work_dir, member):
    target = os.path.realpath(os.path.join(work_dir, member.name))
    if os.path.isabs(member.name) or \
            os.path.commonpath([work_dir, target]) != work_dir:
        raise ExtractError("member", member.name,
                           "points outside of the working directory")
    return target


def extract(archive_path: str, token: str = None) -> str:
    """
    Unpack a tar script package into a new working directory.

    Directories are created before their contents and every entry gets its
    archived permission bits once written; directory modes are applied last
    so a read-only directory can still be filled. Links and device files are
    refused. A failed extraction leaves the partial directory behind for
    inspection.

    :param archive_path: The tar archive.
    :type archive_path: str
    :param token: Names the working directory, normally the invocation id.
        Optional. (Default: a nanosecond timestamp)
    :type token: str
    :return: str -- the working directory
    """
    work_dir = os.path.realpath(work_dir_for(archive_path, token))
    logger.info("Extracting %s into %s", archive_path, work_dir)
    try:
        dir_modes = []
        os.makedirs(work_dir)
        with tarfile.open(archive_path, 'r:*') as tar:
            for member in tar:
                target = _member_path(work_dir, member)
                mode = member.mode & 0o7777
                if member.isdir():
                    os.makedirs(target, exist_ok=True)
                    dir_modes.append((target, mode))
                elif member.isfile():
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    src = tar.extractfile(member)
                    with src, open(target, 'wb') as dst:
                        shutil.copyfileobj(src, dst)
                    os.chmod(target, mode)
                else:
                    raise ExtractError("member", member.name,
                                       "links and special files are not allowed")
        for target, mode in reversed(dir_modes):
            os.chmod(target, mode)
    except (tarfile.TarError, OSError) as e:
        logger.error("Failed to extract %s into %s", archive_path, work_dir)
        raise ExtractError(archive_path, e) from e
    return work_dir
