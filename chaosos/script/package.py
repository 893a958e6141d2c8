import os
import tarfile
import time
from collections import namedtuple
from logzero import logger

import requests

from chaosos.common import (DEFAULT_CHAOS_DOWNLOAD_DIR,
                            DEFAULT_CHAOS_DOWNLOAD_TIMEOUT, DownloadError,
                            MissingParameterError, ScriptNotFoundError)
from chaosos.execute.execute import Channel
from chaosos.script.flags import DOWNLOAD_URL_FLAG, FILE_FLAG, ScriptFlags

ScriptPackage = namedtuple('ScriptPackage', ['path', 'archived', 'work_dir'])

CHUNK_SIZE = 64 * 1024


def download_path(file_hint: str = None, uid: str = None,
                  download_dir: str = DEFAULT_CHAOS_DOWNLOAD_DIR) -> str:
    """
    Where a downloaded package is stored.

    The file hint's name wins; otherwise the invocation id names the file so
    create and destroy agree on it. A nanosecond timestamp is the last
    resort.
    """
    if file_hint:
        name = os.path.basename(file_hint)
    elif uid:
        name = "{}.tar".format(uid)
    else:
        name = "{}.tar".format(time.time_ns())
    return os.path.join(download_dir, name)


def download(url: str, path: str,
             timeout: int = DEFAULT_CHAOS_DOWNLOAD_TIMEOUT) -> str:
    logger.info("Downloading %s to %s", url, path)
    try:
        with requests.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            with open(path, 'wb') as f:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
    except (requests.RequestException, OSError) as e:
        logger.error("Failed to download %s", url)
        if os.path.exists(path):
            os.remove(path)
        raise DownloadError(DOWNLOAD_URL_FLAG, url, e) from e
    return path


def is_archive(path: str) -> bool:
    try:
        return tarfile.is_tarfile(path)
    except OSError:
        return False


def resolve(flags: ScriptFlags, channel: Channel, uid: str = None,
            fetch: bool = True,
            download_dir: str = DEFAULT_CHAOS_DOWNLOAD_DIR,
            timeout: int = DEFAULT_CHAOS_DOWNLOAD_TIMEOUT) -> ScriptPackage:
    """
    Turn the file/download-url flags into a local script package.

    :param flags: The invocation's flags.
    :type flags: ScriptFlags
    :param channel: Used to confirm the package exists on the target.
    :type channel: Channel
    :param uid: The invocation id, names downloads without a file hint.
        Optional. (Default: None)
    :type uid: str
    :param fetch: Download and verify the package. destroy passes False to
        only derive the path create used.
        Optional. (Default: True)
    :type fetch: bool
    :param download_dir: Directory receiving downloaded packages.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_DOWNLOAD_DIR)
    :type download_dir: str
    :param timeout: Download timeout in seconds.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_DOWNLOAD_TIMEOUT)
    :type timeout: int
    :return: ScriptPackage
    """
    path = flags.file
    if flags.download_url:
        path = download_path(flags.file, uid, download_dir)
        if fetch:
            download(flags.download_url, path, timeout=timeout)
    if not path:
        logger.error("Neither %s nor %s given", FILE_FLAG, DOWNLOAD_URL_FLAG)
        raise MissingParameterError(FILE_FLAG)
    if not fetch:
        return ScriptPackage(path, None, None)

    if not channel.file_exists(path):
        logger.error("`%s`, file is invalid. it not found", path)
        raise ScriptNotFoundError(FILE_FLAG, path)
    archived = is_archive(path)
    logger.debug("Resolved script package %s (archived: %s)", path, archived)
    return ScriptPackage(path, archived, None)
