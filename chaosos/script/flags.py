import shlex
from urllib.parse import urlparse
from logzero import logger

from chaosos.common import (DEFAULT_CHAOS_FILE_ARGS_DELIMITER, DeliveryMode,
                            InvalidParameterError, str_to_bool)

from typing import Dict, List

# Canonical flag names understood by the script execute action
FILE_FLAG = 'file'
DOWNLOAD_URL_FLAG = 'download-url'
UPLOAD_URL_FLAG = 'upload-url'
DSN_FLAG = 'dsn'
NFS_HOST_FLAG = 'nfs-host'
FILE_ARGS_FLAG = 'file-args'
RECOVER_FLAG = 'recover'

SCRIPT_FLAGS = [FILE_FLAG, DOWNLOAD_URL_FLAG, UPLOAD_URL_FLAG, DSN_FLAG,
                NFS_HOST_FLAG, FILE_ARGS_FLAG, RECOVER_FLAG]

# Databases the transcript can be stored in
DSN_SCHEMES = ['sqlite', 'mysql']


def split_file_args(file_args: str,
                    delimiter: str = DEFAULT_CHAOS_FILE_ARGS_DELIMITER) -> List[str]:
    """
    Split a delimited file-args flag value into positional arguments.

    "aaa@A@B@C@bbb" -> ["aaa", "bbb"]. An empty value yields no arguments.

    :param file_args: The raw flag value.
    :type file_args: str
    :param delimiter: The argument separator.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_FILE_ARGS_DELIMITER)
    :type delimiter: str
    :return: List[str]
    """
    if not file_args:
        return []
    return file_args.split(delimiter)


def join_file_args(args: List[str]) -> str:
    """
    Join positional arguments with single spaces for a shell command line.

    Arguments holding shell metacharacters are quoted; plain words are left
    as they are.
    """
    return " ".join(shlex.quote(a) for a in args)


def _check_url(name, url):
    if url and not (url.startswith("http://") or url.startswith("https://")):
        raise InvalidParameterError(name, url, "must be an http(s) url")


def _check_dsn(dsn):
    # The dsn may carry a password; keep it out of error messages
    if not dsn:
        return
    parsed = urlparse(dsn)
    if parsed.scheme not in DSN_SCHEMES:
        raise InvalidParameterError(DSN_FLAG, "unsupported scheme >{}<".format(
            parsed.scheme), "expected one of {}".format(", ".join(DSN_SCHEMES)))
    try:
        parsed.port
    except ValueError as e:
        raise InvalidParameterError(DSN_FLAG, "invalid port") from e
    if not parsed.path.lstrip('/'):
        raise InvalidParameterError(DSN_FLAG, "no database given")


class ScriptFlags(object):
    """
    Validated flags of one script execute invocation.
    """

    def __init__(self, file: str = None, download_url: str = None,
                 upload_url: str = None, dsn: str = None,
                 nfs_host: str = None, file_args: List[str] = None,
                 recover: bool = False):
        self.file = file
        self.download_url = download_url
        self.upload_url = upload_url
        self.dsn = dsn
        self.nfs_host = nfs_host
        self.file_args = file_args or []
        self.recover = recover

    @classmethod
    def from_flags(cls, flags: Dict[str, str],
                   delimiter: str = DEFAULT_CHAOS_FILE_ARGS_DELIMITER) -> 'ScriptFlags':
        unknown = sorted(set(flags) - set(SCRIPT_FLAGS))
        if unknown:
            logger.debug("Ignoring flags not used by script execute: %s",
                         unknown)

        def value(name):
            v = flags.get(name)
            if v is None:
                return None
            v = str(v).strip()
            return v or None

        download_url = value(DOWNLOAD_URL_FLAG)
        upload_url = value(UPLOAD_URL_FLAG)
        _check_url(DOWNLOAD_URL_FLAG, download_url)
        _check_url(UPLOAD_URL_FLAG, upload_url)
        _check_dsn(value(DSN_FLAG))

        targets = [name for name in (UPLOAD_URL_FLAG, DSN_FLAG, NFS_HOST_FLAG)
                   if value(name)]
        if len(targets) > 1:
            raise InvalidParameterError(", ".join(targets),
                                        "only one delivery target may be set")

        nfs_host = value(NFS_HOST_FLAG)
        if nfs_host and ":" not in nfs_host:
            raise InvalidParameterError(NFS_HOST_FLAG, nfs_host,
                                        "expected <server>:<export>")

        return cls(file=value(FILE_FLAG),
                   download_url=download_url,
                   upload_url=upload_url,
                   dsn=value(DSN_FLAG),
                   nfs_host=nfs_host,
                   file_args=split_file_args(flags.get(FILE_ARGS_FLAG) or "",
                                             delimiter),
                   recover=str_to_bool(flags.get(RECOVER_FLAG), RECOVER_FLAG))

    @property
    def delivery_mode(self) -> DeliveryMode:
        if self.upload_url:
            return DeliveryMode.UPLOAD
        if self.dsn:
            return DeliveryMode.DATABASE
        if self.nfs_host:
            return DeliveryMode.NFS
        return DeliveryMode.INLINE

    def __repr__(self):
        return ("ScriptFlags(file={!r}, download_url={!r}, delivery={}, "
                "file_args={!r}, recover={!r})".format(
                    self.file, self.download_url, self.delivery_mode.value,
                    self.file_args, self.recover))
