import tempfile
from collections import namedtuple
from enum import Enum, IntEnum
from logzero import logger

from typing import Dict, Union


class Code(IntEnum):
    """
    Stable result codes reported back to the orchestrator.
    """
    SUCCESS = 200
    MISSING_PARAMETER = 45001
    PARAMETER_INVALID = 45002
    FILE_NOT_FOUND = 45003
    DOWNLOAD_ERROR = 45004
    EXTRACT_ERROR = 45005
    NO_ENTRY_POINT = 45006
    IO_ERROR = 45007
    CHANNEL_UNAVAILABLE = 45008
    DELIVERY_ERROR = 45009
    EXEC_FAILED = 46001

    @classmethod
    def has_value(cls, value):
        return any(value == item.value for item in cls)


ExperimentResult = namedtuple('ExperimentResult',
                              ['success', 'code', 'result', 'error'])

CREATE = 'create'
DESTROY = 'destroy'

# uid is supplied by the orchestrator and stays the same across create and
# destroy of one experiment.
ExperimentInvocation = namedtuple('ExperimentInvocation',
                                  ['uid', 'mode', 'flags'])


def new_invocation(uid: str, flags: Dict[str, str] = None,
                   destroy: bool = False) -> ExperimentInvocation:
    if not uid:
        raise ValueError("an invocation needs a uid")
    mode = DESTROY if destroy else CREATE
    # Copy so later changes to the caller's dict do not leak in
    return ExperimentInvocation(uid, mode, dict(flags or {}))


def is_destroy(invocation: ExperimentInvocation) -> bool:
    return invocation.mode == DESTROY


def success_result(result=None) -> ExperimentResult:
    return ExperimentResult(True, Code.SUCCESS, result, None)


def fail_result(error: 'ChaosError', result=None) -> ExperimentResult:
    """
    Convert a ChaosError into a failed ExperimentResult.

    :param error: The error that ended the invocation.
    :type error: ChaosError
    :param result: Anything gathered before the failure (delivery payload,
        command output).
        Optional. (Default: None)
    :return: ExperimentResult
    """
    return ExperimentResult(False, error.code, result, str(error))


def result_to_dict(result: ExperimentResult) -> Dict:
    """
    Render an ExperimentResult for the experiment journal.
    """
    return {
        "success": result.success,
        "code": int(result.code),
        "result": result.result,
        "error": result.error,
    }


class ChaosError(Exception):
    """
    Base of every error an action reports to the orchestrator.

    The message is the error description followed by the flags/context
    needed to reproduce the condition, e.g.
    "missing required parameter: file".
    """
    code = Code.PARAMETER_INVALID
    description = "chaos experiment failed"

    def __init__(self, *context):
        self.context = context
        message = self.description
        if context:
            message = "{}: {}".format(message,
                                      ", ".join(str(c) for c in context))
        super().__init__(message)


class MissingParameterError(ChaosError):
    code = Code.MISSING_PARAMETER
    description = "missing required parameter"


class InvalidParameterError(ChaosError):
    code = Code.PARAMETER_INVALID
    description = "invalid parameter"


class ScriptNotFoundError(ChaosError):
    code = Code.FILE_NOT_FOUND
    description = "file not found"


class DownloadError(ChaosError):
    code = Code.DOWNLOAD_ERROR
    description = "download failed"


class ExtractError(ChaosError):
    code = Code.EXTRACT_ERROR
    description = "extract failed"


class NoEntryPointError(ChaosError):
    code = Code.NO_ENTRY_POINT
    description = "no entry point found"


class FileIOError(ChaosError):
    code = Code.IO_ERROR
    description = "file operation failed"


class ChannelUnavailableError(ChaosError):
    code = Code.CHANNEL_UNAVAILABLE
    description = "channel unavailable"


class DeliveryError(ChaosError):
    code = Code.DELIVERY_ERROR
    description = "delivery failed"


class ExecutionKind(Enum):
    """
    How a script entry point is launched.
    """
    SHELL = 'shell'
    INTERPRETED = 'interpreted'


class DeliveryMode(Enum):
    """
    Where a script's output transcript goes after the run.

    Exactly one mode applies per invocation, chosen by which of the
    upload-url, dsn and nfs-host flags is set. INLINE is the fallback when
    none is.
    """
    UPLOAD = 'upload'
    DATABASE = 'database'
    NFS = 'nfs'
    INLINE = 'inline'


# Useful for validating boolean user input
true_list = [
   'true', '1', 't', 'y', 'yes'
]
false_list = [
   'false', '0', 'f', 'n', 'no'
]


def str_to_bool(value: Union[str, bool, None], name: str,
                default: bool = False) -> bool:
    """
    Parse a boolean flag value.

    :param value: The raw flag value. None and '' resolve to default.
    :type value: str or bool
    :param name: The flag name, used in the error message.
    :type name: str
    :param default: Value used when the flag is absent.
        Optional. (Default: False)
    :type default: bool
    :return: bool
    """
    if isinstance(value, bool):
        return value
    if value is None or value == '':
        return default
    if value.lower() in true_list:
        return True
    if value.lower() in false_list:
        return False
    logger.error("Flag %s has a non-boolean value >%s<", name, value)
    raise InvalidParameterError(name, value, "expected one of {}".format(
        ", ".join(true_list + false_list)))


# Chaos defaults
# Please keep defaults in lexically acending order by name
DEFAULT_CHAOS_BACKUP_SUFFIX = ".chaosbak"
DEFAULT_CHAOS_COMMAND_TIMEOUT = None
DEFAULT_CHAOS_DOWNLOAD_DIR = tempfile.gettempdir()
DEFAULT_CHAOS_DOWNLOAD_TIMEOUT = 60
DEFAULT_CHAOS_FILE_ARGS_DELIMITER = "@A@B@C@"
DEFAULT_CHAOS_HTTP_COMMANDS = ["curl"]
DEFAULT_CHAOS_NFS_MOUNT_ROOT = "{}/chaosos-nfs".format(tempfile.gettempdir())
DEFAULT_CHAOS_PYTHON_INTERPRETER = "python3"
DEFAULT_CHAOS_RECORD_TABLE = "chaos_script_record"
DEFAULT_CHAOS_RECORDING_DIR = tempfile.gettempdir()
DEFAULT_CHAOS_SCRIPT_COMMANDS = ["cat", "rm", "sed", "awk", "tar"]
DEFAULT_CHAOS_SSH_CONFIG_FILE = "~/.ssh/config"
DEFAULT_CHAOS_SSH_TIMEOUT = 600
DEFAULT_CHAOS_STRACE_COMMANDS = ["strace", "pkill"]
DEFAULT_CHAOS_STRACE_PATH = "strace"
DEFAULT_CHAOS_UPLOAD_TIMEOUT = 30
DEFAULT_CHAOS_WORK_DIR_CLEANUP = True
