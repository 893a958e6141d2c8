import shlex
from time import sleep
from logzero import logger

from chaosos.common import (ChaosError, ChannelUnavailableError,
                            DEFAULT_CHAOS_HTTP_COMMANDS,
                            DEFAULT_CHAOS_SSH_CONFIG_FILE,
                            ExperimentInvocation, ExperimentResult,
                            InvalidParameterError, MissingParameterError,
                            fail_result, is_destroy, new_invocation,
                            result_to_dict, success_result)
from chaosos.execute.execute import Channel, get_channel, to_experiment_result

from typing import Dict, Tuple

URL_FLAG = 'url'
TIME_FLAG = 'time'


def _delay_flags(flags: Dict[str, str]) -> Tuple[str, int]:
    url = (flags.get(URL_FLAG) or "").strip()
    if not url:
        raise MissingParameterError(URL_FLAG)
    if not (url.startswith("https://") or url.startswith("http://")):
        raise InvalidParameterError(URL_FLAG, url,
                                    "unsupported protocol scheme")
    t = flags.get(TIME_FLAG)
    t = "" if t is None else str(t).strip()
    if not t:
        raise MissingParameterError(TIME_FLAG)
    try:
        delay = int(t)
    except ValueError:
        raise InvalidParameterError(TIME_FLAG, t,
                                    "time must be a positive integer")
    if delay < 0:
        raise InvalidParameterError(TIME_FLAG, t,
                                    "time must be a positive integer")
    return url, delay


def execute_http_delay(invocation: ExperimentInvocation, channel: Channel,
                       commands=DEFAULT_CHAOS_HTTP_COMMANDS) -> ExperimentResult:
    """
    Wait `time` milliseconds, then request `url` from the target with curl.

    Destroy has nothing to undo; the request finished when create returned.
    """
    if channel is None:
        return fail_result(ChannelUnavailableError("channel", "not set"))
    if is_destroy(invocation):
        return success_result(invocation.uid)
    try:
        url, delay = _delay_flags(invocation.flags)
        response, ok = channel.is_all_commands_available(commands)
        if not ok:
            return response

        logger.info("Delaying request to %s by %d ms", url, delay)
        sleep(delay / 1000.0)
        return to_experiment_result(channel.run("curl", shlex.quote(url)),
                                    "curl")
    except ChaosError as e:
        logger.error("HTTP delay %s failed: %s", invocation.uid, e)
        return fail_result(e)


def delay_http(uid: str, url: str, time: str, destroy: bool = False,
               host: str = None, user: str = None,
               ssh_config_file: str = DEFAULT_CHAOS_SSH_CONFIG_FILE) -> Dict:
    """
    Delay an HTTP request.

    :param uid: Identifies the experiment.
        Required.
    :type uid: str
    :param url: The http(s) url to request.
        Required.
    :type url: str
    :param time: Delay before the request, in milliseconds.
        Required.
    :type time: str
    :return: Dict
    """
    channel = get_channel(host, user=user, ssh_config_file=ssh_config_file)
    invocation = new_invocation(uid, {URL_FLAG: url, TIME_FLAG: time},
                                destroy=destroy)
    return result_to_dict(execute_http_delay(invocation, channel))
