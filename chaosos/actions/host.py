import re
from logzero import logger

from chaosos.common import (ChaosError, ChannelUnavailableError,
                            DEFAULT_CHAOS_SSH_CONFIG_FILE,
                            ExperimentInvocation, ExperimentResult,
                            InvalidParameterError, fail_result, is_destroy,
                            new_invocation, result_to_dict, str_to_bool,
                            success_result)
from chaosos.execute.execute import Channel, get_channel, to_experiment_result

from typing import Dict

TIME_FLAG = 'time'
FORCED_FLAG = 'forced'

# shutdown(8) accepts "now", minutes ("+5" or "5") and wall clock "hh:mm"
SHUTDOWN_TIME = re.compile(r'^(now|\+?\d+|\d{1,2}:\d{2})$')


def _shutdown_time(flags: Dict[str, str]) -> str:
    t = (flags.get(TIME_FLAG) or "").strip()
    if t and not SHUTDOWN_TIME.match(t):
        raise InvalidParameterError(TIME_FLAG, t,
                                    "expected now, minutes such as 1 or +1, "
                                    "or a time such as 20:35")
    return t


def _run_host_action(channel: Channel, command: str, args: str = "") -> ExperimentResult:
    response, ok = channel.is_all_commands_available([command])
    if not ok:
        return response
    return to_experiment_result(channel.run(command, args), command)


def execute_host_restart(invocation: ExperimentInvocation,
                         channel: Channel) -> ExperimentResult:
    """
    Restart the target host, now or at a given time.

    With the time flag this runs `shutdown -r <time>`, otherwise `reboot`.
    Destroy has nothing to undo.
    """
    if channel is None:
        return fail_result(ChannelUnavailableError("channel", "not set"))
    if is_destroy(invocation):
        return success_result(invocation.uid)
    try:
        restart_time = _shutdown_time(invocation.flags)
        logger.info("Restarting host (time: >%s<)", restart_time)
        if restart_time:
            return _run_host_action(channel, "shutdown",
                                    "-r {}".format(restart_time))
        return _run_host_action(channel, "reboot")
    except ChaosError as e:
        logger.error("Host restart %s failed: %s", invocation.uid, e)
        return fail_result(e)


def execute_host_stop(invocation: ExperimentInvocation,
                      channel: Channel) -> ExperimentResult:
    """
    Power off the target host, now or at a given time.

    With the time flag this runs `shutdown -h <time>`, otherwise `poweroff`
    (`poweroff -f` when forced). Destroy has nothing to undo.
    """
    if channel is None:
        return fail_result(ChannelUnavailableError("channel", "not set"))
    if is_destroy(invocation):
        return success_result(invocation.uid)
    try:
        stop_time = _shutdown_time(invocation.flags)
        forced = str_to_bool(invocation.flags.get(FORCED_FLAG), FORCED_FLAG)
        logger.info("Stopping host (time: >%s< forced: %s)", stop_time,
                    forced)
        if stop_time:
            return _run_host_action(channel, "shutdown",
                                    "-h {}".format(stop_time))
        return _run_host_action(channel, "poweroff", "-f" if forced else "")
    except ChaosError as e:
        logger.error("Host stop %s failed: %s", invocation.uid, e)
        return fail_result(e)


def restart_host(uid: str, time: str = None, destroy: bool = False,
                 host: str = None, user: str = None, as_sudo: bool = False,
                 ssh_config_file: str = DEFAULT_CHAOS_SSH_CONFIG_FILE) -> Dict:
    """
    Restart a host.

    :param uid: Identifies the experiment.
        Required.
    :type uid: str
    :param time: When to restart: now, minutes from now, or hh:mm.
        Optional. (Default: None -- reboot immediately)
    :type time: str
    :param destroy: Run the destroy half (a no-op).
        Optional. (Default: False)
    :type destroy: bool
    :param host: SSH host to restart. None restarts this host.
        Optional. (Default: None)
    :type host: str
    :param ssh_config_file: The relative or absolute path to the SSH config
        file.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_SSH_CONFIG_FILE)
    :type ssh_config_file: str
    :return: Dict
    """
    flags = {TIME_FLAG: time} if time else {}
    channel = get_channel(host, user=user, as_sudo=as_sudo,
                          ssh_config_file=ssh_config_file)
    return result_to_dict(execute_host_restart(
        new_invocation(uid, flags, destroy=destroy), channel))


def stop_host(uid: str, time: str = None, forced: str = None,
              destroy: bool = False, host: str = None, user: str = None,
              as_sudo: bool = False,
              ssh_config_file: str = DEFAULT_CHAOS_SSH_CONFIG_FILE) -> Dict:
    """
    Power off a host.

    :param uid: Identifies the experiment.
        Required.
    :type uid: str
    :param time: When to power off: now, minutes from now, or hh:mm.
        Optional. (Default: None -- power off immediately)
    :type time: str
    :param forced: Skip the orderly shutdown when powering off immediately.
        Optional. (Default: None)
    :type forced: str
    :return: Dict
    """
    flags = {k: v for k, v in ((TIME_FLAG, time), (FORCED_FLAG, forced)) if v}
    channel = get_channel(host, user=user, as_sudo=as_sudo,
                          ssh_config_file=ssh_config_file)
    return result_to_dict(execute_host_stop(
        new_invocation(uid, flags, destroy=destroy), channel))
