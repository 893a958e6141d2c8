import os
import re
import shlex
from logzero import logger

from chaosos.common import (ChaosError, ChannelUnavailableError,
                            DEFAULT_CHAOS_RECORDING_DIR,
                            DEFAULT_CHAOS_SSH_CONFIG_FILE,
                            DEFAULT_CHAOS_STRACE_COMMANDS,
                            DEFAULT_CHAOS_STRACE_PATH, ExperimentInvocation,
                            ExperimentResult, InvalidParameterError,
                            MissingParameterError, fail_result, is_destroy,
                            new_invocation, result_to_dict, success_result)
from chaosos.execute.execute import Channel, get_channel, to_experiment_result

from typing import Dict, List

PID_FLAG = 'pid'
SYSCALL_NAME_FLAG = 'syscall-name'
TIME_FLAG = 'time'
DELAY_LOC_FLAG = 'delay-loc'
FIRST_FLAG = 'first'
END_FLAG = 'end'
STEP_FLAG = 'step'
CGROUP_ROOT_FLAG = 'cgroup-root'

DELAY_LOCATIONS = ['enter', 'exit']
DELAY_TIME = re.compile(r'^\d+(s|ms|us|ns)?$')
SYSCALL_NAME = re.compile(r'^[a-z0-9_]+$')


class StraceDelay(object):
    """
    Parsed flags of a syscall delay experiment.
    """

    def __init__(self, pids: List[str], syscall: str, time: str,
                 delay_loc: str, first: str = None, end: str = None,
                 step: str = None):
        self.pids = pids
        self.syscall = syscall
        self.time = time
        self.delay_loc = delay_loc
        self.first = first
        self.end = end
        self.step = step

    @staticmethod
    def _integer(name, value):
        if value is None or value == '':
            return None
        if not value.isdigit():
            raise InvalidParameterError(name, value,
                                        "it must be a positive integer")
        return value

    @classmethod
    def from_flags(cls, flags: Dict[str, str]) -> 'StraceDelay':
        def value(name):
            v = flags.get(name)
            return "" if v is None else str(v).strip()

        pid_list = value(PID_FLAG)
        if not pid_list:
            raise MissingParameterError(PID_FLAG)
        pids = [p.strip() for p in pid_list.split(",") if p.strip()]
        if not pids or any(not p.isdigit() for p in pids):
            raise InvalidParameterError(PID_FLAG, pid_list,
                                        "expected a comma separated pid list")

        t = value(TIME_FLAG)
        if not t:
            raise MissingParameterError(TIME_FLAG)
        if not DELAY_TIME.match(t):
            raise InvalidParameterError(TIME_FLAG, t,
                                        "the unit of time can be s,ms,us,ns")

        syscall = value(SYSCALL_NAME_FLAG)
        if not syscall:
            raise MissingParameterError(SYSCALL_NAME_FLAG)
        if not SYSCALL_NAME.match(syscall):
            raise InvalidParameterError(SYSCALL_NAME_FLAG, syscall)

        delay_loc = value(DELAY_LOC_FLAG)
        if not delay_loc:
            raise MissingParameterError(DELAY_LOC_FLAG)
        if delay_loc not in DELAY_LOCATIONS:
            raise InvalidParameterError(DELAY_LOC_FLAG, delay_loc,
                                        "expected enter or exit")

        return cls(pids, syscall, t, delay_loc,
                   first=cls._integer(FIRST_FLAG, value(FIRST_FLAG)),
                   end=cls._integer(END_FLAG, value(END_FLAG)),
                   step=cls._integer(STEP_FLAG, value(STEP_FLAG)))

    def inject_expression(self) -> str:
        """
        The strace -e inject expression, e.g.
        inject=mmap:delay_enter=10s:when=1..5+2
        """
        expr = "inject={}:delay_{}={}".format(self.syscall, self.delay_loc,
                                              self.time)
        if self.first:
            expr = "{}:when={}".format(expr, self.first)
            if self.end:
                expr = "{}..{}".format(expr, self.end)
            if self.step:
                expr = "{}+{}".format(expr, self.step)
        return expr

    def strace_args(self) -> str:
        pid_args = " ".join("-p {}".format(p) for p in self.pids)
        return "{} -f -e {}".format(pid_args, self.inject_expression())

    def tracer_pattern(self) -> str:
        # [i] keeps pkill from matching the shell that carries the pattern
        return "[i]nject={}:delay_{}=".format(self.syscall, self.delay_loc)


def _start(uid: str, delay: StraceDelay, channel: Channel, strace_path: str,
           log_dir: str) -> ExperimentResult:
    log_file = os.path.join(log_dir, "{}.strace".format(uid))
    # strace stays attached until destroy; run it detached from the channel
    command = "nohup {} {} >{} 2>&1 &".format(shlex.quote(strace_path),
                                              delay.strace_args(),
                                              shlex.quote(log_file))
    logger.info("Delaying syscall %s of pid(s) %s by %s on %s", delay.syscall,
                ",".join(delay.pids), delay.time, delay.delay_loc)
    return to_experiment_result(channel.run(command), "strace")


def _stop(uid: str, delay: StraceDelay, channel: Channel) -> ExperimentResult:
    rtn = channel.run("pkill", "-f {}".format(shlex.quote(delay.tracer_pattern())))
    # pkill exits 1 when nothing matched: the tracer is already gone
    if rtn.return_code in [0, 1]:
        logger.info("Stopped syscall delay of %s for %s", delay.syscall, uid)
        return success_result(uid)
    return to_experiment_result(rtn, "pkill")


def execute_strace_delay(invocation: ExperimentInvocation, channel: Channel,
                         commands: List[str] = DEFAULT_CHAOS_STRACE_COMMANDS,
                         strace_path: str = DEFAULT_CHAOS_STRACE_PATH,
                         log_dir: str = DEFAULT_CHAOS_RECORDING_DIR) -> ExperimentResult:
    """
    Delay a syscall of one or more processes by attaching strace to them.

    create starts `strace -p <pid>... -f -e inject=<syscall>:delay_<loc>=<time>`
    in the background; destroy kills the tracer again.

    :param invocation: uid, mode and flags (pid, syscall-name, time,
        delay-loc, and optionally first, end, step).
    :type invocation: ExperimentInvocation
    :param channel: Runs commands on the target.
    :type channel: Channel
    :param strace_path: The strace binary.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_STRACE_PATH)
    :type strace_path: str
    :param log_dir: Where strace's own output goes, as <uid>.strace.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_RECORDING_DIR)
    :type log_dir: str
    :return: ExperimentResult
    """
    if channel is None:
        return fail_result(ChannelUnavailableError("channel", "not set"))
    if invocation.flags.get(CGROUP_ROOT_FLAG):
        logger.debug("Ignoring %s=%s, strace attaches by pid",
                     CGROUP_ROOT_FLAG, invocation.flags[CGROUP_ROOT_FLAG])
    try:
        delay = StraceDelay.from_flags(invocation.flags)
        response, ok = channel.is_all_commands_available(commands)
        if not ok:
            return response

        if is_destroy(invocation):
            return _stop(invocation.uid, delay, channel)
        return _start(invocation.uid, delay, channel, strace_path, log_dir)
    except ChaosError as e:
        logger.error("Syscall delay %s failed: %s", invocation.uid, e)
        return fail_result(e)


def delay_syscall(uid: str, pid: str, syscall_name: str, time: str,
                  delay_loc: str, first: str = None, end: str = None,
                  step: str = None, destroy: bool = False, host: str = None,
                  user: str = None, as_sudo: bool = False,
                  ssh_config_file: str = DEFAULT_CHAOS_SSH_CONFIG_FILE) -> Dict:
    """
    Delay a syscall of the given process(es).

    :param uid: Identifies the experiment.
        Required.
    :type uid: str
    :param pid: Comma separated pids to trace.
        Required.
    :type pid: str
    :param syscall_name: The syscall to delay, e.g. mmap.
        Required.
    :type syscall_name: str
    :param time: The delay; the unit can be s, ms, us or ns.
        Required.
    :type time: str
    :param delay_loc: enter delays before the syscall runs, exit after.
        Required.
    :type delay_loc: str
    :param first: Inject from the first-th matching syscall on.
        Optional. (Default: None)
    :type first: str
    :param end: Stop injecting after the end-th matching syscall.
        Optional. (Default: None)
    :type end: str
    :param step: Inject every step-th matching syscall.
        Optional. (Default: None)
    :type step: str
    :return: Dict
    """
    flags = {
        PID_FLAG: pid,
        SYSCALL_NAME_FLAG: syscall_name,
        TIME_FLAG: time,
        DELAY_LOC_FLAG: delay_loc,
        FIRST_FLAG: first,
        END_FLAG: end,
        STEP_FLAG: step,
    }
    flags = {k: v for k, v in flags.items() if v is not None}
    channel = get_channel(host, user=user, as_sudo=as_sudo,
                          ssh_config_file=ssh_config_file)
    return result_to_dict(execute_strace_delay(
        new_invocation(uid, flags, destroy=destroy), channel))
