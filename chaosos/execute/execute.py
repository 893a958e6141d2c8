import abc
import os
import shlex
import shutil
import subprocess
import sys

from collections import namedtuple

from logzero import logger
from multiprocessing import Process, Queue
from queue import Empty

from fabric import Connection, Config
from paramiko import AuthenticationException
from psutil import Process as PsProcess, NoSuchProcess, wait_procs

from chaosos.common import (ChannelUnavailableError, Code, ExperimentResult,
                            DEFAULT_CHAOS_SSH_CONFIG_FILE,
                            DEFAULT_CHAOS_SSH_TIMEOUT, fail_result,
                            success_result)

from typing import List, Tuple

Result = namedtuple('Result', ['return_code', 'stdout', 'stderr'])

# Return code reported when a command is killed for exceeding its timeout
TIMEOUT_RETURN_CODE = 124


def to_experiment_result(rtn: Result, action: str = None) -> ExperimentResult:
    if rtn.return_code == 0:
        return success_result(rtn.stdout)
    return ExperimentResult(False, Code.EXEC_FAILED, rtn.stdout,
                            "{} exited with code {}: {}".format(
                                action or "command", rtn.return_code,
                                rtn.stderr.strip()))


class Channel(abc.ABC):
    """
    Runs commands on the experiment target and answers questions about it.

    Actions never touch the target's shell directly; they go through a
    channel so the same action works locally and over SSH.
    """
    _platform = None
    # True when the channel shares this process's file system
    local = False

    def run(self, command: str, args: str = "", timeout=None) -> Result:
        action = command if not args else "{} {}".format(command, args)
        logger.debug("channel run: %s", action)
        return self._run(action, timeout=timeout)

    @abc.abstractmethod
    def _run(self, action: str, timeout=None) -> Result:
        raise NotImplementedError('users must define _run to use this base class')

    def command_available(self, command: str) -> bool:
        return self.run("command -v", shlex.quote(command)).return_code == 0

    def is_all_commands_available(self, commands: List[str]) -> Tuple[ExperimentResult, bool]:
        missing = [c for c in commands if not self.command_available(c)]
        if missing:
            logger.error("Commands not available on target: %s", missing)
            return fail_result(ChannelUnavailableError("commands",
                                                       ", ".join(missing))), False
        return success_result(), True

    def file_exists(self, path: str) -> bool:
        return self.run("test -e", shlex.quote(path)).return_code == 0

    @property
    def platform(self) -> str:
        if self._platform is None:
            rtn = self.run("uname", "-s")
            self._platform = rtn.stdout.strip().lower() or sys.platform
        return self._platform


class LocalChannel(Channel):
    """
    Runs commands on this host through the shell.
    """
    local = True

    def __init__(self, default_timeout=None):
        self.default_timeout = default_timeout

    @staticmethod
    def _kill_tree(pid):
        try:
            parent = PsProcess(pid)
        except NoSuchProcess:
            return
        procs = parent.children(recursive=True)
        procs.append(parent)
        for p in procs:
            try:
                p.kill()
            except NoSuchProcess:
                pass
        wait_procs(procs, timeout=5)

    def _run(self, action: str, timeout=None) -> Result:
        timeout = timeout if timeout is not None else self.default_timeout
        proc = subprocess.Popen(action, shell=True, stdout=subprocess.PIPE,
                                stderr=subprocess.PIPE,
                                universal_newlines=True)
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error("Command exceeded timeout of %s seconds: %s",
                         timeout, action)
            # The shell's children survive proc.kill(); take the whole tree.
            self._kill_tree(proc.pid)
            stdout, stderr = proc.communicate()
            return Result(TIMEOUT_RETURN_CODE, stdout,
                          "{}command timed out after {} seconds".format(
                              stderr, timeout))
        return Result(proc.returncode, stdout, stderr)

    def command_available(self, command: str) -> bool:
        return shutil.which(command) is not None

    def file_exists(self, path: str) -> bool:
        return os.path.exists(path)

    @property
    def platform(self) -> str:
        return sys.platform


class FabricChannel(Channel):
    """
    Runs commands on a remote host over SSH using Fabric.
    """

    @staticmethod
    def _multiprocess_execute_on_host(q, host, action, config, user=None, as_sudo=False, connect_kwargs=None):
        with Connection(host, config=config, user=user, connect_kwargs=connect_kwargs) as c:
            if as_sudo:
                rtn = c.sudo(action, hide=True, warn=True)
            else:
                rtn = c.run(action, hide=True, warn=True)

            q.put(Result(rtn.return_code, rtn.stdout, rtn.stderr))

    config = None

    def __init__(self, host: str, user: str = None, as_sudo=False,
                 ssh_config_file=None, identity_file=None,
                 default_timeout=DEFAULT_CHAOS_SSH_TIMEOUT):
        self.host = host
        self.user = user
        self.as_sudo = as_sudo
        self.default_timeout = default_timeout
        self.config = FabricChannel._create_config(ssh_config_file=ssh_config_file)
        self.connect_kwargs = FabricChannel._collect_connect_kwargs(identity_file)

    @staticmethod
    def _create_config(ssh_config_file=None):
        if ssh_config_file:
            FabricChannel._is_readable_file(ssh_config_file, 'ssh_config')
        return Config(runtime_ssh_path=ssh_config_file)

    @staticmethod
    def _is_readable_file(path, file_kind):
        if not isinstance(path, str):
            raise ValueError("path to file must be a string")

        if os.access(path, os.R_OK):
            if os.path.isfile(path):
                return
            else:
                raise OSError("Path is not to a file -- '%s'" % str(path))
        else:
            raise OSError("Unable to access the file (not readable) -- %s -- '%s'" % (file_kind, path))

    @staticmethod
    def _collect_connect_kwargs(identity_file):
        connect_kwargs = {}

        if identity_file:
            FabricChannel._is_readable_file(identity_file, 'identity_file')
            connect_kwargs['key_filename'] = identity_file

        if not connect_kwargs:
            connect_kwargs = None

        return connect_kwargs

    def _run(self, action: str, timeout=None) -> Result:
        timeout = timeout if timeout is not None else self.default_timeout
        p = None
        q = Queue()
        try:
            # Running execution in a subprocess - Did this to avoid errors in paramiko clean up.
            p = Process(target=FabricChannel._multiprocess_execute_on_host,
                        args=(q, self.host, action, self.config),
                        kwargs={'user': self.user, "as_sudo": self.as_sudo,
                                "connect_kwargs": self.connect_kwargs})
            p.start()
            p.join(timeout=timeout)
            if p.is_alive():
                logger.error("Remote execution on %s exceeded timeout of %s seconds",
                             self.host, timeout)
                return Result(TIMEOUT_RETURN_CODE, "",
                              "remote execution exceeded timeout")
            rtn = q.get(timeout=0.1)
        except AuthenticationException as e:
            raise e
        except Empty:
            raise ChannelUnavailableError("host", self.host,
                                          "remote execution did not provide results")
        finally:
            if p:
                p.terminate()

        return rtn


def get_channel(host: str = None, user: str = None, as_sudo=False,
                ssh_config_file: str = DEFAULT_CHAOS_SSH_CONFIG_FILE,
                identity_file: str = None) -> Channel:
    """
    Pick the channel for an experiment target.

    :param host: The SSH host alias/hostname. None targets this host.
        Optional. (Default: None)
    :type host: str
    :param user: The SSH user.
        Optional. (Default: None)
    :type user: str
    :param as_sudo: Run remote commands with sudo.
        Optional. (Default: False)
    :type as_sudo: bool
    :param ssh_config_file: The relative or absolute path to the SSH config
        file. Ignored when it does not exist.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_SSH_CONFIG_FILE)
    :type ssh_config_file: str
    :param identity_file: The relative or absolute path to an SSH private
        key.
        Optional. (Default: None)
    :type identity_file: str
    :return: Channel
    """
    if not host:
        return LocalChannel()
    ssh_config_file = os.path.expanduser(ssh_config_file) if ssh_config_file else None
    if ssh_config_file and not os.path.isfile(ssh_config_file):
        logger.debug("SSH config file %s not found, using Fabric defaults",
                     ssh_config_file)
        ssh_config_file = None
    if identity_file:
        identity_file = os.path.expanduser(identity_file)
    return FabricChannel(host, user=user, as_sudo=as_sudo,
                         ssh_config_file=ssh_config_file,
                         identity_file=identity_file)
