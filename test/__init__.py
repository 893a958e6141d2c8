import io
import os
import tarfile
from contextlib import contextmanager

import requests

from chaosos.common import ChannelUnavailableError
from chaosos.execute.execute import Channel, LocalChannel, Result


@contextmanager
def patch(owner, attr, value):
    """Monkey patch context manager.

    with patch(os, 'open', myopen):
        ...
    """
    old = getattr(owner, attr)
    setattr(owner, attr, value)
    try:
        yield getattr(owner, attr)
    finally:
        setattr(owner, attr, old)


class FakeChannel(Channel):
    """
    Records commands instead of running them.

    results maps a command prefix to the Result returned for it; anything
    else succeeds with empty output.
    """

    def __init__(self, results=None, missing=None, platform='linux',
                 files_exist=True, local=True):
        self.local = local
        self.commands = []
        self.results = results or {}
        self.missing = missing or []
        self._platform = platform
        self.files_exist = files_exist

    def _run(self, action, timeout=None):
        self.commands.append(action)
        for prefix, result in self.results.items():
            if action.startswith(prefix):
                return result
        return Result(0, "", "")

    def command_available(self, command):
        return command not in self.missing

    def file_exists(self, path):
        return self.files_exist and os.path.exists(path)


class UnreachableChannel(Channel):
    """
    A channel whose host cannot be reached: every command raises, the way
    FabricChannel does when the remote execution returns nothing.
    """

    def __init__(self, local=False):
        self.local = local

    def _run(self, action, timeout=None):
        raise ChannelUnavailableError("host", "unreachable",
                                      "remote execution did not provide results")


class TrustingLocalChannel(LocalChannel):
    """
    A LocalChannel that does not insist on every preflight command being
    installed on the test machine.
    """

    def command_available(self, command):
        return True


class FakeResponse(object):
    """
    Stands in for a requests response in download and upload tests.
    """

    def __init__(self, status_code=200, chunks=(b'',)):
        self.status_code = status_code
        self.chunks = chunks

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError("{} Error".format(self.status_code))

    def iter_content(self, chunk_size=1):
        return iter(self.chunks)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


def make_tar(path, files, modes=None):
    """
    Write a tar archive holding name -> content (str) entries.
    """
    modes = modes or {}
    with tarfile.open(path, 'w') as tar:
        for name, content in files.items():
            if content is None:
                info = tarfile.TarInfo(name)
                info.type = tarfile.DIRTYPE
                info.mode = modes.get(name, 0o755)
                tar.addfile(info)
                continue
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = modes.get(name, 0o644)
            tar.addfile(info, io.BytesIO(data))
    return path
