import pytest

import chaosos.actions.kernel as kernel
from chaosos.actions.kernel import StraceDelay, delay_syscall, execute_strace_delay
from chaosos.common import (Code, InvalidParameterError, MissingParameterError,
                            new_invocation)
from chaosos.execute.execute import Result
from test import FakeChannel, UnreachableChannel

FLAGS = {
    'pid': '101,102',
    'syscall-name': 'mmap',
    'time': '10ms',
    'delay-loc': 'enter',
}


def test_inject_expression():
    delay = StraceDelay.from_flags(FLAGS)
    assert delay.pids == ['101', '102']
    assert delay.inject_expression() == 'inject=mmap:delay_enter=10ms'
    assert delay.strace_args() == '-p 101 -p 102 -f -e inject=mmap:delay_enter=10ms'

    delay = StraceDelay.from_flags(dict(FLAGS, first='1', end='5', step='2'))
    assert delay.inject_expression() == \
        'inject=mmap:delay_enter=10ms:when=1..5+2'

    delay = StraceDelay.from_flags(dict(FLAGS, first='3', step='2'))
    assert delay.inject_expression() == 'inject=mmap:delay_enter=10ms:when=3+2'

    # end and step need a first
    delay = StraceDelay.from_flags(dict(FLAGS, end='5'))
    assert delay.inject_expression() == 'inject=mmap:delay_enter=10ms'


@pytest.mark.parametrize('missing', ['pid', 'syscall-name', 'time', 'delay-loc'])
def test_missing_flags(missing):
    flags = dict(FLAGS)
    del flags[missing]
    with pytest.raises(MissingParameterError) as e:
        StraceDelay.from_flags(flags)
    assert missing in str(e.value)


@pytest.mark.parametrize('name,value', [
    ('pid', '101,abc'),
    ('time', '10m'),
    ('syscall-name', 'mmap; rm -rf /'),
    ('delay-loc', 'middle'),
    ('first', '-1'),
    ('step', 'x'),
])
def test_invalid_flags(name, value):
    with pytest.raises(InvalidParameterError):
        StraceDelay.from_flags(dict(FLAGS, **{name: value}))


def test_create_starts_tracer_in_background():
    channel = FakeChannel()
    result = execute_strace_delay(new_invocation('u1', FLAGS), channel,
                                  log_dir='/var/log')
    assert result.success
    assert channel.commands == [
        'nohup strace -p 101 -p 102 -f -e inject=mmap:delay_enter=10ms '
        '>/var/log/u1.strace 2>&1 &']


def test_destroy_kills_tracer():
    channel = FakeChannel()
    result = execute_strace_delay(new_invocation('u1', FLAGS, destroy=True),
                                  channel)
    assert result.success
    assert channel.commands == ["pkill -f '[i]nject=mmap:delay_enter='"]


def test_destroy_without_tracer():
    channel = FakeChannel(results={'pkill': Result(1, '', '')})
    result = execute_strace_delay(new_invocation('u1', FLAGS, destroy=True),
                                  channel)
    assert result.success


def test_destroy_failure():
    channel = FakeChannel(results={'pkill': Result(2, '', 'syntax error')})
    result = execute_strace_delay(new_invocation('u1', FLAGS, destroy=True),
                                  channel)
    assert result.code == Code.EXEC_FAILED


def test_strace_missing():
    channel = FakeChannel(missing=['strace'])
    result = execute_strace_delay(new_invocation('u1', FLAGS), channel)
    assert result.code == Code.CHANNEL_UNAVAILABLE
    assert channel.commands == []


def test_cgroup_root_is_ignored():
    channel = FakeChannel()
    flags = dict(FLAGS, **{'cgroup-root': '/sys/fs/cgroup'})
    assert execute_strace_delay(new_invocation('u1', flags), channel).success
    assert 'cgroup' not in channel.commands[0]


def test_invalid_flags_fail_before_running():
    channel = FakeChannel()
    result = execute_strace_delay(new_invocation('u1', {'pid': '1'}), channel)
    assert result.code == Code.MISSING_PARAMETER
    assert channel.commands == []


def test_wrapper(monkeypatch):
    channel = FakeChannel()
    monkeypatch.setattr(kernel, 'get_channel', lambda *args, **kwargs: channel)
    rendered = delay_syscall('u1', 42, 'read', '1s', 'exit', first='2')
    assert rendered['success']
    assert 'inject=read:delay_exit=1s:when=2' in channel.commands[0]


def test_unreachable_host():
    result = execute_strace_delay(new_invocation('u1', FLAGS),
                                  UnreachableChannel())
    assert result.code == Code.CHANNEL_UNAVAILABLE
    result = execute_strace_delay(new_invocation('u1', FLAGS, destroy=True),
                                  UnreachableChannel())
    assert result.code == Code.CHANNEL_UNAVAILABLE
