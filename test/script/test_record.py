import pytest

from chaosos.common import Code, ExecutionKind
from chaosos.execute.execute import Result
from chaosos.script.entry import EntryPoint
from chaosos.script.record import (build_direct_command,
                                   build_recording_command, is_bsd,
                                   recording_session, reset_session, run)
from test import FakeChannel


@pytest.mark.parametrize('platform,expected', [
    ('linux', False),
    ('darwin', True),
    ('freebsd', True),
    ('FreeBSD', True),
])
def test_is_bsd(platform, expected):
    assert is_bsd(platform) == expected


def test_gnu_recording_command():
    command = build_recording_command('/w/main.sh', 'x y', '/r/u1.time',
                                      '/r/u1.out', 'linux')
    assert command == "script -e -t 2>/r/u1.time -a /r/u1.out -c '/w/main.sh x y'"


def test_bsd_recording_command():
    command = build_recording_command('/w/main.sh', 'x y', '/r/u1.time',
                                      '/r/u1.out', 'darwin')
    assert command == "script -a -t 0 /r/u1.out /w/main.sh x y 2>/r/u1.time"


def test_direct_command():
    assert build_direct_command('/w/main.py', 'x', '/r/u1.out', 'python3') == \
        "python3 /w/main.py x >>/r/u1.out 2>&1"
    assert build_direct_command('/w/main', '', '/r/u1.out') == \
        "/w/main >>/r/u1.out 2>&1"


def test_recording_session():
    session = recording_session('u1', '/r')
    assert session.timing == '/r/u1.time'
    assert session.output == '/r/u1.out'


def test_run_records_shell_entry():
    channel = FakeChannel(platform='linux')
    entry = EntryPoint('/w/main.sh', ExecutionKind.SHELL, True)
    session, result = run(entry, ['a'], 'u1', channel, recording_dir='/r')
    assert result.success
    assert session.output == '/r/u1.out'
    assert channel.commands == [
        "script -e -t 2>/r/u1.time -a /r/u1.out -c '/w/main.sh a'"]


def test_run_interpreted_entry():
    channel = FakeChannel()
    entry = EntryPoint('/w/main.py', ExecutionKind.INTERPRETED, False)
    run(entry, [], 'u1', channel, recording_dir='/r', interpreter='python3')
    assert channel.commands == ["python3 /w/main.py >>/r/u1.out 2>&1"]


def test_run_unrecorded_shell_entry_ignores_interpreter():
    channel = FakeChannel()
    entry = EntryPoint('/w/main.sh', ExecutionKind.SHELL, False)
    run(entry, [], 'u1', channel, recording_dir='/r', interpreter='python3')
    assert channel.commands == ["/w/main.sh >>/r/u1.out 2>&1"]


def test_run_failure():
    channel = FakeChannel(results={'script': Result(3, '', 'boom')})
    entry = EntryPoint('/w/main.sh', ExecutionKind.SHELL, True)
    _, result = run(entry, [], 'u1', channel, recording_dir='/r')
    assert not result.success
    assert result.code == Code.EXEC_FAILED
    assert 'exited with code 3' in result.error


def test_run_removes_stale_transcripts(tmp_path):
    (tmp_path / 'u1.out').write_text('old output\n')
    (tmp_path / 'u1.time').write_text('old timing\n')
    channel = FakeChannel()
    entry = EntryPoint('/w/main.sh', ExecutionKind.SHELL, True)
    session, _ = run(entry, [], 'u1', channel, recording_dir=str(tmp_path))
    assert not (tmp_path / 'u1.out').exists()
    assert not (tmp_path / 'u1.time').exists()
    assert session.output == str(tmp_path / 'u1.out')


def test_reset_session_without_files(tmp_path):
    reset_session(recording_session('u9', str(tmp_path)))
    assert list(tmp_path.iterdir()) == []
