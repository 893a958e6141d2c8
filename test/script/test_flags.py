import pytest

from chaosos.common import DeliveryMode, InvalidParameterError
from chaosos.script.flags import (ScriptFlags, join_file_args,
                                  split_file_args)


@pytest.mark.parametrize('delimiter', ['@A@B@C@', ':', '-'])
def test_split_and_join(delimiter):
    raw = delimiter.join(['aaa', 'bbb', 'ccc'])
    assert join_file_args(split_file_args(raw, delimiter)) == 'aaa bbb ccc'


def test_empty_file_args():
    assert split_file_args('') == []
    assert split_file_args(None) == []
    assert join_file_args([]) == ''


def test_default_delimiter_keeps_colons_and_dashes():
    assert split_file_args('host:80@A@B@C@--verbose') == ['host:80', '--verbose']


def test_join_quotes_shell_words():
    assert join_file_args(['a b', "it's"]) == "'a b' 'it'\"'\"'s'"


def test_from_flags():
    flags = ScriptFlags.from_flags({
        'file': ' /tmp/pkg.tar ',
        'file-args': 'x@A@B@C@y',
        'recover': 'true',
        'channel': 'ssh',
    })
    assert flags.file == '/tmp/pkg.tar'
    assert flags.file_args == ['x', 'y']
    assert flags.recover
    assert flags.delivery_mode == DeliveryMode.INLINE


def test_delivery_modes():
    assert ScriptFlags.from_flags({'upload-url': 'http://h/up'}).delivery_mode \
        == DeliveryMode.UPLOAD
    assert ScriptFlags.from_flags({'dsn': 'sqlite:///x.db'}).delivery_mode \
        == DeliveryMode.DATABASE
    assert ScriptFlags.from_flags({'nfs-host': 'nfs1:/exports'}).delivery_mode \
        == DeliveryMode.NFS


def test_delivery_targets_are_exclusive():
    with pytest.raises(InvalidParameterError) as e:
        ScriptFlags.from_flags({'upload-url': 'http://h/up',
                                'dsn': 'sqlite:///x.db'})
    assert 'upload-url' in str(e.value)
    assert 'dsn' in str(e.value)


@pytest.mark.parametrize('flags', [
    {'download-url': 'ftp://h/pkg.tar'},
    {'upload-url': 'h/up'},
    {'nfs-host': 'nfs1'},
    {'recover': 'perhaps'},
    {'dsn': 'postgres://h/db'},
    {'dsn': 'mysql://u:p@h:abc/db'},
    {'dsn': 'mysql://u:p@h:3306'},
    {'dsn': 'sqlite:///'},
])
def test_invalid_flags(flags):
    with pytest.raises(InvalidParameterError):
        ScriptFlags.from_flags(flags)


def test_valid_dsns():
    for dsn in ['sqlite:///records.db', 'sqlite:////var/lib/records.db',
                'mysql://u:p@h/db', 'mysql://u:p@h:3307/db']:
        assert ScriptFlags.from_flags({'dsn': dsn}).dsn == dsn


def test_dsn_error_hides_password():
    with pytest.raises(InvalidParameterError) as e:
        ScriptFlags.from_flags({'dsn': 'mysql://u:secret@h:abc/db'})
    assert 'invalid port' in str(e.value)
    assert 'secret' not in str(e.value)
