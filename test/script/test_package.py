import os
import pytest
import requests

import chaosos.script.package as package
from chaosos.common import (DownloadError, MissingParameterError,
                            ScriptNotFoundError)
from chaosos.script.flags import ScriptFlags
from chaosos.script.package import download_path, resolve
from test import FakeChannel, FakeResponse, make_tar


def test_download_path():
    assert download_path('/opt/scripts/main11.tar', 'u1', '/tmp') == '/tmp/main11.tar'
    assert download_path(None, 'u1', '/tmp') == '/tmp/u1.tar'
    name = download_path(None, None, '/tmp')
    assert name.startswith('/tmp/') and name.endswith('.tar')


def test_resolve_local_archive(tmp_path):
    tar = make_tar(str(tmp_path / 'pkg.tar'), {'main.sh': 'echo hi\n'})
    pkg = resolve(ScriptFlags(file=tar), FakeChannel(), 'u1')
    assert pkg.path == tar
    assert pkg.archived
    assert pkg.work_dir is None


def test_resolve_raw_script(tmp_path):
    script = tmp_path / 'run.sh'
    script.write_text('echo hi\n')
    pkg = resolve(ScriptFlags(file=str(script)), FakeChannel(), 'u1')
    assert not pkg.archived


def test_resolve_missing_parameter():
    with pytest.raises(MissingParameterError) as e:
        resolve(ScriptFlags(), FakeChannel(), 'u1')
    assert 'file' in str(e.value)


def test_resolve_file_not_found(tmp_path):
    with pytest.raises(ScriptNotFoundError) as e:
        resolve(ScriptFlags(file=str(tmp_path / 'nope.tar')), FakeChannel(), 'u1')
    assert 'nope.tar' in str(e.value)


def test_resolve_downloads(tmp_path, monkeypatch):
    source = make_tar(str(tmp_path / 'src.tar'), {'main.sh': 'echo hi\n'})
    with open(source, 'rb') as f:
        data = f.read()
    calls = []

    def fake_get(url, stream=False, timeout=None):
        calls.append(url)
        return FakeResponse(chunks=(data[:100], data[100:]))

    monkeypatch.setattr(package.requests, 'get', fake_get)
    download_dir = tmp_path / 'downloads'
    download_dir.mkdir()
    pkg = resolve(ScriptFlags(download_url='http://h/pkg.tar'), FakeChannel(),
                  'u1', download_dir=str(download_dir))
    assert calls == ['http://h/pkg.tar']
    assert pkg.path == str(download_dir / 'u1.tar')
    assert pkg.archived
    with open(pkg.path, 'rb') as f:
        assert f.read() == data


def test_resolve_download_404(tmp_path, monkeypatch):
    monkeypatch.setattr(package.requests, 'get',
                        lambda url, stream=False, timeout=None: FakeResponse(404))
    with pytest.raises(DownloadError) as e:
        resolve(ScriptFlags(download_url='http://h/missing.tar'), FakeChannel(),
                'u1', download_dir=str(tmp_path))
    assert 'http://h/missing.tar' in str(e.value)
    assert os.listdir(str(tmp_path)) == []


def test_resolve_download_connection_error(tmp_path, monkeypatch):
    def refuse(url, stream=False, timeout=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(package.requests, 'get', refuse)
    with pytest.raises(DownloadError):
        resolve(ScriptFlags(download_url='http://h/pkg.tar'), FakeChannel(),
                'u1', download_dir=str(tmp_path))


def test_resolve_without_fetch(tmp_path, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("destroy must not download")

    monkeypatch.setattr(package.requests, 'get', fail)
    pkg = resolve(ScriptFlags(file='/opt/main11.tar',
                              download_url='http://h/pkg.tar'),
                  FakeChannel(files_exist=False), 'u1', fetch=False,
                  download_dir=str(tmp_path))
    assert pkg.path == str(tmp_path / 'main11.tar')
