"""Tests for run_server management command."""

import pytest
from django.core.management import CommandError, call_command

from filehub.apps.webdav.management.commands import run_server


class FakeServer:
    """Records how cheroot would have been driven."""

    instances: list['FakeServer'] = []

    def __init__(self, bind_addr, wsgi_app, numthreads, server_name):
        self.bind_addr = bind_addr
        self.wsgi_app = wsgi_app
        self.numthreads = numthreads
        self.server_name = server_name
        self.calls = []
        FakeServer.instances.append(self)

    def prepare(self):
        self.calls.append('prepare')

    def serve(self):
        self.calls.append('serve')
        raise KeyboardInterrupt

    def stop(self):
        self.calls.append('stop')


class BusyServer(FakeServer):
    """Fails to bind its address."""

    def prepare(self):
        raise OSError('Address already in use')


@pytest.fixture
def fake_server(monkeypatch):
    """Replace cheroot and the WSGI app with recorders.

    Returns:
        The FakeServer class.
    """
    FakeServer.instances = []
    monkeypatch.setattr(run_server, 'WSGIServer', FakeServer)
    monkeypatch.setattr(run_server, 'create_application', lambda: 'app')
    monkeypatch.delenv('FILEHUB_RELOAD_SUBPROCESS', raising=False)
    return FakeServer


def test_serves_until_interrupted(fake_server, settings, capsys):
    """Test the server is prepared, served and stopped."""
    settings.WEBDAV_HOST = '127.0.0.1'
    settings.WEBDAV_PORT = 8080

    call_command('run_server', '--threads', '4')

    server = fake_server.instances[0]
    assert server.bind_addr == ('127.0.0.1', 8080)
    assert server.wsgi_app == 'app'
    assert server.numthreads == 4
    assert server.calls == ['prepare', 'serve', 'stop']
    assert 'FileHub server stopped' in capsys.readouterr().out


def test_options_override_settings(fake_server):
    """Test --host and --port win over settings."""
    call_command('run_server', '--host', '::1', '--port', '9999')

    assert fake_server.instances[0].bind_addr == ('::1', 9999)


def test_bind_failure(monkeypatch, fake_server):
    """Test an unusable address is a command error."""
    monkeypatch.setattr(run_server, 'WSGIServer', BusyServer)

    with pytest.raises(CommandError, match='Cannot listen'):
        call_command('run_server', '--port', '9999')
