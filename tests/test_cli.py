import pytest

from chat_relay import cli
from chat_relay.listener import create_listening_socket


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, 'setup_logging', lambda *args, **kwargs: None)


def test_bind_failure_exits_with_1():
    taken = create_listening_socket('127.0.0.1', 0, 5)
    try:
        port = taken.getsockname()[1]
        assert cli.main(['--host', '127.0.0.1', '--port', str(port)]) == 1
    finally:
        taken.close()


def test_serves_until_stopped(monkeypatch):
    started = []

    def fake_serve(self):
        started.append(self.address)
        self.shutdown()

    monkeypatch.setattr(cli.RelayServer, 'serve_forever', fake_serve)
    monkeypatch.setattr(cli, 'install_signal_handlers', lambda server: None)
    assert cli.main(['--host', '127.0.0.1', '--port', '0']) == 0
    assert started and started[0][1] > 0


def test_signal_handlers_call_stop(monkeypatch):
    installed = {}
    monkeypatch.setattr(cli.signal, 'signal', lambda signum, fn: installed.__setitem__(signum, fn))

    class FakeServer:
        stopped = False

        def stop(self):
            self.stopped = True

    server = FakeServer()
    cli.install_signal_handlers(server)
    installed[cli.signal.SIGTERM](cli.signal.SIGTERM, None)
    assert server.stopped
    assert cli.signal.SIGINT in installed


@pytest.mark.parametrize('argv', [
    ['--buffer-size', '0', '--port', '0'],
    ['--port', '70000'],
])
def test_invalid_flags_exit_with_usage_error(argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    assert exc.value.code == 2
