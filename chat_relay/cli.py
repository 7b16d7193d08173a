import logging
import signal

from chat_relay.config import parse_args
from chat_relay.health import start_health_server
from chat_relay.logs import setup_logging
from chat_relay.server import RelayServer

logger = logging.getLogger(__name__)


def install_signal_handlers(server: RelayServer) -> None:
    def _stop(signum, _frame):
        logger.info(f"Received signal {signal.Signals(signum).name}, shutting down")
        server.stop()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def main(argv=None) -> int:
    settings = parse_args(argv)
    setup_logging(settings.log_level, settings.log_file)

    server = RelayServer(settings)
    try:
        server.bind()
    except OSError as e:
        logger.error(f"Could not start listener on port {settings.port}: {e}")
        server.loop.close()
        return 1

    install_signal_handlers(server)
    if settings.health_port:
        start_health_server(server, settings.host, settings.health_port)

    server.serve_forever()
    return 0
