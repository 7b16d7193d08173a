import logging
import threading

from flask import Flask, jsonify

logger = logging.getLogger(__name__)


def create_app(server) -> Flask:
    """Read-only status endpoints. Never touches the relay's sockets."""
    app = Flask(__name__)

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({
            "status": "OK",
            "connections": len(server.registry),
            "uptime": round(server.uptime(), 3),
        })

    @app.route('/stats', methods=['GET'])
    def stats():
        return jsonify(dict(server.stats, connections=len(server.registry))), 200

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app


def start_health_server(server, host: str, port: int) -> threading.Thread:
    app = create_app(server)
    thread = threading.Thread(
        target=app.run,
        kwargs={'host': host or '0.0.0.0', 'port': port, 'debug': False, 'use_reloader': False},
        name='health',
        daemon=True,
    )
    thread.start()
    logger.info(f"Health endpoint on http://{host or '0.0.0.0'}:{port}/health")
    return thread
