"""
HTTP API - Local status, info and metrics endpoints
"""
import logging
import threading
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.serving import make_server

from fluxwatch.config import AGENT_TYPE, PLATFORM_NAME, VERSION

logger = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = ['/', '/health', '/info', '/api/info', '/api/status', '/api/metrics']
ALL_METHODS = [
    'GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS', 'TRACE', 'CONNECT',
    'PROPFIND', 'PROPPATCH', 'MKCOL', 'COPY', 'MOVE', 'LOCK', 'UNLOCK', 'REPORT', 'SEARCH',
]
CORS_METHODS = 'GET, POST, OPTIONS'
CORS_HEADERS = 'Content-Type, Authorization'


class AgentStartupError(Exception):
    """The agent cannot start serving (e.g. the port is taken)"""


def _utc_now():
    return datetime.now(timezone.utc).isoformat()


def normalize_path(path):
    """Lower-case and strip trailing slashes; the root stays '/'"""
    return path.lower().rstrip('/') or '/'


def create_app(identity, collector):
    """Build the Flask app serving the agent API"""
    app = Flask(__name__)

    def health():
        return {
            'status': 'healthy',
            'version': VERSION,
            'platform': PLATFORM_NAME,
            'deviceId': identity.device_id,
            'timestamp': _utc_now(),
        }

    def info():
        data = collector.collect().to_dict()
        data['deviceId'] = identity.device_id
        data['version'] = VERSION
        data['agentType'] = AGENT_TYPE
        return data

    def status():
        return {
            'online': True,
            'deviceId': identity.device_id,
            'hostname': identity.hostname,
            'localIP': collector.local_ip(),
            'uptime': collector.uptime(),
            'version': VERSION,
            'platform': PLATFORM_NAME,
        }

    def metrics():
        data = collector.collect().to_dict()
        return {
            'cpu': data.get('cpu', 0),
            'ramPercent': data.get('ramPercent', 0),
            'diskPercent': data.get('diskPercent', 0),
            'loadAverage': data.get('loadAverage', '0 0 0'),
            'timestamp': _utc_now(),
        }

    routes = {
        '/': health,
        '/health': health,
        '/info': info,
        '/api/info': info,
        '/api/status': status,
        '/api/metrics': metrics,
    }

    @app.before_request
    def preflight():
        if request.method == 'OPTIONS':
            return '', 200

    @app.route('/', defaults={'path': ''}, methods=ALL_METHODS)
    @app.route('/<path:path>', methods=ALL_METHODS)
    def dispatch(path):
        path = normalize_path('/' + path)
        logger.debug(f"Request: {request.method} {path}")

        handler = routes.get(path)
        if handler is None:
            return jsonify({
                'error': 'Not found',
                'path': path,
                'availableEndpoints': AVAILABLE_ENDPOINTS,
            }), 404

        return jsonify(handler())

    @app.after_request
    def cors_headers(response):
        response.headers.setdefault('Access-Control-Allow-Origin', '*')
        response.headers.setdefault('Access-Control-Allow-Methods', CORS_METHODS)
        response.headers.setdefault('Access-Control-Allow-Headers', CORS_HEADERS)
        return response

    @app.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Process request error: {e}", exc_info=True)
        return '', 500

    # flask-cors hooks run before cors_headers, which only fills in what is missing
    CORS(app, origins='*', methods=CORS_METHODS.split(', '), allow_headers=CORS_HEADERS.split(', '))

    return app


class ApiServer:
    """Serves the API on a threaded werkzeug server, one thread per connection"""

    def __init__(self, identity, collector, host='0.0.0.0', port=8080):
        self.host = host
        self.port = port
        self.app = create_app(identity, collector)
        self._server = None
        self._thread = None

    def start(self):
        logger.info(f"Starting API Server on {self.host}:{self.port}")
        try:
            self._server = make_server(self.host, self.port, self.app, threaded=True)
        except (OSError, SystemExit) as e:
            # werkzeug exits the interpreter when the port is unavailable
            raise AgentStartupError(f"Failed to start HTTP server on port {self.port}: {e}") from e

        self._thread = threading.Thread(target=self._server.serve_forever, name='http-accept', daemon=True)
        self._thread.start()
        logger.info(f"API Server is running on http://{self.host}:{self.port}")

    def stop(self):
        if self._server is None:
            return
        logger.info("Stopping API Server...")
        try:
            self._server.shutdown()
            self._server.server_close()
        except OSError as e:
            logger.error(f"Error stopping listener: {e}")
        self._server = None
        logger.info("API Server stopped")
