"""
Unit tests for the HTTP API
"""
import socket

import pytest
import requests
from unittest.mock import Mock

from fluxwatch.metrics import MetricsCollector
from fluxwatch.models import DeviceIdentity, MetricsSnapshot
from fluxwatch.server import (
    AVAILABLE_ENDPOINTS,
    AgentStartupError,
    ApiServer,
    create_app,
    normalize_path,
)


@pytest.fixture
def identity():
    return DeviceIdentity(device_id='tower_001B213C4D5E', hostname='tower')


@pytest.fixture
def collector():
    collector = Mock(spec=MetricsCollector)
    collector.collect.return_value = MetricsSnapshot(
        os='Unraid 6.12.4', cpu=12.5, ram_percent=40.0, disk_percent=55.5,
        load_average='0.50 0.40 0.30', uptime='1d 2h 3m',
    )
    collector.local_ip.return_value = '192.168.1.50'
    collector.uptime.return_value = '1d 2h 3m'
    return collector


@pytest.fixture
def http(identity, collector):
    app = create_app(identity, collector)
    return app.test_client()


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestRoutes:
    """Path dispatch"""

    @pytest.mark.parametrize('path', ['/', '/health', '/HEALTH', '/health/'])
    def test_health(self, http, path):
        response = http.get(path)
        data = response.get_json()

        assert response.status_code == 200
        assert data['status'] == 'healthy'
        assert data['version'] == '1.0.1'
        assert data['platform'] == 'Linux/Unraid'
        assert data['deviceId'] == 'tower_001B213C4D5E'
        assert 'timestamp' in data

    @pytest.mark.parametrize('path', ['/info', '/api/info'])
    def test_info(self, http, path):
        data = http.get(path).get_json()

        assert data['os'] == 'Unraid 6.12.4'
        assert data['cpu'] == 12.5
        assert data['deviceId'] == 'tower_001B213C4D5E'
        assert data['version'] == '1.0.1'
        assert data['agentType'] == 'unraid'

    def test_status(self, http):
        response = http.get('/api/status')

        assert response.status_code == 200
        assert response.get_json() == {
            'online': True,
            'deviceId': 'tower_001B213C4D5E',
            'hostname': 'tower',
            'localIP': '192.168.1.50',
            'uptime': '1d 2h 3m',
            'version': '1.0.1',
            'platform': 'Linux/Unraid',
        }

    def test_status_with_failing_collector(self, identity, tmp_path):
        collector = MetricsCollector(
            proc_root=tmp_path / 'none', etc_root=tmp_path / 'none', emhttp_root=tmp_path / 'none'
        )
        http = create_app(identity, collector).test_client()

        response = http.get('/api/status')
        data = response.get_json()

        assert response.status_code == 200
        assert data['online'] is True
        assert data['uptime'] == 'Unknown'

    def test_status_with_undecodable_uptime(self, identity, tmp_path):
        proc = tmp_path / 'proc'
        proc.mkdir()
        (proc / 'uptime').write_bytes(b'\xff\xfe')
        collector = MetricsCollector(
            proc_root=proc, etc_root=tmp_path / 'none', emhttp_root=tmp_path / 'none'
        )
        http = create_app(identity, collector).test_client()

        response = http.get('/api/status')

        assert response.status_code == 200
        assert response.get_json()['online'] is True
        assert response.get_json()['uptime'] == 'Unknown'

    def test_info_with_undecodable_os_release(self, identity, tmp_path):
        etc = tmp_path / 'etc'
        etc.mkdir()
        (etc / 'os-release').write_bytes(b'PRETTY_NAME="Caf\xe9 OS"\n')
        collector = MetricsCollector(
            proc_root=tmp_path / 'none', etc_root=etc, emhttp_root=tmp_path / 'none'
        )
        http = create_app(identity, collector).test_client()

        response = http.get('/api/info')

        assert response.status_code == 200
        assert response.get_json()['os'].startswith('Caf')
        assert 'error' not in response.get_json()

    def test_metrics(self, http):
        data = http.get('/api/metrics').get_json()

        assert data['cpu'] == 12.5
        assert data['ramPercent'] == 40.0
        assert data['diskPercent'] == 55.5
        assert data['loadAverage'] == '0.50 0.40 0.30'
        assert 'timestamp' in data

    def test_metrics_recomputed_per_request(self, http, collector):
        http.get('/api/metrics')
        http.get('/api/metrics')

        assert collector.collect.call_count == 2

    def test_not_found(self, http):
        response = http.get('/Nope/')
        data = response.get_json()

        assert response.status_code == 404
        assert data == {
            'error': 'Not found',
            'path': '/nope',
            'availableEndpoints': AVAILABLE_ENDPOINTS,
        }

    def test_post_is_routed_by_path(self, http):
        response = http.post('/health')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'

    @pytest.mark.parametrize('method', ['PUT', 'DELETE', 'PROPFIND', 'REPORT'])
    def test_other_methods_are_routed_by_path(self, http, method):
        response = http.open('/api/status/', method=method)

        assert response.status_code == 200
        assert response.get_json()['online'] is True

    def test_normalize_path(self):
        assert normalize_path('/') == '/'
        assert normalize_path('') == '/'
        assert normalize_path('/API/Status//') == '/api/status'


class TestCorsAndErrors:
    """Headers, preflight and failure handling"""

    def test_cors_headers_on_every_response(self, http):
        for path in ('/health', '/missing'):
            response = http.get(path)
            assert response.headers['Access-Control-Allow-Origin'] == '*'
            assert 'GET' in response.headers['Access-Control-Allow-Methods']
            assert 'Content-Type' in response.headers['Access-Control-Allow-Headers']

    @pytest.mark.parametrize('path', ['/health', '/anything/at/all'])
    def test_options_short_circuits(self, http, collector, path):
        response = http.open(path, method='OPTIONS')

        assert response.status_code == 200
        assert response.data == b''
        assert response.headers['Access-Control-Allow-Origin'] == '*'
        collector.collect.assert_not_called()

    def test_handler_exception_returns_500(self, http, collector):
        collector.collect.side_effect = RuntimeError('disk on fire')

        response = http.get('/api/info')

        assert response.status_code == 500
        assert response.data == b''

    def test_router_survives_errors(self, http, collector):
        collector.collect.side_effect = RuntimeError('disk on fire')
        http.get('/api/metrics')

        assert http.get('/health').status_code == 200


class TestApiServer:
    """Real socket lifecycle"""

    def test_start_serve_stop(self, identity, collector):
        port = _free_port()
        server = ApiServer(identity, collector, host='127.0.0.1', port=port)

        server.start()
        try:
            response = requests.get(f"http://127.0.0.1:{port}/api/status", timeout=5)
            assert response.status_code == 200
            assert response.json()['online'] is True
        finally:
            server.stop()

    def test_port_in_use(self, identity, collector):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(('127.0.0.1', 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]

            server = ApiServer(identity, collector, host='127.0.0.1', port=port)
            with pytest.raises(AgentStartupError):
                server.start()

    def test_stop_without_start(self, identity, collector):
        ApiServer(identity, collector).stop()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
