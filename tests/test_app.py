import pytest
import json
from unittest.mock import patch
from app import app
from street_store import AuthError, ConnectivityError, MissingCredentialsError, StreetStoreError


class TestFlaskApp:
    """Test suite for Flask application"""

    @pytest.fixture
    def client(self):
        """Create test client"""
        app.config['TESTING'] = True
        with app.test_client() as client:
            yield client

    @pytest.fixture
    def sample_street(self):
        """Sample /street record for testing"""
        return {
            'relays': [True, False],
            'speeds_m_s': [1, 2, 3],
            'timestamp_ms': 0,
            'zone': 'north',
        }

    @patch('app.fetch_street_record')
    def test_get_street_success(self, mock_fetch, client, sample_street):
        """Test successful API call to /api/street endpoint"""
        mock_fetch.return_value = sample_street

        response = client.get('/api/street')

        assert response.status_code == 200
        assert response.content_type == 'application/json'

        data = json.loads(response.data)
        assert data['relays_status'] == ['ON', 'OFF', 'OFF', 'OFF']
        assert data['lights_on_count'] == 1
        assert data['speeds_kmh'] == [3.6, 7.2, 10.8]
        assert data['timestamp_iso'] == '1970-01-01T00:00:00.000Z'
        assert data['zone'] == 'north'

    @patch('app.fetch_street_record')
    def test_get_street_with_trailing_slash(self, mock_fetch, client, sample_street):
        """Test API call to /api/street/ endpoint (with trailing slash)"""
        mock_fetch.return_value = sample_street

        response = client.get('/api/street/')

        assert response.status_code == 200

    @patch('app.fetch_street_record')
    def test_get_street_preserves_field_order(self, mock_fetch, client, sample_street):
        """Test that raw fields come first, in record order, followed by computed fields"""
        mock_fetch.return_value = sample_street

        response = client.get('/api/street')

        keys = list(json.loads(response.data))
        assert keys == [
            'relays', 'speeds_m_s', 'timestamp_ms', 'zone',
            'relays_status', 'lights_on_count', 'speeds_kmh', 'timestamp_iso',
        ]

    @patch('app.fetch_street_record')
    def test_get_street_empty_record(self, mock_fetch, client):
        mock_fetch.return_value = {}

        response = client.get('/api/street')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data == {
            'relays_status': ['OFF', 'OFF', 'OFF', 'OFF'],
            'lights_on_count': 0,
            'speeds_kmh': [],
            'timestamp_iso': None,
        }

    @patch('app.fetch_street_record')
    def test_get_street_nan_speeds_serialize_as_null(self, mock_fetch, client):
        """Test that non-numeric speeds come out as null, keeping the body valid JSON"""
        mock_fetch.return_value = {'speeds_m_s': [1, 'fast']}

        response = client.get('/api/street')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['speeds_kmh'] == [3.6, None]

    @pytest.mark.parametrize('error', [
        ConnectivityError('Network error'),
        AuthError('Permission denied'),
        MissingCredentialsError('Missing service account file'),
        StreetStoreError('Malformed response'),
    ])
    def test_get_street_store_errors(self, client, error):
        """Test that store failures give a generic 500 without details"""
        with patch('app.fetch_street_record', side_effect=error):
            response = client.get('/api/street')

        assert response.status_code == 500
        assert response.content_type == 'application/json'

        data = json.loads(response.data)
        assert data == {'error': 'Failed to fetch street data'}

    @patch('app.fetch_street_record')
    def test_failed_request_is_isolated(self, mock_fetch, client, sample_street):
        """Test that the server keeps serving after a failed request"""
        mock_fetch.side_effect = [ConnectivityError('Network error'), sample_street]

        assert client.get('/api/street').status_code == 500
        assert client.get('/api/street').status_code == 200

    def test_index_serves_dashboard(self, client):
        """Test that the static UI is served at /"""
        response = client.get('/')

        assert response.status_code == 200
        assert 'text/html' in response.content_type
        assert b'/api/street' in response.data
        response.close()

    def test_invalid_endpoint(self, client):
        """Test request to non-existent endpoint"""
        response = client.get('/nonexistent')
        assert response.status_code == 404

    def test_invalid_method(self, client):
        """Test invalid HTTP method on /api/street endpoint"""
        response = client.post('/api/street')
        assert response.status_code == 405

        response = client.put('/api/street')
        assert response.status_code == 405

        response = client.delete('/api/street')
        assert response.status_code == 405

    def test_app_configuration(self):
        """Test Flask app configuration"""
        assert app.name == 'app'
        assert app.json.sort_keys is False

        with app.app_context():
            assert not app.debug
