"""
Negotiate Route Unit Tests

Tests for the token broker endpoints in tictactoe/routes/negotiate.py including
success responses, request validation and configuration failures.
"""

import pytest
from unittest.mock import Mock
from flask import Flask

from tictactoe.broker.negotiate_service import NegotiateService
from tictactoe.routes.negotiate import create_negotiate_blueprint

CONNECTION_STRING = "Endpoint=http://relay.test;AccessKey=route-test-key;"


def make_client(service):
    app = Flask(__name__)
    app.config['TESTING'] = True
    app.register_blueprint(create_negotiate_blueprint({'negotiate_service': service}))
    return app.test_client()


class TestNegotiateBlueprintCreation:
    """Test blueprint creation and configuration"""

    def test_sets_global_service(self):
        service = Mock()
        from tictactoe.routes import negotiate
        blueprint = create_negotiate_blueprint({'negotiate_service': service})

        assert blueprint.name == 'negotiate'
        assert negotiate.negotiate_service is service


class TestNegotiatePost:
    """Test POST /negotiate"""

    def setup_method(self):
        self.service = NegotiateService(CONNECTION_STRING)
        self.client = make_client(self.service)

    def test_success_returns_scoped_url(self):
        response = self.client.post('/negotiate', json={'roomCode': 'ABCD', 'playerId': 'player-a'})

        assert response.status_code == 200
        url = response.get_json()['url']
        assert url.startswith('http://relay.test?access_token=')

        token = url.split('access_token=', 1)[1]
        assert self.service.get_issuer().verify(token).group == 'room-ABCD'

    @pytest.mark.parametrize("body", [
        {},
        {'roomCode': 'ABCD'},
        {'playerId': 'player-a'},
        {'roomCode': '', 'playerId': 'player-a'},
    ])
    def test_missing_fields_return_400(self, body):
        response = self.client.post('/negotiate', json=body)

        assert response.status_code == 400
        data = response.get_json()
        assert data['error'] == 'roomCode and playerId are required in POST body'
        assert data['code'] == 'MISSING_DATA'

    def test_non_json_body_treated_as_empty(self):
        response = self.client.post('/negotiate', data='not json', content_type='text/plain')
        assert response.status_code == 400
        assert response.get_json()['code'] == 'MISSING_DATA'

    def test_json_array_body_treated_as_empty(self):
        response = self.client.post('/negotiate', json=['ABCD', 'player-a'])
        assert response.status_code == 400

    def test_invalid_room_code_returns_400(self):
        response = self.client.post('/negotiate', json={'roomCode': 'nope', 'playerId': 'player-a'})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_ROOM_CODE'

    def test_unconfigured_broker_returns_500(self):
        client = make_client(NegotiateService(''))
        response = client.post('/negotiate', json={'roomCode': 'ABCD', 'playerId': 'player-a'})

        assert response.status_code == 500
        data = response.get_json()
        assert data['code'] == 'BROKER_NOT_CONFIGURED'
        assert data['error']

    def test_malformed_secret_returns_500(self):
        client = make_client(NegotiateService('Endpoint=http://relay.test;'))
        response = client.post('/negotiate', json={'roomCode': 'ABCD', 'playerId': 'player-a'})
        assert response.status_code == 500
        assert response.get_json()['code'] == 'INVALID_CONNECTION_STRING'

    def test_unexpected_error_returns_500(self):
        service = Mock()
        service.negotiate.side_effect = RuntimeError("boom")
        client = make_client(service)

        response = client.post('/negotiate', json={'roomCode': 'ABCD', 'playerId': 'player-a'})

        assert response.status_code == 500
        assert response.get_json()['code'] == 'INTERNAL_ERROR'


class TestNegotiateGet:
    """Test GET /negotiate readiness probe"""

    def test_ready_when_configured(self):
        response = make_client(NegotiateService(CONNECTION_STRING)).get('/negotiate')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'Ready'
        assert data['pubsubConfigured'] is True

    def test_ready_but_unconfigured(self):
        response = make_client(NegotiateService(None)).get('/negotiate')

        assert response.status_code == 200
        assert response.get_json()['pubsubConfigured'] is False
