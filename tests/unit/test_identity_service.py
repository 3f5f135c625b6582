"""
Unit tests for the identity provider client.
"""

import pytest
import requests

from academy_admin.exceptions import IdentityServiceError, ValidationError
from academy_admin.services.identity_service import IdentityClient, get_identity_client


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = b'{}' if payload is not None else b''

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error', response=self)

    def json(self):
        return self._payload


@pytest.fixture
def sent(monkeypatch):
    """Capture requests.post calls and answer with a queued FakeResponse."""
    calls = []
    replies = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
        return replies.pop(0) if replies else FakeResponse(payload={})

    monkeypatch.setattr(requests, 'post', fake_post)
    return calls, replies


def client():
    return IdentityClient('https://identity.example.test/manage', 'secret-key', timeout=5)


class TestIdentityClient:

    def test_create_user_returns_id(self, sent):
        calls, replies = sent
        replies.append(FakeResponse(payload={'user_id': 'user-9'}))

        user_id = client().create_user('admin@academy.test', 'secret1', role='tenant_admin', tenant_id='t-1')

        assert user_id == 'user-9'
        assert calls[0]['json'] == {
            'action': 'create', 'email': 'admin@academy.test', 'password': 'secret1',
            'role': 'tenant_admin', 'tenant_id': 't-1',
        }
        assert calls[0]['headers']['Authorization'] == 'Bearer secret-key'
        assert calls[0]['timeout'] == 5

    def test_rejection_raises(self, sent):
        _, replies = sent
        replies.append(FakeResponse(status_code=400, text='email exists'))

        with pytest.raises(IdentityServiceError) as exc_info:
            client().delete_user('user-9')
        assert exc_info.value.status_code == 502
        assert exc_info.value.payload == {'detail': 'email exists'}

    def test_network_failure_raises(self, monkeypatch):
        def down(*args, **kwargs):
            raise requests.ConnectionError('refused')
        monkeypatch.setattr(requests, 'post', down)

        with pytest.raises(IdentityServiceError):
            client().update_user('user-9', role='staff')

    def test_short_password_rejected_before_call(self, sent):
        calls, _ = sent
        with pytest.raises(ValidationError):
            client().reset_password('user-9', '123')
        assert calls == []

    def test_reset_password(self, sent):
        calls, _ = sent
        client().reset_password('user-9', 'longer-secret')
        assert calls[0]['json'] == {'action': 'reset_password', 'user_id': 'user-9', 'new_password': 'longer-secret'}

    def test_requires_url(self):
        with pytest.raises(IdentityServiceError):
            get_identity_client({'IDENTITY_SERVICE_URL': '', 'BACKEND_API_KEY': 'k'})
