"""
Unit tests for current-user providers and JWT claim parsing.
"""
from unittest.mock import MagicMock, patch

import jwt
import pytest
import requests

from toollink.rbac.current_user import (
    HttpCurrentUserProvider,
    StaticCurrentUserProvider,
    TokenCurrentUserProvider,
    User,
    http_provider_from_config,
)
from toollink.rbac.jwt_parser import TokenDecodeError, decode_token, extract_user_claims

SECRET = 'toollink-test-signing-key-0123456789abcdef'


def _response(status_code=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = payload
    return response


def _session(response):
    session = MagicMock(spec=requests.Session)
    session.get.return_value = response
    return session


# =============================================================================
# User
# =============================================================================

class TestUser:
    """Tests for User.from_dict."""

    def test_from_backend_payload(self):
        user = User.from_dict({'id': 'u1', 'role': 'Warehouse', 'email': 'w@toollink.lk', 'name': 'Nimal'})
        assert user == User(role='warehouse', id='u1', email='w@toollink.lk', name='Nimal')

    def test_mongo_style_id(self):
        assert User.from_dict({'_id': 'abc', 'role': 'customer'}).id == 'abc'

    def test_missing_role(self):
        with pytest.raises(ValueError, match="no role"):
            User.from_dict({'id': 'u1'})


# =============================================================================
# Providers
# =============================================================================

class TestStaticProvider:

    @pytest.mark.asyncio
    async def test_returns_user(self):
        user = User(role='cashier')
        assert await StaticCurrentUserProvider(user).get_current_user() is user

    @pytest.mark.asyncio
    async def test_no_user(self):
        assert await StaticCurrentUserProvider().get_current_user() is None


class TestHttpProvider:
    """Tests for HttpCurrentUserProvider."""

    @pytest.mark.asyncio
    async def test_fetches_user_with_bearer_token(self):
        session = _session(_response(payload={'success': True, 'user': {'id': 7, 'role': 'cashier'}}))
        provider = HttpCurrentUserProvider('http://api.local/api/', 'tok-1', session=session, timeout=3)

        user = await provider.get_current_user()

        assert user == User(role='cashier', id=7)
        session.get.assert_called_once()
        args, kwargs = session.get.call_args
        assert args[0] == 'http://api.local/api/auth/me'
        assert kwargs['headers']['Authorization'] == 'Bearer tok-1'
        assert kwargs['timeout'] == 3

    @pytest.mark.asyncio
    async def test_no_token_skips_request(self):
        session = _session(_response())
        provider = HttpCurrentUserProvider('http://api.local/api', None, session=session)
        assert await provider.get_current_user() is None
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_unauthorized_response(self):
        session = _session(_response(401, {'success': False, 'message': 'Invalid token'}))
        provider = HttpCurrentUserProvider('http://api.local/api', 'expired', session=session)
        assert await provider.get_current_user() is None

    @pytest.mark.asyncio
    async def test_success_without_user(self):
        session = _session(_response(payload={'success': True}))
        provider = HttpCurrentUserProvider('http://api.local/api', 'tok', session=session)
        assert await provider.get_current_user() is None

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        session = _session(_response(502, json_error=True))
        provider = HttpCurrentUserProvider('http://api.local/api', 'tok', session=session)
        assert await provider.get_current_user() is None

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self):
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.ConnectionError("refused")
        provider = HttpCurrentUserProvider('http://api.local/api', 'tok', session=session)
        with pytest.raises(requests.ConnectionError):
            await provider.get_current_user()

    def test_close_releases_own_session(self):
        with patch('toollink.rbac.current_user.requests.Session') as session_cls:
            provider = HttpCurrentUserProvider('http://api.local/api', 'tok')
            provider.close()
        session_cls.return_value.close.assert_called_once()

    def test_close_leaves_caller_session_open(self):
        session = _session(_response())
        HttpCurrentUserProvider('http://api.local/api', 'tok', session=session).close()
        session.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_async_context_manager_closes_session(self):
        with patch('toollink.rbac.current_user.requests.Session') as session_cls:
            session_cls.return_value.get.return_value = _response(
                payload={'success': True, 'user': {'id': 'w1', 'role': 'warehouse'}}
            )
            async with HttpCurrentUserProvider('http://api.local/api', 'tok') as provider:
                user = await provider.get_current_user()
        assert user.role == 'warehouse'
        session_cls.return_value.close.assert_called_once()

    def test_endpoint_normalisation(self):
        provider = HttpCurrentUserProvider('http://api.local/api/', 'tok', me_endpoint='auth/me', session=MagicMock())
        assert provider.url == 'http://api.local/api/auth/me'

    def test_from_config(self):
        config = {'auth': {'base_url': 'https://toollink.lk/api', 'me_endpoint': '/users/me', 'timeout': 4}}
        provider = http_provider_from_config(config, 'tok')
        assert provider.url == 'https://toollink.lk/api/users/me'
        assert provider.timeout == 4.0
        assert provider.token == 'tok'


class TestTokenProvider:
    """Tests for TokenCurrentUserProvider."""

    @pytest.mark.asyncio
    async def test_unverified_claims(self):
        token = jwt.encode({'userId': 'c-1', 'role': 'customer', 'email': 'c@toollink.lk'}, SECRET, algorithm='HS256')
        user = await TokenCurrentUserProvider(token).get_current_user()
        assert user == User(role='customer', id='c-1', email='c@toollink.lk')

    @pytest.mark.asyncio
    async def test_verified_claims(self):
        token = jwt.encode({'user': {'id': 'a-1', 'role': 'admin'}}, SECRET, algorithm='HS256')
        user = await TokenCurrentUserProvider(token, secret=SECRET).get_current_user()
        assert user.role == 'admin'
        assert user.id == 'a-1'

    @pytest.mark.asyncio
    async def test_bad_signature(self):
        token = jwt.encode({'role': 'admin'}, SECRET, algorithm='HS256')
        provider = TokenCurrentUserProvider(token, secret='another-signing-key-0123456789abcdef')
        with pytest.raises(TokenDecodeError):
            await provider.get_current_user()

    @pytest.mark.asyncio
    async def test_token_without_role(self):
        token = jwt.encode({'id': 'x'}, SECRET, algorithm='HS256')
        assert await TokenCurrentUserProvider(token).get_current_user() is None

    @pytest.mark.asyncio
    async def test_no_token(self):
        assert await TokenCurrentUserProvider(None).get_current_user() is None


# =============================================================================
# JWT parsing
# =============================================================================

class TestJwtParser:
    """Tests for decode_token and extract_user_claims."""

    def test_malformed_token(self):
        with pytest.raises(TokenDecodeError):
            decode_token('not-a-jwt')

    def test_decode_without_secret(self):
        token = jwt.encode({'role': 'editor'}, SECRET, algorithm='HS256')
        assert decode_token(token) == {'role': 'editor'}

    def test_nested_user_claims(self):
        claims = {'user': {'_id': 'ignored', 'id': 'u1', 'role': 'cashier', 'name': 'Kamal'}, 'iat': 1}
        assert extract_user_claims(claims) == {'role': 'cashier', 'id': 'u1', 'email': None, 'name': 'Kamal'}

    def test_sub_used_as_id(self):
        assert extract_user_claims({'sub': 'u9', 'role': 'warehouse'})['id'] == 'u9'

    def test_no_role(self):
        assert extract_user_claims({'sub': 'u9'}) is None
