"""
Tests for Xero access-token refresh.
"""
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import FakeConnectionRepository, json_response, mock_http_client
from app.xero.token_manager import (
    DATABASE_ERROR,
    NETWORK_ERROR,
    RATE_LIMITED,
    SERVER_ERROR,
    TOKEN_EXPIRED_PERMANENTLY,
    TOKEN_REVOKED,
    UNKNOWN,
    TokenManager,
    categorize_refresh_error,
)


NOW = datetime(2025, 3, 15, 9, 0, tzinfo=timezone.utc)


class TokenEndpoint:
    """Scripted token endpoint; replays responses in order, repeating the last."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


def token_payload(access_token="new-access", refresh_token="new-refresh", expires_in=1800):
    return {"access_token": access_token, "refresh_token": refresh_token, "expires_in": expires_in}


@pytest.fixture
def make_manager(sleep_recorder):
    def _make(repository, endpoint):
        return TokenManager(
            repository,
            mock_http_client(endpoint),
            sleep=sleep_recorder,
            now=lambda: NOW,
        )
    return _make


@pytest.fixture
def expiring_connection(xero_connection):
    xero_connection.token_expires_at = NOW + timedelta(minutes=5)
    return xero_connection


class TestGetValidAccessToken:
    """Tests for TokenManager.get_valid_access_token."""

    @pytest.mark.asyncio
    async def test_fresh_token_is_returned_without_refresh(self, xero_connection, fake_repository, make_manager):
        xero_connection.token_expires_at = NOW + timedelta(minutes=30)
        endpoint = TokenEndpoint(json_response(token_payload()))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(xero_connection)

        assert result.success is True
        assert result.access_token == "access-token"
        assert endpoint.requests == []

    @pytest.mark.asyncio
    async def test_naive_expiry_is_treated_as_utc(self, xero_connection, fake_repository, make_manager):
        xero_connection.token_expires_at = datetime(2025, 3, 15, 10, 0)
        endpoint = TokenEndpoint(json_response(token_payload()))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(xero_connection)

        assert result.access_token == "access-token"
        assert endpoint.requests == []

    @pytest.mark.asyncio
    async def test_refreshes_inside_threshold(self, expiring_connection, fake_repository, make_manager):
        endpoint = TokenEndpoint(json_response(token_payload(expires_in=1800)))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.success is True
        assert result.access_token == "new-access"
        assert result.error is None
        assert fake_repository.refreshed == [
            {"access_token": "new-access", "expires_at": NOW + timedelta(seconds=1800)}
        ]
        assert expiring_connection.refresh_token == "new-refresh"
        assert b"grant_type=refresh_token" in endpoint.requests[0].content

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self, xero_connection, fake_repository, make_manager):
        xero_connection.refresh_token = None
        endpoint = TokenEndpoint(json_response(token_payload()))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(xero_connection)

        assert result.success is False
        assert result.error == TOKEN_EXPIRED_PERMANENTLY
        assert result.should_deactivate is True
        assert endpoint.requests == []

    @pytest.mark.asyncio
    async def test_invalid_grant_deactivates_without_retry(
        self, expiring_connection, fake_repository, make_manager, sleep_recorder
    ):
        endpoint = TokenEndpoint(json_response({"error": "invalid_grant"}, status_code=400))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.success is False
        assert result.error == TOKEN_EXPIRED_PERMANENTLY
        assert result.should_deactivate is True
        assert len(endpoint.requests) == 1
        assert sleep_recorder.calls == []
        assert expiring_connection.is_active is False
        assert len(fake_repository.deactivated) == 1

    @pytest.mark.asyncio
    async def test_server_errors_retry_with_backoff(
        self, expiring_connection, fake_repository, make_manager, sleep_recorder
    ):
        endpoint = TokenEndpoint(httpx.Response(503, text="unavailable"))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.success is False
        assert result.error == SERVER_ERROR
        assert len(endpoint.requests) == 3
        assert sleep_recorder.calls == [1.0, 2.0]
        assert fake_repository.deactivated == []

    @pytest.mark.asyncio
    async def test_transient_error_then_success(
        self, expiring_connection, fake_repository, make_manager, sleep_recorder
    ):
        endpoint = TokenEndpoint(
            httpx.Response(500, text="oops"),
            json_response(token_payload(access_token="second-try")),
        )

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.success is True
        assert result.access_token == "second-try"
        assert sleep_recorder.calls == [1.0]

    @pytest.mark.asyncio
    async def test_network_error(self, expiring_connection, fake_repository, make_manager):
        endpoint = TokenEndpoint(httpx.ConnectError("connection refused"))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.success is False
        assert result.error == NETWORK_ERROR
        assert len(endpoint.requests) == 3

    @pytest.mark.asyncio
    async def test_bad_request_without_code_is_not_deactivated(
        self, expiring_connection, fake_repository, make_manager
    ):
        endpoint = TokenEndpoint(httpx.Response(400, text="bad request"))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.error == UNKNOWN
        assert result.should_deactivate is False
        assert fake_repository.deactivated == []
        assert expiring_connection.is_active is True

    @pytest.mark.asyncio
    async def test_response_without_access_token(self, expiring_connection, fake_repository, make_manager):
        endpoint = TokenEndpoint(json_response({"refresh_token": "new-refresh", "expires_in": 1800}))

        result = await make_manager(fake_repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.success is False
        assert result.error == UNKNOWN
        assert result.access_token is None
        assert fake_repository.refreshed == []
        assert expiring_connection.refresh_token == "refresh-token"

    @pytest.mark.asyncio
    async def test_database_failure_still_returns_token(self, expiring_connection, make_manager):
        repository = FakeConnectionRepository([expiring_connection], fail_on_commit=True)
        endpoint = TokenEndpoint(json_response(token_payload()))

        result = await make_manager(repository, endpoint).get_valid_access_token(expiring_connection)

        assert result.success is True
        assert result.access_token == "new-access"
        assert result.error == DATABASE_ERROR


class TestCategorizeRefreshError:
    """Tests for categorize_refresh_error."""

    @pytest.mark.parametrize("status,body,error,deactivate", [
        (400, '{"error": "invalid_grant"}', TOKEN_EXPIRED_PERMANENTLY, True),
        (401, '{"error": "unauthorized_client"}', TOKEN_REVOKED, True),
        (403, '{"error": "access_denied"}', TOKEN_REVOKED, True),
        (429, "", RATE_LIMITED, False),
        (502, "<html>bad gateway</html>", SERVER_ERROR, False),
        (400, "not json", UNKNOWN, False),
        (418, "{}", UNKNOWN, False),
    ])
    def test_categories(self, status, body, error, deactivate):
        result = categorize_refresh_error(status, body)

        assert result.success is False
        assert result.error == error
        assert result.should_deactivate is deactivate
