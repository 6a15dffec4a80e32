"""Tests for the two-tier LWA token cache."""

from unittest.mock import patch

import pytest
import requests

from conftest import make_response
from woo_amazon_mcf.auth import TokenCache
from woo_amazon_mcf.config import Credentials
from woo_amazon_mcf.exceptions import AuthError
from woo_amazon_mcf.models import AccessToken


def token_response(token="Atza|first", expires_in=3600):
    return make_response(200, {"access_token": token, "token_type": "bearer", "expires_in": expires_in})


class TestTokenCache:
    @pytest.fixture
    def cache(self, credentials, database, clock):
        return TokenCache(credentials, database, clock=clock)

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_refreshes_once_and_reuses_in_process_token(self, mock_post, cache, clock):
        mock_post.return_value = token_response()

        assert cache.get_access_token() == "Atza|first"
        clock.advance(1000)
        assert cache.get_access_token() == "Atza|first"

        assert mock_post.call_count == 1
        data = mock_post.call_args.kwargs["data"]
        assert data["grant_type"] == "refresh_token"
        assert data["refresh_token"] == "Atzr|refresh"

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_refreshes_inside_safety_margin(self, mock_post, cache, clock):
        mock_post.side_effect = [token_response("Atza|first"), token_response("Atza|second")]

        cache.get_access_token()
        # 3600s token, 60s margin: at +3541 only 59s remain
        clock.advance(3541)

        assert cache.get_access_token() == "Atza|second"
        assert mock_post.call_count == 2

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_durable_slot_written_with_capped_ttl(self, mock_post, cache, database, clock):
        mock_post.return_value = token_response(expires_in=7200)

        cache.get_access_token()

        stored = database.get_cached_token(cache.cache_key, clock())
        assert stored.value == "Atza|first"
        assert stored.expires_at == clock() + 3600 - 60

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_second_process_adopts_durable_token(self, mock_post, credentials, database, clock):
        database.store_token(credentials.fingerprint(), AccessToken("Atza|shared", clock() + 1200))
        other = TokenCache(credentials, database, clock=clock)

        assert other.get_access_token() == "Atza|shared"
        mock_post.assert_not_called()
        assert other._token.expires_at == clock() + 1200 + 60

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_adopted_token_expiry_capped(self, mock_post, credentials, database, clock):
        database.store_token(credentials.fingerprint(), AccessToken("Atza|shared", clock() + 3540))
        other = TokenCache(credentials, database, clock=clock)

        other.get_access_token()

        assert other._token.expires_at == clock() + 3000

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_expired_durable_slot_is_ignored(self, mock_post, credentials, database, clock):
        database.store_token(credentials.fingerprint(), AccessToken("Atza|old", clock() - 1))
        mock_post.return_value = token_response("Atza|new")

        assert TokenCache(credentials, database, clock=clock).get_access_token() == "Atza|new"

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_non_200_raises_auth_error(self, mock_post, cache):
        mock_post.return_value = make_response(
            400, {"error": "invalid_grant", "error_description": "The refresh token is invalid"}
        )

        with pytest.raises(AuthError) as exc_info:
            cache.get_access_token()

        assert "The refresh token is invalid" in exc_info.value.message

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_missing_access_token_raises_auth_error(self, mock_post, cache):
        mock_post.return_value = make_response(200, {"token_type": "bearer"})

        with pytest.raises(AuthError):
            cache.get_access_token()

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_network_failure_raises_auth_error(self, mock_post, cache):
        mock_post.side_effect = requests.ConnectionError("boom")

        with pytest.raises(AuthError):
            cache.get_access_token()

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_incomplete_credentials_fail_without_network(self, mock_post, database, clock):
        cache = TokenCache(Credentials(client_id="id"), database, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            cache.get_access_token()

        assert "client_secret" in exc_info.value.message
        mock_post.assert_not_called()

    @patch("woo_amazon_mcf.auth.requests.post")
    def test_invalidate_forces_refresh(self, mock_post, cache, database, clock):
        mock_post.side_effect = [token_response("Atza|first"), token_response("Atza|second")]

        cache.get_access_token()
        cache.invalidate()

        assert database.get_cached_token(cache.cache_key, clock()) is None
        assert cache.get_access_token() == "Atza|second"

    def test_different_credentials_use_different_slots(self, credentials):
        rotated = Credentials(
            client_id=credentials.client_id,
            client_secret=credentials.client_secret,
            refresh_token="Atzr|rotated",
        )
        assert credentials.fingerprint() != rotated.fingerprint()
