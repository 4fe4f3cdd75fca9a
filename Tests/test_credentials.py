"""Tests for the credential lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest

from reserve_adjuster.constants import KEY_AUTH_TOKEN, KEY_REFRESH_TOKEN, KEY_TOKEN_EXPIRES
from reserve_adjuster.credentials import CredentialManager, SessionState
from reserve_adjuster.errors import AuthError, ConfigError, UpstreamError
from reserve_adjuster.models import Credential

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class DummyClient:
    def __init__(self, refreshed=None, refresh_error=None, login_error=None):
        self.refreshed = refreshed
        self.refresh_error = refresh_error
        self.login_error = login_error
        self.refresh_calls = []
        self.login_calls = []
        self.access_token = None

    def refresh(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        return self.refreshed

    def login(self, username, password, mfa_code=None):
        self.login_calls.append((username, password, mfa_code))
        if self.login_error:
            raise self.login_error
        return Credential("rt-login", "at-login", NOW + timedelta(hours=8))

    def set_access_token(self, token):
        self.access_token = token


def make_manager(settings, client):
    return CredentialManager(settings, client, clock=lambda: NOW)


class TestEnsureSession:
    def test_reuses_valid_token(self, settings):
        settings.save_credential(Credential("rt", "at", NOW + timedelta(hours=1)))
        client = DummyClient()

        assert make_manager(settings, client).ensure_session() is client

        assert client.refresh_calls == []
        assert client.access_token == "at"

    def test_refreshes_expired_token_once_and_persists(self, settings):
        settings.save_credential(Credential("rt-old", "at-old", NOW - timedelta(seconds=1)))
        expires = NOW + timedelta(hours=8)
        client = DummyClient(refreshed=Credential("rt-new", "at-new", expires))

        make_manager(settings, client).ensure_session()

        assert client.refresh_calls == ["rt-old"]
        assert client.access_token == "at-new"
        stored = settings.store.load()
        assert stored[KEY_REFRESH_TOKEN] == "rt-new"
        assert stored[KEY_AUTH_TOKEN] == "at-new"
        assert stored[KEY_TOKEN_EXPIRES] == int(expires.timestamp())

    def test_token_expiring_now_is_refreshed(self, settings):
        settings.save_credential(Credential("rt", "at", NOW))
        client = DummyClient(refreshed=Credential("rt2", "at2", NOW + timedelta(hours=8)))

        make_manager(settings, client).ensure_session()

        assert client.refresh_calls == ["rt"]

    def test_keeps_refresh_token_when_not_rotated(self, settings):
        settings.save_credential(Credential("rt", None, None))
        client = DummyClient(refreshed=Credential(None, "at-new", NOW + timedelta(hours=8)))

        make_manager(settings, client).ensure_session()

        assert settings.credential().refresh_token == "rt"
        assert settings.credential().access_token == "at-new"

    def test_no_refresh_token_raises_without_network(self, settings):
        client = DummyClient()

        with pytest.raises(AuthError):
            make_manager(settings, client).ensure_session()

        assert client.refresh_calls == []

    def test_rejected_refresh_token_propagates(self, settings):
        settings.save_credential(Credential("rt", None, None))
        client = DummyClient(refresh_error=AuthError("invalid_grant"))

        with pytest.raises(AuthError):
            make_manager(settings, client).ensure_session()

        assert settings.credential().refresh_token == "rt"

    def test_upstream_failure_propagates(self, settings):
        settings.save_credential(Credential("rt", None, None))
        client = DummyClient(refresh_error=UpstreamError("timeout"))

        with pytest.raises(UpstreamError):
            make_manager(settings, client).ensure_session()

    def test_malformed_expiry_raises_config_error(self, settings):
        settings.store.put_many({KEY_REFRESH_TOKEN: "rt", KEY_AUTH_TOKEN: "at", KEY_TOKEN_EXPIRES: "soon"})

        with pytest.raises(ConfigError):
            make_manager(settings, DummyClient()).ensure_session()


class TestSessionState:
    def test_no_credential(self, settings):
        assert make_manager(settings, DummyClient()).state() == SessionState.NO_CREDENTIAL

    def test_authenticated(self, settings):
        settings.save_credential(Credential("rt", "at", NOW + timedelta(minutes=5)))
        assert make_manager(settings, DummyClient()).state() == SessionState.AUTHENTICATED

    def test_expired(self, settings):
        settings.save_credential(Credential("rt", "at", NOW - timedelta(minutes=5)))
        assert make_manager(settings, DummyClient()).state() == SessionState.EXPIRED

    def test_unrecoverable(self, settings):
        settings.store.put_many({KEY_AUTH_TOKEN: "at", KEY_TOKEN_EXPIRES: 0})
        assert make_manager(settings, DummyClient()).state() == SessionState.UNRECOVERABLE


class TestLogin:
    def test_login_persists_credential(self, settings):
        client = DummyClient()

        credential = make_manager(settings, client).login("me@example.com", "secret", "123456")

        assert client.login_calls == [("me@example.com", "secret", "123456")]
        assert settings.credential() == credential
        assert client.access_token == "at-login"

    def test_login_failure_explains(self, settings):
        client = DummyClient(login_error=AuthError("bad password"))

        with pytest.raises(AuthError) as excinfo:
            make_manager(settings, client).login("me@example.com", "wrong")

        assert "check your username, password or MFA code" in str(excinfo.value)
        assert settings.credential() is None

    def test_seed_refresh_token_only_when_missing(self, settings):
        manager = make_manager(settings, DummyClient())

        assert manager.seed_refresh_token("rt-config") is True
        assert manager.seed_refresh_token("rt-other") is False
        assert settings.credential().refresh_token == "rt-config"


class TestCredentialModel:
    def test_from_token_response_uses_created_at(self):
        data = {"access_token": "at", "refresh_token": "rt", "expires_in": 3600, "created_at": 1_800_000_000}
        credential = Credential.from_token_response(data, NOW)
        assert credential.expires_at == datetime.fromtimestamp(1_800_003_600, tz=timezone.utc)

    def test_from_token_response_falls_back_to_now(self):
        credential = Credential.from_token_response({"access_token": "at", "expires_in": 60}, NOW)
        assert credential.expires_at == NOW + timedelta(seconds=60)
        assert credential.refresh_token is None

    def test_from_token_response_missing_token(self):
        with pytest.raises(UpstreamError):
            Credential.from_token_response({"expires_in": 60}, NOW)

    def test_settings_roundtrip(self):
        credential = Credential("rt", "at", NOW)
        assert Credential.from_settings(credential.to_settings()) == credential
