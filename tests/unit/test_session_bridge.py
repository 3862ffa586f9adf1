"""
Unit tests for the Session/Preferences Bridge.

Runs against InMemoryBackend, which mirrors the hosted backend's tables and
error statuses.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from chefitup.cancellation import CancellationToken
from chefitup.errors import (
    AuthError,
    HostedBackendError,
    InvalidInputError,
    OperationCancelled,
    PreferencesSyncError,
)
from chefitup.session import SessionBridge, SessionCache, SessionState
from chefitup.session.backend import InMemoryBackend

EMAIL = "ann@example.com"
PASSWORD = "secret-pass"


@pytest.fixture
def bridge(backend):
    return SessionBridge(backend)


@pytest.fixture
def signed_in(bridge):
    bridge.sign_up("Ann", EMAIL, PASSWORD)
    return bridge


class TestSignUpAndSignIn:
    """Test email/password flows."""

    def test_sign_up_creates_profile_and_preferences(self, bridge, backend):
        user = bridge.sign_up("Ann", EMAIL, PASSWORD)

        assert bridge.state == SessionState.AUTHENTICATED
        assert user.name == "Ann"
        assert user.email == EMAIL
        assert user.preferences.household_size == 1
        assert user.preferences.dietary_restrictions == []
        assert user.preferences.instacart_connected is False
        assert backend.tables["profiles"] == [{"id": user.id, "full_name": "Ann", "email": EMAIL}]
        assert backend.tables["user_preferences"][0]["user_id"] == user.id

    def test_sign_up_pending_confirmation(self):
        bridge = SessionBridge(InMemoryBackend(auto_confirm=False))
        assert bridge.sign_up("Ann", EMAIL, PASSWORD) is None
        assert bridge.state == SessionState.ANONYMOUS
        assert bridge.current_user() is None

    def test_duplicate_sign_up(self, signed_in):
        with pytest.raises(AuthError, match="already registered"):
            signed_in.sign_up("Ann", EMAIL, PASSWORD)

    @pytest.mark.parametrize("name,email,password", [
        ("", EMAIL, PASSWORD),
        ("Ann", "  ", PASSWORD),
        ("Ann", EMAIL, ""),
    ])
    def test_sign_up_requires_fields(self, bridge, name, email, password):
        with pytest.raises(InvalidInputError):
            bridge.sign_up(name, email, password)

    def test_sign_in(self, signed_in):
        signed_in.sign_out()
        user = signed_in.sign_in(EMAIL, PASSWORD)
        assert signed_in.is_authenticated
        assert user.name == "Ann"

    def test_wrong_password(self, signed_in):
        signed_in.sign_out()
        with pytest.raises(AuthError, match="Invalid login credentials"):
            signed_in.sign_in(EMAIL, "wrong-pass")
        assert signed_in.state == SessionState.ANONYMOUS

    def test_sign_in_requires_fields(self, bridge):
        with pytest.raises(InvalidInputError):
            bridge.sign_in("", PASSWORD)

    def test_display_name_falls_back_to_email(self, bridge, backend):
        backend.sign_up("bob@example.com", PASSWORD)
        user = bridge.sign_in("bob@example.com", PASSWORD)
        assert user.name == "bob"


class TestSignOut:
    def test_clears_state_and_revokes(self, signed_in, backend):
        token = signed_in.cache.load().access_token
        signed_in.sign_out()
        assert signed_in.state == SessionState.ANONYMOUS
        assert signed_in.current_user() is None
        assert signed_in.cache.load() is None
        assert backend.signed_out_tokens == [token]

    def test_sign_out_when_anonymous(self, bridge):
        bridge.sign_out()
        assert bridge.state == SessionState.ANONYMOUS


class TestInit:
    """Test session restore."""

    def test_no_cached_session(self, bridge):
        assert bridge.state == SessionState.INITIALIZING
        assert bridge.init() is None
        assert bridge.state == SessionState.ANONYMOUS

    def test_restores_cached_session(self, signed_in, backend):
        restored = SessionBridge(backend, cache=signed_in.cache)
        user = restored.init()
        assert restored.is_authenticated
        assert user.id == signed_in.current_user().id

    def test_file_cache_survives_restart(self, backend, tmp_path):
        path = tmp_path / "session.json"
        SessionBridge(backend, cache=SessionCache(path)).sign_up("Ann", EMAIL, PASSWORD)
        assert path.exists()

        restored = SessionBridge(backend, cache=SessionCache(path))
        assert restored.init().email == EMAIL

    def test_unreadable_cache_file(self, backend, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        bridge = SessionBridge(backend, cache=SessionCache(path))
        assert bridge.init() is None
        assert bridge.state == SessionState.ANONYMOUS

    def test_revoked_session_cleared(self, signed_in, backend):
        cache = signed_in.cache
        backend.sign_out(cache.load().access_token)

        restored = SessionBridge(backend, cache=cache)
        assert restored.init() is None
        assert restored.state == SessionState.ANONYMOUS
        assert cache.load() is None

    def test_cancelled_restore_changes_nothing(self, signed_in, backend):
        token = CancellationToken()
        token.cancel()
        restored = SessionBridge(backend, cache=signed_in.cache)
        with pytest.raises(OperationCancelled):
            restored.init(cancel_token=token)
        assert restored.state == SessionState.INITIALIZING
        assert restored.current_user() is None


class TestOAuth:
    """Test the OAuth redirect flow."""

    def test_sign_in_url(self, bridge):
        url = bridge.oauth_sign_in_url("google", "http://localhost:3000/auth/callback")
        assert url.startswith("memory://auth/v1/authorize?")
        assert "provider=google" in url
        assert "redirect_to=http%3A%2F%2Flocalhost%3A3000%2Fauth%2Fcallback" in url

    def test_first_sign_in_is_new_user(self, bridge, backend):
        session = backend.issue_oauth_session("cara@example.com", {"full_name": "Cara Diaz"})
        callback = f"http://localhost:3000/auth/callback#access_token={session.access_token}&expires_in=3600"

        result = bridge.complete_oauth_redirect(callback)

        assert result.is_new_user is True
        assert result.user.name == "Cara Diaz"
        assert bridge.is_authenticated
        assert bridge.cache.load().expires_in == 3600

    def test_returning_user(self, bridge, backend):
        first = backend.issue_oauth_session("cara@example.com")
        bridge.complete_oauth_redirect(f"http://cb/?access_token={first.access_token}")
        bridge.sign_out()

        second = backend.issue_oauth_session("cara@example.com")
        result = bridge.complete_oauth_redirect(f"http://cb/?access_token={second.access_token}")
        assert result.is_new_user is False

    def test_provider_error(self, bridge):
        with pytest.raises(AuthError, match="User denied access"):
            bridge.complete_oauth_redirect("http://cb/#error=access_denied&error_description=User+denied+access")

    def test_missing_token(self, bridge):
        with pytest.raises(AuthError, match="No access token"):
            bridge.complete_oauth_redirect("http://cb/")

    def test_unknown_token(self, bridge):
        with pytest.raises(AuthError, match="Invalid JWT"):
            bridge.complete_oauth_redirect("http://cb/#access_token=forged")


class TestUpdatePreferences:
    """Test update_preferences()."""

    def test_requires_sign_in(self, bridge):
        with pytest.raises(AuthError):
            bridge.update_preferences(household_size=2)

    def test_partial_update(self, signed_in, backend):
        user = signed_in.update_preferences(household_size=4)
        assert user.preferences.household_size == 4
        assert user.preferences.instacart_connected is False
        assert signed_in.current_user().preferences.household_size == 4
        assert backend.tables["user_preferences"][0]["household_size"] == 4

    @pytest.mark.parametrize("size", [0, -1, 2.5, True])
    def test_invalid_household_size(self, signed_in, size):
        with pytest.raises(InvalidInputError):
            signed_in.update_preferences(household_size=size)

    def test_dietary_restrictions_replaced(self, signed_in, backend):
        signed_in.update_preferences(dietary_restrictions=["vegan", "keto"])
        user = signed_in.update_preferences(dietary_restrictions=["gluten-free", "vegan"])

        assert user.preferences.dietary_restrictions == ["gluten-free", "vegan"]
        assert len(backend.tables["user_dietary_restrictions"]) == 2

    def test_unknown_restrictions_dropped(self, signed_in, caplog):
        with caplog.at_level("WARNING", logger="chefitup.session.bridge"):
            user = signed_in.update_preferences(dietary_restrictions=["vegan", "carnivore"])
        assert user.preferences.dietary_restrictions == ["vegan"]
        assert "carnivore" in caplog.text

    def test_clear_restrictions(self, signed_in, backend):
        signed_in.update_preferences(dietary_restrictions=["vegan"])
        user = signed_in.update_preferences(dietary_restrictions=[])
        assert user.preferences.dietary_restrictions == []
        assert backend.tables["user_dietary_restrictions"] == []

    def test_preferences_persist_across_sign_in(self, signed_in):
        signed_in.update_preferences(household_size=3, dietary_restrictions=["vegetarian"], instacart_connected=True)
        signed_in.sign_out()
        user = signed_in.sign_in(EMAIL, PASSWORD)
        assert user.preferences.household_size == 3
        assert user.preferences.dietary_restrictions == ["vegetarian"]
        assert user.preferences.instacart_connected is True


class FlakyBackend(InMemoryBackend):
    """In-memory backend that fails the next call to each chosen (operation, table) with a 503."""

    def __init__(self):
        super().__init__()
        self.failing = set()

    def _maybe_fail(self, operation, table):
        if (operation, table) in self.failing:
            self.failing.discard((operation, table))
            raise HostedBackendError("upstream 503", status=503)

    def select(self, table, filters, columns="*", access_token=None):
        self._maybe_fail("select", table)
        return super().select(table, filters, columns=columns, access_token=access_token)

    def upsert(self, table, rows, access_token=None):
        self._maybe_fail("upsert", table)
        super().upsert(table, rows, access_token=access_token)

    def insert(self, table, rows, access_token=None):
        self._maybe_fail("insert", table)
        super().insert(table, rows, access_token=access_token)


@pytest.fixture
def flaky():
    return FlakyBackend()


class TestBackendFailures:
    """Profile and preference writes that the backend rejects."""

    def test_sign_in_profile_failure_is_auth_error(self, flaky):
        flaky.sign_up(EMAIL, PASSWORD)
        flaky.failing.add(("select", "profiles"))
        bridge = SessionBridge(flaky)

        with pytest.raises(AuthError, match="upstream 503"):
            bridge.sign_in(EMAIL, PASSWORD)

        assert bridge.current_user() is None
        assert not bridge.is_authenticated
        assert len(flaky.signed_out_tokens) == 1

    def test_sign_up_profile_failure_is_auth_error(self, flaky):
        flaky.failing.add(("upsert", "profiles"))
        bridge = SessionBridge(flaky)
        with pytest.raises(AuthError):
            bridge.sign_up("Ann", EMAIL, PASSWORD)
        assert bridge.cache.load() is None
        assert len(flaky.signed_out_tokens) == 1

    def test_oauth_profile_failure_is_auth_error(self, flaky):
        session = flaky.issue_oauth_session("cara@example.com")
        flaky.failing.add(("select", "user_preferences"))
        bridge = SessionBridge(flaky)
        with pytest.raises(AuthError):
            bridge.complete_oauth_redirect(f"http://cb/#access_token={session.access_token}")
        assert flaky.signed_out_tokens == [session.access_token]

    def test_household_failure_keeps_local_state(self, flaky):
        bridge = SessionBridge(flaky)
        bridge.sign_up("Ann", EMAIL, PASSWORD)
        flaky.failing.add(("upsert", "user_preferences"))

        with pytest.raises(PreferencesSyncError):
            bridge.update_preferences(household_size=5)
        assert bridge.current_user().preferences.household_size == 1

    def test_failed_insert_restores_previous_restrictions(self, flaky):
        bridge = SessionBridge(flaky)
        bridge.sign_up("Ann", EMAIL, PASSWORD)
        bridge.update_preferences(dietary_restrictions=["vegan"])
        before = [dict(row) for row in flaky.tables["user_dietary_restrictions"]]
        flaky.failing.add(("insert", "user_dietary_restrictions"))

        with pytest.raises(PreferencesSyncError):
            bridge.update_preferences(dietary_restrictions=["keto"])

        assert bridge.current_user().preferences.dietary_restrictions == ["vegan"]
        assert flaky.tables["user_dietary_restrictions"] == before

    def test_partial_update_commits_accepted_write(self, flaky):
        bridge = SessionBridge(flaky)
        bridge.sign_up("Ann", EMAIL, PASSWORD)
        flaky.failing.add(("select", "dietary_restrictions"))

        with pytest.raises(PreferencesSyncError):
            bridge.update_preferences(household_size=3, dietary_restrictions=["vegan"])

        prefs = bridge.current_user().preferences
        assert prefs.household_size == 3
        assert prefs.dietary_restrictions == []


class TestSignOutCacheFailure:
    def test_user_cleared_even_if_cache_file_cannot_be_removed(self, backend, tmp_path):
        bridge = SessionBridge(backend, cache=SessionCache(tmp_path / "session.json"))
        bridge.sign_up("Ann", EMAIL, PASSWORD)

        with patch.object(Path, "unlink", side_effect=PermissionError("read-only")):
            bridge.sign_out()

        assert bridge.current_user() is None
        assert bridge.state == SessionState.ANONYMOUS
