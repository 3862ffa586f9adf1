"""
Session/Preferences Bridge.

Owns the signed-in user for one client: restores a cached session, signs in
and out, completes OAuth redirects, and keeps the user's profile and
preferences in the hosted backend in sync.
"""

import json
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from ..cancellation import CancellationToken, check_cancelled
from ..data.models import User, UserPreferences
from ..errors import AuthError, HostedBackendError, InvalidInputError, PreferencesSyncError
from .backend import AuthSession, AuthUser, HostedBackend

logger = logging.getLogger(__name__)

DEFAULT_OAUTH_REDIRECT = "http://localhost:3000/auth/callback"


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class SessionCache:
    """
    Local store for the auth session.

    Kept in memory, or in a JSON file when a path is given so a restart can
    restore the session.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._session: Optional[AuthSession] = None

    def load(self) -> Optional[AuthSession]:
        if self.path is None:
            return self._session
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                return AuthSession.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"[SESSION] Ignoring unreadable session cache {self.path}: {e}")
            return None

    def save(self, session: AuthSession):
        self._session = session
        if self.path is not None:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f)

    def clear(self):
        self._session = None
        if self.path is None:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[SESSION] Could not remove session cache {self.path}: {e}")


@dataclass
class OAuthResult:
    user: User
    is_new_user: bool


def _default_name(auth_user: AuthUser) -> str:
    return auth_user.metadata.get("full_name") or auth_user.metadata.get("name") or ""


class SessionBridge:
    """Signed-in user state for one client session."""

    def __init__(self, backend: HostedBackend, cache: Optional[SessionCache] = None):
        self.backend = backend
        self.cache = cache or SessionCache()
        self.state = SessionState.INITIALIZING
        self._session: Optional[AuthSession] = None
        self._user: Optional[User] = None
        self._lock = threading.RLock()

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def access_token(self) -> Optional[str]:
        with self._lock:
            return self._session.access_token if self._session else None

    def _commit(self, session: AuthSession, user: User):
        with self._lock:
            self._session = session
            self._user = user
            self.state = SessionState.AUTHENTICATED
            self.cache.save(session)
        logger.info(f"[SESSION] Signed in as {user.id}")

    def _set_anonymous(self):
        with self._lock:
            self._session = None
            self._user = None
            self.state = SessionState.ANONYMOUS

    def init(self, cancel_token: Optional[CancellationToken] = None) -> Optional[User]:
        """
        Restore a cached session, if any.

        Args:
            cancel_token: Optional token; when cancelled the restored user is
                discarded and no local state changes

        Returns:
            The restored User, or None when there is no valid cached session
        """
        cached = self.cache.load()
        if cached is None or not cached.access_token:
            self._set_anonymous()
            return None

        try:
            auth_user = self.backend.get_user(cached.access_token)
            check_cancelled(cancel_token, "Session restore")
            user, _ = self._load_profile(auth_user, cached.access_token)
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Cached session is no longer valid: {e}")
            check_cancelled(cancel_token, "Session restore")
            self._set_anonymous()
            self.cache.clear()
            return None

        check_cancelled(cancel_token, "Session restore")
        self._commit(replace(cached, user=auth_user), user)
        return user

    def resume(self, access_token: str) -> User:
        """
        Adopt an access token issued earlier, e.g. one an API client sends back.

        Raises:
            AuthError: If the token is missing or the backend rejects it
        """
        if not access_token:
            raise AuthError("Sign in required")
        try:
            auth_user = self.backend.get_user(access_token)
            user, _ = self._load_profile(auth_user, access_token)
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Rejected access token: {e}")
            raise AuthError(str(e)) from e
        self._commit(AuthSession(access_token=access_token, user=auth_user), user)
        return user

    def sign_in(self, email: str, password: str) -> User:
        """
        Sign in with email and password.

        Raises:
            InvalidInputError: If email or password is empty
            AuthError: If the credentials are rejected
        """
        if not email or not email.strip() or not password:
            raise InvalidInputError("Email and password are required")

        try:
            session = self.backend.sign_in_with_password(email.strip(), password)
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Sign in failed for {email.strip()}: {e}")
            raise AuthError(str(e)) from e

        user, _ = self._load_profile_or_revoke(session)
        self._commit(session, user)
        return user

    def sign_up(self, name: str, email: str, password: str) -> Optional[User]:
        """
        Create an account and its profile.

        Returns:
            The new User, or None when the backend requires email
            confirmation before the first sign-in

        Raises:
            InvalidInputError: If any field is empty
            AuthError: If the backend rejects the account
        """
        if not name or not name.strip() or not email or not email.strip() or not password:
            raise InvalidInputError("Name, email and password are required")

        try:
            session = self.backend.sign_up(email.strip(), password, metadata={"full_name": name.strip()})
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Sign up failed for {email.strip()}: {e}")
            raise AuthError(str(e)) from e

        if not session.access_token:
            logger.info(f"[SESSION] Account {session.user.id} created, email confirmation pending")
            self._set_anonymous()
            return None

        user, _ = self._load_profile_or_revoke(session, name=name.strip())
        self._commit(session, user)
        return user

    def sign_out(self):
        """Clear local state, then revoke the session; a revoke failure is only logged."""
        with self._lock:
            token = self._session.access_token if self._session else None
            self._set_anonymous()
        self.cache.clear()
        self._revoke(token)
        logger.info("[SESSION] Signed out")

    def _revoke(self, access_token: Optional[str]):
        try:
            self.backend.sign_out(access_token)
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Sign out request failed: {e}")

    def _load_profile_or_revoke(self, session: AuthSession, name: Optional[str] = None) -> Tuple[User, bool]:
        """
        Load the profile for a freshly issued session.

        Raises:
            AuthError: If the profile rows cannot be read or created; the
                issued session is revoked first
        """
        try:
            return self._load_profile(session.user, session.access_token, name=name)
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Could not load profile for {session.user.id}: {e}")
            self._revoke(session.access_token)
            raise AuthError(f"Could not load profile: {e}") from e

    def oauth_sign_in_url(self, provider: str = "google", redirect_to: str = DEFAULT_OAUTH_REDIRECT) -> str:
        return self.backend.oauth_authorize_url(provider, redirect_to)

    def complete_oauth_redirect(self, callback_url: str) -> OAuthResult:
        """
        Finish an OAuth sign-in from the provider's redirect.

        Args:
            callback_url: URL the provider redirected to; tokens are read from
                the fragment or the query string

        Returns:
            OAuthResult; is_new_user is True when this sign-in created the
            profile (the caller routes such users to onboarding)

        Raises:
            AuthError: If the redirect carries an error or no access token
        """
        parsed = urlparse(callback_url)
        params: Dict[str, List[str]] = parse_qs(parsed.query)
        params.update(parse_qs(parsed.fragment))

        if "error" in params:
            description = (params.get("error_description") or params["error"])[0]
            logger.warning(f"[SESSION] OAuth redirect returned an error: {description}")
            raise AuthError(description)

        access_token = (params.get("access_token") or [None])[0]
        if not access_token:
            raise AuthError("No access token in OAuth redirect")

        try:
            auth_user = self.backend.get_user(access_token)
        except HostedBackendError as e:
            raise AuthError(str(e)) from e

        expires_in = (params.get("expires_in") or [None])[0]
        session = AuthSession(
            access_token=access_token,
            refresh_token=(params.get("refresh_token") or [None])[0],
            expires_in=int(expires_in) if expires_in and expires_in.isdigit() else None,
            user=auth_user,
        )
        user, created = self._load_profile_or_revoke(session)
        self._commit(session, user)
        return OAuthResult(user=user, is_new_user=created)

    def _load_profile(self, auth_user: AuthUser, access_token: str, name: Optional[str] = None) -> Tuple[User, bool]:
        """
        Load the user's profile, preferences and dietary restrictions,
        creating the profile and preference rows when absent.

        Returns:
            (User, whether the profile row was created)
        """
        uid = auth_user.id
        profiles = self.backend.select("profiles", {"id": uid}, access_token=access_token)
        created = not profiles
        if created:
            profile = {"id": uid, "full_name": name or _default_name(auth_user), "email": auth_user.email}
            self.backend.upsert("profiles", [profile], access_token=access_token)
            logger.info(f"[SESSION] Created profile for {uid}")
        else:
            profile = profiles[0]

        prefs_rows = self.backend.select("user_preferences", {"user_id": uid}, access_token=access_token)
        if prefs_rows:
            prefs = prefs_rows[0]
        else:
            prefs = {"user_id": uid, "household_size": 1, "instacart_connected": False}
            self.backend.upsert("user_preferences", [prefs], access_token=access_token)

        links = self.backend.select(
            "user_dietary_restrictions", {"user_id": uid}, columns="restriction_id", access_token=access_token
        )
        restriction_ids = [link["restriction_id"] for link in links]
        restrictions: List[str] = []
        if restriction_ids:
            rows = self.backend.select(
                "dietary_restrictions", {"id": restriction_ids}, columns="name", access_token=access_token
            )
            restrictions = [row["name"] for row in rows]

        display_name = (
            profile.get("full_name")
            or _default_name(auth_user)
            or (auth_user.email.split("@")[0] if auth_user.email else "")
        )
        user = User(
            id=uid,
            name=display_name,
            email=auth_user.email,
            preferences=UserPreferences(
                household_size=prefs.get("household_size") or 1,
                dietary_restrictions=restrictions,
                instacart_connected=bool(prefs.get("instacart_connected")),
            ),
        )
        return user, created

    def update_preferences(
        self,
        household_size: Optional[int] = None,
        dietary_restrictions: Optional[List[str]] = None,
        instacart_connected: Optional[bool] = None,
    ) -> User:
        """
        Partially update the signed-in user's preferences.

        Local state changes only for writes the backend accepted. When the
        restriction insert fails after the old rows were deleted, the old rows
        are put back before the error is raised.

        Args:
            household_size: New household size (>= 1)
            dietary_restrictions: Replacement set of restriction names; names
                the backend does not know are dropped
            instacart_connected: New Instacart connection flag

        Returns:
            The updated User

        Raises:
            AuthError: If no user is signed in
            InvalidInputError: If household_size is below 1
            PreferencesSyncError: If the hosted backend rejects a write
        """
        with self._lock:
            user = self._user
            token = self._session.access_token if self._session else None
        if user is None:
            raise AuthError("Sign in to update preferences")

        if household_size is not None:
            if isinstance(household_size, bool) or not isinstance(household_size, int) or household_size < 1:
                raise InvalidInputError(f"Household size must be at least 1, got {household_size!r}")

        if household_size is not None or instacart_connected is not None:
            prefs = replace(
                user.preferences,
                household_size=household_size if household_size is not None else user.preferences.household_size,
                instacart_connected=(
                    instacart_connected if instacart_connected is not None else user.preferences.instacart_connected
                ),
            )
            try:
                self.backend.upsert("user_preferences", [{
                    "user_id": user.id,
                    "household_size": prefs.household_size,
                    "instacart_connected": prefs.instacart_connected,
                }], access_token=token)
            except HostedBackendError as e:
                logger.warning(f"[SESSION] Saving preferences for {user.id} failed: {e}")
                raise PreferencesSyncError(f"Could not save preferences: {e}") from e
            user = self._store_user(replace(user, preferences=prefs))

        if dietary_restrictions is not None:
            known = self._replace_restrictions(user.id, dietary_restrictions, token)
            user = self._store_user(replace(user, preferences=replace(user.preferences, dietary_restrictions=known)))

        logger.info(f"[SESSION] Updated preferences for {user.id}")
        return user

    def _store_user(self, user: User) -> User:
        with self._lock:
            if self._user is not None and self._user.id == user.id:
                self._user = user
        return user

    def _replace_restrictions(self, uid: str, names: List[str], token: Optional[str]) -> List[str]:
        """Swap the user's restriction rows for the named set; returns the names kept."""
        requested = list(dict.fromkeys(names))
        try:
            rows = self.backend.select(
                "dietary_restrictions", {"name": requested}, columns="id,name", access_token=token
            ) if requested else []
            previous = self.backend.select("user_dietary_restrictions", {"user_id": uid}, access_token=token)
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Reading dietary restrictions for {uid} failed: {e}")
            raise PreferencesSyncError(f"Could not save dietary restrictions: {e}") from e

        ids_by_name = {row["name"]: row["id"] for row in rows}
        unknown = [n for n in requested if n not in ids_by_name]
        if unknown:
            logger.warning(f"[SESSION] Dropping unknown dietary restrictions: {unknown}")
        known = [n for n in requested if n in ids_by_name]

        try:
            self.backend.delete("user_dietary_restrictions", {"user_id": uid}, access_token=token)
        except HostedBackendError as e:
            logger.warning(f"[SESSION] Clearing dietary restrictions for {uid} failed: {e}")
            raise PreferencesSyncError(f"Could not save dietary restrictions: {e}") from e

        if known:
            try:
                self.backend.insert(
                    "user_dietary_restrictions",
                    [{"user_id": uid, "restriction_id": ids_by_name[n]} for n in known],
                    access_token=token,
                )
            except HostedBackendError as e:
                logger.warning(f"[SESSION] Saving dietary restrictions for {uid} failed, restoring: {e}")
                self._restore_restrictions(uid, previous, token)
                raise PreferencesSyncError(f"Could not save dietary restrictions: {e}") from e
        return known

    def _restore_restrictions(self, uid: str, previous: List[Dict], token: Optional[str]):
        if not previous:
            return
        try:
            self.backend.insert("user_dietary_restrictions", previous, access_token=token)
        except HostedBackendError as e:
            logger.error(f"[SESSION] Could not restore dietary restrictions for {uid}: {e}")
