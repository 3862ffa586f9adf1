"""
Hosted backend adapters for auth and profile storage.

Two implementations of the same interface:
- SupabaseBackend: the supabase client (auth plus table queries)
- InMemoryBackend: preview mode when no Supabase credentials are configured,
  and the test double
"""

import logging
import secrets
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
from urllib.parse import urlencode

import httpx
from supabase import AuthError as SupabaseAuthError
from supabase import Client, PostgrestAPIError, create_client
from supabase.client import ClientOptions

from ..config import Settings
from ..errors import HostedBackendError

logger = logging.getLogger(__name__)

# Options offered by onboarding and the profile page
DEFAULT_DIETARY_RESTRICTIONS = [
    "vegetarian",
    "vegan",
    "gluten-free",
    "dairy-free",
    "nut-free",
    "keto",
    "paleo",
]

# Conflict column used when upserting into each table
UPSERT_KEYS = {
    "profiles": "id",
    "user_preferences": "user_id",
}

FilterValue = Union[str, int, Sequence[Union[str, int]]]


@dataclass
class AuthUser:
    id: str
    email: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> "AuthUser":
        return cls(
            id=data["id"],
            email=data.get("email") or "",
            metadata=dict(data.get("user_metadata") or data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict:
        return {"id": self.id, "email": self.email, "user_metadata": dict(self.metadata)}


@dataclass
class AuthSession:
    """Tokens for a signed-in user."""
    access_token: Optional[str]
    user: AuthUser
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "AuthSession":
        return cls(
            access_token=data.get("access_token"),
            user=AuthUser.from_dict(data["user"]),
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
        )

    def to_dict(self) -> Dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "user": self.user.to_dict(),
        }


class HostedBackend(ABC):
    """Auth plus row storage for profiles and preferences."""

    @abstractmethod
    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        pass

    @abstractmethod
    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthSession:
        """Create an account. access_token is None when email confirmation is pending."""
        pass

    @abstractmethod
    def sign_out(self, access_token: Optional[str]) -> None:
        pass

    @abstractmethod
    def get_user(self, access_token: str) -> AuthUser:
        pass

    @abstractmethod
    def oauth_authorize_url(self, provider: str, redirect_to: str) -> str:
        pass

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Dict[str, FilterValue],
        columns: str = "*",
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Rows matching every filter; a list value means "in"."""
        pass

    @abstractmethod
    def upsert(self, table: str, rows: List[Dict[str, Any]], access_token: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def insert(self, table: str, rows: List[Dict[str, Any]], access_token: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def delete(self, table: str, filters: Dict[str, FilterValue], access_token: Optional[str] = None) -> None:
        pass


def _is_many(value: FilterValue) -> bool:
    return isinstance(value, (list, tuple, set))


def _apply_filters(query, filters: Dict[str, FilterValue]):
    for column, value in filters.items():
        query = query.in_(column, list(value)) if _is_many(value) else query.eq(column, value)
    return query


def _to_auth_user(user) -> AuthUser:
    return AuthUser(id=user.id, email=user.email or "", metadata=dict(user.user_metadata or {}))


def _to_session(response) -> AuthSession:
    session = response.session
    user = response.user or (session.user if session else None)
    if user is None:
        raise HostedBackendError("Supabase returned no user")
    if session is None:
        return AuthSession(access_token=None, user=_to_auth_user(user))
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        user=_to_auth_user(user),
    )


class SupabaseBackend(HostedBackend):
    """
    Supabase through the supabase client.

    One shared client serves every caller. Table calls set the caller's access
    token on the PostgREST client first, so they hold a lock for the whole
    query.
    """

    def __init__(self, url: str, anon_key: str, client: Optional[Client] = None):
        if not url or not anon_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required for SupabaseBackend")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.client = client or create_client(
            self.url,
            anon_key,
            options=ClientOptions(flow_type="implicit", auto_refresh_token=False, persist_session=False),
        )
        self._lock = threading.Lock()

    def _call(self, action: str, func, *args, **kwargs):
        """Run one SDK call, converting its errors to HostedBackendError."""
        try:
            return func(*args, **kwargs)
        except SupabaseAuthError as e:
            status = getattr(e, "status", None)
            logger.debug(f"[SESSION] {action} -> {status}: {e}")
            raise HostedBackendError(getattr(e, "message", None) or str(e), status=status) from e
        except PostgrestAPIError as e:
            logger.debug(f"[SESSION] {action} -> {e.code}: {e.message}")
            raise HostedBackendError(e.message or str(e), body=str(e.details or "")) from e
        except httpx.HTTPError as e:
            raise HostedBackendError(f"Supabase unreachable: {e}") from e

    def _table(self, table: str, access_token: Optional[str]):
        self.client.postgrest.auth(access_token or self.anon_key)
        return self.client.table(table)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = self._call(
            "sign in", self.client.auth.sign_in_with_password, {"email": email, "password": password}
        )
        return _to_session(response)

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthSession:
        response = self._call(
            "sign up",
            self.client.auth.sign_up,
            {"email": email, "password": password, "options": {"data": metadata or {}}},
        )
        # session is None while email confirmation is pending
        return _to_session(response)

    def sign_out(self, access_token: Optional[str]) -> None:
        if not access_token:
            return
        self._call("sign out", self.client.auth.admin.sign_out, access_token)

    def get_user(self, access_token: str) -> AuthUser:
        response = self._call("get user", self.client.auth.get_user, access_token)
        if response is None or response.user is None:
            raise HostedBackendError("Invalid JWT", status=401)
        return _to_auth_user(response.user)

    def oauth_authorize_url(self, provider: str, redirect_to: str) -> str:
        response = self._call(
            "oauth url",
            self.client.auth.sign_in_with_oauth,
            {"provider": provider, "options": {"redirect_to": redirect_to}},
        )
        return response.url

    def select(self, table, filters, columns="*", access_token=None) -> List[Dict[str, Any]]:
        with self._lock:
            query = _apply_filters(self._table(table, access_token).select(columns), filters)
            response = self._call(f"select {table}", query.execute)
        return list(response.data or [])

    def upsert(self, table, rows, access_token=None) -> None:
        with self._lock:
            query = self._table(table, access_token).upsert(rows, on_conflict=UPSERT_KEYS.get(table, "id"))
            self._call(f"upsert {table}", query.execute)

    def insert(self, table, rows, access_token=None) -> None:
        with self._lock:
            self._call(f"insert {table}", self._table(table, access_token).insert(rows).execute)

    def delete(self, table, filters, access_token=None) -> None:
        with self._lock:
            query = _apply_filters(self._table(table, access_token).delete(), filters)
            self._call(f"delete {table}", query.execute)

def _row_matches(row: Dict[str, Any], filters: Dict[str, FilterValue]) -> bool:
    for column, value in filters.items():
        if _is_many(value):
            if row.get(column) not in value:
                return False
        elif row.get(column) != value:
            return False
    return True


class InMemoryBackend(HostedBackend):
    """
    Process-local backend for preview mode and tests.

    Mirrors the Supabase error surface: auth failures raise HostedBackendError
    with a 400 status, unknown tokens a 401.
    """

    def __init__(self, dietary_restrictions: Optional[List[str]] = None, auto_confirm: bool = True):
        self.auto_confirm = auto_confirm
        self._lock = threading.Lock()
        self._accounts: Dict[str, Dict[str, Any]] = {}
        self._tokens: Dict[str, str] = {}
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "profiles": [],
            "user_preferences": [],
            "user_dietary_restrictions": [],
            "dietary_restrictions": [
                {"id": n, "name": name}
                for n, name in enumerate(dietary_restrictions or DEFAULT_DIETARY_RESTRICTIONS, start=1)
            ],
        }
        self.signed_out_tokens: List[str] = []

    def _auth_user(self, account: Dict[str, Any]) -> AuthUser:
        return AuthUser(id=account["id"], email=account["email"], metadata=dict(account["metadata"]))

    def _issue_session(self, account: Dict[str, Any]) -> AuthSession:
        token = secrets.token_urlsafe(16)
        self._tokens[token] = account["email"]
        return AuthSession(
            access_token=token,
            refresh_token=secrets.token_urlsafe(16),
            expires_in=3600,
            user=self._auth_user(account),
        )

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        with self._lock:
            account = self._accounts.get(email.strip().lower())
            if account is None or account["password"] != password:
                raise HostedBackendError("Invalid login credentials", status=400)
            return self._issue_session(account)

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthSession:
        key = email.strip().lower()
        with self._lock:
            if key in self._accounts:
                raise HostedBackendError("User already registered", status=422)
            if len(password or "") < 6:
                raise HostedBackendError("Password should be at least 6 characters", status=422)
            account = {"id": str(uuid.uuid4()), "email": key, "password": password, "metadata": dict(metadata or {})}
            self._accounts[key] = account
            if not self.auto_confirm:
                return AuthSession(access_token=None, user=self._auth_user(account))
            return self._issue_session(account)

    def issue_oauth_session(self, email: str, metadata: Optional[Dict[str, Any]] = None) -> AuthSession:
        """Simulate a provider login, creating the account on first use."""
        key = email.strip().lower()
        with self._lock:
            account = self._accounts.get(key)
            if account is None:
                account = {"id": str(uuid.uuid4()), "email": key, "password": None, "metadata": dict(metadata or {})}
                self._accounts[key] = account
            return self._issue_session(account)

    def sign_out(self, access_token: Optional[str]) -> None:
        with self._lock:
            if access_token and self._tokens.pop(access_token, None) is not None:
                self.signed_out_tokens.append(access_token)

    def get_user(self, access_token: str) -> AuthUser:
        with self._lock:
            email = self._tokens.get(access_token)
            if email is None:
                raise HostedBackendError("Invalid JWT", status=401)
            return self._auth_user(self._accounts[email])

    def oauth_authorize_url(self, provider: str, redirect_to: str) -> str:
        query = urlencode({"provider": provider, "redirect_to": redirect_to})
        return f"memory://auth/v1/authorize?{query}"

    def _table(self, table: str) -> List[Dict[str, Any]]:
        if table not in self.tables:
            raise HostedBackendError(f'relation "public.{table}" does not exist', status=404)
        return self.tables[table]

    def select(self, table, filters, columns="*", access_token=None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(row) for row in self._table(table) if _row_matches(row, filters)]
        if columns == "*":
            return rows
        wanted = [c.strip() for c in columns.split(",")]
        return [{c: row.get(c) for c in wanted} for row in rows]

    def upsert(self, table, rows, access_token=None) -> None:
        key = UPSERT_KEYS.get(table, "id")
        with self._lock:
            existing = self._table(table)
            for row in rows:
                for stored in existing:
                    if stored.get(key) == row.get(key):
                        stored.update(row)
                        break
                else:
                    existing.append(dict(row))

    def insert(self, table, rows, access_token=None) -> None:
        with self._lock:
            self._table(table).extend(dict(row) for row in rows)

    def delete(self, table, filters, access_token=None) -> None:
        with self._lock:
            self.tables[table] = [row for row in self._table(table) if not _row_matches(row, filters)]


def create_backend(settings: Settings) -> HostedBackend:
    """Supabase when credentials are configured, otherwise the in-memory preview backend."""
    if settings.has_hosted_backend:
        logger.info("[SESSION] Using Supabase backend")
        return SupabaseBackend(settings.supabase_url, settings.supabase_anon_key)
    logger.warning("[SESSION] Supabase credentials not configured, running in preview mode")
    return InMemoryBackend()
