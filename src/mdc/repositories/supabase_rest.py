from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from mdc.domain.errors import AuthorizationError, RemoteStoreError

log = logging.getLogger("mdc.sync")


class SupabaseConnection:
    """One HTTP session and one signed-in token shared by the data, identity and storage clients.

    Requests carry the user's access token once signed in, the anon key otherwise.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0, session: requests.Session | None = None):
        if not base_url or not api_key:
            raise RemoteStoreError("Remote store is not configured.")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.access_token: Optional[str] = None

    def headers(self, extra: Optional[dict] = None) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        headers = self.headers(kwargs.pop("headers", None))
        try:
            r = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log.warning("remote_unreachable method=%s path=%s error=%s", method, path, e)
            raise RemoteStoreError(f"Remote store unreachable: {e}") from e
        return r


def _json(r: requests.Response) -> Any:
    if not r.content:
        return None
    try:
        return r.json()
    except ValueError as e:
        raise RemoteStoreError(f"Remote store returned invalid JSON: {e}") from e


class SupabaseRestStore:
    """Table CRUD over the PostgREST endpoint (``/rest/v1``)."""

    def __init__(self, connection: SupabaseConnection):
        self.connection = connection

    def _call(self, method: str, table: str, **kwargs: Any) -> Any:
        r = self.connection.send(method, f"/rest/v1/{table}", **kwargs)
        try:
            r.raise_for_status()
        except requests.HTTPError as e:
            log.warning("remote_rejected method=%s table=%s status=%s", method, table, r.status_code)
            raise RemoteStoreError(f"Remote store rejected {method} {table}: {r.status_code}") from e
        return _json(r)

    @staticmethod
    def _eq(value: Any) -> str:
        if isinstance(value, bool):
            value = str(value).lower()
        return f"eq.{value}"

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[dict]:
        params: dict[str, str] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = self._eq(value)
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        data = self._call("GET", table, params=params)
        if not isinstance(data, list):
            raise RemoteStoreError(f"Unexpected select payload for {table}.")
        return data

    def _first(self, data: Any, fallback: dict) -> dict:
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        return fallback

    def insert(self, table: str, row: dict) -> dict:
        data = self._call("POST", table, json=row, headers={"Prefer": "return=representation"})
        return self._first(data, row)

    def update(self, table: str, row_id: str, fields: dict) -> dict:
        data = self._call(
            "PATCH",
            table,
            params={"id": self._eq(row_id)},
            json=fields,
            headers={"Prefer": "return=representation"},
        )
        return self._first(data, {"id": row_id, **fields})

    def upsert(self, table: str, row: dict) -> dict:
        data = self._call(
            "POST",
            table,
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        return self._first(data, row)

    def delete(self, table: str, row_id: str) -> None:
        self._call("DELETE", table, params={"id": self._eq(row_id)})


class SupabaseAuthClient:
    """Identity/session collaborator over GoTrue (``/auth/v1``).

    The session token is kept on the shared connection so table and storage
    calls made afterwards act as the signed-in user.
    """

    def __init__(self, connection: SupabaseConnection):
        self.connection = connection

    @property
    def access_token(self) -> Optional[str]:
        return self.connection.access_token

    @access_token.setter
    def access_token(self, token: Optional[str]) -> None:
        self.connection.access_token = token

    def _auth_call(self, method: str, path: str, **kwargs: Any) -> Any:
        r = self.connection.send(method, f"/auth/v1{path}", **kwargs)
        if r.status_code in (400, 401, 403, 422):
            body = _json(r) if r.content else {}
            msg = ""
            if isinstance(body, dict):
                msg = str(body.get("error_description") or body.get("msg") or body.get("message") or "")
            raise AuthorizationError(msg or "Authentication failed.")
        try:
            r.raise_for_status()
        except requests.HTTPError as e:
            raise RemoteStoreError(f"Identity service error {r.status_code}") from e
        return _json(r)

    def _remember(self, session: Any) -> dict:
        if isinstance(session, dict) and session.get("access_token"):
            self.access_token = str(session["access_token"])
        return session if isinstance(session, dict) else {}

    def sign_in(self, email: str, password: str) -> dict:
        session = self._auth_call(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._remember(session)

    def sign_up(self, email: str, password: str, profile: dict) -> dict:
        session = self._auth_call("POST", "/signup", json={"email": email, "password": password, "data": profile})
        return self._remember(session)

    def sign_out(self) -> None:
        if not self.access_token:
            return
        try:
            self._auth_call("POST", "/logout")
        finally:
            self.access_token = None

    def get_current_user(self) -> Optional[dict]:
        if not self.access_token:
            return None
        try:
            user = self._auth_call("GET", "/user")
        except AuthorizationError:
            self.access_token = None
            return None
        if not isinstance(user, dict) or not user.get("id"):
            return None
        return {"id": str(user["id"]), "email": str(user.get("email") or "")}

    def update_user(self, fields: dict) -> dict:
        if not self.access_token:
            raise AuthorizationError("Not signed in.")
        user = self._auth_call("PUT", "/user", json=fields)
        return user if isinstance(user, dict) else {}


class SupabaseStorage:
    """Blob storage collaborator (``/storage/v1``)."""

    def __init__(self, connection: SupabaseConnection):
        self.connection = connection

    def upload(self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        r = self.connection.send(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        try:
            r.raise_for_status()
        except requests.HTTPError as e:
            raise RemoteStoreError(f"Upload to {bucket} failed: {r.status_code}") from e
        return self.get_public_url(bucket, path)

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.connection.base_url}/storage/v1/object/public/{bucket}/{quote(path)}"
