"""
backend.py
SupabaseBackend: table, storage and auth calls against a hosted Supabase
project over its REST endpoints, plus get_backend() to pick local or hosted.
"""

from __future__ import annotations

import logging

import requests

from config import Config
from errors import BackendError

logger = logging.getLogger(__name__)


def _pg_value(value) -> str:
    """Quote a value inside a PostgREST or=(...) list (commas, dots, parens)."""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


class SupabaseBackend:
    name = "supabase"

    def __init__(self, url: str | None = None, anon_key: str | None = None,
                 bucket: str | None = None, session: requests.Session | None = None):
        self.url = (url or Config.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key or Config.SUPABASE_ANON_KEY
        self.bucket = bucket or Config.SUPABASE_BUCKET
        if not self.url or not self.anon_key:
            raise BackendError("SUPABASE_URL and SUPABASE_ANON_KEY must be set.")
        self.session = session or requests.Session()
        self.access_token: str | None = None
        self._user: dict | None = None

    def _headers(self, extra: dict | None = None) -> dict:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = self._headers(kwargs.pop("headers", None))
        try:
            response = self.session.request(
                method, f"{self.url}{path}", headers=headers, timeout=Config.REQUEST_TIMEOUT, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(f"Could not reach the backend: {e}") from e
        if not response.ok:
            logger.error(f"{method} {path} returned {response.status_code}: {response.text}")
            raise BackendError(f"{method} {path} failed ({response.status_code}): {response.text}")
        return response

    @staticmethod
    def _filters(eq: dict | None, or_eq: dict | None) -> dict:
        params = {col: f"eq.{val}" for col, val in (eq or {}).items()}
        if or_eq:
            params["or"] = "(" + ",".join(f"{col}.eq.{_pg_value(val)}" for col, val in or_eq.items()) + ")"
        return params

    # ---------- tables ----------

    def select(self, table: str, columns: str = "*", eq: dict | None = None,
               or_eq: dict | None = None, order: str | None = None, ascending: bool = True) -> list[dict]:
        params = {"select": columns.replace(" ", "")}
        params.update(self._filters(eq, or_eq))
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        return self._request("GET", f"/rest/v1/{table}", params=params).json()

    def select_one(self, table: str, columns: str = "*", eq: dict | None = None) -> dict:
        rows = self.select(table, columns, eq=eq)
        if len(rows) != 1:
            raise BackendError(f"Expected one row from {table}, got {len(rows)}")
        return rows[0]

    def insert(self, table: str, row: dict) -> dict:
        rows = self._request(
            "POST", f"/rest/v1/{table}", json=[row], headers={"Prefer": "return=representation"}
        ).json()
        if not rows:
            raise BackendError(f"Insert into {table} returned no row")
        return rows[0]

    def update(self, table: str, values: dict, eq: dict) -> list[dict]:
        if not eq:
            raise BackendError("Refusing to update without a filter")
        return self._request(
            "PATCH", f"/rest/v1/{table}", params=self._filters(eq, None), json=values,
            headers={"Prefer": "return=representation"},
        ).json()

    def delete(self, table: str, eq: dict) -> None:
        if not eq:
            raise BackendError("Refusing to delete without a filter")
        self._request("DELETE", f"/rest/v1/{table}", params=self._filters(eq, None))

    # ---------- storage ----------

    def upload(self, key: str, data: bytes, content_type: str = "image/png") -> None:
        self._request(
            "POST", f"/storage/v1/object/{self.bucket}/{key}", data=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )

    def remove(self, key: str) -> None:
        self._request("DELETE", f"/storage/v1/object/{self.bucket}", json={"prefixes": [key]})

    def public_url(self, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{key}"

    # ---------- auth ----------

    def sign_in(self, username: str, password: str) -> dict:
        data = self._request(
            "POST", "/auth/v1/token", params={"grant_type": "password"},
            json={"email": username, "password": password},
        ).json()
        self.access_token = data.get("access_token")
        self._user = data.get("user") or {"email": username}
        logger.info(f"Signed in as {self._user.get('email')}")
        return self._user

    def current_user(self) -> dict | None:
        if not self.access_token:
            return None
        if self._user is None:
            self._user = self._request("GET", "/auth/v1/user").json()
        return self._user

    def sign_out(self) -> None:
        if self.access_token:
            try:
                self._request("POST", "/auth/v1/logout")
            except BackendError as e:
                logger.warning(f"Logout request failed, dropping session anyway: {e}")
        self.access_token = None
        self._user = None

    def change_admin_password(self, username: str, password_hash: str) -> None:
        raise BackendError("Passwords are managed in the Supabase dashboard.")

    def is_force_password_change(self) -> bool:
        return False


def get_backend():
    if Config.BACKEND == "supabase":
        return SupabaseBackend()
    # Imported here so the hosted setup never touches SQLite
    from db import LocalBackend

    client = LocalBackend()
    client.init()
    return client
