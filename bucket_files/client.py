import logging
from typing import BinaryIO, Dict, List, Optional, Union
from urllib.parse import quote

import requests


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
TRANSFER_TIMEOUT = 120


class SupabaseError(RuntimeError):
    def __init__(self, message: str, status_code: int = 0, details: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class NotAuthenticatedError(SupabaseError):
    pass


def _raise_for_status(response: requests.Response, action: str) -> None:
    if response.status_code < 400:
        return
    try:
        details = response.json()
    except ValueError:
        details = response.text
    raise SupabaseError(f"{action} failed ({response.status_code}): {details}", response.status_code, details)


class SupabaseClient:
    """Thin REST client for the Supabase Auth, Storage and PostgREST APIs."""

    def __init__(self, url: str = "", anon_key: str = "") -> None:
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.user: Optional[Dict] = None

    def configure(self, url: str, anon_key: str) -> None:
        url = url.rstrip("/")
        if url != self.url or anon_key != self.anon_key:
            self.clear_session()
        self.url = url
        self.anon_key = anon_key

    def _require_config(self) -> None:
        if not self.url or not self.anon_key:
            raise SupabaseError("Supabase URL and anon key are required.")

    def _require_auth(self) -> None:
        self._require_config()
        if not self.access_token:
            raise NotAuthenticatedError("Client is not signed in.")

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _store_session(self, data: Dict) -> None:
        self.access_token = data["access_token"]
        self.refresh_token = data.get("refresh_token")
        self.user = data.get("user")

    def clear_session(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.user = None

    # Auth

    def sign_in(self, email: str, password: str) -> Dict:
        self._require_config()
        response = requests.post(
            f"{self.url}/auth/v1/token",
            params={"grant_type": "password"},
            headers={"apikey": self.anon_key},
            json={"email": email, "password": password},
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, "Sign in")
        data = response.json()
        self._store_session(data)
        logger.info("Signed in as %s", email)
        return data

    def refresh_session(self, refresh_token: str) -> Dict:
        self._require_config()
        response = requests.post(
            f"{self.url}/auth/v1/token",
            params={"grant_type": "refresh_token"},
            headers={"apikey": self.anon_key},
            json={"refresh_token": refresh_token},
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, "Session refresh")
        data = response.json()
        self._store_session(data)
        return data

    def sign_out(self) -> None:
        if self.access_token:
            response = requests.post(
                f"{self.url}/auth/v1/logout",
                headers=self._headers(),
                timeout=DEFAULT_TIMEOUT,
            )
            if response.status_code >= 400:
                logger.warning("Sign out returned %s", response.status_code)
        self.clear_session()

    # Storage

    def list_buckets(self) -> List[Dict]:
        self._require_config()
        response = requests.get(
            f"{self.url}/storage/v1/bucket",
            headers=self._headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, "List buckets")
        return response.json()

    def get_bucket(self, bucket_id: str) -> Dict:
        self._require_config()
        response = requests.get(
            f"{self.url}/storage/v1/bucket/{quote(bucket_id, safe='')}",
            headers=self._headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, "Get bucket")
        return response.json()

    def list_objects(
        self,
        bucket_id: str,
        prefix: str = "",
        limit: int = 100,
        offset: int = 0,
        sort_by: Optional[Dict[str, str]] = None,
    ) -> List[Dict]:
        self._require_config()
        payload = {
            "prefix": prefix,
            "limit": limit,
            "offset": offset,
            "sortBy": sort_by or {"column": "name", "order": "asc"},
        }
        response = requests.post(
            f"{self.url}/storage/v1/object/list/{quote(bucket_id, safe='')}",
            headers=self._headers(),
            json=payload,
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, "List objects")
        return response.json()

    def upload_object(
        self,
        bucket_id: str,
        path: str,
        data: Union[bytes, BinaryIO],
        content_type: str = "application/octet-stream",
    ) -> Dict:
        self._require_auth()
        response = requests.post(
            f"{self.url}/storage/v1/object/{quote(bucket_id, safe='')}/{quote(path, safe='/')}",
            headers=self._headers({"Content-Type": content_type, "x-upsert": "true"}),
            data=data,
            timeout=TRANSFER_TIMEOUT,
        )
        _raise_for_status(response, "Upload")
        return response.json()

    def download_object(self, bucket_id: str, path: str) -> bytes:
        self._require_config()
        response = requests.get(
            f"{self.url}/storage/v1/object/authenticated/{quote(bucket_id, safe='')}/{quote(path, safe='/')}",
            headers=self._headers(),
            timeout=TRANSFER_TIMEOUT,
        )
        _raise_for_status(response, "Download")
        return response.content

    def empty_bucket(self, bucket_id: str) -> None:
        self._require_auth()
        response = requests.post(
            f"{self.url}/storage/v1/bucket/{quote(bucket_id, safe='')}/empty",
            headers=self._headers(),
            timeout=TRANSFER_TIMEOUT,
        )
        _raise_for_status(response, "Empty bucket")

    def delete_bucket(self, bucket_id: str) -> None:
        self._require_auth()
        response = requests.delete(
            f"{self.url}/storage/v1/bucket/{quote(bucket_id, safe='')}",
            headers=self._headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, "Delete bucket")

    # PostgREST

    def select_one(self, table: str, columns: str, filters: Dict[str, str]) -> Dict:
        """Fetch exactly one row; a missing or ambiguous row raises SupabaseError."""
        self._require_config()
        params = {"select": columns}
        params.update({column: f"eq.{value}" for column, value in filters.items()})
        response = requests.get(
            f"{self.url}/rest/v1/{table}",
            headers=self._headers({"Accept": "application/vnd.pgrst.object+json"}),
            params=params,
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, f"Select from {table}")
        return response.json()

    def delete_rows(self, table: str, filters: Dict[str, str]) -> None:
        self._require_auth()
        params = {column: f"eq.{value}" for column, value in filters.items()}
        response = requests.delete(
            f"{self.url}/rest/v1/{table}",
            headers=self._headers(),
            params=params,
            timeout=DEFAULT_TIMEOUT,
        )
        _raise_for_status(response, f"Delete from {table}")
