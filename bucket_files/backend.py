import logging
import os
import tempfile
import zipfile
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Union

from .client import SupabaseClient


logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 100
DEFAULT_SORT = {"column": "name", "order": "asc"}


class SupabaseSession:
    """Read-only view of the signed-in identity."""

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    def current_user_id(self) -> Optional[str]:
        user = self.client.user or {}
        return user.get("id")


class SupabaseBackend:
    """Metadata, object storage and bucket lifecycle operations on one Supabase project."""

    def __init__(
        self,
        client: SupabaseClient,
        description_table: str = "bucket_description",
        profiles_table: str = "profiles",
        profile_name_column: str = "username",
    ) -> None:
        self.client = client
        self.description_table = description_table
        self.profiles_table = profiles_table
        self.profile_name_column = profile_name_column

    def get_bucket_info(self, bucket_id: str) -> Dict:
        data = self.client.get_bucket(bucket_id)
        return {"id": data.get("id", bucket_id), "name": data.get("name", bucket_id), "owner": data.get("owner")}

    def get_description(self, bucket_id: str) -> str:
        row = self.client.select_one(self.description_table, "description", {"bucket_id": bucket_id})
        return str(row.get("description") or "")

    def get_owner_name(self, bucket_id: str) -> str:
        owner = self.client.get_bucket(bucket_id).get("owner")
        if not owner:
            return ""
        row = self.client.select_one(self.profiles_table, self.profile_name_column, {"id": owner})
        return str(row.get(self.profile_name_column) or "")

    def list_buckets(self, owner: Optional[str] = None) -> List[Dict]:
        buckets = self.client.list_buckets()
        if owner:
            buckets = [b for b in buckets if b.get("owner") == owner]
        return buckets

    def list(
        self,
        bucket_id: str,
        prefix: str = "",
        limit: int = LIST_PAGE_SIZE,
        offset: int = 0,
        sort_by: Optional[Dict[str, str]] = None,
    ) -> List[Dict]:
        return self.client.list_objects(bucket_id, prefix, limit=limit, offset=offset, sort_by=sort_by or DEFAULT_SORT)

    def upload(self, bucket_id: str, path: str, data: Union[bytes, BinaryIO]) -> None:
        self.client.upload_object(bucket_id, path, data)

    def walk(self, bucket_id: str, prefix: str = "") -> Iterator[str]:
        """Yield every object path in the bucket, descending into folder placeholders."""
        offset = 0
        while True:
            page = self.list(bucket_id, prefix, limit=LIST_PAGE_SIZE, offset=offset)
            for item in page:
                name = str(item.get("name", ""))
                if not name:
                    continue
                full_name = f"{prefix}/{name}" if prefix else name
                # Storage reports folders as rows without an id.
                if item.get("id") is None:
                    yield from self.walk(bucket_id, full_name)
                else:
                    yield full_name
            if len(page) < LIST_PAGE_SIZE:
                break
            offset += LIST_PAGE_SIZE

    def download(
        self,
        bucket_id: str,
        target_path: str,
        progress_cb: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        names = list(self.walk(bucket_id))
        total = len(names)
        # The archive is built beside the target and moved into place only once complete.
        fd, partial_path = tempfile.mkstemp(suffix=".part", dir=os.path.dirname(os.path.abspath(target_path)))
        os.close(fd)
        try:
            with zipfile.ZipFile(partial_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for idx, name in enumerate(names, start=1):
                    archive.writestr(name, self.client.download_object(bucket_id, name))
                    if progress_cb:
                        progress_cb(idx, total)
            os.replace(partial_path, target_path)
        except Exception:
            os.remove(partial_path)
            raise
        logger.info("Archived %d object(s) from %s into %s", total, bucket_id, target_path)
        return total

    def delete_cascade(self, bucket_id: str) -> None:
        """Delete description rows, then objects, then the bucket itself."""
        self.client.delete_rows(self.description_table, {"bucket_id": bucket_id})
        self.client.empty_bucket(bucket_id)
        self.client.delete_bucket(bucket_id)
        logger.info("Deleted bucket %s with its metadata", bucket_id)
