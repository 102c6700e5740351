import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional


logger = logging.getLogger(__name__)

APP_DIR_NAME = "BucketFiles"

DEFAULT_SETTINGS: Dict = {
    "supabase_url": "",
    "anon_key": "",
    "email": "",
    "refresh_token": "",
    "remember": True,
    "description_table": "bucket_description",
    "profiles_table": "profiles",
    "profile_name_column": "username",
}


def config_dir() -> Path:
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home()))
        return base / APP_DIR_NAME
    if os.uname().sysname == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


class SettingsStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or config_dir() / "settings.json"

    def load(self) -> Dict:
        data = dict(DEFAULT_SETTINGS)
        if self.path.exists():
            try:
                stored = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
                stored = {}
            if isinstance(stored, dict):
                data.update(stored)
        if os.environ.get("SUPABASE_URL"):
            data["supabase_url"] = os.environ["SUPABASE_URL"]
        if os.environ.get("SUPABASE_ANON_KEY"):
            data["anon_key"] = os.environ["SUPABASE_ANON_KEY"]
        return data

    def save(self, data: Dict) -> None:
        payload = dict(data)
        if not payload.get("remember", True):
            payload["refresh_token"] = ""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload, ensure_ascii=True, indent=2), encoding="utf-8")
