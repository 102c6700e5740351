"""Shared fixtures: offscreen Qt application and in-memory backend fakes."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtWidgets import QApplication

from bucket_files.views import FilesView


class FakeSession:
    def __init__(self, user_id=None):
        self.user_id = user_id

    def current_user_id(self):
        return self.user_id


class FakeNavigator:
    def __init__(self):
        self.routes = []

    def go_to(self, route):
        self.routes.append(route)


class FakeBackend:
    """Stands in for the metadata, storage and lifecycle capabilities."""

    def __init__(self):
        self.infos = {}
        self.descriptions = {}
        self.owner_names = {}
        self.listings = {}
        self.errors = {}
        self.failing_uploads = set()
        self.calls = []
        self.uploaded = {}
        self.streamed = {}
        self.downloads = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        error = self.errors.get(name)
        if error:
            raise error

    def get_bucket_info(self, bucket_id):
        self._record("get_bucket_info", bucket_id)
        return self.infos[bucket_id]

    def get_description(self, bucket_id):
        self._record("get_description", bucket_id)
        return self.descriptions.get(bucket_id, "")

    def get_owner_name(self, bucket_id):
        self._record("get_owner_name", bucket_id)
        return self.owner_names.get(bucket_id, "")

    def list(self, bucket_id, prefix="", limit=100, offset=0, sort_by=None):
        self._record("list", bucket_id, prefix, limit, offset, sort_by)
        return list(self.listings.get(bucket_id, []))

    def upload(self, bucket_id, path, data):
        self._record("upload", bucket_id, path)
        if path in self.failing_uploads:
            raise RuntimeError(f"Upload failed for {path}")
        self.streamed[path] = hasattr(data, "read")
        self.uploaded[path] = data.read() if hasattr(data, "read") else data

    def download(self, bucket_id, target_path, progress_cb=None):
        self._record("download", bucket_id, target_path)
        self.downloads.append((bucket_id, target_path))
        if progress_cb:
            progress_cb(1, 1)
        return 1

    def delete_cascade(self, bucket_id):
        self._record("delete_cascade", bucket_id)

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


def run_inline(target):
    target()


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def backend():
    fake = FakeBackend()
    fake.infos["repo-42"] = {"id": "repo-42", "name": "demo", "owner": "u1"}
    fake.listings["repo-42"] = [
        {"name": "src/a.js"},
        {"name": "src/b.js"},
        {"name": "LICENSE"},
    ]
    fake.owner_names["repo-42"] = "alice"
    return fake


@pytest.fixture
def navigator():
    return FakeNavigator()


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def make_view(qapp, backend, navigator, alerts):
    """Build a FilesView whose background tasks run inline."""

    def factory(user_id="u1", launcher=run_inline):
        return FilesView(
            FakeSession(user_id),
            backend,
            backend,
            backend,
            navigator,
            alert=lambda title, message: alerts.append((title, message)),
            launcher=launcher,
        )

    return factory
