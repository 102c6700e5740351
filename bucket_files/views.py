import inspect
import logging
import os
import threading
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QCheckBox,
    QFileDialog,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QStyle,
    QTableWidget,
    QTableWidgetItem,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from .backend import DEFAULT_SORT, LIST_PAGE_SIZE
from .grouping import display_name, format_bytes, group_by_folder


logger = logging.getLogger(__name__)

NO_DESCRIPTION_TEXT = "No hay descripción disponible para este bucket."
LOADING_TEXT = "Loading bucket information..."
EMPTY_FILES_TEXT = "Agrega un archivo a tu repositorio"
OWNER_NOT_FOUND_TEXT = "Owner not found"
DELETE_FAILED_TEXT = "error deleting files"

LIST_OPTIONS = {"limit": LIST_PAGE_SIZE, "offset": 0, "sort_by": DEFAULT_SORT}


class UploadResult(NamedTuple):
    path: str
    ok: bool
    error: str = ""


class WorkerSignals(QObject):
    success = Signal(object)
    error = Signal(str)
    progress = Signal(int, str)


def start_thread(target: Callable[[], None]) -> None:
    threading.Thread(target=target, daemon=True).start()


def collect_folder_items(folder: str) -> List[Tuple[str, str, int]]:
    """List every file below `folder` as (local path, path relative to the folder's parent, size)."""
    base_name = os.path.basename(folder.rstrip(os.sep))
    items = []
    for root, _, files in os.walk(folder):
        for file_name in files:
            local_path = os.path.join(root, file_name)
            rel_path = os.path.relpath(local_path, folder).replace("\\", "/")
            items.append((local_path, f"{base_name}/{rel_path}", os.path.getsize(local_path)))
    items.sort(key=lambda x: x[1])
    return items


class BackgroundView(QWidget):
    def __init__(self, launcher: Optional[Callable[[Callable[[], None]], None]] = None, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._launch = launcher or start_thread
        self._workers: List[WorkerSignals] = []

    def set_status(self, text: str) -> None:
        self.status_label.setText(text)

    def _run_bg(self, fn, on_success=None, on_error=None, on_progress=None) -> None:
        signals = WorkerSignals()

        def handle_success(result: object) -> None:
            try:
                if on_success:
                    on_success(result)
            finally:
                self._workers.remove(signals)

        def handle_error(msg: str) -> None:
            try:
                if on_error:
                    on_error(msg)
                else:
                    logger.error("Background task failed: %s", msg)
            finally:
                self._workers.remove(signals)

        signals.success.connect(handle_success)
        signals.error.connect(handle_error)
        if on_progress:
            signals.progress.connect(on_progress)
        self._workers.append(signals)

        def worker() -> None:
            try:
                if len(inspect.signature(fn).parameters) > 0:
                    result = fn(lambda p, t: signals.progress.emit(p, t))
                else:
                    result = fn()
                signals.success.emit(result)
            except Exception as exc:
                signals.error.emit(str(exc))

        self._launch(worker)


class FilesView(BackgroundView):
    """Bucket page: title, owner, files grouped by top-level folder and description."""

    def __init__(
        self,
        session,
        metadata,
        storage,
        lifecycle,
        navigator,
        alert: Optional[Callable[[str, str], None]] = None,
        launcher: Optional[Callable[[Callable[[], None]], None]] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(launcher, parent)
        self.session = session
        self.metadata = metadata
        self.storage = storage
        self.lifecycle = lifecycle
        self.navigator = navigator
        self.alert = alert or self._show_alert

        self.bucket_id = ""
        self.bucket_info: Optional[Dict] = None
        self.bucket_description = ""
        self.files: Dict[str, List[Dict]] = {}
        self.user_name = ""
        self.last_upload_results: List[UploadResult] = []
        self._generation = 0

        self._build_ui()
        self.render()

    def _build_ui(self) -> None:
        main = QVBoxLayout(self)
        main.setContentsMargins(48, 20, 48, 20)
        main.setSpacing(12)

        header = QHBoxLayout()
        self.back_btn = QPushButton("Repositories")
        self.back_btn.setObjectName("secondaryBtn")
        self.title_label = QLabel(LOADING_TEXT)
        self.title_label.setObjectName("titleLabel")
        header.addWidget(self.back_btn)
        header.addWidget(self.title_label, 1)
        main.addLayout(header)

        toolbar = QHBoxLayout()
        self.branch_btn = QPushButton("main")
        self.branch_btn.setObjectName("secondaryBtn")
        self.branches_btn = QPushButton("Branch")
        self.branches_btn.setObjectName("ghostBtn")
        self.tags_btn = QPushButton("Tags")
        self.tags_btn.setObjectName("ghostBtn")
        self.upload_btn = QPushButton("Add file")
        self.upload_btn.setObjectName("secondaryBtn")
        self.download_btn = QPushButton("Code")
        self.download_btn.setObjectName("primaryBtn")
        toolbar.addWidget(self.branch_btn)
        toolbar.addWidget(self.branches_btn)
        toolbar.addWidget(self.tags_btn)
        toolbar.addStretch(1)
        toolbar.addWidget(self.upload_btn)
        toolbar.addWidget(self.download_btn)
        main.addLayout(toolbar)

        self.owner_btn = QPushButton(OWNER_NOT_FOUND_TEXT)
        self.owner_btn.setObjectName("linkBtn")
        self.owner_btn.setFlat(True)
        main.addWidget(self.owner_btn)

        self.files_tree = QTreeWidget()
        self.files_tree.setHeaderHidden(True)
        self.files_tree.setEditTriggers(QAbstractItemView.NoEditTriggers)
        main.addWidget(self.files_tree, 1)
        self.empty_label = QLabel(EMPTY_FILES_TEXT)
        self.empty_label.setObjectName("sectionLabel")
        main.addWidget(self.empty_label)

        description_title = QLabel("Descripción")
        description_title.setObjectName("sectionLabel")
        main.addWidget(description_title)
        self.description_label = QLabel(NO_DESCRIPTION_TEXT)
        self.description_label.setWordWrap(True)
        main.addWidget(self.description_label)

        self.delete_btn = QPushButton("Delete repository")
        self.delete_btn.setObjectName("dangerBtn")
        main.addWidget(self.delete_btn, 0, Qt.AlignLeft)

        self.status_label = QLabel("Ready")
        main.addWidget(self.status_label)
        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 100)
        self.progress_bar.setValue(0)
        main.addWidget(self.progress_bar)

        self.back_btn.clicked.connect(lambda _=False: self.navigator.go_to("/Home"))
        self.owner_btn.clicked.connect(self._open_owner_profile)
        self.upload_btn.clicked.connect(self.select_folder_and_upload)
        self.download_btn.clicked.connect(lambda _=False: self.handle_download())
        self.delete_btn.clicked.connect(lambda _=False: self.handle_delete_bucket())

    def _show_alert(self, title: str, message: str) -> None:
        QMessageBox.critical(self, title, message)

    # State

    def is_owner(self) -> bool:
        if not self.bucket_info or self.bucket_info.get("owner") is None:
            return False
        return self.bucket_info.get("owner") == self.session.current_user_id()

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation != self._generation:
            logger.debug("Discarding stale %s response (generation %d, current %d)", what, generation, self._generation)
            return True
        return False

    def set_bucket_id(self, bucket_id: Optional[str]) -> None:
        self.bucket_id = (bucket_id or "").strip()
        self._generation += 1
        self.bucket_info = None
        self.bucket_description = ""
        self.files = {}
        self.user_name = ""
        self.render()

        if not self.bucket_id:
            logger.error("No bucket id provided")
            return

        self._fetch_owner_name()
        self._fetch_bucket_info()
        self._fetch_description()
        self.fetch_files()

    def _fetch_bucket_info(self) -> None:
        bucket_id, generation = self.bucket_id, self._generation
        logger.info("Fetching bucket info for %s", bucket_id)

        def done(info: object) -> None:
            if self._is_stale(generation, "bucket info"):
                return
            logger.info("Bucket info for %s: %s", bucket_id, info)
            self.bucket_info = dict(info)
            self.render()

        def failed(msg: str) -> None:
            logger.error("Could not fetch bucket info for %s: %s", bucket_id, msg)

        self._run_bg(lambda: self.metadata.get_bucket_info(bucket_id), done, failed)

    def _fetch_description(self) -> None:
        bucket_id, generation = self.bucket_id, self._generation

        def done(description: object) -> None:
            if self._is_stale(generation, "description"):
                return
            if description:
                self.bucket_description = str(description)
                self.render()

        def failed(msg: str) -> None:
            logger.error("Could not fetch description for %s: %s", bucket_id, msg)

        self._run_bg(lambda: self.metadata.get_description(bucket_id), done, failed)

    def _fetch_owner_name(self) -> None:
        bucket_id, generation = self.bucket_id, self._generation

        def done(name: object) -> None:
            if self._is_stale(generation, "owner name"):
                return
            self.user_name = str(name or "")
            self.render()

        def failed(msg: str) -> None:
            logger.error("Could not resolve owner of %s: %s", bucket_id, msg)

        self._run_bg(lambda: self.metadata.get_owner_name(bucket_id), done, failed)

    def fetch_files(self) -> None:
        if not self.bucket_id:
            logger.error("No bucket id provided")
            return
        bucket_id, generation = self.bucket_id, self._generation

        def done(entries: object) -> None:
            if self._is_stale(generation, "file listing"):
                return
            self.files = group_by_folder(entries)
            self.render()

        def failed(msg: str) -> None:
            logger.error("Could not list files of %s: %s", bucket_id, msg)

        self._run_bg(lambda: self.storage.list(bucket_id, "", **LIST_OPTIONS), done, failed)

    # Rendering

    def render(self) -> None:
        if self.bucket_info:
            self.title_label.setText(str(self.bucket_info.get("name", "")))
        else:
            self.title_label.setText(LOADING_TEXT)

        self.owner_btn.setText(self.user_name or OWNER_NOT_FOUND_TEXT)
        self.description_label.setText(self.bucket_description or NO_DESCRIPTION_TEXT)

        self.files_tree.clear()
        folder_icon = self.style().standardIcon(QStyle.SP_DirIcon)
        for folder_name, entries in self.files.items():
            folder_item = QTreeWidgetItem([folder_name])
            folder_item.setIcon(0, folder_icon)
            for entry in entries:
                child = QTreeWidgetItem([display_name(entry)])
                child.setData(0, Qt.UserRole, entry["name"])
                folder_item.addChild(child)
            self.files_tree.addTopLevelItem(folder_item)
        self.files_tree.expandAll()
        self.files_tree.setVisible(bool(self.files))
        self.empty_label.setVisible(not self.files)

        owner = self.is_owner()
        self.upload_btn.setVisible(owner)
        self.delete_btn.setVisible(owner)

    def _open_owner_profile(self) -> None:
        if self.bucket_info and self.bucket_info.get("owner"):
            self.navigator.go_to(f"/OverviewProfile/{self.bucket_info['owner']}")

    # Actions

    def select_folder_and_upload(self) -> None:
        folder = QFileDialog.getExistingDirectory(self, "Select folder")
        if not folder:
            return
        items = collect_folder_items(folder)
        if not items:
            QMessageBox.warning(self, "Empty folder", "Selected folder has no files.")
            return
        self.upload_folder_items(items)

    def upload_folder_items(self, items: List[Tuple[str, str, int]]) -> None:
        bucket_id = self.bucket_id
        if not bucket_id:
            logger.error("No bucket id provided")
            return
        items = list(items)
        total_files = len(items)
        total_bytes = sum(size for _, _, size in items)
        self.set_status(f"Uploading {total_files} file(s), {format_bytes(total_bytes)}...")
        self.progress_bar.setValue(0)

        def task(progress):
            results: List[UploadResult] = []
            for idx, (local_path, target_rel, _) in enumerate(items, start=1):
                progress(int(((idx - 1) * 100) / max(1, total_files)), f"[{idx}/{total_files}] Uploading {target_rel}")
                try:
                    with open(local_path, "rb") as f:
                        self.storage.upload(bucket_id, target_rel, f)
                except Exception as exc:
                    logger.error("Upload of %s failed: %s", target_rel, exc)
                    results.append(UploadResult(target_rel, False, str(exc)))
                else:
                    logger.info("Uploaded %s to %s", target_rel, bucket_id)
                    results.append(UploadResult(target_rel, True))
            progress(100, "Upload finished")
            return results

        def done(results: object) -> None:
            self.last_upload_results = list(results)
            failed_count = sum(1 for r in self.last_upload_results if not r.ok)
            if failed_count:
                self.set_status(f"Uploaded {total_files - failed_count} of {total_files} file(s), {failed_count} failed")
            else:
                self.set_status(f"Uploaded {total_files} file(s)")
            self.fetch_files()

        def failed(msg: str) -> None:
            logger.error("Upload batch aborted: %s", msg)
            self.set_status("Upload failed")
            self.fetch_files()

        def on_progress(pct: int, text: str) -> None:
            self.progress_bar.setValue(max(0, min(100, pct)))
            self.set_status(text)

        self._run_bg(task, done, failed, on_progress)

    def handle_download(self, target_path: Optional[str] = None) -> None:
        bucket_id = self.bucket_id
        if not bucket_id:
            logger.error("No bucket id provided")
            return
        if target_path is None:
            default_name = f"{(self.bucket_info or {}).get('name') or bucket_id}.zip"
            target_path, _ = QFileDialog.getSaveFileName(self, "Download repository", default_name, "Zip archives (*.zip)")
            if not target_path:
                return

        logger.info("Downloading bucket %s to %s", bucket_id, target_path)
        self.set_status("Downloading files...")
        self.progress_bar.setValue(0)

        def task(progress):
            return self.lifecycle.download(
                bucket_id,
                target_path,
                progress_cb=lambda current, total: progress(
                    int((current * 100) / max(1, total)), f"[{current}/{total}] Downloading..."
                ),
            )

        def done(count: object) -> None:
            self.progress_bar.setValue(100)
            self.set_status(f"Downloaded {count} file(s) to {target_path}")

        def failed(msg: str) -> None:
            logger.error("Download of %s failed: %s", bucket_id, msg)
            self.set_status("Download failed")

        def on_progress(pct: int, text: str) -> None:
            self.progress_bar.setValue(max(0, min(100, pct)))
            self.set_status(text)

        self._run_bg(task, done, failed, on_progress)

    def handle_delete_bucket(self, confirm: bool = True) -> None:
        bucket_id = self.bucket_id
        if not bucket_id:
            logger.error("No bucket id provided")
            return
        if confirm:
            answer = QMessageBox.question(
                self,
                "Delete repository",
                f"Delete {bucket_id} with all its files? This cannot be undone.",
            )
            if answer != QMessageBox.Yes:
                return

        self.set_status("Deleting repository...")

        def done(_: object) -> None:
            self.set_status("Repository deleted")
            self.navigator.go_to("/Home")

        def failed(msg: str) -> None:
            logger.error("Cascade delete of %s failed: %s", bucket_id, msg)
            self.set_status("Delete failed")
            self.alert("Error", DELETE_FAILED_TEXT)

        self._run_bg(lambda: self.lifecycle.delete_cascade(bucket_id), done, failed)


class HomeView(BackgroundView):
    """Sign-in form and the list of buckets visible to the session."""

    session_changed = Signal()

    def __init__(
        self,
        client,
        backend,
        settings_store,
        navigator,
        launcher: Optional[Callable[[Callable[[], None]], None]] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(launcher, parent)
        self.client = client
        self.backend = backend
        self.settings_store = settings_store
        self.navigator = navigator
        self.settings: Dict = settings_store.load()
        self.owner_filter: Optional[str] = None
        self.bucket_rows: List[Dict] = []

        self._build_ui()
        self._apply_settings()

    def _build_ui(self) -> None:
        main = QVBoxLayout(self)
        main.setContentsMargins(18, 14, 18, 14)
        main.setSpacing(10)

        title = QLabel("Repositories")
        title.setObjectName("titleLabel")
        main.addWidget(title)

        connection_group = QGroupBox("Supabase Connection")
        main.addWidget(connection_group)
        grid = QGridLayout(connection_group)
        grid.setHorizontalSpacing(10)
        grid.setVerticalSpacing(8)

        self.url_input = QLineEdit()
        self.url_input.setPlaceholderText("https://<project>.supabase.co")
        self.key_input = QLineEdit()
        self.key_input.setPlaceholderText("anon key")
        self.key_input.setEchoMode(QLineEdit.Password)
        self.email_input = QLineEdit()
        self.password_input = QLineEdit()
        self.password_input.setEchoMode(QLineEdit.Password)
        self.remember_check = QCheckBox("Remember session")
        self.sign_in_btn = QPushButton("Sign In")
        self.sign_in_btn.setObjectName("primaryBtn")
        self.sign_out_btn = QPushButton("Sign Out")
        self.sign_out_btn.setObjectName("dangerBtn")

        grid.addWidget(QLabel("Project URL"), 0, 0)
        grid.addWidget(self.url_input, 0, 1)
        grid.addWidget(QLabel("Anon Key"), 0, 2)
        grid.addWidget(self.key_input, 0, 3)
        grid.addWidget(QLabel("Email"), 1, 0)
        grid.addWidget(self.email_input, 1, 1)
        grid.addWidget(QLabel("Password"), 1, 2)
        grid.addWidget(self.password_input, 1, 3)
        grid.addWidget(self.remember_check, 2, 0, 1, 2)
        buttons = QHBoxLayout()
        buttons.addWidget(self.sign_in_btn)
        buttons.addWidget(self.sign_out_btn)
        grid.addLayout(buttons, 2, 2, 1, 2)

        list_row = QHBoxLayout()
        self.filter_label = QLabel("All repositories")
        self.filter_label.setObjectName("sectionLabel")
        self.show_all_btn = QPushButton("Show All")
        self.show_all_btn.setObjectName("secondaryBtn")
        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.setObjectName("secondaryBtn")
        list_row.addWidget(self.filter_label, 1)
        list_row.addWidget(self.show_all_btn)
        list_row.addWidget(self.refresh_btn)
        main.addLayout(list_row)

        self.table = QTableWidget(0, 3)
        self.table.setHorizontalHeaderLabels(["Name", "Owner", "Created (UTC)"])
        self.table.horizontalHeader().setSectionResizeMode(0, QHeaderView.Stretch)
        self.table.horizontalHeader().setSectionResizeMode(1, QHeaderView.ResizeToContents)
        self.table.horizontalHeader().setSectionResizeMode(2, QHeaderView.ResizeToContents)
        self.table.setSelectionBehavior(QTableWidget.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setAlternatingRowColors(True)
        main.addWidget(self.table, 1)

        self.status_label = QLabel("Ready")
        main.addWidget(self.status_label)

        self.sign_in_btn.clicked.connect(self.sign_in)
        self.sign_out_btn.clicked.connect(self.sign_out)
        self.refresh_btn.clicked.connect(self.refresh_buckets)
        self.show_all_btn.clicked.connect(lambda _=False: self.navigator.go_to("/Home"))
        self.table.itemDoubleClicked.connect(self._on_item_double_clicked)

    def _apply_settings(self) -> None:
        self.url_input.setText(str(self.settings.get("supabase_url", "")))
        self.key_input.setText(str(self.settings.get("anon_key", "")))
        self.email_input.setText(str(self.settings.get("email", "")))
        self.remember_check.setChecked(bool(self.settings.get("remember", True)))
        self._update_session_controls()

    def _update_session_controls(self) -> None:
        signed_in = bool(self.client.access_token)
        self.sign_in_btn.setEnabled(not signed_in)
        self.sign_out_btn.setEnabled(signed_in)
        self.password_input.setEnabled(not signed_in)

    def save_settings(self) -> None:
        self.settings.update(
            {
                "supabase_url": self.url_input.text().strip(),
                "anon_key": self.key_input.text().strip(),
                "email": self.email_input.text().strip(),
                "remember": self.remember_check.isChecked(),
                "refresh_token": self.client.refresh_token or "",
            }
        )
        self.settings_store.save(self.settings)

    def _configure_client(self) -> bool:
        url = self.url_input.text().strip()
        key = self.key_input.text().strip()
        if not url or not key:
            QMessageBox.warning(self, "Missing data", "Project URL and anon key are required.")
            return False
        self.client.configure(url, key)
        return True

    def restore_session(self) -> None:
        token = str(self.settings.get("refresh_token") or "")
        if not token or not self.settings.get("remember", True):
            self.refresh_buckets()
            return
        url = self.url_input.text().strip()
        key = self.key_input.text().strip()
        if not url or not key:
            return
        self.client.configure(url, key)
        self.set_status("Restoring session...")

        def done(_: object) -> None:
            self.save_settings()
            self._session_updated("Session restored")

        def failed(msg: str) -> None:
            logger.warning("Could not restore session: %s", msg)
            self.set_status("Signed out")
            self.refresh_buckets()

        self._run_bg(lambda: self.client.refresh_session(token), done, failed)

    def sign_in(self) -> None:
        if not self._configure_client():
            return
        email = self.email_input.text().strip()
        password = self.password_input.text()
        self.set_status("Signing in...")

        def done(_: object) -> None:
            self.password_input.clear()
            self.save_settings()
            self._session_updated(f"Signed in as {email}")

        def failed(msg: str) -> None:
            logger.error("Sign in failed: %s", msg)
            self.set_status("Sign in failed")
            QMessageBox.critical(self, "Sign in", msg)

        self._run_bg(lambda: self.client.sign_in(email, password), done, failed)

    def sign_out(self) -> None:
        def done(_: object) -> None:
            self.save_settings()
            self._session_updated("Signed out")

        def failed(msg: str) -> None:
            logger.warning("Sign out failed: %s", msg)
            self.client.clear_session()
            self.save_settings()
            self._session_updated("Signed out")

        self._run_bg(self.client.sign_out, done, failed)

    def _session_updated(self, status: str) -> None:
        self._update_session_controls()
        self.set_status(status)
        self.session_changed.emit()
        self.refresh_buckets()

    def show_buckets(self, owner: Optional[str] = None) -> None:
        self.owner_filter = owner
        self.filter_label.setText(f"Repositories of {owner}" if owner else "All repositories")
        self.refresh_buckets()

    def refresh_buckets(self) -> None:
        if not self.client.url or not self.client.anon_key:
            if not self.url_input.text().strip() or not self.key_input.text().strip():
                self.set_status("Enter the project URL and anon key to load repositories")
                return
            self.client.configure(self.url_input.text().strip(), self.key_input.text().strip())
        owner = self.owner_filter
        self.set_status("Loading repositories...")

        def done(buckets: object) -> None:
            self._fill_table(buckets)
            self.set_status(f"Loaded {len(self.bucket_rows)} repositories")

        def failed(msg: str) -> None:
            logger.error("Could not list buckets: %s", msg)
            self.set_status("Could not load repositories")

        self._run_bg(lambda: self.backend.list_buckets(owner), done, failed)

    def _fill_table(self, buckets: object) -> None:
        self.bucket_rows = list(buckets)
        self.table.setRowCount(len(self.bucket_rows))
        for i, row in enumerate(self.bucket_rows):
            name_item = QTableWidgetItem(str(row.get("name", "")))
            name_item.setData(Qt.UserRole, row.get("id"))
            self.table.setItem(i, 0, name_item)
            self.table.setItem(i, 1, QTableWidgetItem(str(row.get("owner") or "")))
            created = str(row.get("created_at", "")).replace("T", " ")[:19]
            self.table.setItem(i, 2, QTableWidgetItem(created))

    def _on_item_double_clicked(self, item: QTableWidgetItem) -> None:
        name_item = self.table.item(item.row(), 0)
        if not name_item:
            return
        bucket_id = name_item.data(Qt.UserRole)
        if bucket_id:
            self.navigator.go_to(f"/Files/{bucket_id}")
