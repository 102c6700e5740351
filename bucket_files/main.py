import logging
from typing import Optional

from PySide6.QtWidgets import QApplication, QMainWindow, QStackedWidget

from .backend import SupabaseBackend, SupabaseSession
from .client import SupabaseClient
from .log import configure_logging
from .stores import SettingsStore
from .views import FilesView, HomeView


APP_VERSION = "0.1.0"

logger = logging.getLogger(__name__)

DARK_STYLESHEET = """
QWidget { font-size: 13px; color: #f0f6fc; }
QMainWindow, QWidget { background: #0d1117; }
#titleLabel { font-size: 20px; font-weight: 700; margin-bottom: 2px; color: #f0f6fc; }
#sectionLabel { font-weight: 600; color: #9198a1; }
QGroupBox {
  border: 1px solid #3d444d;
  border-radius: 8px;
  margin-top: 8px;
  background: #151b23;
  font-weight: 600;
  padding-top: 12px;
}
QGroupBox::title {
  subcontrol-origin: margin;
  left: 10px;
  padding: 0 6px 0 6px;
  color: #f0f6fc;
  background: #151b23;
}
QLineEdit {
  padding: 7px 9px;
  border: 1px solid #3d444d;
  border-radius: 6px;
  background: #0d1117;
}
QLineEdit:focus { border: 1px solid #4493f8; }
QPushButton {
  padding: 7px 14px;
  border-radius: 6px;
  border: 1px solid #3d444d;
  background: #212830;
}
QPushButton:hover { background: #262c36; }
QPushButton#primaryBtn {
  background: #238636;
  border: 1px solid #238636;
  color: white;
  font-weight: 600;
}
QPushButton#primaryBtn:hover { background: #29903b; }
QPushButton#secondaryBtn { background: #212830; font-weight: 600; }
QPushButton#ghostBtn { background: transparent; border: 0; color: #9198a1; }
QPushButton#linkBtn { background: transparent; border: 0; font-weight: 600; text-align: left; }
QPushButton#linkBtn:hover { color: #4493f8; }
QPushButton#dangerBtn { background: #212830; color: #f85149; }
QPushButton:disabled { color: #656c76; background: #151b23; border: 1px solid #262c36; }
QTableWidget, QTreeWidget {
  border: 1px solid #3d444d;
  border-radius: 6px;
  gridline-color: #262c36;
  background: #0d1117;
  color: #f0f6fc;
  alternate-background-color: #151b23;
}
QHeaderView::section {
  background: #151b23;
  border: 0;
  border-bottom: 1px solid #3d444d;
  padding: 6px;
  font-weight: 600;
  color: #9198a1;
}
QProgressBar {
  border: 1px solid #3d444d;
  border-radius: 6px;
  text-align: center;
  background: #151b23;
  height: 18px;
}
QProgressBar::chunk { border-radius: 6px; background: #238636; }
"""


class MainWindow(QMainWindow):
    def __init__(self, settings_store: Optional[SettingsStore] = None, launcher=None) -> None:
        super().__init__()
        self.setWindowTitle(f"Bucket Files {APP_VERSION}")
        self.resize(1100, 760)

        self.settings_store = settings_store or SettingsStore()
        settings = self.settings_store.load()
        self.client = SupabaseClient(settings.get("supabase_url", ""), settings.get("anon_key", ""))
        self.session = SupabaseSession(self.client)
        self.backend = SupabaseBackend(
            self.client,
            description_table=settings.get("description_table", "bucket_description"),
            profiles_table=settings.get("profiles_table", "profiles"),
            profile_name_column=settings.get("profile_name_column", "username"),
        )

        self.stack = QStackedWidget()
        self.setCentralWidget(self.stack)
        self.home_view = HomeView(self.client, self.backend, self.settings_store, self, launcher=launcher)
        self.files_view = FilesView(
            self.session, self.backend, self.backend, self.backend, self, launcher=launcher
        )
        self.stack.addWidget(self.home_view)
        self.stack.addWidget(self.files_view)
        self.home_view.session_changed.connect(self.files_view.render)

        self.setStyleSheet(DARK_STYLESHEET)

    def go_to(self, route: str) -> None:
        section, _, arg = route.strip("/").partition("/")
        logger.info("Navigating to %s", route)
        if section == "Home":
            self.home_view.show_buckets()
            self.stack.setCurrentWidget(self.home_view)
        elif section == "Files" and arg:
            self.files_view.set_bucket_id(arg)
            self.stack.setCurrentWidget(self.files_view)
        elif section == "OverviewProfile" and arg:
            self.home_view.show_buckets(owner=arg)
            self.stack.setCurrentWidget(self.home_view)
        else:
            logger.warning("Unknown route: %s", route)


def run() -> None:
    configure_logging()
    app = QApplication([])
    window = MainWindow()
    window.show()
    window.home_view.restore_session()
    app.exec()


if __name__ == "__main__":
    run()
