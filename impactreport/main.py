import logging
import os
import sys

from PyQt6 import QtCore, QtWidgets

from .config import AppConfig, SettingsManager, configure_logging
from .core.remote import HttpContentBackend
from .core.session import EditorSession, SavePolicy
from .core.storage import ContentBackend, JsonContentStore
from .core.store import EditorStore
from .ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def make_backend(config: AppConfig) -> ContentBackend:
    if config.backend == "http":
        logger.info("using impact API at %s", config.backend_url)
        return HttpContentBackend(
            config.backend_url,
            token=os.getenv("IMPACT_API_TOKEN"),
            slug=config.report_slug,
        )
    logger.info("using local content in %s", config.data_dir)
    return JsonContentStore(config.data_dir)


def main() -> int:
    settings = SettingsManager()
    config = AppConfig.from_settings(settings)
    configure_logging(config.log_level)

    app = QtWidgets.QApplication(sys.argv)
    app.setApplicationName("Impact Report Editor")
    store = EditorStore()
    session = EditorSession(store, make_backend(config), SavePolicy.from_name(config.save_policy))
    win = MainWindow(session, config)
    win.show()
    QtCore.QTimer.singleShot(0, win.reload)
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
