import sys
from pathlib import Path

from PySide6.QtGui import QIcon
from PySide6.QtWidgets import QApplication

from core.config import load_config
from core.logger import setup_logger
from core.storage import FolderImageStore
from ui.main_window import MainWindow

CONFIG_PATH = Path.home() / ".imagestudio" / "config.json"
LIBRARY_PATH = CONFIG_PATH.parent / "library"


def _asset_path(*parts: str) -> Path:
    # PyInstaller onefile extracts bundled files under sys._MEIPASS.
    if getattr(sys, "frozen", False):
        return Path(getattr(sys, "_MEIPASS")) / Path(*parts)
    return Path(__file__).resolve().parent / Path(*parts)


def main() -> int:
    setup_logger()
    app = QApplication(sys.argv)
    app.setApplicationName("Image Studio")
    app.setOrganizationName("Image Studio")

    logo_path = _asset_path("assets", "Logo.png")
    if logo_path.exists():
        app.setWindowIcon(QIcon(str(logo_path)))

    w = MainWindow(
        config=load_config(str(CONFIG_PATH)),
        config_path=CONFIG_PATH,
        logo_path=logo_path,
        store=FolderImageStore(str(LIBRARY_PATH)),
    )
    w.show()
    if len(sys.argv) > 1:
        w.load_path(sys.argv[1])
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
