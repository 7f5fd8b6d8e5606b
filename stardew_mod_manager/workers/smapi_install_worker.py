"""
Worker thread for installing SMAPI in the background.

Runs SmapiInstaller.install_latest() off the interactive thread and forwards
its progress events as Qt signals.
"""
from typing import TYPE_CHECKING

from PyQt6.QtCore import QThread, pyqtSignal

from stardew_mod_manager.core.loading_progress import LoadingProgress

if TYPE_CHECKING:
    from stardew_mod_manager.services.smapi_installer import SmapiInstaller


class SmapiInstallWorker(QThread):
    """Background thread for the SMAPI install workflow.

    Attributes:
        installer: The SmapiInstaller to run.

    Signals:
        progress_update: Emitted for every stage and progress value with
            (stage_name, processed, total); total is -1 when unknown.
        finished_install: Emitted once with the InstallResult.
    """

    progress_update = pyqtSignal(str, int, int)
    finished_install = pyqtSignal(object)

    def __init__(self, installer: 'SmapiInstaller'):
        """Initializes the install worker.

        Args:
            installer: The SmapiInstaller to run.
        """
        super().__init__()
        self.installer = installer

    def cancel(self) -> None:
        """Ask the running installation to stop; cleanup still runs."""
        self.installer.cancel()

    def run(self) -> None:
        """Runs the installation and emits finished_install with its result."""

        def progress_callback(progress: LoadingProgress):
            self.progress_update.emit(
                progress.stage_name,
                progress.processed_tasks_quantity,
                progress.total_tasks_quantity,
            )

        result = self.installer.install_latest(progress_callback)
        self.finished_install.emit(result)
