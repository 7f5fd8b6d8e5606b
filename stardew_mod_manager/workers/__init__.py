"""Background worker threads package.

Contains background worker threads for long-running operations.
"""

from __future__ import annotations

from stardew_mod_manager.workers.smapi_install_worker import SmapiInstallWorker

__all__ = [
    "SmapiInstallWorker",
]
