"""
Central version management for Stardew Mod Manager.
"""

from __future__ import annotations

__all__ = ["__app_name__", "__version__", "__author__", "__license__"]

__app_name__ = "Stardew Mod Manager"
__version__ = "0.3.0"
__author__ = "Stardew Mod Manager contributors"
__license__ = "MIT"
