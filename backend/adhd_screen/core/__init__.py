"""
Core module for application configuration and utilities.

Note: the diagnostics package is not imported at package level so that
importing settings never pulls in numpy/scipy. Import it directly:
from adhd_screen.core.diagnostics import generate_diagnostic_report
"""
from .config import settings

__all__ = ["settings"]
