"""HTTP dashboard and display helpers for the market view."""

from .app import create_dashboard_app, run_dashboard

__all__ = ["create_dashboard_app", "run_dashboard"]
