"""
CLI Commands for the shopper rewards service.

Usage:
    flask payments expire-stale --hours 24            # Fail payments with no callback
    flask payments expire-stale --hours 24 --dry-run  # Preview only
"""
from .payments import init_app as init_payment_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_payment_commands(app)
