"""
Middleware package for the shopper rewards service.
"""
from .admin_auth import require_admin

__all__ = ['require_admin']
