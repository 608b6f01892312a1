"""
Teamhub - authentication and workspace-scoped authorization for a
multi-tenant collaboration backend.
"""

__version__ = "0.1.0"
