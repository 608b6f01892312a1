"""HTTP API - FastAPI application and routers."""

from teamhub.api.app import create_app

__all__ = ["create_app"]
