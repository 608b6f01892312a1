"""
Teamhub API - ASGI entry point.

    uvicorn teamhub.main:app --reload

Settings are read at import; JWT_SECRET_KEY must be set.
"""

from __future__ import annotations

import uvicorn

from teamhub.api import create_app
from teamhub.config import get_settings

app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run("teamhub.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)


if __name__ == "__main__":
    main()
