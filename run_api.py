#!/usr/bin/env python3
"""
Simple script to run the SafeQuery API server
"""

import sys

import uvicorn

from api.settings import Settings


def main() -> int:
    settings = Settings()
    config = uvicorn.Config(
        app="api.app:create_app",
        factory=True,
        host="127.0.0.1",
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False,  # RequestResponseLoggerMiddleware logs requests
        reload=False,
    )
    uvicorn.Server(config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
