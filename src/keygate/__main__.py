"""Run the Keygate HTTP server with uvicorn."""
from __future__ import annotations

import uvicorn

from .core.config import get_settings
from .core.logging import setup_logging


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, access_log=settings.access_log)
    uvicorn.run(
        "keygate.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=settings.access_log,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
