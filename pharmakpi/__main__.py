"""Serve the KPI API with uvicorn: ``python -m pharmakpi`` or ``pharmakpi``."""

from __future__ import annotations

import uvicorn

from pharmakpi.core.config import get_settings


def main() -> None:
    settings = get_settings()
    # JSON logging is installed by the app; keep uvicorn's own config out of the way
    uvicorn.run(
        "pharmakpi.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
