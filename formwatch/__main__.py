"""Entry point for the formwatch package.

Usage::

    python -m formwatch serve   # control API + WebSocket updates
    python -m formwatch run     # process the input file once, from the shell
"""

from __future__ import annotations

import asyncio
import sys

import structlog

logger = structlog.get_logger()


async def _run_once() -> int:
    from .config import Settings, load_run_config
    from .orchestrator import Orchestrator
    from .shutdown import install_signal_handlers

    settings = Settings()
    config = load_run_config(settings.config_file)
    if not config.target_url:
        logger.error(
            "run_rejected",
            reason="target URL is not configured",
            config=str(settings.config_file),
        )
        return 1

    orchestrator = Orchestrator(settings)
    install_signal_handlers(orchestrator.request_stop)
    await orchestrator.start(config)
    return 0


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in ("serve", "run"):
        print("Usage: python -m formwatch <serve|run>", file=sys.stderr)
        sys.exit(1)

    from .config import Settings
    from .logging import setup_logging

    settings = Settings()
    setup_logging(json=settings.log_json, level=settings.log_level)

    if sys.argv[1] == "serve":
        import uvicorn

        uvicorn.run(
            "formwatch.server:create_app",
            factory=True,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    else:
        sys.exit(asyncio.run(_run_once()))


if __name__ == "__main__":
    main()
