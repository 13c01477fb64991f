# backend/dronemx/serve.py
import logging
import os

import uvicorn

TRUTHY = {"1", "true", "yes", "on"}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_logging(level: str) -> None:
    # Scheduler modules log through the stdlib; uvicorn only sets up its own loggers.
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def main() -> None:
    log_level = os.getenv("LOG_LEVEL", "info")
    reload_enabled = os.getenv("RELOAD", "false").lower() in TRUTHY
    _configure_logging(log_level)

    uvicorn.run(
        "dronemx.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=reload_enabled,
        workers=None if reload_enabled else int(os.getenv("WEB_CONCURRENCY", "1")),
        log_level=log_level,
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
    )


if __name__ == "__main__":
    main()
