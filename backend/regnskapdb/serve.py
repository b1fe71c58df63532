"""Run the API with uvicorn, configured from the environment."""

import logging
import os

import uvicorn

from regnskapdb.apps.tasks.scheduler import scheduler_enabled

logger = logging.getLogger("regnskapdb.serve")

_TRUTHY = {"1", "true", "yes", "on"}


def _tls_options() -> dict:
    certfile = os.getenv("SSL_CERTFILE")
    keyfile = os.getenv("SSL_KEYFILE")
    if not certfile and not keyfile:
        return {}
    if not (certfile and keyfile):
        raise RuntimeError("SSL_CERTFILE and SSL_KEYFILE must be set together")
    return {"ssl_certfile": certfile, "ssl_keyfile": keyfile}


def main() -> None:
    log_level = os.getenv("LOG_LEVEL", "info")
    logging.basicConfig(level=log_level.upper())

    workers = int(os.getenv("WEB_CONCURRENCY", "1"))
    if workers > 1 and scheduler_enabled():
        # Every worker process would run its own recurring task scheduler.
        logger.warning(
            "Multiple workers with TASK_SCHEDULER_ENABLED; set it to false on all but one process",
            extra={"workers": workers},
        )

    uvicorn.run(
        "regnskapdb.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() in _TRUTHY,
        workers=workers,
        log_level=log_level,
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **_tls_options(),
    )


if __name__ == "__main__":
    main()
