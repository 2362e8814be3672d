"""Serve the facilitator: ``python -m xrp402``."""

import logging
import os

import uvicorn

from .app import create_app

HOST_ENV = "HOST"
PORT_ENV = "PORT"
LOG_LEVEL_ENV = "XRP402_LOG_LEVEL"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3402


def main() -> None:
    level = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        create_app(),
        host=os.getenv(HOST_ENV, DEFAULT_HOST),
        port=int(os.getenv(PORT_ENV, str(DEFAULT_PORT))),
        log_level=level.lower(),
    )


if __name__ == "__main__":
    main()
