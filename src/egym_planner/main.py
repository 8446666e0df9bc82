"""Application entry point: serve the HTTP API with uvicorn."""

import uvicorn

from .config import SETTINGS
from .logging_setup import setup_logging


def run() -> None:
    setup_logging()
    uvicorn.run(
        "egym_planner.server.main:app",
        host=SETTINGS.HOST,
        port=SETTINGS.PORT,
        log_config=None,  # keep our root logger configuration
    )


if __name__ == "__main__":
    run()
