from __future__ import annotations

import logging

import uvicorn

from .main import app
from .settings import SettingsManager


def main() -> None:
    settings = SettingsManager().settings
    logger = logging.getLogger("bookrec")
    host = settings["host"]
    port = int(settings["port"])
    logger.info("Server running at http://%s:%d", host, port)
    logger.info("Ollama URL: %s", settings["ollama"]["base_url"])
    logger.info("Test Ollama connection at: http://%s:%d/api/test", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
