from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse

from .ollama import BackendError, BackendUnreachable, OllamaClient, OllamaError
from .service import (
    RecommendationRequest,
    RecommendationService,
    UpstreamError,
    ValidationError,
)
from .settings import SettingsManager
from .templates import render_index_page


def _configure_logging(log_file: Optional[str]) -> logging.Logger:
    logger = logging.getLogger("bookrec")
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    logger.propagate = False
    logger.debug("Logging initialised, writing to %s", log_file or "stderr only")
    return logger


def _backend_port(base_url: str) -> str:
    parsed = urlparse(base_url)
    if parsed.port:
        return str(parsed.port)
    return "443" if parsed.scheme == "https" else "80"


def create_app(
    settings: Optional[Dict[str, Any]] = None,
    client: Optional[OllamaClient] = None,
) -> FastAPI:
    """
    Build the gateway application.

    ``client`` may be any object with ``tags``, ``list_models`` and ``chat``;
    when omitted one is built from the ``ollama`` settings.
    """
    if settings is None:
        settings = SettingsManager().settings
    logger = _configure_logging(settings.get("log_file"))

    ollama_settings = settings.get("ollama", {})
    recommend_settings = settings.get("recommend", {})
    if client is None:
        client = OllamaClient(
            ollama_settings["base_url"],
            timeout=ollama_settings.get("timeout"),
        )
    ollama_url = client.base_url
    default_model = recommend_settings.get("default_model", "llama2")
    service = RecommendationService(
        client, temperature=recommend_settings.get("temperature", 0.7)
    )

    app = FastAPI(title="Book Recommendation Gateway")

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return HTMLResponse(render_index_page(default_model))

    @app.get("/api/tags", response_class=JSONResponse)
    async def list_tags() -> JSONResponse:
        logger.info("Fetching available models from %s", ollama_url)
        try:
            data = await run_in_threadpool(client.tags)
        except OllamaError as exc:
            logger.error("Error fetching models from %s: %s", ollama_url, exc)
            return JSONResponse(
                {
                    "error": "Failed to fetch models from Ollama",
                    "details": str(exc),
                    "tip": f"Make sure Ollama is running on port {_backend_port(ollama_url)}",
                },
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        models = data.get("models") if isinstance(data, dict) else None
        logger.info("Models fetched successfully: %d", len(models) if isinstance(models, list) else 0)
        return JSONResponse(data)

    @app.post("/api/recommend", response_class=JSONResponse)
    async def recommend(request: Request) -> JSONResponse:
        body_bytes = await request.body()
        try:
            payload = json.loads(body_bytes.decode("utf-8")) if body_bytes else {}
        except (UnicodeDecodeError, json.JSONDecodeError):
            return JSONResponse(
                {"error": "Request body must be a JSON object"},
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        parsed: Optional[RecommendationRequest] = None
        try:
            parsed = RecommendationRequest.from_payload(payload, default_model)
            result = await run_in_threadpool(service.recommend, parsed.book, parsed.model)
        except ValidationError as exc:
            body: Dict[str, Any] = {"error": exc.message}
            if exc.available_models is not None:
                body["availableModels"] = exc.available_models
            return JSONResponse(body, status_code=status.HTTP_400_BAD_REQUEST)
        except UpstreamError as exc:
            logger.error(
                "Error getting recommendations (model=%s backend=%s): %s",
                parsed.model if parsed else None,
                ollama_url,
                exc,
            )
            return JSONResponse(
                {
                    "error": "Failed to get recommendations",
                    "details": str(exc),
                    "tip": "Check if Ollama is running and the model is downloaded",
                },
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return JSONResponse(result.to_dict())

    @app.get("/api/test", response_class=JSONResponse)
    async def test_connection() -> JSONResponse:
        logger.info("Testing Ollama connection to %s", ollama_url)
        try:
            models = await run_in_threadpool(client.list_models)
        except BackendUnreachable as exc:
            message = "Cannot connect to Ollama"
            error: OllamaError = exc
        except BackendError as exc:
            message = "Ollama is not responding correctly"
            error = exc
        else:
            return JSONResponse(
                {
                    "status": "success",
                    "message": "Ollama is running correctly!",
                    "ollamaUrl": ollama_url,
                    "availableModels": [model.name for model in models],
                }
            )
        logger.error("Ollama connection test failed for %s: %s", ollama_url, error)
        return JSONResponse(
            {
                "status": "error",
                "message": message,
                "error": str(error),
                "ollamaUrl": ollama_url,
            },
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return app


app = create_app()

__all__ = ["app", "create_app"]
