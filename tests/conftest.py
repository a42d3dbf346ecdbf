import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import pytest
import requests
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Importing bookrec.main builds a default app; keep it off the disk.
os.environ.setdefault("BOOKREC_LOG_FILE", "")

FAKE_OLLAMA_URL = "http://fake-ollama:11434"


class AsgiSession(requests.Session):
    """
    requests.Session that dispatches every request straight into an ASGI app.
    """

    def __init__(self, app: Any, base_url: str = "http://testserver") -> None:
        super().__init__()
        self.app = app
        self.base_url = base_url
        self.calls: List[tuple] = []
        self.timeouts: List[Any] = []

    def request(self, method, url, **kwargs):  # type: ignore[override]
        if not urlparse(url).scheme:
            url = self.base_url.rstrip("/") + url
        parsed = urlparse(url)
        path = parsed.path or "/"
        headers = [(b"accept", b"*/*")]
        for key, value in (kwargs.get("headers") or {}).items():
            headers.append((key.lower().encode("latin-1"), str(value).encode("latin-1")))
        body = kwargs.get("data") or b""
        if kwargs.get("json") is not None:
            body = json.dumps(kwargs["json"])
            headers.append((b"content-type", b"application/json"))
        if isinstance(body, str):
            body = body.encode("utf-8")
        headers.append((b"content-length", str(len(body)).encode("latin-1")))
        self.calls.append((method.upper(), path))
        self.timeouts.append(kwargs.get("timeout"))
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method.upper(),
            "scheme": parsed.scheme or "http",
            "path": path,
            "raw_path": path.encode("utf-8"),
            "query_string": parsed.query.encode("utf-8"),
            "headers": headers,
            "server": (parsed.hostname or "testserver", parsed.port or 80),
            "client": ("testclient", 50000),
        }
        request_messages = [
            {
                "type": "http.request",
                "body": body,
                "more_body": False,
            }
        ]

        async def receive() -> dict:
            return request_messages.pop(0) if request_messages else {"type": "http.disconnect"}

        collected: List[dict] = []

        async def send(message: dict) -> None:
            collected.append(message)

        asyncio.run(self.app(scope, receive, send))

        status = 500
        response_headers = requests.structures.CaseInsensitiveDict()
        chunks: List[bytes] = []
        for message in collected:
            if message["type"] == "http.response.start":
                status = message["status"]
                for header_key, header_value in message.get("headers", []):
                    response_headers[header_key.decode("latin-1")] = header_value.decode("latin-1")
            elif message["type"] == "http.response.body":
                chunks.append(message.get("body", b""))
        response = requests.Response()
        response.status_code = status
        response._content = b"".join(chunks)
        response.url = url
        response.headers = response_headers
        if "content-type" in response_headers:
            response.encoding = requests.utils.get_encoding_from_headers(response_headers)
        return response


class UnreachableSession(requests.Session):
    """Session whose every request fails as if nothing listens on the port."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[tuple] = []

    def request(self, method, url, **kwargs):  # type: ignore[override]
        self.calls.append((method.upper(), urlparse(url).path))
        raise requests.ConnectionError(f"Connection refused: {url}")


class FakeOllama:
    """
    Stand-in Ollama server exposing /api/tags and /api/chat.

    ``reply=None`` answers the chat without any content field; ``tags_body``
    replaces the generated /api/tags answer.
    """

    def __init__(
        self,
        models: Optional[List[str]] = None,
        reply: Optional[str] = "Fixed recommendation text",
        tags_status: int = 200,
        chat_status: int = 200,
        tags_body: Any = None,
    ) -> None:
        self.models = ["llama2"] if models is None else models
        self.reply = reply
        self.tags_status = tags_status
        self.tags_body = tags_body
        self.chat_status = chat_status
        self.chat_requests: List[Dict[str, Any]] = []
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.get("/api/tags")
        async def tags():
            if self.tags_status >= 400:
                return PlainTextResponse("tags unavailable", status_code=self.tags_status)
            if self.tags_body is not None:
                return JSONResponse(self.tags_body)
            return JSONResponse(
                {
                    "models": [
                        {"name": name, "size": 3826793677, "digest": f"sha-{name}"}
                        for name in self.models
                    ]
                }
            )

        @app.post("/api/chat")
        async def chat(request: Request):
            payload = await request.json()
            self.chat_requests.append(payload)
            if self.chat_status >= 400:
                return PlainTextResponse(
                    f"model '{payload.get('model')}' failed", status_code=self.chat_status
                )
            message: Dict[str, Any] = {"role": "assistant"}
            if self.reply is not None:
                message["content"] = self.reply
            return JSONResponse({"model": payload.get("model"), "message": message, "done": True})

        return app

    def session(self) -> AsgiSession:
        return AsgiSession(self.app, base_url=FAKE_OLLAMA_URL)


@pytest.fixture
def fake_ollama() -> FakeOllama:
    return FakeOllama(models=["llama2", "mistral"])


@pytest.fixture
def gateway_settings() -> Dict[str, Any]:
    return {
        "host": "127.0.0.1",
        "port": 3000,
        "log_file": "",
        "ollama": {"base_url": FAKE_OLLAMA_URL, "timeout": None},
        "recommend": {"default_model": "llama2", "temperature": 0.7},
    }
