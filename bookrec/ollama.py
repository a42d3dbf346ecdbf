from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Dict, List, Optional

import requests


NO_CONTENT_PLACEHOLDER = "No recommendations generated"

logger = logging.getLogger("bookrec.ollama")


class OllamaError(RuntimeError):
    """Base class for failures talking to the Ollama backend."""


class BackendUnreachable(OllamaError):
    """Raised when no connection to the backend could be established."""

    def __init__(self, base_url: str, reason: str) -> None:
        super().__init__(f"Cannot reach Ollama at {base_url}: {reason}")
        self.base_url = base_url
        self.reason = reason


class BackendError(OllamaError):
    """Raised when the backend answers with a failure status or an unreadable body."""

    def __init__(self, status: int, body: str = "") -> None:
        message = f"Ollama API error: {status}"
        if body:
            message = f"{message} - {body}"
        super().__init__(message)
        self.status = status
        self.body = body


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, entry: Any) -> Optional["ModelDescriptor"]:
        if not isinstance(entry, dict):
            return None
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            return None
        return cls(name=name, raw=entry)


class OllamaClient:
    """
    Minimal HTTP client for Ollama's model listing and chat endpoints.

    Without an injected session every call goes through a fresh
    ``requests.request`` so concurrent requests share no connection state.
    ``timeout=None`` leaves socket timeouts at the platform default.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout

    def tags(self) -> Any:
        """Return the decoded /api/tags body unchanged."""
        return self._decode(self._send("GET", "/api/tags"))

    def list_models(self) -> List[ModelDescriptor]:
        data = self.tags()
        entries = data.get("models") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []
        models = [ModelDescriptor.from_payload(entry) for entry in entries]
        found = [model for model in models if model is not None]
        logger.debug("Ollama at %s lists %d models", self.base_url, len(found))
        return found

    def chat(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        *,
        temperature: float = 0.7,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "stream": False,
            "options": {"temperature": temperature},
        }
        response = self._send("POST", "/api/chat", payload)
        logger.debug("Ollama chat status %s for model %s", response.status_code, model)
        return extract_message_content(self._decode(response))

    def _send(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        kwargs: Dict[str, Any] = {"timeout": self.timeout}
        if payload is not None:
            kwargs["headers"] = {"Content-Type": "application/json"}
            kwargs["data"] = json.dumps(payload)
        send = self.session.request if self.session is not None else requests.request
        try:
            response = send(method, url, **kwargs)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise BackendUnreachable(self.base_url, str(exc)) from exc
        if response.status_code >= 400:
            logger.error("%s %s returned %s: %s", method, url, response.status_code, response.text)
            raise BackendError(response.status_code, response.text)
        return response

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(response.status_code, "Failed to decode Ollama response as JSON.") from exc


def extract_message_content(data: Any) -> str:
    """
    Pull the assistant text out of a chat response, falling back to the
    placeholder when the message or its content is missing.
    """
    message = data.get("message") if isinstance(data, dict) else None
    content: Optional[str] = None
    if isinstance(message, dict):
        value = message.get("content")
        if isinstance(value, str) and value:
            content = value
    if content is None:
        return NO_CONTENT_PLACEHOLDER
    return content
