from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional

from .ollama import OllamaClient, OllamaError


DEFAULT_MODEL = "llama2"
DEFAULT_TEMPERATURE = 0.7

SYSTEM_PROMPT = """You are a knowledgeable book recommendation expert.
When given a book title, provide 3 book recommendations that are similar in genre, theme, or style.
For each recommendation, include:
1. The book title and author
2. A brief explanation of why it's recommended
3. Similarities to the original book

Format your response clearly with each book as a separate section. Keep the response concise but informative."""

logger = logging.getLogger("bookrec.service")


class RecommendationError(RuntimeError):
    """Base class for failures while producing a recommendation."""


class ValidationError(RecommendationError):
    """Client input is missing or names a model the backend does not serve."""

    def __init__(self, message: str, available_models: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.available_models = available_models


class UpstreamError(RecommendationError):
    """The backend could not be reached or answered with an error."""


@dataclass(frozen=True)
class RecommendationRequest:
    book: str
    model: str = DEFAULT_MODEL

    @classmethod
    def from_payload(cls, payload: Any, default_model: str = DEFAULT_MODEL) -> "RecommendationRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        book = payload.get("book")
        if not isinstance(book, str) or not book.strip():
            raise ValidationError("Book name is required")
        model = payload.get("model")
        if model is None:
            model = default_model
        elif not isinstance(model, str):
            raise ValidationError("Model name must be a string")
        return cls(book=book, model=model)


@dataclass(frozen=True)
class RecommendationResult:
    original_book: str
    recommendations: str
    model: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "originalBook": self.original_book,
            "recommendations": self.recommendations,
            "model": self.model,
        }


def build_user_message(book: str) -> str:
    return f'Please recommend books similar to "{book}".'


class RecommendationService:
    """
    Runs one recommendation request: validate, check the model against the
    backend's list, prompt the model and shape the result.
    """

    def __init__(self, client: OllamaClient, *, temperature: float = DEFAULT_TEMPERATURE) -> None:
        self.client = client
        self.temperature = temperature

    def recommend(self, book: str, model: str = DEFAULT_MODEL) -> RecommendationResult:
        if not book or not book.strip():
            raise ValidationError("Book name is required")

        logger.info("Getting recommendations for %r using model %s", book, model)
        try:
            available = [descriptor.name for descriptor in self.client.list_models()]
        except OllamaError as exc:
            logger.error("Model listing failed for model %s: %s", model, exc)
            raise UpstreamError(
                f"Cannot connect to Ollama. Make sure it is running. ({exc})"
            ) from exc

        if model not in available:
            logger.warning("Requested model %s not in %s", model, available)
            raise ValidationError(
                f"Model '{model}' not found. Available models: {', '.join(available)}",
                available_models=available,
            )

        try:
            text = self.client.chat(
                model,
                SYSTEM_PROMPT,
                build_user_message(book),
                temperature=self.temperature,
            )
        except OllamaError as exc:
            logger.error("Chat request failed for model %s: %s", model, exc)
            raise UpstreamError(str(exc)) from exc

        logger.info("Recommendations generated for %r (%d chars)", book, len(text))
        return RecommendationResult(original_book=book, recommendations=text, model=model)
