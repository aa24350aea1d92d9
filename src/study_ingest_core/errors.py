"""
Error taxonomy for upstream failures.

Every failure seen by the pipeline or the completion client maps to exactly one `ErrorKind`.
Retry and display decisions are made from the kind only, never from the raw error shape:

- `classify` is total: anything unrecognised is `ErrorKind.UNKNOWN`.
- `is_retryable` / `has_fallback` are static tables keyed by kind.
- `structure_error` bundles the kind with a localized user-facing message and job context.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

import httpx

logger = logging.getLogger(__name__)

Language = Literal["fr", "en"]


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    QUOTA = "quota"
    INVALID_REQUEST = "invalid_request"
    CONTEXT_LENGTH_EXCEEDED = "context_length_exceeded"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"


class IngestionError(RuntimeError):
    pass


class AcquisitionError(IngestionError):
    pass


class SegmentationError(IngestionError):
    pass


class PersistenceError(IngestionError):
    pass


class CompletionError(RuntimeError):
    """Non-2xx (or unusable) response from the chat-completions endpoint."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: str | None = None,
        type: str | None = None,  # noqa: A002
    ):
        super().__init__(message)
        self.status = status
        self.code = code
        self.type = type


_RETRYABLE = frozenset(
    {
        ErrorKind.RATE_LIMIT,
        ErrorKind.SERVER_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.NETWORK,
    }
)

_NO_FALLBACK = frozenset({ErrorKind.AUTHENTICATION, ErrorKind.QUOTA})

# Checked in order; the first kind with a matching keyword wins.
_KEYWORDS: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.AUTHENTICATION, ("invalid api key", "invalid_api_key", "authentication", "unauthorized")),
    (ErrorKind.RATE_LIMIT, ("rate limit", "rate_limit", "too many requests", "too_many_requests")),
    (ErrorKind.QUOTA, ("quota", "insufficient", "billing")),
    (
        ErrorKind.CONTEXT_LENGTH_EXCEEDED,
        ("context length", "context_length", "maximum context", "too many tokens"),
    ),
    (
        ErrorKind.SERVER_ERROR,
        ("internal server", "server error", "server_error", "service unavailable", "service_unavailable", "bad gateway"),
    ),
    (ErrorKind.TIMEOUT, ("timeout", "timed out", "etimedout")),
    (ErrorKind.NETWORK, ("network", "econnreset", "econnrefused", "connection reset", "connection refused")),
    (ErrorKind.INVALID_REQUEST, ("invalid_request", "invalid request")),
)

_MESSAGES: dict[ErrorKind, dict[str, str]] = {
    ErrorKind.AUTHENTICATION: {
        "fr": "Erreur d'authentification avec l'IA. Veuillez contacter le support.",
        "en": "AI authentication error. Please contact support.",
    },
    ErrorKind.RATE_LIMIT: {
        "fr": "Trop de requêtes simultanées. Veuillez patienter quelques instants avant de réessayer.",
        "en": "Too many simultaneous requests. Please wait a few moments before trying again.",
    },
    ErrorKind.QUOTA: {
        "fr": "Quota d'utilisation dépassé. Veuillez réessayer plus tard ou contacter le support.",
        "en": "Usage quota exceeded. Please try again later or contact support.",
    },
    ErrorKind.INVALID_REQUEST: {
        "fr": "Requête invalide. Veuillez réessayer avec un contenu différent.",
        "en": "Invalid request. Please try again with different content.",
    },
    ErrorKind.CONTEXT_LENGTH_EXCEEDED: {
        "fr": "Le document est trop long pour être traité en une seule fois. "
        "Veuillez le diviser en sections plus petites.",
        "en": "The document is too long to be processed at once. Please divide it into smaller sections.",
    },
    ErrorKind.SERVER_ERROR: {
        "fr": "Erreur temporaire du serveur IA. Veuillez réessayer dans quelques instants.",
        "en": "Temporary AI server error. Please try again in a few moments.",
    },
    ErrorKind.TIMEOUT: {
        "fr": "La requête a pris trop de temps. Veuillez réessayer avec un document plus court.",
        "en": "The request took too long. Please try again with a shorter document.",
    },
    ErrorKind.NETWORK: {
        "fr": "Erreur de connexion réseau. Vérifiez votre connexion internet et réessayez.",
        "en": "Network connection error. Check your internet connection and try again.",
    },
    ErrorKind.UNKNOWN: {
        "fr": "Une erreur inattendue s'est produite. "
        "Veuillez réessayer ou contacter le support si le problème persiste.",
        "en": "An unexpected error occurred. Please try again or contact support if the problem persists.",
    },
}


def error_status(error: object) -> int | None:
    """HTTP status carried by `error`, if any (`status`, `status_code` or `response.status_code`)."""
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    value = getattr(getattr(error, "response", None), "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _text_fields(error: object) -> str:
    parts = [str(error) if error is not None else ""]
    for attr in ("code", "type"):
        value = getattr(error, attr, None)
        if isinstance(value, str):
            parts.append(value)
    return " ".join(parts).lower()


def classify(error: object) -> ErrorKind:
    if error is None:
        return ErrorKind.UNKNOWN

    status = error_status(error)
    if status == 401:
        return ErrorKind.AUTHENTICATION
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status == 402:
        return ErrorKind.QUOTA
    if status is not None and 500 <= status <= 599:
        return ErrorKind.SERVER_ERROR

    text = _text_fields(error)
    for kind, keywords in _KEYWORDS:
        if any(k in text for k in keywords):
            return kind

    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ErrorKind.NETWORK
    if status == 400:
        return ErrorKind.INVALID_REQUEST
    return ErrorKind.UNKNOWN


def is_retryable(kind: ErrorKind) -> bool:
    return kind in _RETRYABLE


def has_fallback(kind: ErrorKind) -> bool:
    return kind not in _NO_FALLBACK


def user_message(kind: ErrorKind, language: Language = "fr") -> str:
    messages = _MESSAGES.get(kind) or _MESSAGES[ErrorKind.UNKNOWN]
    return messages.get(language) or messages["en"]


@dataclass(frozen=True)
class StructuredError:
    kind: ErrorKind
    message: str
    user_message: str
    retryable: bool
    fallback_available: bool
    context: dict[str, Any] = field(default_factory=dict)
    original: BaseException | None = field(default=None, repr=False, compare=False)

    def log_fields(self) -> dict[str, Any]:
        return {
            "error_kind": self.kind.value,
            "message": self.message,
            "user_message": self.user_message,
            "retryable": self.retryable,
            "fallback_available": self.fallback_available,
            **self.context,
        }


def structure_error(
    error: object,
    context: dict[str, Any] | None = None,
    *,
    language: Language = "fr",
) -> StructuredError:
    kind = classify(error)
    message = str(error) if error is not None else ""
    return StructuredError(
        kind=kind,
        message=message or "Unknown error",
        user_message=user_message(kind, language),
        retryable=is_retryable(kind),
        fallback_available=has_fallback(kind),
        context=dict(context or {}),
        original=error if isinstance(error, BaseException) else None,
    )


def log_structured_error(structured: StructuredError, **extra: Any) -> None:
    fields = {**structured.log_fields(), **extra}
    logger.error(
        "upstream error %s",
        json.dumps(fields, default=str, ensure_ascii=False, sort_keys=True),
        extra={"structured_error": fields},
    )
