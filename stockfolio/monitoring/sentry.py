"""Sentry initialization and capture helpers."""

from __future__ import annotations

import logging
import os
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from stockfolio.core.config import settings

logger = logging.getLogger(__name__)

_initialized = False

# KIS 앱키/시크릿은 헤더(appkey, appsecret, X-KIS-App-*)로 오간다
_SENSITIVE_KEYWORDS = (
    "authorization",
    "cookie",
    "set-cookie",
    "token",
    "secret",
    "appkey",
    "app-key",
    "app_key",
    "password",
)


def _is_healthcheck_access_log(logger_name: str | None, message: str | None) -> bool:
    if logger_name != "uvicorn.access" or not message:
        return False
    return "/healthz" in message and '" 200' in message


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(keyword in key_lower for keyword in _SENSITIVE_KEYWORDS)


def _sanitize_in_place(value: Any, parent_key: str | None = None) -> Any:
    if parent_key and _is_sensitive_key(parent_key):
        return "[Filtered]"

    if isinstance(value, dict):
        for key, nested_value in list(value.items()):
            if _is_sensitive_key(str(key)):
                value[key] = "[Filtered]"
                continue
            value[key] = _sanitize_in_place(nested_value, str(key))
        return value

    if isinstance(value, list):
        for index, item in enumerate(value):
            value[index] = _sanitize_in_place(item, parent_key)
        return value

    if isinstance(value, tuple):
        return tuple(_sanitize_in_place(item, parent_key) for item in value)

    return value


def _before_send(
    event: dict[str, Any], hint: dict[str, Any]
) -> dict[str, Any] | None:
    log_record = hint.get("log_record")
    if log_record is not None and _is_healthcheck_access_log(
        getattr(log_record, "name", None), log_record.getMessage()
    ):
        return None
    return _sanitize_in_place(event)


def _before_breadcrumb(
    crumb: dict[str, Any], hint: dict[str, Any]
) -> dict[str, Any] | None:
    del hint
    category = crumb.get("category")
    message = crumb.get("message")
    if isinstance(category, str) and isinstance(message, str):
        if _is_healthcheck_access_log(category, message):
            return None
    return _sanitize_in_place(crumb)


def init_sentry(service_name: str = "stockfolio-api") -> bool:
    """Initialize Sentry once per process."""
    global _initialized

    if _initialized:
        return True

    dsn = (settings.SENTRY_DSN or "").strip()
    if not dsn:
        logger.info("Sentry disabled: SENTRY_DSN is empty")
        return False

    environment = settings.SENTRY_ENVIRONMENT or settings.ENVIRONMENT
    release = settings.SENTRY_RELEASE or os.getenv("GITHUB_SHA")

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            send_default_pii=settings.SENTRY_SEND_DEFAULT_PII,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
                FastApiIntegration(),
                HttpxIntegration(),
            ],
            before_send=_before_send,
            before_breadcrumb=_before_breadcrumb,
        )
        sentry_sdk.set_tag("service", service_name)
        sentry_sdk.set_tag("runtime", "python")
        _initialized = True
        logger.info(
            "Sentry initialized: service=%s environment=%s", service_name, environment
        )
        return True
    except Exception:
        logger.exception("Failed to initialize Sentry for service=%s", service_name)
        return False


def capture_exception(exc: BaseException, **context: Any) -> None:
    """Capture an exception with additional context if Sentry is initialized."""
    if not _initialized:
        return

    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in context.items():
                scope.set_extra(str(key), _sanitize_in_place(value, str(key)))
            sentry_sdk.capture_exception(exc)
    except Exception:
        logger.exception("Failed to capture exception in Sentry")
