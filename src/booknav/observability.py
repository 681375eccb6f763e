"""Logfire observability for the BookNav library service."""

import functools
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import logfire

from .config import AppConfig

logger = logging.getLogger(__name__)


def initialize_observability(config: AppConfig) -> None:
    """Configure logfire from the application config."""
    if not config.logfire_enabled:
        logger.debug("Observability disabled via configuration")
        return

    logfire.configure(
        service_name=config.app_name,
        service_version=config.app_version,
        environment="development" if config.is_development else "production",
        send_to_logfire=config.logfire_send,
        console=None if config.logfire_console else False,
    )
    logger.debug("Logfire configured (send=%s)", config.logfire_send)


def traced(operation: str):
    """Decorator to trace a circulation or catalog operation in a logfire span."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with logfire.span(
                f"booknav.{operation}",
                operation=operation,
                category=_categorize_operation(operation),
            ) as span:
                start_time = datetime.now()

                _add_attributes(span, "input", kwargs)

                try:
                    result = func(*args, **kwargs)

                    span.set_attribute("operation.success", True)
                    span.set_attribute(
                        "operation.duration_ms",
                        (datetime.now() - start_time).total_seconds() * 1000,
                    )
                    _add_result_metrics(span, result)

                    return result

                except Exception as e:
                    span.set_attribute("operation.success", False)
                    span.set_attribute("operation.error", str(e))
                    span.set_attribute("operation.error_type", type(e).__name__)
                    raise

        return wrapper

    return decorator


def _categorize_operation(operation: str) -> str:
    if "checkout" in operation or "return" in operation or "overdue" in operation:
        return "circulation"
    if "history" in operation or "current" in operation:
        return "reporting"
    return "general"


def _add_attributes(span, prefix: str, data: dict[str, Any]) -> None:
    # PINs and passwords never reach these call sites.
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)


def _add_result_metrics(span, result: Any) -> None:
    if isinstance(result, int) and not isinstance(result, bool):
        span.set_attribute("result.count", result)
    elif isinstance(result, list):
        span.set_attribute("result.item_count", len(result))
    elif result is not None:
        span.set_attribute("result.type", type(result).__name__)
