"""
Structured event logging for the generation pipeline.

Every record is a JSON document carrying:
- an event name in dot notation (``controller.plan.completed``)
- correlation ids for the current request (correlation, session, project)
- service metadata
- optional payload under ``data`` and error details under ``error``

Records are emitted through loguru so sinks, levels and rotation are owned
by ``appforge.core.logger.setup_logging``.
"""
import json
import os
import socket
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

from loguru import logger as loguru_logger

from appforge.config import settings

# Context variables for correlation tracking
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
project_id_var: ContextVar[Optional[str]] = ContextVar('project_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
extra_context_var: ContextVar[Dict[str, Any]] = ContextVar('extra_context', default={})

_CONTEXT_VARS = {
    "correlation_id": correlation_id_var,
    "session_id": session_id_var,
    "project_id": project_id_var,
    "user_id": user_id_var,
}


class StructuredLogger:
    """
    Structured logger bound to a module name.

    Usage:
        logger = get_logger(__name__)
        logger.info("codegen.file.extracted", extra={"path": "index.html"})
    """

    def __init__(self, name: str):
        self.name = name
        self.hostname = socket.gethostname()
        self.service_name = settings.app_name
        self.service_version = settings.app_version
        self.environment = settings.environment
        self.instance_id = os.getenv("INSTANCE_ID", self.hostname)
        self._sink = loguru_logger.bind(name=name)

    def _get_base_context(self) -> Dict[str, Any]:
        return {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "service": {
                "name": self.service_name,
                "version": self.service_version,
                "environment": self.environment,
                "instance_id": self.instance_id,
            },
            "logger": {"name": self.name},
            "correlation": {key: var.get() for key, var in _CONTEXT_VARS.items()},
            "context": extra_context_var.get(),
        }

    def _format_log(
        self,
        level: str,
        event: str,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        log_entry = self._get_base_context()
        log_entry.update({
            "level": level,
            "event": event,
            "message": message or event,
        })

        if extra:
            log_entry["data"] = extra

        if exc_info is not None:
            log_entry["error"] = {
                "type": type(exc_info).__name__,
                "message": str(exc_info),
                "stacktrace": "".join(
                    traceback.format_exception(type(exc_info), exc_info, exc_info.__traceback__)
                ),
            }

        return log_entry

    def _emit(
        self,
        level: str,
        event: str,
        message: Optional[str],
        extra: Optional[Dict[str, Any]],
        exc_info: Optional[BaseException] = None,
    ) -> None:
        entry = self._format_log(level, event, message, extra, exc_info)
        # Braces in payloads must not be treated as loguru format fields
        self._sink.opt(depth=2).log(level, "{}", json.dumps(entry, default=str))

    def debug(self, event: str, message: str = None, extra: Dict = None, **kwargs):
        self._emit("DEBUG", event, message, extra)

    def info(self, event: str, message: str = None, extra: Dict = None, **kwargs):
        self._emit("INFO", event, message, extra)

    def warning(
        self,
        event: str,
        message: str = None,
        extra: Dict = None,
        exc_info: BaseException = None,
        **kwargs
    ):
        self._emit("WARNING", event, message, extra, exc_info)

    def error(
        self,
        event: str,
        message: str = None,
        extra: Dict = None,
        exc_info: BaseException = None,
        **kwargs
    ):
        self._emit("ERROR", event, message, extra, exc_info)

    def critical(
        self,
        event: str,
        message: str = None,
        extra: Dict = None,
        exc_info: BaseException = None,
        **kwargs
    ):
        self._emit("CRITICAL", event, message, extra, exc_info)

    def performance(self, event: str, duration_ms: float, extra: Dict = None):
        """Log a timing measurement for an operation."""
        perf_data = {
            "performance": {
                "duration_ms": round(duration_ms, 2),
                "duration_seconds": round(duration_ms / 1000, 3),
            }
        }
        if extra:
            perf_data.update(extra)

        self._emit("INFO", event, f"Performance: {duration_ms:.0f}ms", perf_data)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


class log_context:
    """
    Context manager for correlation tracking.

    Usage:
        with log_context(correlation_id="abc", project_id="p-1"):
            logger.info("generation.started")

    Values not passed keep whatever the enclosing context set.
    """

    def __init__(
        self,
        correlation_id: str = None,
        session_id: str = None,
        project_id: str = None,
        user_id: str = None,
        **kwargs
    ):
        self.values = {
            "correlation_id": correlation_id,
            "session_id": session_id,
            "project_id": project_id,
            "user_id": user_id,
        }
        self.extra_context = kwargs
        self._tokens = []

    def __enter__(self):
        for key, value in self.values.items():
            if value:
                self._tokens.append((_CONTEXT_VARS[key], _CONTEXT_VARS[key].set(value)))
        if self.extra_context:
            merged = {**extra_context_var.get(), **self.extra_context}
            self._tokens.append((extra_context_var, extra_context_var.set(merged)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def trace_async(event_prefix: str):
    """
    Decorator for tracing coroutines.

    Emits ``<prefix>.started``, then ``<prefix>.completed`` with the duration,
    or ``<prefix>.failed`` before re-raising.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            start_time = datetime.now(timezone.utc)

            logger.debug(f"{event_prefix}.started", extra={"function": func.__name__})

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
                logger.error(
                    f"{event_prefix}.failed",
                    extra={
                        "function": func.__name__,
                        "duration_ms": duration_ms,
                        "error_type": type(e).__name__,
                    },
                    exc_info=e,
                )
                raise

            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            logger.performance(
                f"{event_prefix}.completed",
                duration_ms=duration_ms,
                extra={"function": func.__name__, "success": True},
            )
            return result

        return wrapper
    return decorator


"""
LOG EVENT NAMING CONVENTIONS:

Use dot notation: <domain>.<action>.<result>

Examples:
- api.request.received
- api.rate_limit.exceeded
- orchestrator.mode.determined
- controller.plan.completed
- codegen.file.extracted
- llm.retry.scheduled
- llm.fallback.engaged
- schema_cache.hit
- persistence.write.failed
"""
