"""Telemetry: scoped operation spans, exception capture and the JSONL event log."""

from __future__ import annotations

from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
import json
import logging
import os
import threading
import time
import traceback
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.trace import Status, StatusCode

from agent.config import TelemetryConfig

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_ERROR = "error"

_current_operation: ContextVar["OperationSpan | None"] = ContextVar(
    "current_operation", default=None
)
_provider_lock = threading.Lock()
_provider_installed = False


@dataclass
class SpanRecord:
    """A finished operation span."""
    op: str
    name: str
    attributes: dict[str, Any]
    status: str
    status_message: str | None
    duration_ms: float
    parent: str | None = None


@dataclass
class ExceptionRecord:
    """An exception reported to the telemetry sink."""
    error_type: str
    message: str
    stack: str
    level: str
    tags: dict[str, Any] = field(default_factory=dict)
    contexts: dict[str, Any] = field(default_factory=dict)


class OperationSpan:
    """Handle for one in-flight operation. Obtained from Telemetry.start_operation."""

    def __init__(self, op: str, name: str, otel_span: trace.Span, parent: str | None):
        self.op = op
        self.name = name
        self.parent = parent
        self.attributes: dict[str, Any] = {}
        self.status: str | None = None
        self.status_message: str | None = None
        self._otel_span = otel_span
        self._start = time.monotonic()
        self.duration_ms: float = 0.0

    def set_attribute(self, key: str, value: Any) -> None:
        if value is None:
            return
        self.attributes[key] = value
        self._otel_span.set_attribute(key, value)

    def set_status(self, status: str, message: str | None = None) -> None:
        self.status = status
        self.status_message = message
        if status == STATUS_ERROR:
            self._otel_span.set_status(Status(StatusCode.ERROR, message))
        else:
            self._otel_span.set_status(Status(StatusCode.OK))

    def record_exception(self, error: BaseException) -> None:
        self._otel_span.record_exception(error)

    def finish(self, status: str = STATUS_OK, message: str | None = None) -> None:
        """Close the span; an explicitly set status wins over the default."""
        if self.status is None:
            self.set_status(status, message)
        self.duration_ms = (time.monotonic() - self._start) * 1000

    def to_record(self) -> SpanRecord:
        return SpanRecord(
            op=self.op,
            name=self.name,
            attributes=dict(self.attributes),
            status=self.status or STATUS_OK,
            status_message=self.status_message,
            duration_ms=self.duration_ms,
            parent=self.parent,
        )


class Telemetry:
    """Process-wide telemetry sink shared by the agent, gateway and tool executor."""

    def __init__(self, config: TelemetryConfig, session_id: str, max_records: int = 1000):
        self.config = config
        self.session_id = session_id
        self._lock = threading.Lock()
        self.spans: deque[SpanRecord] = deque(maxlen=max_records)
        self.exceptions: deque[ExceptionRecord] = deque(maxlen=max_records)
        self._log_path: str | None = None

        # `enabled` gates only the JSONL log; span export has its own switch.
        if self.config.enabled:
            os.makedirs(self.config.log_dir, exist_ok=True)
            self._log_path = os.path.join(self.config.log_dir, f"{session_id}.jsonl")
        if self.config.otel_enabled:
            self._setup_otel()

        self._tracer = trace.get_tracer(__name__)

    @contextmanager
    def start_operation(
        self,
        op: str,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Iterator[OperationSpan]:
        """
        Open a span for one operation. The span is always finished, with an
        error status if the body raises.
        """
        parent = _current_operation.get()
        with self._tracer.start_as_current_span(
            name,
            record_exception=False,
            set_status_on_exception=False,
        ) as otel_span:
            span = OperationSpan(op, name, otel_span, parent.name if parent else None)
            span.set_attribute("operation.op", op)
            for key, value in (attributes or {}).items():
                span.set_attribute(key, value)

            token = _current_operation.set(span)
            try:
                yield span
            except BaseException as e:
                span.finish(STATUS_ERROR, str(e) or type(e).__name__)
                raise
            else:
                span.finish(STATUS_OK)
            finally:
                _current_operation.reset(token)
                record = span.to_record()
                self.spans.append(record)
                self._log_event("span", asdict(record))

    def capture_exception(
        self,
        error: BaseException,
        tags: dict[str, Any] | None = None,
        contexts: dict[str, Any] | None = None,
        level: str = "error",
    ) -> ExceptionRecord:
        """Report an exception with its tags and context records."""
        record = ExceptionRecord(
            error_type=type(error).__name__,
            message=str(error),
            stack=format_stack(error),
            level=level,
            tags=dict(tags or {}),
            contexts=dict(contexts or {}),
        )
        self.exceptions.append(record)

        current = _current_operation.get()
        if current is not None:
            current.record_exception(error)

        logger.error(
            "%s: %s (tags=%s)",
            record.error_type,
            record.message,
            json.dumps(record.tags, default=str),
        )
        self._log_event("exception", asdict(record))
        return record

    def _log_event(self, event_type: str, payload: dict[str, Any]) -> None:
        if not self.config.enabled or not self._log_path:
            return
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "event": event_type,
            **payload,
        }
        line = json.dumps(record, default=str)
        with self._lock:
            try:
                with open(self._log_path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                logger.warning("Failed to write telemetry event to %s: %s", self._log_path, e)

    def _setup_otel(self) -> None:
        global _provider_installed
        with _provider_lock:
            if _provider_installed:
                return
            resource = Resource.create({
                "service.name": self.config.otel_service_name,
                "deployment.environment": self.config.environment,
            })
            provider = TracerProvider(resource=resource)
            if self.config.otel_endpoint:
                exporter = OTLPSpanExporter(endpoint=self.config.otel_endpoint)
                provider.add_span_processor(BatchSpanProcessor(exporter))
            else:
                logger.warning("OpenTelemetry enabled without an endpoint; spans are not exported")

            trace.set_tracer_provider(provider)
            _provider_installed = True


def format_stack(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def configure_logging(log_dir: str, level: int = logging.INFO) -> logging.Logger:
    """Attach a file handler for agent.log under log_dir to the root logger."""
    os.makedirs(log_dir, exist_ok=True)
    root = logging.getLogger()
    log_path = os.path.abspath(os.path.join(log_dir, "agent.log"))
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_path:
            return root

    root.setLevel(level)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    return root
