"""Logger with composable output sinks, backed by logfire."""

from __future__ import annotations

import contextlib
import sys
from abc import abstractmethod
from pathlib import Path
from typing import Any

from opentelemetry.proto.logs.v1 import logs_pb2
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from pydantic import Field, PrivateAttr, model_validator

from labctl.core.base import BaseConfig

_current_logger: Logger | None = None


class _LoggerProxy:
    """Forwards attribute access to the configured Logger.

    Before setup_logger() runs every method is a no-op, so modules can
    log at import time and tests can skip logging setup entirely.
    """

    def __getattr__(self, name):
        if _current_logger is None:
            if name == "span":
                return lambda *args, **kwargs: contextlib.nullcontext()

            def _noop(*args, **kwargs):  # noqa: ARG001
                pass
            return _noop
        return getattr(_current_logger, name)

    def __enter__(self):
        if _current_logger is None:
            return self
        return _current_logger.__enter__()

    def __exit__(self, *args):
        if _current_logger is None:
            return False
        return _current_logger.__exit__(*args)


# What every module imports
logger = _LoggerProxy()


# Level name -> OpenTelemetry severity number
LEVELS = {
    'trace': logs_pb2.SEVERITY_NUMBER_TRACE,
    'debug': logs_pb2.SEVERITY_NUMBER_DEBUG,
    'info': logs_pb2.SEVERITY_NUMBER_INFO,
    'warn': logs_pb2.SEVERITY_NUMBER_WARN,
    'error': logs_pb2.SEVERITY_NUMBER_ERROR,
    'fatal': logs_pb2.SEVERITY_NUMBER_FATAL,
}


# Span attributes that are internal or already in the format template
_HIDDEN_ATTRS = frozenset({
    'code.filepath', 'code.lineno', 'code.function',
    'logfire.msg', 'logfire.level_num', 'logfire.span_type',
    'logfire.msg_template', 'logfire.json_schema',
})

# Attribute keys containing any of these are written as ***
_SECRET_MARKERS = ('password', 'token', 'secret', 'private_key', 'auth_key')


def level_name(level_num: int) -> str:
    """Map a severity number back to the closest level name."""
    for name in ('fatal', 'error', 'warn', 'info', 'debug', 'trace'):
        if level_num >= LEVELS[name]:
            return name
    return 'trace'


def mask_attribute(key: str, value: Any) -> str:
    """repr of value, or *** when key names a secret."""
    if any(marker in key.lower() for marker in _SECRET_MARKERS):
        return '***'
    return repr(value)


class LevelFilteringExporter(SpanExporter):
    """Forwards only spans at or above a minimum level."""

    def __init__(self, exporter: SpanExporter, min_level: str | None):
        self._exporter = exporter
        self._min_severity = LEVELS.get(
            (min_level or 'info').lower(), logs_pb2.SEVERITY_NUMBER_INFO
        )

    def export(self, spans: list[ReadableSpan]) -> SpanExportResult:
        kept = [
            span for span in spans
            if (span.attributes or {}).get(
                'logfire.level_num', logs_pb2.SEVERITY_NUMBER_INFO
            ) >= self._min_severity
        ]
        if kept:
            return self._exporter.export(kept)
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)


class Sink(BaseConfig):
    """One log destination.

    Sinks are closed through the BaseCloseable cascade, which shuts
    down their span processor.
    """

    enabled: bool = Field(default=True, description="Enable this sink")
    level: str | None = Field(
        default=None,
        description=(
            "Minimum level for this sink; inherits Logger.level when "
            "unset. Valid: trace, debug, info, warn, error, fatal"
        ),
    )
    format_template: str | None = Field(
        default=None,
        description="str.format template; None writes raw span JSON",
    )

    _processor: Any = PrivateAttr(default=None)

    def _format_span(self, span) -> str:
        if not self.format_template:
            import os
            return span.to_json() + os.linesep

        from datetime import UTC, datetime

        attrs = span.attributes or {}
        data = {
            'timestamp': datetime.fromtimestamp(
                span.start_time / 1e9, tz=UTC
            ),
            'level': level_name(attrs.get(
                'logfire.level_num', logs_pb2.SEVERITY_NUMBER_INFO
            )),
            'message': attrs.get('logfire.msg', span.name),
            'function': attrs.get('code.function', ''),
        }
        try:
            line = self.format_template.format(**data)
        except KeyError as e:
            return f"ERROR: invalid template field {e}\n"

        extra = {
            k: v for k, v in attrs.items()
            if k not in _HIDDEN_ATTRS
            and not k.startswith(('otel.', 'telemetry.', 'service.'))
        }
        if extra:
            pairs = ' '.join(
                f"{k}={mask_attribute(k, v)}" for k, v in sorted(extra.items())
            )
            line = f"{line} | {pairs}"
        return line + '\n'

    @abstractmethod
    def create_processor(self, log_root: Path, run_name: str):
        """Return a span processor for this sink, or None."""

    def close(self):
        if self._processor:
            with contextlib.suppress(Exception):
                self._processor.shutdown()


class ConsoleSink(Sink):
    """Terminal output, rendered by logfire itself."""

    verbose: bool = Field(default=False, description="Show span details")
    colors: str = Field(
        default="auto", description="Color mode: auto, always, never"
    )
    stream: str = Field(
        default="stderr",
        description="Console stream: stderr or stdout",
    )

    def create_processor(self, log_root: Path, run_name: str):
        return None


class FileSink(Sink):
    """Plain-text log file under the log root."""

    enabled: bool = Field(default=False, description="Enable file logging")
    path: str = Field(
        default="{log_root}/{run_name}/labctl.log",
        description="Log file path template",
    )
    format_template: str | None = Field(
        default="{timestamp:%Y-%m-%d %H:%M:%S} {level:<5} {message}",
    )

    _file: Any = PrivateAttr(default=None)

    def create_processor(self, log_root: Path, run_name: str):
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
        )

        log_path = Path(
            self.path.format(log_root=log_root, run_name=run_name)
        )
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Line buffered so a crash loses at most one record
        self._file = open(log_path, "a", buffering=1, encoding="utf-8")  # noqa: SIM115

        exporter = ConsoleSpanExporter(
            out=self._file, formatter=self._format_span
        )
        return BatchSpanProcessor(
            LevelFilteringExporter(exporter, self.level)
        )

    def close(self):
        # Processor first so queued spans reach the file
        super().close()
        if self._file and not self._file.closed:
            with contextlib.suppress(Exception):
                self._file.flush()
                self._file.close()


class LogfireSink(Sink):
    """logfire.dev cloud export."""

    enabled: bool = Field(
        default=False, description="Send telemetry to logfire.dev"
    )
    token: str | None = Field(
        default=None, description="API token (or LOGFIRE_TOKEN)"
    )

    def create_processor(self, log_root: Path, run_name: str):
        return None


class Logger(BaseConfig):
    """Logger with console, file and logfire sinks.

    close() cascades to every sink through BaseCloseable.
    """

    level: str = Field(
        default="info",
        description="Default level for sinks that do not set one",
    )
    console: ConsoleSink = Field(default_factory=ConsoleSink)
    file: FileSink = Field(default_factory=FileSink)
    logfire: LogfireSink = Field(default_factory=LogfireSink)

    @model_validator(mode='after')
    def _cascade_level_to_sinks(self) -> 'Logger':
        for sink in (self.console, self.file):
            if sink.level is None:
                sink.level = self.level
        return self

    def setup(self, log_root: Path, run_name: str):
        """Create sink processors and configure logfire."""
        import logfire
        from logfire import ConsoleOptions

        for sink in (self.console, self.file, self.logfire):
            if sink.enabled:
                sink._processor = sink.create_processor(log_root, run_name)

        processors = [
            sink._processor for sink in (self.file,)
            if sink.enabled and sink._processor
        ]

        console = (
            ConsoleOptions(
                min_log_level=self.console.level,
                verbose=self.console.verbose,
                colors=self.console.colors,
                include_timestamps=False,
                output=sys.stdout if self.console.stream == "stdout"
                else sys.stderr,
            )
            if self.console.enabled
            else False
        )

        logfire.configure(
            service_name=f"labctl-{run_name}",
            send_to_logfire=self.logfire.enabled,
            token=self.logfire.token if self.logfire.enabled else None,
            console=console,
            additional_span_processors=processors or None,
        )

    def trace(self, msg: str, **kwargs):
        import logfire
        logfire.trace(msg, **kwargs)

    def debug(self, msg: str, **kwargs):
        import logfire
        logfire.debug(msg, **kwargs)

    def info(self, msg: str, **kwargs):
        import logfire
        logfire.info(msg, **kwargs)

    def warn(self, msg: str, **kwargs):
        import logfire
        logfire.warn(msg, **kwargs)

    def warning(self, msg: str, **kwargs):
        """Alias for warn()."""
        self.warn(msg, **kwargs)

    def error(self, msg: str, **kwargs):
        import logfire
        logfire.error(msg, **kwargs)

    def fatal(self, msg: str, **kwargs):
        import logfire
        logfire.fatal(msg, **kwargs)

    def span(self, msg: str, **kwargs):
        """Span context manager: ``with logger.span("phase"): ...``"""
        import logfire
        return logfire.span(msg, **kwargs)


def setup_logger(
    log_root: Path,
    run_name: str,
    level: str = "info",
    console: ConsoleSink | None = None,
    file: FileSink | None = None,
    logfire: LogfireSink | None = None,
) -> Logger:
    """Install the global logger singleton and return it.

    Config calls this once it has validated; tests call it directly.
    Any previously installed logger is closed first.
    """
    global _current_logger

    if _current_logger is not None:
        _current_logger.close()

    _current_logger = Logger(
        level=level,
        console=console or ConsoleSink(),
        file=file or FileSink(),
        logfire=logfire or LogfireSink(),
    )
    _current_logger.setup(log_root, run_name)
    return _current_logger
