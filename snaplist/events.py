"""
Structured logging and the event channel.

Engines report partial failures and state changes as named events on an
EventChannel instead of printing them. The channel logs every event through
structlog and hands a copy to any subscribed sink (metrics, alerting, tests).
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Any, Callable, Dict, List, Optional

import structlog


EventSink = Callable[[str, Dict[str, Any]], None]

logger = structlog.get_logger(__name__)


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Set up structlog once per process.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_output: Render JSON lines instead of the console format
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # stdlib handlers for requests/urllib3/werkzeug
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class EventChannel:
    """Fan-out of named events to structlog and to subscribed sinks"""

    LEVELS = ("debug", "info", "warning", "error")

    def __init__(self, log: Optional[Any] = None):
        self.log = log or structlog.get_logger("snaplist.events")
        self._sinks: List[EventSink] = []
        self._lock = threading.Lock()

    def subscribe(self, sink: EventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def unsubscribe(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def emit(self, event: str, level: str = "info", **fields: Any) -> None:
        if level not in self.LEVELS:
            level = "info"
        getattr(self.log, level)(event, **fields)

        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                sink(event, dict(fields))
            except Exception as e:
                # sink failures never propagate to the caller
                self.log.warning("event_sink_failed", event_name=event, error=str(e))
