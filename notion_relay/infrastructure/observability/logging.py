import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "notion-relay"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add update and chat identifiers to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.utcnow().isoformat()

    context = structlog.contextvars.get_contextvars()
    for key in ("bot", "update_id", "chat_id"):
        if key in context and key not in event_dict:
            event_dict[key] = context[key]

    return event_dict


class RelayLogger:
    """Logger for bot conversation events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_bot_event(
        self,
        event_type: str,
        bot: str,
        chat_id: int,
        data: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.logger.info(
            "bot_event",
            event_type=event_type,
            bot=bot,
            chat_id=chat_id,
            data=data or {},
            **kwargs
        )

    def log_external_call(
        self,
        operation: str,
        chat_id: int,
        success: bool = True,
        error: Optional[str] = None
    ):
        log = self.logger.info if success else self.logger.warning
        log(
            "external_call",
            operation=operation,
            chat_id=chat_id,
            success=success,
            error=error
        )

    def log_mode_transition(
        self,
        chat_id: int,
        from_mode: str,
        to_mode: str,
        trigger: Optional[str] = None
    ):
        self.logger.info(
            "mode_transition",
            chat_id=chat_id,
            from_mode=from_mode,
            to_mode=to_mode,
            trigger=trigger
        )


relay_logger = RelayLogger("relay")


class RelayMetrics:
    """In-process counters per bot and latency of outbound API calls"""

    BOT_COUNTERS = ("message", "callback_query", "unauthorized", "rate_limited", "external_failures")

    def __init__(self):
        self.bots: Dict[str, Dict[str, int]] = {}
        self.calls: Dict[str, Dict[str, float]] = {}

    def _bump(self, bot: str, counter: str):
        counters = self.bots.setdefault(bot, dict.fromkeys(self.BOT_COUNTERS, 0))
        counters[counter] += 1

    def update_received(self, bot: str, kind: str):
        self._bump(bot, kind)

    def unauthorized(self, bot: str):
        self._bump(bot, "unauthorized")

    def rate_limited(self, bot: str):
        self._bump(bot, "rate_limited")

    def external_failure(self, bot: str, operation: str):
        self._bump(bot, "external_failures")
        relay_logger.logger.debug("metric", metric_type="failure", bot=bot, operation=operation)

    def call_latency(self, call: str, duration_ms: float):
        """Latency of one Telegram or Notion call, e.g. ``notion.query``"""

        stats = self.calls.setdefault(call, {"count": 0, "total_ms": 0.0, "max_ms": 0.0})
        stats["count"] += 1
        stats["total_ms"] += duration_ms
        stats["max_ms"] = max(stats["max_ms"], duration_ms)

        relay_logger.logger.debug("metric", metric_type="latency", call=call, duration_ms=duration_ms)

    def summary(self) -> Dict[str, Any]:
        return {
            "bots": {bot: dict(counters) for bot, counters in self.bots.items()},
            "calls": {
                call: {
                    "count": int(stats["count"]),
                    "avg_ms": round(stats["total_ms"] / stats["count"], 2),
                    "max_ms": round(stats["max_ms"], 2)
                }
                for call, stats in self.calls.items()
            }
        }

    def reset(self):
        self.bots.clear()
        self.calls.clear()


metrics = RelayMetrics()
