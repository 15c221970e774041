"""
Structured event logging for the HLMM market maker.

Every component writes JSON Lines records through a shared logger instance:

Core Components:
- JsonlLogger: append-only structured event log
- DebugLogger: level-filtered logger with prefixed event names
- performance_trace: timing decorator, active only at DEBUG level
- ErrorContext: error records with location, stack trace and context

Logging Architecture:
    Feed / Quoter / OrderManager / RiskGate → Logger Instance → JSON Lines File

Record Format:
    {"ts_ms": 1703123456789, "event": "order_placed", "side": "BUY", "price": "100.05"}

Decimal prices and sizes are written as strings so no precision is lost.

Usage Patterns:
    logger = DebugLogger("./data/logs/mm_events.jsonl", level="INFO")
    logger.info("quote", {"bid": bid, "ask": ask})
    logger.warning("risk_reject", {"side": "BUY", "resulting": "1.1"})

    try:
        await gateway.cancel_order(oid)
    except GatewayError as e:
        ErrorContext.log_operation_error(logger, "cancel_order", e, {"order_id": oid})
"""
import asyncio
import functools
import inspect
import json
import os
import time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .utils import now_ms


def _json_default(obj: Any) -> Any:
    """Serialize the non-JSON types that appear in trading payloads."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    return repr(obj)


class JsonlLogger:
    """Append-only JSON Lines logger for structured event logging.

    Each record is a complete JSON object on its own line with an injected
    millisecond timestamp. The file is opened line-buffered so a crash loses
    at most the line being written.

    Args:
        path: File path for log output (parent directories are created)

    Usage:
        logger = JsonlLogger("./data/logs/mm_events.jsonl")
        logger.write("order_placed", {"order_id": "123", "side": "BUY"})
    """

    def __init__(self, path: str):
        self.path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        # Line buffering keeps write latency low in the quoting loop
        self._fp = open(path, "a", buffering=1, encoding="utf-8")

    def write(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Write one event record.

        Args:
            event_type: Event identifier (e.g. "order_placed", "feed_reconnect")
            payload: Event data merged into the record

        Thread Safety:
            Not thread-safe. The bot writes from a single event loop.
        """
        rec = {"ts_ms": now_ms(), "event": event_type, **payload}
        self._fp.write(
            json.dumps(rec, separators=(",", ":"), ensure_ascii=False, default=_json_default) + "\n"
        )

    def close(self) -> None:
        """Flush and close the log file. Safe to call more than once."""
        if not self._fp.closed:
            self._fp.close()


class DebugLogger(JsonlLogger):
    """JsonlLogger with hierarchical log levels.

    Log Levels (a record is written when its level >= the configured level):
        CRITICAL (50): the run cannot continue (startup snapshot failure)
        ERROR (40):   a cycle step failed (order rejected, poll failed)
        WARNING (30): degraded but handled (feed reconnect, risk veto, stale book)
        INFO (20):    normal operation (quotes, orders placed and cancelled)
        DEBUG (10):   per-message feed updates and timing data

    Non-INFO events get a level prefix (``debug_``, ``warn_``, ``error_``,
    ``critical_``) so they can be filtered with a plain grep.

    Args:
        path: Log file output path
        level: Logging level name (case-insensitive, unknown names mean INFO)
    """

    LEVELS = {
        'DEBUG': 10,
        'INFO': 20,
        'WARNING': 30,
        'ERROR': 40,
        'CRITICAL': 50,
    }

    def __init__(self, path: str, level: str = 'INFO'):
        super().__init__(path)
        self.level = self.LEVELS.get(level.upper(), self.LEVELS['INFO'])

    def debug(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.level <= self.LEVELS['DEBUG']:
            self.write(f"debug_{event_type}", payload)

    def info(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.level <= self.LEVELS['INFO']:
            self.write(event_type, payload)

    def warning(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.level <= self.LEVELS['WARNING']:
            self.write(f"warn_{event_type}", payload)

    def error(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.level <= self.LEVELS['ERROR']:
            self.write(f"error_{event_type}", payload)

    def critical(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.level <= self.LEVELS['CRITICAL']:
            self.write(f"critical_{event_type}", payload)


def performance_trace(logger_attr: str = 'logger'):
    """Decorator that times a method when its owner logs at DEBUG level.

    Works for sync and async methods. The logger is looked up on the
    instance (``args[0]``) via ``logger_attr``; when it is missing, not a
    DebugLogger, or above DEBUG, the call goes straight through.

    Log Output:
        {"event": "debug_perf_async_function",
         "function": "hlmm.orders.OrderManager.refresh_quotes",
         "duration_ms": 15.234, "args_count": 4}
    """

    def decorator(func: Callable) -> Callable:
        name = f"{func.__module__}.{func.__qualname__}"

        def _tracing_logger(args) -> Optional[DebugLogger]:
            if not args:
                return None
            logger = getattr(args[0], logger_attr, None)
            if not isinstance(logger, DebugLogger):
                return None
            level = getattr(logger, "level", None)
            if not isinstance(level, int) or level > DebugLogger.LEVELS['DEBUG']:
                return None
            return logger

        def _log_failure(logger: DebugLogger, start: float, e: Exception) -> None:
            logger.error("perf_function_error", {
                "function": name,
                "duration_ms": round((time.perf_counter() - start) * 1000, 3),
                "error": str(e),
                "error_type": type(e).__name__,
            })

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = _tracing_logger(args)
            if logger is None:
                return await func(*args, **kwargs)
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log_failure(logger, start, e)
                raise
            logger.debug("perf_async_function", {
                "function": name,
                "duration_ms": round((time.perf_counter() - start) * 1000, 3),
                "args_count": len(args) + len(kwargs),
            })
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            logger = _tracing_logger(args)
            if logger is None:
                return func(*args, **kwargs)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_failure(logger, start, e)
                raise
            logger.debug("perf_sync_function", {
                "function": name,
                "duration_ms": round((time.perf_counter() - start) * 1000, 3),
                "args_count": len(args) + len(kwargs),
            })
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


class ErrorContext:
    """Error records with location, stack trace and operation context.

    Log Output:
        {
            "event": "error_detailed_error",
            "error_message": "cancel rejected: Order was never placed",
            "error_type": "GatewayError",
            "function": "cancel_all",
            "file": "hlmm/orders.py",
            "line": 88,
            "stack_trace": "Traceback (most recent call last):\\n...",
            "context": {"operation": "cancel_order", "order_id": "123"}
        }
    """

    @staticmethod
    def capture_error(
        logger: DebugLogger,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        include_stack: bool = True
    ) -> None:
        """Log an exception with the location where it was raised.

        The location comes from the innermost traceback entry. An exception
        that was never raised has no traceback, so the calling frame is used.

        Args:
            logger: Logger receiving the ERROR record
            error: Exception to describe
            context: Optional operation details
            include_stack: Whether to include the formatted traceback
        """
        import traceback

        function_name = "unknown"
        file_name = "unknown"
        line_number = 0

        tb = error.__traceback__
        if tb is not None:
            while tb.tb_next is not None:
                tb = tb.tb_next
            function_name = tb.tb_frame.f_code.co_name
            file_name = tb.tb_frame.f_code.co_filename
            line_number = tb.tb_lineno
        else:
            frame = inspect.currentframe()
            try:
                caller_frame = frame.f_back if frame else None
                if caller_frame:
                    function_name = caller_frame.f_code.co_name
                    file_name = caller_frame.f_code.co_filename
                    line_number = caller_frame.f_lineno
            finally:
                del frame

        error_payload: Dict[str, Any] = {
            "error_message": str(error),
            "error_type": type(error).__name__,
            "function": function_name,
            "file": file_name,
            "line": line_number,
        }
        if include_stack:
            error_payload["stack_trace"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        if context:
            error_payload["context"] = context

        logger.error("detailed_error", error_payload)

    @staticmethod
    def log_operation_error(
        logger: DebugLogger,
        operation: str,
        error: Exception,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a failed operation with its name merged into the context.

        Example:
            try:
                await gateway.place_order(order)
            except GatewayError as e:
                ErrorContext.log_operation_error(logger, "place_order", e, {
                    "side": order.side, "price": order.price, "size": order.size
                })
        """
        full_context = {
            "operation": operation,
            **(context or {})
        }
        ErrorContext.capture_error(logger, error, full_context)
