"""
Structured Logging Configuration for billing_records

Provides:
- JSON-formatted structured logging
- Operation correlation IDs
- Timing of payment gateway calls
"""
import sys
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Callable
from functools import wraps
from contextvars import ContextVar

from billing_records import config

# Correlates every log line emitted while one gateway call is in flight
operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")

_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message", "operation_id",
}


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs logs in a format suitable for log aggregation tools.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "operation_id": operation_id_var.get(""),
        }
        
        log_data["location"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName
        }
        
        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }
        
        extra_fields = {}
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)
        
        if extra_fields:
            log_data["extra"] = extra_fields
        
        return json.dumps(log_data)


def log_operation(
    operation_name: str,
    logger: logging.Logger = None
) -> Callable:
    """
    Decorator to log a gateway call with timing.
    
    Usage:
        @log_operation("subscription.find")
        def find(self, subscription_id):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            op_logger = logger or logging.getLogger(f"billing_records.operations.{operation_name}")
            token = operation_id_var.set(str(uuid.uuid4())[:12])
            start_time = time.time()
            
            op_logger.debug(
                f"Operation started: {operation_name}",
                extra={
                    "event_type": "operation_start",
                    "operation": operation_name,
                }
            )
            
            try:
                result = func(*args, **kwargs)
                
                duration_ms = (time.time() - start_time) * 1000
                op_logger.info(
                    f"Operation completed: {operation_name}",
                    extra={
                        "event_type": "operation_complete",
                        "operation": operation_name,
                        "duration_ms": round(duration_ms, 2),
                    }
                )
                
                return result
                
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                op_logger.error(
                    f"Operation failed: {operation_name} - {type(e).__name__}",
                    extra={
                        "event_type": "operation_error",
                        "operation": operation_name,
                        "duration_ms": round(duration_ms, 2),
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    }
                )
                raise
            finally:
                operation_id_var.reset(token)
        
        return wrapper
    return decorator


def setup_logging(
    level: Optional[str] = None,
    json_format: bool = True,
    log_file: Optional[str] = None
):
    """
    Configure logging for applications embedding billing_records.
    
    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR), defaults to BILLING_LOG_LEVEL
        json_format: Use JSON formatting for structured logging
        log_file: Optional file path to write logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or config.get_log_level()).upper(), logging.INFO))
    
    root_logger.handlers.clear()
    
    console_handler = logging.StreamHandler(sys.stdout)
    
    if json_format and config.use_json_logs():
        console_handler.setFormatter(StructuredJSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
    
    root_logger.addHandler(console_handler)
    
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredJSONFormatter())
        root_logger.addHandler(file_handler)
    
    # The Stripe SDK logs every request at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)
    
    return root_logger
