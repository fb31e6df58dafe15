"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Logging configuration for Kestrel.

Structured logging through structlog on top of the standard logging module:
JSON lines for machine consumption, a console renderer for interactive use.
Every verification session carries a correlation ID so that the request,
the verification steps and the state commit can be joined in the logs.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Processor that copies the context correlation ID into the event."""
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.
    
    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.
        
    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear correlation ID from the current context."""
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for Kestrel.
    
    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs go to stderr.
        json_format: If True, render JSON lines. If False, use the console renderer.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    
    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    
    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.
    
    Args:
        name: Logger name (typically __name__ of the module).
        
    Returns:
        Structured logger named "kestrel.<name>".
    """
    return structlog.get_logger(f"kestrel.{name}")


# Convenience functions for common logging patterns

def log_verification(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    success: bool,
    duration_ms: float,
    tree_size: Optional[int] = None,
    failure_reason: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log the outcome of verifying one response.
    
    Args:
        logger: Logger instance
        operation: "search", "update" or "monitor"
        success: Whether the response was accepted
        duration_ms: Verification duration in milliseconds
        tree_size: Tree size of the accepted (or offered) tree head
        failure_reason: Error class name if the response was rejected
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "verification",
        "operation": operation,
        "success": success,
        "duration_ms": duration_ms,
    }
    
    if tree_size is not None:
        log_data["tree_size"] = tree_size
    if failure_reason is not None:
        log_data["failure_reason"] = failure_reason
    
    log_data.update(kwargs)
    
    if success:
        logger.info("verification", **log_data)
    else:
        logger.warning("verification_failed", **log_data)


def log_misbehavior(
    logger: structlog.stdlib.BoundLogger,
    kind: str,
    detail: str,
    **kwargs: Any,
) -> None:
    """
    Log evidence that the log operator misbehaved.
    
    These events are never expected from an honest log and are logged at
    error level so they can be alerted on.
    
    Args:
        logger: Logger instance
        kind: Misbehavior class ("stale_tree_head", "monitoring_invariant")
        detail: Human readable description
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "log_misbehavior",
        "kind": kind,
        "detail": detail,
    }
    log_data.update(kwargs)
    logger.error("log_misbehavior", **log_data)


def log_tree_head_accepted(
    logger: structlog.stdlib.BoundLogger,
    tree_size: int,
    timestamp: int,
    root: str,
    prior_size: Optional[int] = None,
    **kwargs: Any,
) -> None:
    """
    Log a tree head that passed consistency verification.
    
    Args:
        logger: Logger instance
        tree_size: Accepted tree size
        timestamp: Tree head timestamp in milliseconds
        root: Log root (hex encoded)
        prior_size: Previously trusted tree size, if any
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "tree_head_accepted",
        "tree_size": tree_size,
        "timestamp": timestamp,
        "root": root,
    }
    if prior_size is not None:
        log_data["prior_size"] = prior_size
    log_data.update(kwargs)
    logger.info("tree_head_accepted", **log_data)


def log_state_commit(
    logger: structlog.stdlib.BoundLogger,
    generation: int,
    tree_size: Optional[int],
    monitored_keys: int,
    **kwargs: Any,
) -> None:
    log_data: Dict[str, Any] = {
        "event_type": "state_commit",
        "generation": generation,
        "monitored_keys": monitored_keys,
    }
    if tree_size is not None:
        log_data["tree_size"] = tree_size
    log_data.update(kwargs)
    logger.debug("state_commit", **log_data)
