"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    CHUNK_CALLBACK_FAILED = "CHUNK_CALLBACK_FAILED"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"
    LEAD_STORE_WRITE_FAILED = "LEAD_STORE_WRITE_FAILED"
    LEAD_STORE_UNKEYED_RECORD = "LEAD_STORE_UNKEYED_RECORD"


class LeadFusionError(Exception):
    """Base class for errors raised by leadfusion."""


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    run_id: str | None = None,
    chunk_index: int | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "leadfusion_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "run_id": run_id,
            "chunk_index": chunk_index,
            "details": details or {},
        },
    )
