"""
Event client for writing invocation telemetry to the BigQuery event_log table.

Every metric the runtime emits (invocation, duration, exception) becomes one
event envelope row:
- event_type: handler.invocation | handler.duration | handler.exception
- source_system: resource type that produced the event
- correlation_id: bearer token of the logical operation
- payload: small JSON dict (action, duration_ms, error_code, ...)

Configuration via environment variables:
- EVENTS_BQ_DATASET: BigQuery dataset name (unless passed explicitly)

Usage:
    from google.cloud import bigquery
    from provocation.stack_clients.event_client import log_event

    client = bigquery.Client()
    log_event(
        event_type="handler.duration",
        source_system="Acme::Storage::Bucket",
        correlation_id="f3b1c0d2-token",
        payload={"action": "CREATE", "duration_ms": 812},
        bq_client=client,
    )
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Run Mode Context
# ============================================================================
# Module-level flag for dry-run mode, set once at CLI entry.
# ============================================================================

_DRY_RUN_MODE = False


def set_run_mode(*, dry_run: bool = False) -> None:
    """Set the run mode for event_client operations.

    Args:
        dry_run: If True, skip all BigQuery writes and log what would happen
    """
    global _DRY_RUN_MODE
    _DRY_RUN_MODE = dry_run


def reset_run_mode() -> None:
    """Reset run mode to defaults (for testing)."""
    global _DRY_RUN_MODE
    _DRY_RUN_MODE = False


# ============================================================================
# log_event - Event Logging
# ============================================================================

def log_event(
    *,
    event_type: str,
    source_system: str,
    correlation_id: str,
    bq_client,
    status: str = "ok",
    dataset: Optional[str] = None,
    error_message: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Write an event envelope to the event_log table.

    Args:
        event_type: Type of event (e.g., "handler.invocation", "handler.exception")
        source_system: Resource type that emitted the event
        correlation_id: Bearer token of the logical operation
        bq_client: google.cloud.bigquery.Client instance
        status: Event status ("ok" | "failed")
        dataset: BigQuery dataset (defaults to EVENTS_BQ_DATASET)
        error_message: Human-readable error summary if status="failed"
        payload: Optional small telemetry dict

    Raises:
        ValueError: If required fields are invalid
        RuntimeError: If the BigQuery write fails or no dataset is configured
    """
    if not event_type or not isinstance(event_type, str):
        raise ValueError("event_type must be a non-empty string")
    if not source_system or not isinstance(source_system, str):
        raise ValueError("source_system must be a non-empty string")
    if not correlation_id or not isinstance(correlation_id, str):
        raise ValueError("correlation_id must be a non-empty string")

    if _DRY_RUN_MODE:
        logger.info(f"[DRY-RUN] Would log event {event_type} for {source_system} status={status}")
        if payload:
            logger.debug(f"[DRY-RUN] Event payload: {payload}")
        return

    envelope = {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "source_system": source_system,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "correlation_id": correlation_id,
    }
    if error_message:
        envelope["error_message"] = error_message
    if payload is not None:
        envelope["payload"] = json.dumps(payload)

    table_ref = _get_table_ref(dataset)
    errors = bq_client.insert_rows_json(table_ref, [envelope])

    if errors:
        raise RuntimeError(f"event_log insert failed: {errors}")


def _get_table_ref(dataset: Optional[str] = None) -> str:
    """
    Get the fully-qualified event_log table reference.

    Raises:
        RuntimeError: If no dataset is given and EVENTS_BQ_DATASET is missing
    """
    dataset = dataset or os.environ.get("EVENTS_BQ_DATASET")

    if not dataset:
        raise RuntimeError("Missing required environment variable: EVENTS_BQ_DATASET")

    return f"{dataset}.event_log"
