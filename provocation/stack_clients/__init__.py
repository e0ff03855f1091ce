"""
Stack clients for provocation.

This package contains the IO boundaries to external systems:
- cloudformation: Progress reports via RecordHandlerProgress
- cloudwatch_events: Re-invocation timers on CloudWatch Events rules
- event_client: Invocation telemetry to the BigQuery event_log
"""

__all__ = ["cloudformation", "cloudwatch_events", "event_client"]
