"""
CLI interface for provocation.

Runs single host invocations locally against in-memory collaborators and
validates resource models against a resource schema.
"""

import importlib
import inspect
import json
import sys
import time
from pathlib import Path
from typing import Any, Optional

import click

from provocation import __version__


def load_handler(handler_path: str) -> Any:
    """Load a handler by "module:attr" path.

    Classes are instantiated with no arguments; functions and handler
    instances are returned as-is.

    Raises:
        ValueError: If the path is malformed
        ImportError: If the module is not found
        AttributeError: If the attribute is not found in the module
        TypeError: If the attribute is not callable
    """
    if ":" not in handler_path:
        raise ValueError(f"Handler path must be 'module:attr', got: {handler_path}")

    module_path, attr = handler_path.rsplit(":", 1)
    module = importlib.import_module(module_path)
    handler = getattr(module, attr)

    if inspect.isclass(handler):
        handler = handler()
    if not callable(handler) and not hasattr(handler, "invoke"):
        raise TypeError(f"Handler {handler_path} is not callable")
    return handler


def _read_json(source: str) -> Any:
    if source == "-":
        return json.loads(sys.stdin.read())
    return json.loads(Path(source).read_text())


@click.group()
@click.version_option(version=__version__, prog_name="provocation")
@click.pass_context
def main(ctx):
    """
    provocation - Invocation runtime for long-running resource operations.
    """
    from provocation.config import load_config

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config()
    except (FileNotFoundError, ValueError) as e:
        # Commands fall back to their own options when no config is present.
        ctx.obj["config_error"] = str(e)


def _resolve_schema(ctx, schema: Optional[Path]) -> Optional[dict]:
    from provocation.config import load_schema

    if schema is not None:
        return load_schema(schema)
    config = ctx.obj.get("config")
    if config is not None and config.get_schema_path() is not None:
        return load_schema(config.get_schema_path())
    return None


@main.command()
@click.argument("payload")
@click.option("--handler", "handler_path", required=True, help="Handler as module:attr")
@click.option("--schema", type=click.Path(exists=True, path_type=Path), help="Resource schema JSON file")
@click.option("--budget-seconds", type=int, default=900, show_default=True, help="Host time budget")
@click.option("--function-arn", default=None, help="Target recorded on external timers")
@click.option("--dry-run", is_flag=True, help="Skip metric writes")
@click.option("--log-format", type=click.Choice(["structured", "pretty"]), default=None)
@click.pass_context
def invoke(ctx, payload, handler_path, schema, budget_seconds, function_arn, dry_run, log_format):
    """Run one host invocation of PAYLOAD (file path or - for stdin)."""
    from provocation.budget import TimeBudget
    from provocation.callback import InMemoryCallbackReporter
    from provocation.orchestrator import InvocationOrchestrator
    from provocation.scheduler import InMemoryTimerBackend, ResumeScheduler
    from provocation.stack_clients import event_client
    from provocation.utils import console, format_duration, setup_logging

    config = ctx.obj.get("config")
    setup_logging(
        log_file=config.get_log_file_path() if config else None,
        log_level=config.log_level if config else "INFO",
        log_format=log_format or (config.log_format if config else "pretty"),
    )
    event_client.set_run_mode(dry_run=dry_run)

    if dry_run:
        click.echo("=" * 50)
        click.echo("=== DRY RUN MODE === (no metric writes)")
        click.echo("=" * 50)

    try:
        handler = load_handler(handler_path)
        raw = _read_json(payload)
        resource_schema = _resolve_schema(ctx, schema)
    except (ValueError, ImportError, AttributeError, TypeError, OSError) as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)

    reporter = InMemoryCallbackReporter()
    backend = InMemoryTimerBackend()
    orchestrator = InvocationOrchestrator(
        handler,
        resource_schema,
        callback_reporter=reporter,
        scheduler=ResumeScheduler(backend),
        scrub_temp_dir=False,
    )

    start = time.monotonic()
    response = orchestrator.handle(raw, TimeBudget.fixed(budget_seconds * 1000), function_arn)
    duration = time.monotonic() - start

    for report in reporter.reports:
        line = f"  {report.previous_status.value} -> {report.status.value}"
        if report.error_code:
            line += f" ({report.error_code.value})"
        console.print(line)
    for timer in backend.timers.values():
        console.print(f"  timer {timer.rule_name} in {timer.delay_minutes} minute(s)")

    click.echo(json.dumps(response.to_dict(), indent=2, default=str))
    console.print(f"Completed in {format_duration(duration)}")

    if response.operation_status.value == "FAILED":
        raise SystemExit(1)


@main.command()
@click.argument("model", type=click.Path(exists=True, path_type=Path))
@click.option("--schema", type=click.Path(exists=True, path_type=Path), help="Resource schema JSON file")
@click.pass_context
def validate(ctx, model, schema):
    """Validate the resource MODEL JSON file against the resource schema."""
    from provocation.validator import JsonSchemaValidator, build_validation_message

    try:
        resource_schema = _resolve_schema(ctx, schema)
    except (ValueError, OSError) as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)
    if resource_schema is None:
        click.echo("✗ No schema given and none configured", err=True)
        raise SystemExit(1)

    try:
        payload = json.loads(model.read_text())
    except (ValueError, OSError) as e:
        click.echo(f"✗ Could not read model {model}: {e}", err=True)
        raise SystemExit(1)

    violations = JsonSchemaValidator().validate(payload, resource_schema)
    if not violations:
        click.echo("✓ Model is valid")
        return

    click.echo(build_validation_message(violations), err=True)
    raise SystemExit(1)


if __name__ == "__main__":
    main()
