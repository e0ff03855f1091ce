"""
Invocation Orchestrator - the control loop of the runtime.

The orchestrator implements:
- Structural validation of the inbound host payload
- Resume bookkeeping (cleanup of the timer that triggered this invocation)
- First-invocation acknowledgement for mutating actions
- Raw-payload schema validation for mutating actions
- The dispatch loop: handler call, classification, progress report, and the
  continue-locally vs suspend decision
- Exactly one OrchestratorResponse per host invocation

Execution flow:
1. Parse the raw payload into an OperationRequest
2. Check the callback endpoint, platform credentials and resource properties
3. Initialise collaborators with the platform credentials and endpoint
4. Clean up the previous timer, acknowledge, publish the invocation metric
5. Validate the raw resource model (mutating actions)
6. Loop: invoke handler -> report -> ResumeScheduler.schedule()
7. Mirror the final ProgressEvent back to the host

Nothing escapes handle() as a raw exception: every error is converted into
a FAILED ProgressEvent with a code from the closed HandlerErrorCode set.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, TYPE_CHECKING, Union

from provocation.budget import TimeBudget
from provocation.callback import CallbackReporter
from provocation.classify import classify_exception, describe_failure
from provocation.credentials import SessionCredentialsProvider
from provocation.errors import FileScrubError, TerminalError, ValidationError
from provocation.handlers import ResourceHandler, as_handler
from provocation.metrics import MetricsPublisher, MetricsPublisherProxy
from provocation.proxy import ClientProxy
from provocation.scheduler import ResumeScheduler
from provocation.schemas import (
    Action,
    HandlerErrorCode,
    OperationRequest,
    OperationStatus,
    OrchestratorResponse,
    ProgressEvent,
    ResourceHandlerRequest,
)
from provocation.utils import sanitize_error_message, scrub_directory
from provocation.validator import JsonSchemaValidator, Validator, build_validation_message

if TYPE_CHECKING:
    from provocation.config import ProvocationConfig

logger = logging.getLogger(__name__)

RawPayload = Union[dict[str, Any], str, bytes, bytearray, None]


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _load_payload(raw_payload: RawPayload) -> dict[str, Any]:
    """
    Turn the raw host input into a JSON object.

    Raises:
        TerminalError: If nothing was received or the input is not a JSON object
    """
    if raw_payload is None:
        raise TerminalError("No request object received")
    if isinstance(raw_payload, (bytes, bytearray)):
        try:
            raw_payload = raw_payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TerminalError("Request payload is not valid UTF-8") from e
    if isinstance(raw_payload, str):
        try:
            raw_payload = json.loads(raw_payload)
        except json.JSONDecodeError as e:
            raise TerminalError(f"Request payload is not valid JSON: {e.msg}") from e
    if not isinstance(raw_payload, dict):
        raise TerminalError("Invalid request object received")
    return raw_payload


def _recover_bearer_token(payload: Optional[dict[str, Any]]) -> Optional[str]:
    """Best-effort bearer token for requests that could not be parsed."""
    if isinstance(payload, dict):
        token = payload.get("bearerToken")
        if isinstance(token, str) and token:
            return token
    return None


class InvocationOrchestrator:
    """
    Composes handler, callback reporter, resume scheduler, validator and
    metrics into the invocation control loop.

    Collaborators are constructed once and reused across the sequential host
    invocations served by one process; per-request state (credentials,
    endpoint) is refreshed at the start of each invocation.

    Usage:
        orchestrator = InvocationOrchestrator(
            handler=registry,
            schema=resource_schema,
            callback_reporter=InMemoryCallbackReporter(),
            scheduler=ResumeScheduler(InMemoryTimerBackend()),
        )
        response = orchestrator.handle(payload, TimeBudget.fixed(900_000))
    """

    def __init__(
        self,
        handler: Union[ResourceHandler, Callable[..., ProgressEvent]],
        schema: Optional[dict[str, Any]] = None,
        *,
        callback_reporter: CallbackReporter,
        scheduler: ResumeScheduler,
        validator: Optional[Validator] = None,
        metrics: Optional[MetricsPublisher] = None,
        platform_credentials: Optional[SessionCredentialsProvider] = None,
        resource_tags: Optional[Callable[[Any], Optional[dict[str, str]]]] = None,
        model_factory: Optional[Callable[[dict[str, Any]], Any]] = None,
        scrub_temp_dir: Union[bool, Path] = False,
    ):
        """
        Initialize the orchestrator.

        Args:
            handler: ResourceHandler, HandlerRegistry or plain invoke function
            schema: Resource schema the raw model is validated against
            callback_reporter: Sink for status transitions
            scheduler: Resume scheduler (local wait vs external timer)
            validator: Schema validator (default: JsonSchemaValidator)
            metrics: Metrics publisher (default: empty MetricsPublisherProxy)
            platform_credentials: Shared provider the platform credentials of
                each request are handed to
            resource_tags: Returns the tags a resource model defines for itself
            model_factory: Builds the typed model handed to the handler from
                the raw resource properties
            scrub_temp_dir: True to scrub the temp dir before each invocation,
                or the directory to scrub
        """
        self.handler = as_handler(handler)
        self.schema = schema
        self.callback_reporter = callback_reporter
        self.scheduler = scheduler
        self.validator = validator or JsonSchemaValidator()
        self.metrics = metrics or MetricsPublisherProxy()
        self.platform_credentials = platform_credentials
        self.resource_tags = resource_tags
        self.model_factory = model_factory
        self.scrub_temp_dir = scrub_temp_dir

    @classmethod
    def create_default(
        cls,
        handler: Union[ResourceHandler, Callable[..., ProgressEvent]],
        schema: Optional[dict[str, Any]],
        config: "ProvocationConfig",
        bq_client=None,
        **kwargs: Any,
    ) -> "InvocationOrchestrator":
        """
        Build an orchestrator wired to the AWS transports.

        Progress reports go through CloudFormation, timers through CloudWatch
        Events, both signed with the platform credentials of each request.
        Metrics go to the BigQuery event_log when enabled.

        Args:
            handler: Resource handler
            schema: Resource schema
            config: Loaded ProvocationConfig
            bq_client: BigQuery client (built on demand when metrics are enabled)
            **kwargs: Passed through to the constructor
        """
        from provocation.metrics import EventLogMetricsPublisher
        from provocation.stack_clients.cloudformation import CloudFormationCallbackReporter
        from provocation.stack_clients.cloudwatch_events import CloudWatchEventsTimerBackend

        platform = SessionCredentialsProvider(region=config.region)
        metrics = MetricsPublisherProxy()
        if config.metrics_enabled:
            if bq_client is None:
                from google.cloud import bigquery
                bq_client = bigquery.Client()
            metrics.add_publisher(EventLogMetricsPublisher(bq_client, dataset=config.events_dataset))

        kwargs.setdefault("scrub_temp_dir", config.scrub_temp_dir)
        return cls(
            handler,
            schema,
            callback_reporter=CloudFormationCallbackReporter(platform),
            scheduler=ResumeScheduler(CloudWatchEventsTimerBackend(platform)),
            metrics=metrics,
            platform_credentials=platform,
            **kwargs,
        )

    # =========================================================================
    # Entry point
    # =========================================================================

    def handle(
        self,
        raw_payload: RawPayload,
        budget: TimeBudget,
        invoked_function_arn: Optional[str] = None,
    ) -> OrchestratorResponse:
        """
        Process one host invocation.

        Args:
            raw_payload: Request as a dict, JSON string or JSON bytes
            budget: Remaining wall-clock budget of this host invocation
            invoked_function_arn: Target external timers re-invoke

        Returns:
            Exactly one OrchestratorResponse, on every path
        """
        self._scrub_files()

        payload: Optional[dict[str, Any]] = None
        request: Optional[OperationRequest] = None
        try:
            payload = _load_payload(raw_payload)
            request = OperationRequest.from_dict(payload)
            event = self._process_invocation(request, budget, invoked_function_arn)
        except ValidationError as e:
            message = e.full_message()
            message = (
                f"Model validation failed ({message})" if message
                else "Model validation failed with unknown cause."
            )
            action = request.action if request else None
            self._publish_exception(action, e, HandlerErrorCode.INVALID_REQUEST)
            event = ProgressEvent.failed(HandlerErrorCode.INVALID_REQUEST, message)
        except Exception as e:
            logger.error(
                "Invocation failed: %s",
                sanitize_error_message(e),
                exc_info=True,
                extra=self._log_extra(request),
            )
            event = ProgressEvent.default_failure_handler(e, HandlerErrorCode.INTERNAL_FAILURE)
            if request is not None and request.request_data is not None and request.action.is_mutating:
                event.resource_model = request.request_data.resource_properties
            if request is not None:
                self._publish_exception(request.action, e, HandlerErrorCode.INTERNAL_FAILURE)

        bearer_token = request.bearer_token if request else _recover_bearer_token(payload)
        return OrchestratorResponse.from_progress(event, bearer_token)

    # =========================================================================
    # Invocation processing
    # =========================================================================

    def _process_invocation(
        self,
        request: OperationRequest,
        budget: TimeBudget,
        function_arn: Optional[str],
    ) -> ProgressEvent:
        self._check_structure(request)
        self._initialise_runtime(request)

        handler_request = self.transform(request)
        action = request.action
        token = request.bearer_token

        self.scheduler.cleanup(request.resume_context)

        if action.is_mutating and request.invocation == 0:
            self.callback_reporter.report(
                token, None, OperationStatus.IN_PROGRESS, OperationStatus.PENDING
            )

        self.metrics.publish_invocation_metric(_utcnow(), action)

        if action.is_mutating:
            failure = self._validate_model(request)
            if failure is not None:
                return failure

        proxy = None
        caller_credentials = request.request_data.caller_credentials
        if caller_credentials is not None:
            proxy = ClientProxy(
                caller_credentials,
                budget,
                region=request.region,
                first_invocation=request.resume_context is None,
            )

        while True:
            context = request.resume_context
            callback_context = context.callback_context if context else None

            event = self._invoke_and_classify(proxy, handler_request, request, callback_context)

            if action.is_mutating:
                self.callback_reporter.report(
                    token,
                    event.error_code,
                    event.status,
                    OperationStatus.IN_PROGRESS,
                    event.resource_model,
                    event.message,
                )
            elif event.status == OperationStatus.IN_PROGRESS:
                raise TerminalError("READ and LIST handlers must return synchronously.")

            was_in_progress = event.status == OperationStatus.IN_PROGRESS
            if self.scheduler.schedule(request, event, budget, function_arn):
                continue

            if was_in_progress and event.status == OperationStatus.FAILED:
                self.callback_reporter.report(
                    token,
                    event.error_code,
                    event.status,
                    OperationStatus.IN_PROGRESS,
                    event.resource_model,
                    event.message,
                )
            return event

    def _check_structure(self, request: OperationRequest) -> None:
        """
        Reject requests the runtime cannot act on.

        Raises:
            TerminalError: On any missing structural element
        """
        if request.request_data is None:
            raise TerminalError("Invalid request object received")
        if request.action.is_mutating and request.request_data.resource_properties is None:
            raise TerminalError("Invalid resource properties object received")
        if not request.response_endpoint:
            raise TerminalError("No callback endpoint received")
        if request.request_data.platform_credentials is None:
            raise TerminalError("Missing required platform credentials")

    def _initialise_runtime(self, request: OperationRequest) -> None:
        """Hand this request's platform credentials and endpoint to the collaborators."""
        if self.platform_credentials is not None:
            self.platform_credentials.set_credentials(
                request.request_data.platform_credentials, region=request.region
            )
        self.metrics.bind(
            resource_type=request.resource_type,
            account_id=request.aws_account_id,
            correlation_id=request.bearer_token,
        )
        self.callback_reporter.set_endpoint(request.response_endpoint, request.region)
        self.callback_reporter.refresh_client()
        self.scheduler.refresh_client()

    def _validate_model(self, request: OperationRequest) -> Optional[ProgressEvent]:
        """
        Validate the raw resource properties against the resource schema.

        Returns:
            A FAILED/InvalidRequest event (already reported), or None if valid
        """
        if self.schema is None:
            raise TerminalError("No resource schema configured for mutating actions")

        violations = self.validator.validate(
            request.request_data.resource_properties, self.schema
        )
        if not violations:
            return None

        message = build_validation_message(violations)
        error = ValidationError(
            message,
            keyword=violations[0].keyword,
            schema_pointer=violations[0].pointer,
            causes=[ValidationError(v.message, v.keyword, v.pointer) for v in violations],
        )
        logger.info(
            "Resource model failed validation with %d violation(s)",
            len(violations),
            extra=self._log_extra(request),
        )
        self._publish_exception(request.action, error, HandlerErrorCode.INVALID_REQUEST)
        self.callback_reporter.report(
            request.bearer_token,
            HandlerErrorCode.INVALID_REQUEST,
            OperationStatus.FAILED,
            OperationStatus.IN_PROGRESS,
            None,
            message,
        )
        return ProgressEvent.failed(HandlerErrorCode.INVALID_REQUEST, message)

    def _invoke_and_classify(
        self,
        proxy: Optional[ClientProxy],
        handler_request: ResourceHandlerRequest,
        request: OperationRequest,
        callback_context: Optional[dict[str, Any]],
    ) -> ProgressEvent:
        """
        Call the handler once, mapping any error to a FAILED event.

        Exactly one duration metric is published per call.
        """
        action = request.action
        start = time.perf_counter()
        try:
            event = self.handler.invoke(proxy, handler_request, action, callback_context)
            if event is None:
                logger.info("Handler returned None", extra=self._log_extra(request))
                raise TerminalError("Handler failed to provide a response.")
            logger.info("Handler returned %s", event.status.value, extra=self._log_extra(request))
            return event
        except Exception as e:
            code, message = classify_exception(e)
            self._publish_exception(action, e, code)
            logger.error(
                "%s in a %s action on a %s: %s",
                describe_failure(e),
                action.value,
                request.resource_type,
                message,
                exc_info=code == HandlerErrorCode.INTERNAL_FAILURE,
                extra=self._log_extra(request),
            )
            return ProgressEvent.failed(code, message)
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            self.metrics.publish_duration_metric(_utcnow(), action, elapsed_ms)

    # =========================================================================
    # Request transformation
    # =========================================================================

    def transform(self, request: OperationRequest) -> ResourceHandlerRequest:
        """
        Build the request handed to the handler.

        Platform credentials, the callback endpoint and scheduling
        bookkeeping never reach the handler.
        """
        data = request.request_data
        return ResourceHandlerRequest(
            client_request_token=request.bearer_token,
            desired_resource_state=self._build_model(data.resource_properties),
            previous_resource_state=self._build_model(data.previous_resource_properties),
            desired_resource_tags=self.get_desired_resource_tags(request),
            previous_resource_tags=dict(data.previous_stack_tags),
            system_tags=dict(data.system_tags),
            aws_account_id=request.aws_account_id,
            region=request.region,
            resource_type=request.resource_type,
            resource_type_version=request.resource_type_version,
            logical_resource_identifier=data.logical_resource_id,
            next_token=request.next_token,
        )

    def get_desired_resource_tags(self, request: OperationRequest) -> dict[str, str]:
        """
        Stack tags merged with the tags the resource defines for itself.

        Resource-defined tags win over stack tags with the same key.
        """
        data = request.request_data
        tags = dict(data.stack_tags) if data else {}
        if self.resource_tags is not None and data is not None and data.resource_properties is not None:
            tags.update(self.resource_tags(data.resource_properties) or {})
        return tags

    def _build_model(self, properties: Optional[dict[str, Any]]) -> Any:
        if properties is None or self.model_factory is None:
            return properties
        return self.model_factory(properties)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _scrub_files(self) -> None:
        if not self.scrub_temp_dir:
            return
        directory = self.scrub_temp_dir if isinstance(self.scrub_temp_dir, Path) else None
        try:
            removed = scrub_directory(directory)
            logger.debug("Scrubbed %d temp entries", removed)
        except OSError as e:
            error = FileScrubError(f"Failed to scrub temp files: {sanitize_error_message(e)}")
            logger.warning(str(error))
            self._publish_exception(None, error, HandlerErrorCode.INTERNAL_FAILURE)

    def _publish_exception(
        self,
        action: Optional[Action],
        error: BaseException,
        error_code: HandlerErrorCode,
    ) -> None:
        try:
            self.metrics.publish_exception_metric(_utcnow(), action, error, error_code)
        except Exception as e:
            logger.warning("Failed to publish exception metric: %s", sanitize_error_message(e))

    @staticmethod
    def _log_extra(request: Optional[OperationRequest]) -> dict[str, Any]:
        if request is None:
            return {}
        return {"bearer_token": request.bearer_token, "action": request.action.value}


# =============================================================================
# Host adapters
# =============================================================================

def handle_stream(orchestrator: InvocationOrchestrator, input_stream, output_stream, context) -> None:
    """
    Stream-style host entry point.

    Reads the JSON request from input_stream and writes the response to
    output_stream exactly once.

    Args:
        orchestrator: Configured orchestrator
        input_stream: Binary stream with the JSON request (may be None)
        output_stream: Binary stream the JSON response is written to
        context: Host context exposing get_remaining_time_in_millis()
    """
    raw = input_stream.read() if input_stream is not None else None
    response = orchestrator.handle(
        raw,
        TimeBudget.from_context(context),
        getattr(context, "invoked_function_arn", None),
    )
    output_stream.write(json.dumps(response.to_dict(), default=str).encode("utf-8"))
    output_stream.flush()


def lambda_handler(orchestrator: InvocationOrchestrator) -> Callable[[Any, Any], dict[str, Any]]:
    """
    Build an AWS Lambda style handler(event, context) -> dict.

    Usage:
        handler = lambda_handler(InvocationOrchestrator.create_default(...))
    """
    def handler(event: Any, context: Any) -> dict[str, Any]:
        response = orchestrator.handle(
            event,
            TimeBudget.from_context(context),
            getattr(context, "invoked_function_arn", None),
        )
        return response.to_dict()

    return handler
