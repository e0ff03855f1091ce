"""
Request schemas - the inbound operation request and its resume context.

OperationRequest is parsed from the raw host payload (camelCase JSON).
ResumeContext is the persisted state threaded between host invocations
of one logical operation.
ResourceHandlerRequest is the subset of the request handlers actually need.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .action import Action


def _terminal(message: str) -> Exception:
    from provocation.errors import TerminalError
    return TerminalError(message)


@dataclass(frozen=True)
class Credentials:
    """Temporary AWS-style credentials passed in by the caller."""
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    def __repr__(self) -> str:
        return f"Credentials(access_key_id={self.access_key_id[:4]}****)"

    def to_dict(self) -> dict[str, Any]:
        result = {
            "accessKeyId": self.access_key_id,
            "secretAccessKey": self.secret_access_key,
        }
        if self.session_token is not None:
            result["sessionToken"] = self.session_token
        return result

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["Credentials"]:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise _terminal("Credentials must be an object")
        if not data.get("accessKeyId") or not data.get("secretAccessKey"):
            raise _terminal("Credentials require accessKeyId and secretAccessKey")
        return cls(
            access_key_id=data["accessKeyId"],
            secret_access_key=data["secretAccessKey"],
            session_token=data.get("sessionToken"),
        )


@dataclass
class ResumeContext:
    """
    State carried from one host invocation to the next.

    Attributes:
        invocation: Re-invocation counter (0 on the first invocation)
        callback_context: Opaque handler state, never inspected here
        rule_name: Name of the timer rule that triggered this invocation
        target_id: Target id of that timer rule
    """
    invocation: int = 0
    callback_context: Optional[dict[str, Any]] = None
    rule_name: Optional[str] = None
    target_id: Optional[str] = None

    def __post_init__(self):
        if self.invocation < 0:
            raise ValueError("invocation must be >= 0")

    @property
    def has_trigger(self) -> bool:
        return bool(self.rule_name and self.rule_name.strip())

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"invocation": self.invocation}
        if self.callback_context is not None:
            result["callbackContext"] = self.callback_context
        if self.rule_name is not None:
            result["cloudWatchEventsRuleName"] = self.rule_name
        if self.target_id is not None:
            result["cloudWatchEventsTargetId"] = self.target_id
        return result

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["ResumeContext"]:
        if data is None:
            return None
        return cls(
            invocation=int(data.get("invocation", 0)),
            callback_context=data.get("callbackContext"),
            rule_name=data.get("cloudWatchEventsRuleName"),
            target_id=data.get("cloudWatchEventsTargetId"),
        )


@dataclass
class RequestData:
    """Resource payloads and credentials for one request."""
    platform_credentials: Optional[Credentials] = None
    caller_credentials: Optional[Credentials] = None
    provider_credentials: Optional[Credentials] = None
    provider_log_group_name: Optional[str] = None
    logical_resource_id: Optional[str] = None
    resource_properties: Optional[dict[str, Any]] = None
    previous_resource_properties: Optional[dict[str, Any]] = None
    stack_tags: dict[str, str] = field(default_factory=dict)
    previous_stack_tags: dict[str, str] = field(default_factory=dict)
    system_tags: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, creds in (
            ("platformCredentials", self.platform_credentials),
            ("callerCredentials", self.caller_credentials),
            ("providerCredentials", self.provider_credentials),
        ):
            if creds is not None:
                result[key] = creds.to_dict()
        if self.provider_log_group_name is not None:
            result["providerLogGroupName"] = self.provider_log_group_name
        if self.logical_resource_id is not None:
            result["logicalResourceId"] = self.logical_resource_id
        if self.resource_properties is not None:
            result["resourceProperties"] = self.resource_properties
        if self.previous_resource_properties is not None:
            result["previousResourceProperties"] = self.previous_resource_properties
        if self.stack_tags:
            result["stackTags"] = self.stack_tags
        if self.previous_stack_tags:
            result["previousStackTags"] = self.previous_stack_tags
        if self.system_tags:
            result["systemTags"] = self.system_tags
        return result

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["RequestData"]:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise _terminal("requestData must be an object")
        return cls(
            platform_credentials=Credentials.from_dict(data.get("platformCredentials")),
            caller_credentials=Credentials.from_dict(data.get("callerCredentials")),
            provider_credentials=Credentials.from_dict(data.get("providerCredentials")),
            provider_log_group_name=data.get("providerLogGroupName"),
            logical_resource_id=data.get("logicalResourceId"),
            resource_properties=data.get("resourceProperties"),
            previous_resource_properties=data.get("previousResourceProperties"),
            stack_tags=dict(data.get("stackTags") or {}),
            previous_stack_tags=dict(data.get("previousStackTags") or {}),
            system_tags=dict(data.get("systemTags") or {}),
        )


@dataclass
class OperationRequest:
    """
    Inbound request for one host invocation.

    Attributes:
        action: Lifecycle action to perform
        bearer_token: Opaque id correlating every invocation of one operation
        resource_type: Resource type name (e.g. Acme::Storage::Bucket)
        response_endpoint: Callback endpoint for progress reports
        aws_account_id: Account the resource lives in
        region: Region the resource lives in
        resource_type_version: Registered version of the resource type
        next_token: Pagination token (LIST only)
        stack_id: Owning stack, if any
        request_data: Payloads and credentials
        resume_context: Present on re-invocations
    """
    action: Action
    bearer_token: str
    resource_type: Optional[str] = None
    response_endpoint: Optional[str] = None
    aws_account_id: Optional[str] = None
    region: Optional[str] = None
    resource_type_version: Optional[str] = None
    next_token: Optional[str] = None
    stack_id: Optional[str] = None
    request_data: Optional[RequestData] = None
    resume_context: Optional[ResumeContext] = None

    @property
    def invocation(self) -> int:
        return self.resume_context.invocation if self.resume_context else 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire format."""
        result: dict[str, Any] = {
            "action": self.action.value,
            "bearerToken": self.bearer_token,
        }
        optional = {
            "resourceType": self.resource_type,
            "responseEndpoint": self.response_endpoint,
            "awsAccountId": self.aws_account_id,
            "region": self.region,
            "resourceTypeVersion": self.resource_type_version,
            "nextToken": self.next_token,
            "stackId": self.stack_id,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        if self.request_data is not None:
            result["requestData"] = self.request_data.to_dict()
        if self.resume_context is not None:
            result["requestContext"] = self.resume_context.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OperationRequest":
        """
        Parse the raw host payload.

        Raises:
            TerminalError: If the payload is not a request object
        """
        if not isinstance(data, dict):
            raise _terminal("Invalid request object received")
        if not data.get("action"):
            raise _terminal("Request is missing an action")
        if not data.get("bearerToken"):
            raise _terminal("Request is missing a bearer token")
        try:
            action = Action.from_string(data["action"])
        except ValueError as e:
            raise _terminal(str(e)) from e

        return cls(
            action=action,
            bearer_token=data["bearerToken"],
            resource_type=data.get("resourceType"),
            response_endpoint=data.get("responseEndpoint"),
            aws_account_id=data.get("awsAccountId"),
            region=data.get("region"),
            resource_type_version=data.get("resourceTypeVersion"),
            next_token=data.get("nextToken"),
            stack_id=data.get("stackId"),
            request_data=RequestData.from_dict(data.get("requestData")),
            resume_context=ResumeContext.from_dict(data.get("requestContext")),
        )


@dataclass
class ResourceHandlerRequest:
    """
    The request as seen by a handler.

    Only the items a handler needs: no platform credentials, no callback
    endpoint, no scheduling bookkeeping.
    """
    client_request_token: str
    desired_resource_state: Any = None
    previous_resource_state: Any = None
    desired_resource_tags: dict[str, str] = field(default_factory=dict)
    previous_resource_tags: dict[str, str] = field(default_factory=dict)
    system_tags: dict[str, str] = field(default_factory=dict)
    aws_account_id: Optional[str] = None
    region: Optional[str] = None
    resource_type: Optional[str] = None
    resource_type_version: Optional[str] = None
    logical_resource_identifier: Optional[str] = None
    next_token: Optional[str] = None
