"""Records passed between pipeline stages.

Each record converts to and from the camelCase JSON shape used at the stage
boundary (``to_dict`` / ``from_dict``). Parsing failures raise
MalformedInput so the stage can report them as a tagged failure.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

from orgpipe.errors import MalformedInput, PipelineError

JSONScalar = Union[None, bool, int, float, str]
JSONValue = Union[JSONScalar, list["JSONValue"], dict[str, "JSONValue"]]

SUCCESS_STATUS = 200
FAILURE_STATUS = 500

_PROVIDER_FIELDS = {
    "providerId",
    "resourceType",
    "providerName",
    "externalId",
    "secrets",
    "connectorParams",
    "orgs",
}


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-15T14:30:00.000Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _require_mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedInput(f"{what} must be an object, got {type(value).__name__}")
    return value


def _parameters(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    return dict(_require_mapping(value, what))


def _identifier(value: Any, what: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise MalformedInput(f"{what} must be a string, got {value!r}")
    text = str(value)
    if not text:
        raise MalformedInput(f"{what} must not be empty")
    return text


@dataclass
class EntityConfig:
    """One sub-entity (org) of a provider and its connector parameters."""

    entity_id: str
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "EntityConfig":
        data = _require_mapping(data, "org entry")
        if "orgId" not in data:
            raise MalformedInput("org entry is missing orgId")
        return cls(
            entity_id=_identifier(data["orgId"], "orgId"),
            parameters=_parameters(data.get("connectorParams"), "org connectorParams"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"orgId": self.entity_id, "connectorParams": dict(self.parameters)}


@dataclass
class ProviderRecord:
    """One provider's configuration snapshot.

    ``entities`` is None when the source record carried no ``orgs`` field;
    the extractor rejects that case. Keys the pipeline does not know about
    are kept in ``extra`` and written back unchanged.
    """

    provider_id: str | None
    resource_type: str | None = None
    provider_name: str | None = None
    external_id: str | None = None
    secret: str | None = None
    shared_parameters: dict[str, Any] = field(default_factory=dict)
    entities: list[EntityConfig] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "ProviderRecord":
        """Parse a provider record from its wire shape.

        Raises:
            MalformedInput: If the record or one of its orgs has the wrong shape
        """
        data = _require_mapping(data, "provider record")

        entities: list[EntityConfig] | None = None
        if "orgs" in data and data["orgs"] is not None:
            if not isinstance(data["orgs"], list):
                raise MalformedInput(
                    f"provider orgs must be a list, got {type(data['orgs']).__name__}"
                )
            entities = [EntityConfig.from_dict(org) for org in data["orgs"]]

        return cls(
            provider_id=data.get("providerId"),
            resource_type=data.get("resourceType"),
            provider_name=data.get("providerName"),
            external_id=data.get("externalId"),
            secret=data.get("secrets"),
            shared_parameters=_parameters(data.get("connectorParams"), "provider connectorParams"),
            entities=entities,
            extra={k: v for k, v in data.items() if k not in _PROVIDER_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "providerId": self.provider_id,
            "resourceType": self.resource_type,
            "providerName": self.provider_name,
            "externalId": self.external_id,
            "secrets": self.secret,
            "connectorParams": dict(self.shared_parameters),
        }
        if self.entities is not None:
            result["orgs"] = [entity.to_dict() for entity in self.entities]
        result.update(self.extra)
        return result


@dataclass
class ExtractedEntity:
    """Unit of work for one fan-out branch."""

    id: str
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "ExtractedEntity":
        data = _require_mapping(data, "entity")
        if "id" not in data:
            raise MalformedInput("entity is missing id")
        return cls(
            id=_identifier(data["id"], "entity id"),
            parameters=_parameters(data.get("connectorParams"), "entity connectorParams"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "connectorParams": dict(self.parameters)}


@dataclass
class FetchResult:
    """Outcome of one data API call for one entity."""

    entity_id: str
    parameters: dict[str, Any]
    payload: JSONValue
    fetched_at: str

    @classmethod
    def from_dict(cls, data: Any) -> "FetchResult":
        data = _require_mapping(data, "fetch result")
        for key in ("orgId", "timestamp"):
            if key not in data:
                raise MalformedInput(f"fetch result is missing {key}")
        return cls(
            entity_id=_identifier(data["orgId"], "orgId"),
            parameters=_parameters(data.get("connectorParams"), "fetch result connectorParams"),
            payload=data.get("payload"),
            fetched_at=_identifier(data["timestamp"], "timestamp"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "orgId": self.entity_id,
            "connectorParams": dict(self.parameters),
            "payload": self.payload,
            "timestamp": self.fetched_at,
        }


@dataclass
class StageResponse:
    """Tagged stage result: ``{"statusCode": ..., "body": ...}`` on the wire.

    Success bodies are the stage output. Failure bodies carry ``error``
    (stage summary), ``errorType`` (PipelineError kind), ``message`` and
    ``timestamp``.
    """

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return self.status_code == SUCCESS_STATUS

    @classmethod
    def success(cls, body: Any) -> "StageResponse":
        return cls(status_code=SUCCESS_STATUS, body=body)

    @classmethod
    def failure(cls, summary: str, error: PipelineError) -> "StageResponse":
        return cls(
            status_code=FAILURE_STATUS,
            body={
                "error": summary,
                "errorType": error.kind,
                "message": error.message,
                "timestamp": utc_timestamp(),
            },
        )

    @classmethod
    def from_dict(cls, data: Any) -> "StageResponse":
        data = _require_mapping(data, "stage response")
        if "statusCode" not in data or "body" not in data:
            raise MalformedInput("stage response must carry statusCode and body")
        status = data["statusCode"]
        if isinstance(status, bool) or not isinstance(status, int):
            raise MalformedInput(f"statusCode must be an integer, got {status!r}")
        return cls(status_code=status, body=data["body"])

    def to_dict(self) -> dict[str, Any]:
        return {"statusCode": self.status_code, "body": self.body}


def unwrap_envelope(event: Any) -> Any:
    """Return the body of a successful upstream envelope.

    Events without an envelope (a bare record) are returned unchanged.

    Raises:
        MalformedInput: If the upstream stage reported a failure
    """
    if isinstance(event, dict) and "statusCode" in event and "body" in event:
        response = StageResponse.from_dict(event)
        if not response.ok:
            body = response.body if isinstance(response.body, dict) else {}
            raise MalformedInput(
                f"upstream stage failed with status {response.status_code}: "
                f"{body.get('errorType', 'PipelineError')}: {body.get('message', response.body)}"
            )
        return response.body
    return event
