"""Declarative shape of the pipeline.

Builds the Amazon States Language document for the five-stage state
machine:

    ProviderEndpoint → DecryptionHandler → ExtractOrgs
        → ProcessOrgs (Map over $.body.orgIds, EntityFetchHandler per item)
        → PrepareDataToFiles ({"batchResults.$": "$"})

Every Task and the Map carry the same retry policy; handlers raise only
retryable error kinds, so the policy covers exactly those and Lambda
faults. Every Task outside the Map is followed by a Choice state that
stops the run with the stage's own error payload when it answers with a
non-200 statusCode. Non-retryable branch failures stay in the batch; the
writer rejects the batch as a whole and its Choice fails the run.

The local Orchestrator runs the same shape in-process.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from orgpipe.config import Settings
from orgpipe.pipeline.extractor import ITEMS_FIELD
from orgpipe.pipeline.writer import BATCH_FIELD


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy applied per stage.

    ``max_attempts`` follows ASL ``MaxAttempts``: retries after the first
    attempt, so a stage is called at most ``max_attempts + 1`` times.
    """

    max_attempts: int = 3
    interval_seconds: float = 2.0
    backoff_rate: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            interval_seconds=settings.retry_interval_seconds,
            backoff_rate=settings.retry_backoff_rate,
        )

    def delay(self, retry_number: int) -> float:
        """Seconds to wait before retry ``retry_number`` (1-based)."""
        return self.interval_seconds * self.backoff_rate ** (retry_number - 1)

    def to_asl(self) -> list[dict[str, Any]]:
        return [
            {
                "ErrorEquals": ["States.ALL"],
                "IntervalSeconds": max(1, round(self.interval_seconds)),
                "MaxAttempts": self.max_attempts,
                "BackoffRate": self.backoff_rate,
            }
        ]


@dataclass(frozen=True)
class StageSpec:
    """One Task state and the Lambda function behind it."""

    state: str
    function_name: str
    handler: str


LINEAR_STAGES: tuple[StageSpec, ...] = (
    StageSpec("ProviderEndpoint", "providerEndpoint", "orgpipe.handlers.provider_endpoint"),
    StageSpec("DecryptionHandler", "decryptionHandler", "orgpipe.handlers.decryption_handler"),
    StageSpec("ExtractOrgs", "extractOrgs", "orgpipe.handlers.extract_orgs"),
)
FETCH_STAGE = StageSpec(
    "EntityFetchHandler", "entityFetchHandler", "orgpipe.handlers.entity_fetch_handler"
)
WRITE_STAGE = StageSpec(
    "PrepareDataToFiles", "prepareDataToFiles", "orgpipe.handlers.prepare_data_to_files"
)
ALL_STAGES: tuple[StageSpec, ...] = (*LINEAR_STAGES, FETCH_STAGE, WRITE_STAGE)

MAP_STATE = "ProcessOrgs"
FAIL_STATE = "PipelineFailed"
SUCCEED_STATE = "PipelineSucceeded"
DEFAULT_COMMENT = "State machine for processing provider data"


def function_resources(prefix: str) -> dict[str, str]:
    """Map each function name to ``prefix + function_name``.

    With ``prefix="arn:aws:lambda:us-west-2:123456789012:function:"`` this
    yields full Lambda ARNs.
    """
    return {spec.function_name: f"{prefix}{spec.function_name}" for spec in ALL_STAGES}


def _status_check(next_state: str) -> dict[str, Any]:
    """Choice state: continue on a 200 envelope, otherwise fail the run."""
    return {
        "Type": "Choice",
        "Choices": [
            {
                "Variable": "$.statusCode",
                "NumericEquals": 200,
                "Next": next_state,
            }
        ],
        "Default": FAIL_STATE,
    }


def build_definition(
    resources: Mapping[str, str],
    retry: RetryPolicy | None = None,
    max_concurrency: int = 10,
    comment: str = DEFAULT_COMMENT,
) -> dict[str, Any]:
    """Build the state machine definition.

    Args:
        resources: Function name → Lambda ARN for every stage
        retry: Retry policy for every Task and the Map (default: 3 / 2s / x2)
        max_concurrency: Map MaxConcurrency
        comment: Top-level Comment of the document

    Returns:
        ASL document as a dict (``json.dumps`` it for the API)

    Raises:
        KeyError: If a stage has no resource
    """
    retry = retry or RetryPolicy()
    missing = [spec.function_name for spec in ALL_STAGES if spec.function_name not in resources]
    if missing:
        raise KeyError(f"No resource for stage functions: {', '.join(missing)}")

    states: dict[str, Any] = {}
    for index, spec in enumerate(LINEAR_STAGES):
        next_state = (
            LINEAR_STAGES[index + 1].state if index + 1 < len(LINEAR_STAGES) else MAP_STATE
        )
        check_state = f"Check{spec.state}"
        states[spec.state] = {
            "Type": "Task",
            "Resource": resources[spec.function_name],
            "Next": check_state,
            "Retry": retry.to_asl(),
        }
        states[check_state] = _status_check(next_state)

    states[MAP_STATE] = {
        "Type": "Map",
        "ItemsPath": f"$.body.{ITEMS_FIELD}",
        "MaxConcurrency": max_concurrency,
        "Next": WRITE_STAGE.state,
        "Retry": retry.to_asl(),
        "Iterator": {
            "StartAt": FETCH_STAGE.state,
            "States": {
                FETCH_STAGE.state: {
                    "Type": "Task",
                    "Resource": resources[FETCH_STAGE.function_name],
                    "End": True,
                    "Retry": retry.to_asl(),
                }
            },
        },
    }

    write_check = f"Check{WRITE_STAGE.state}"
    states[WRITE_STAGE.state] = {
        "Type": "Task",
        "Resource": resources[WRITE_STAGE.function_name],
        "Parameters": {f"{BATCH_FIELD}.$": "$"},
        "Next": write_check,
        "Retry": retry.to_asl(),
    }
    states[write_check] = _status_check(SUCCEED_STATE)
    states[SUCCEED_STATE] = {"Type": "Succeed"}
    states[FAIL_STATE] = {
        "Type": "Fail",
        "ErrorPath": "$.body.errorType",
        "CausePath": "$.body.message",
    }

    return {
        "Comment": comment,
        "StartAt": LINEAR_STAGES[0].state,
        "States": states,
    }
