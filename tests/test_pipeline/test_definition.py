"""Tests for the Step Functions definition builder."""

import json

import pytest

from orgpipe.config import Settings
from orgpipe.pipeline.definition import (
    ALL_STAGES,
    FAIL_STATE,
    MAP_STATE,
    SUCCEED_STATE,
    RetryPolicy,
    build_definition,
    function_resources,
)

PREFIX = "arn:aws:lambda:us-west-2:123456789012:function:"


@pytest.fixture
def definition() -> dict:
    return build_definition(function_resources(PREFIX))


class TestRetryPolicy:
    def test_defaults(self):
        assert RetryPolicy().to_asl() == [
            {
                "ErrorEquals": ["States.ALL"],
                "IntervalSeconds": 2,
                "MaxAttempts": 3,
                "BackoffRate": 2.0,
            }
        ]

    def test_delay_is_exponential(self):
        policy = RetryPolicy()
        assert [policy.delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_interval_is_at_least_one_second(self):
        assert RetryPolicy(interval_seconds=0.2).to_asl()[0]["IntervalSeconds"] == 1

    def test_from_settings(self):
        settings = Settings(retry_max_attempts=5, retry_interval_seconds=1.0, retry_backoff_rate=3.0)
        assert RetryPolicy.from_settings(settings) == RetryPolicy(5, 1.0, 3.0)


class TestBuildDefinition:
    def test_starts_at_provider_endpoint(self, definition):
        assert definition["StartAt"] == "ProviderEndpoint"
        assert definition["Comment"] == "State machine for processing provider data"

    def test_linear_chain_with_status_checks(self, definition):
        states = definition["States"]
        chain = [("ProviderEndpoint", "DecryptionHandler"), ("DecryptionHandler", "ExtractOrgs"),
                 ("ExtractOrgs", MAP_STATE)]
        for state, next_state in chain:
            assert states[state]["Type"] == "Task"
            assert states[state]["Next"] == f"Check{state}"
            check = states[f"Check{state}"]
            assert check["Type"] == "Choice"
            assert check["Choices"] == [
                {"Variable": "$.statusCode", "NumericEquals": 200, "Next": next_state}
            ]
            assert check["Default"] == FAIL_STATE

    def test_resources(self, definition):
        states = definition["States"]
        assert states["ProviderEndpoint"]["Resource"] == f"{PREFIX}providerEndpoint"
        assert states["PrepareDataToFiles"]["Resource"] == f"{PREFIX}prepareDataToFiles"
        fetch = states[MAP_STATE]["Iterator"]["States"]["EntityFetchHandler"]
        assert fetch["Resource"] == f"{PREFIX}entityFetchHandler"
        assert fetch["End"] is True

    def test_map_state(self, definition):
        map_state = definition["States"][MAP_STATE]
        assert map_state["Type"] == "Map"
        assert map_state["ItemsPath"] == "$.body.orgIds"
        assert map_state["MaxConcurrency"] == 10
        assert map_state["Next"] == "PrepareDataToFiles"
        assert map_state["Iterator"]["StartAt"] == "EntityFetchHandler"

    def test_writer_wraps_batch(self, definition):
        writer = definition["States"]["PrepareDataToFiles"]
        assert writer["Parameters"] == {"batchResults.$": "$"}

    def test_rejected_batch_fails_the_run(self, definition):
        states = definition["States"]
        writer = states["PrepareDataToFiles"]
        assert "End" not in writer
        assert writer["Next"] == "CheckPrepareDataToFiles"

        check = states["CheckPrepareDataToFiles"]
        assert check["Type"] == "Choice"
        assert check["Choices"] == [
            {"Variable": "$.statusCode", "NumericEquals": 200, "Next": SUCCEED_STATE}
        ]
        assert check["Default"] == FAIL_STATE
        assert states[SUCCEED_STATE] == {"Type": "Succeed"}

    def test_only_terminal_states_end(self, definition):
        states = definition["States"]
        ending = [name for name, state in states.items() if state.get("End")]
        assert ending == []
        assert {name for name, state in states.items() if state["Type"] in {"Succeed", "Fail"}} == {
            SUCCEED_STATE,
            FAIL_STATE,
        }

    def test_fail_state_uses_error_payload(self, definition):
        assert definition["States"][FAIL_STATE] == {
            "Type": "Fail",
            "ErrorPath": "$.body.errorType",
            "CausePath": "$.body.message",
        }

    def test_every_task_and_map_retries(self, definition):
        states = definition["States"]
        retrying = [name for name, state in states.items() if state["Type"] in {"Task", "Map"}]
        assert len(retrying) == 5
        for name in retrying:
            assert states[name]["Retry"] == RetryPolicy().to_asl()
        assert states[MAP_STATE]["Iterator"]["States"]["EntityFetchHandler"]["Retry"]

    def test_custom_comment(self):
        definition = build_definition(function_resources(PREFIX), comment="OrgSync")
        assert definition["Comment"] == "OrgSync"

    def test_custom_policy_and_concurrency(self):
        definition = build_definition(
            function_resources(PREFIX), retry=RetryPolicy(max_attempts=1), max_concurrency=4
        )
        assert definition["States"][MAP_STATE]["MaxConcurrency"] == 4
        assert definition["States"]["ExtractOrgs"]["Retry"][0]["MaxAttempts"] == 1

    def test_missing_resource(self):
        resources = function_resources(PREFIX)
        del resources["extractOrgs"]

        with pytest.raises(KeyError, match="extractOrgs"):
            build_definition(resources)

    def test_is_json_serializable(self, definition):
        assert json.loads(json.dumps(definition)) == definition


def test_function_resources_cover_every_stage():
    resources = function_resources("x-")
    assert resources == {spec.function_name: f"x-{spec.function_name}" for spec in ALL_STAGES}
    assert len(resources) == 5
