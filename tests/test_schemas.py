import pytest
from pydantic import ValidationError

from genui.schemas import AgentResponse, DataResult, Plan, RetryState


def test_plan_accepts_camel_case_and_coerces_unknowns():
    plan = Plan.model_validate({
        "intent": "Weather-Report",
        "keyEntities": ["Tokyo", "Tokyo", " weather "],
        "needsWebSearch": True,
        "interactivityType": "spin",
    })
    assert plan.intent == "fact"
    assert plan.interactivity_type == "animate"
    assert plan.key_entities == ["Tokyo", "weather"]
    assert plan.model_dump(by_alias=True)["needsWebSearch"] is True


def test_data_result_confidence_defaults_low():
    assert DataResult.model_validate({"data": [1], "confidence": "very"}).confidence == "low"
    assert DataResult.empty().data == {}


def test_component_response_payload():
    response = AgentResponse.component("def GeneratedComponent(): ...", "fact component", "example.com", {"a": 1})
    assert response.to_payload() == {
        "componentCode": "def GeneratedComponent(): ...",
        "summary": "fact component",
        "source": "example.com",
        "data": {"a": 1},
    }
    assert AgentResponse.from_payload(response.to_payload()) == response


def test_error_response_payload():
    response = AgentResponse.failure("Planning failed: boom")
    assert response.is_error
    assert response.to_payload() == {"textResponse": "Planning failed: boom", "error": True}
    assert AgentResponse.from_payload(response.to_payload()) == response


@pytest.mark.parametrize("fields", [
    {},
    {"component_code": "x", "text_response": "y", "error": True},
    {"text_response": "y"},
    {"text_response": "y", "error": True, "summary": "s"},
])
def test_response_must_have_exactly_one_shape(fields):
    with pytest.raises(ValidationError):
        AgentResponse(**fields)


def test_retry_state_is_bounded():
    retry = RetryState(max_attempts=2)
    assert retry.advance("first")
    assert retry.advance("second")
    assert not retry.advance("third")
    assert retry.attempt == 2
    assert retry.last_error == "third"
    assert retry.exhausted


def test_retry_state_rejects_attempt_past_bound():
    with pytest.raises(ValidationError):
        RetryState(attempt=3, max_attempts=2)
