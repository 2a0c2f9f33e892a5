import json

import pytest

from make_this_usable.api.schemas import NextAction, Section, TransformResponse
from make_this_usable.errors import MalformedModelOutputError, UnexpectedSchemaError
from make_this_usable.pipeline.response_validator import parse_model_output, sanitize


def _document(**update) -> dict:
    doc = {
        "title": "Launch Plan",
        "summary": "Launch on March 15 with a 250k budget.",
        "sections": [{"heading": "Timeline", "bullets": ["Launch March 15", "Design system by Feb 1"]}],
        "next_actions": [{"action": "Schedule design review", "first_step": "Send invite"}],
    }
    doc.update(update)
    return doc


def test_valid_output_is_parsed() -> None:
    document = parse_model_output(json.dumps(_document()))

    assert document.title == "Launch Plan"
    assert document.sections[0].bullets[1] == "Design system by Feb 1"
    assert document.next_actions[0].first_step == "Send invite"


def test_extra_keys_are_ignored() -> None:
    document = parse_model_output(json.dumps(_document(confidence=0.9)))
    assert "confidence" not in document.model_dump()


@pytest.mark.parametrize("raw", ["", "   ", None, "not json at all", "{\"title\": "])
def test_non_json_output_is_malformed(raw) -> None:
    with pytest.raises(MalformedModelOutputError) as excinfo:
        parse_model_output(raw)
    assert excinfo.value.status_code == 502


def test_missing_summary_is_schema_error_not_partial_success() -> None:
    doc = _document()
    del doc["summary"]

    with pytest.raises(UnexpectedSchemaError) as excinfo:
        parse_model_output(json.dumps(doc))
    assert excinfo.value.status_code == 502


@pytest.mark.parametrize(
    "update",
    [
        {"sections": [{"heading": "H", "bullets": "one bullet"}]},
        {"sections": [{"heading": "H", "bullets": [1, 2]}]},
        {"sections": {"heading": "H", "bullets": []}},
        {"next_actions": [{"action": "Do it"}]},
        {"next_actions": ["Do it"]},
        {"title": 5},
    ],
)
def test_wrong_nesting_or_types_are_schema_errors(update) -> None:
    with pytest.raises(UnexpectedSchemaError):
        parse_model_output(json.dumps(_document(**update)))


def test_json_array_root_is_schema_error() -> None:
    with pytest.raises(UnexpectedSchemaError):
        parse_model_output("[]")


def test_sanitize_drops_placeholder_actions_and_keeps_order() -> None:
    document = TransformResponse(
        title="t",
        summary="s",
        sections=[Section(heading="h", bullets=["b"])],
        next_actions=[
            NextAction(action="First", first_step="a"),
            NextAction(action="", first_step="orphan step"),
            NextAction(action="Second", first_step="   "),
            NextAction(action="Third", first_step="c"),
        ],
    )

    cleaned = sanitize(document)

    assert [item.action for item in cleaned.next_actions] == ["First", "Third"]
    assert len(document.next_actions) == 4


def test_sanitize_is_idempotent() -> None:
    document = parse_model_output(
        json.dumps(
            _document(
                next_actions=[
                    {"action": " ", "first_step": ""},
                    {"action": "Write tech spec", "first_step": "Open a doc"},
                ]
            )
        )
    )

    once = sanitize(document)
    twice = sanitize(once)

    assert twice == once
    assert [item.action for item in twice.next_actions] == ["Write tech spec"]
