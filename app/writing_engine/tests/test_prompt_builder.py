import pytest

from app.writing_engine.services.errors import InvalidInput
from app.writing_engine.services.prompt_builder import (
    OUTPUT_SCHEMA,
    SYSTEM_INSTRUCTION,
    build_analysis_prompt,
)


def test_prompt_embeds_submission_details():
    request = build_analysis_prompt(
        "  Cities should invest in public transport.  ",
        "Should cities ban cars?",
        "Upper-Intermediate (B2)",
        300,
    )

    assert request.text == "Cities should invest in public transport."
    assert request.word_count == 6
    assert request.elapsed_minutes == 5
    assert 'Question: "Should cities ban cars?"' in request.prompt
    assert "Student Level: Upper-Intermediate (B2)" in request.prompt
    assert "Word Count: 6 words" in request.prompt
    assert OUTPUT_SCHEMA in request.prompt
    assert request.system_instruction == SYSTEM_INSTRUCTION
    assert request.response_mime == "application/json"


@pytest.mark.parametrize("seconds, minutes", [(0, 0), (29, 0), (30, 1), (89, 1), (90, 2), (150, 3)])
def test_elapsed_minutes_round_half_up(seconds, minutes):
    request = build_analysis_prompt("Some text to score here.", "Q", "Beginner (A1-A2)", seconds)
    assert request.elapsed_minutes == minutes


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
def test_empty_text_is_rejected(text):
    with pytest.raises(InvalidInput):
        build_analysis_prompt(text, "Q", "Beginner (A1-A2)", 10)


def test_negative_elapsed_time_is_rejected():
    with pytest.raises(InvalidInput):
        build_analysis_prompt("Some text", "Q", "Beginner (A1-A2)", -1)


def test_build_is_pure():
    first = build_analysis_prompt("Same words every time.", "Q", "Advanced (C1-C2)", 61)
    second = build_analysis_prompt("Same words every time.", "Q", "Advanced (C1-C2)", 61)
    assert first == second
