from __future__ import annotations

import pytest

from studio_analytics.cleaners import (
    clean_class,
    clean_day,
    clean_location,
    clean_time,
    compile_keyword_pattern,
    is_weekend,
    normalize_time,
    normalize_token,
    time_hour,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("7:30 PM", "19:30"),
        ("12:15 AM", "00:15"),
        ("12:00 pm", "12:00"),
        ("7:05", "07:05"),
        ("07:05:00", "07:05"),
        ("", ""),
    ],
)
def test_normalize_time(raw, expected):
    assert normalize_time(raw) == expected


def test_time_hour_falls_back_to_zero():
    assert time_hour("18:45") == 18
    assert time_hour("6:00 PM") == 18
    assert time_hour("tbd") == 0


def test_normalize_token_strips_punctuation():
    assert normalize_token("Studio Trainer's Choice!") == "studiotrainerschoice"
    assert normalize_token(None) == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Barre 57", "Studio Barre 57"),
        ("studio barre57 express", "Studio Barre 57 Express"),
        ("Cardio Barre Plus", "Studio Cardio Barre Plus"),
        ("Pre/Post Natal Express", "Studio Pre/Post Natal"),
        ("PowerCycle", "Studio powerCycle"),
        ("Sunday Brunch Hosted Event", "Studio Hosted Class"),
        ("Aerial Silks", "Aerial Silks"),
    ],
)
def test_clean_class_canonicalises(raw, expected):
    assert clean_class(raw) == expected


def test_clean_location_spacing_and_case():
    assert clean_location("  kwality house,kemps   corner ") == "Kwality House, Kemps Corner"


def test_clean_day_and_weekend():
    assert clean_day("sat") == "Saturday"
    assert clean_day("MONDAY") == "Monday"
    assert clean_day("Someday") == "Someday"
    assert is_weekend("Sun")
    assert not is_weekend("Friday")


def test_clean_time_drops_seconds():
    assert clean_time("07:30:00") == "07:30"
    assert clean_time("18:00") == "18:00"


def test_keyword_pattern_is_literal_and_case_insensitive():
    pattern = compile_keyword_pattern(["p57 x", "pop"])
    assert pattern.search("PoP Up Class")
    assert pattern.search("Studio P57 X Nike")
    assert compile_keyword_pattern(["", "  "]) is None
