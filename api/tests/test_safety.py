import pytest

from ayursutra.services.safety import (
    APOLOGIES,
    APOLOGY,
    DISCLAIMER,
    apology_for,
    ensure_disclaimer,
    has_disclaimer,
    strip_disclaimer,
    vetted_disclaimer,
)


@pytest.mark.parametrize("text", [
    f"Rest well. {DISCLAIMER}",
    f'Rest well.\n"{DISCLAIMER}"',
    f"Rest well.\n\n**{DISCLAIMER}**",
    "Rest well. this is ai-generated advice.  Please consult your Vaidya (doctor)\nfor any medical decisions.",
])
def test_disclaimer_detected_in_common_renderings(text):
    assert has_disclaimer(text)
    assert ensure_disclaimer(text) == text


def test_missing_disclaimer_appended_once():
    text = ensure_disclaimer("Sip warm water.  ")

    assert text == f"Sip warm water. {DISCLAIMER}"
    assert ensure_disclaimer(text) == text


def test_strip_disclaimer_leaves_body():
    assert strip_disclaimer(f"Sip warm water.\n\n**{DISCLAIMER}**") == "Sip warm water."
    assert strip_disclaimer(DISCLAIMER) == ""


def test_vetted_disclaimer_by_primary_subtag():
    assert vetted_disclaimer("en-GB") == DISCLAIMER
    assert vetted_disclaimer("hi-IN").endswith("परामर्श करें।")
    assert vetted_disclaimer("ta-IN") is None


@pytest.mark.parametrize("language,expected", [
    ("en-US", APOLOGY),
    ("hi-IN", APOLOGIES["hi"]),
    ("mr", APOLOGIES["mr"]),
    ("ta-IN", APOLOGY),
])
def test_apology_in_patient_language(language, expected):
    assert apology_for(language) == expected
