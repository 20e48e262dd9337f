from __future__ import annotations

from datetime import date

import pytest

from rolodex.core.errors import ValidationError
from rolodex.schemas import NoteSection, NoteUpdate
from rolodex.services.notes import apply_update, parse_notes, serialize_notes

SAMPLE_NOTES = """Met at the 2022 offsite, very friendly.

## RELATIONSHIP SUMMARY
- **Role in our world:** Design partner
- **How we met:** Intro from Dana
- Sends great book recommendations

## WHAT THEY CARE ABOUT
- **Goals/KPIs:** Ship v2, Hire two engineers; Cut churn

## KEY HISTORY
- 2023-01-10 - First call
- 2024-03-02: Signed pilot
- not a dated line

## PREFERENCES & NOTES
- **communication:** Email over phone
"""


def _update(section: NoteSection, field: str = "", value: str = "x", **kwargs) -> NoteUpdate:
    return NoteUpdate(section=section, field=field, value=value, **kwargs)


def test_parse_reads_sections_labels_lists_and_history() -> None:
    document = parse_notes(SAMPLE_NOTES)

    assert document.unstructured == "Met at the 2022 offsite, very friendly."
    summary = document.relationship_summary
    assert summary.values == {"role": "Design partner", "how_we_met": "Intro from Dana"}
    assert summary.raw == ["Sends great book recommendations"]
    assert document.what_they_care_about.values["goals"] == [
        "Ship v2",
        "Hire two engineers",
        "Cut churn",
    ]
    assert [(entry.date, entry.summary) for entry in document.key_history] == [
        ("2023-01-10", "First call"),
        ("2024-03-02", "Signed pilot"),
    ]
    assert document.preferences.values == {"communication": "Email over phone"}
    assert document.current_status.is_empty()


def test_parse_never_raises_on_free_text() -> None:
    assert not parse_notes(None).has_content()
    assert not parse_notes("   ").has_content()

    document = parse_notes("just some words\n- and a bullet")
    assert document.unstructured == "just some words\n- and a bullet"
    assert document.key_history == []


def test_serialize_orders_sections_and_history() -> None:
    text = serialize_notes(parse_notes(SAMPLE_NOTES))

    assert text.splitlines() == [
        "Met at the 2022 offsite, very friendly.",
        "",
        "## RELATIONSHIP SUMMARY",
        "- **Role in our world:** Design partner",
        "- **How we met:** Intro from Dana",
        "- Sends great book recommendations",
        "## WHAT THEY CARE ABOUT",
        "- **Goals/KPIs:** Ship v2, Hire two engineers, Cut churn",
        "## KEY HISTORY",
        "- 2024-03-02 - Signed pilot",
        "- 2023-01-10 - First call",
        "## PREFERENCES & NOTES",
        "- **Communication:** Email over phone",
    ]


def test_list_fields_append_only_new_items() -> None:
    document = parse_notes(SAMPLE_NOTES)

    updated = apply_update(
        document, _update(NoteSection.WHAT_THEY_CARE_ABOUT, "goals", "Cut churn;  Expand   to EU")
    )

    assert updated.what_they_care_about.values["goals"] == [
        "Ship v2",
        "Hire two engineers",
        "Cut churn",
        "Expand to EU",
    ]
    assert document.what_they_care_about.values["goals"] == [
        "Ship v2",
        "Hire two engineers",
        "Cut churn",
    ]


def test_scalar_fields_overwrite_and_accept_labels() -> None:
    document = parse_notes(SAMPLE_NOTES)

    updated = apply_update(
        document, _update(NoteSection.RELATIONSHIP_SUMMARY, "Role in our world", "Customer")
    )

    assert updated.relationship_summary.values["role"] == "Customer"


def test_history_appends_with_default_date() -> None:
    updated = apply_update(parse_notes(None), _update(NoteSection.KEY_HISTORY, value="Kickoff"))

    assert len(updated.key_history) == 1
    assert updated.key_history[0].date == date.today().isoformat()
    assert updated.key_history[0].summary == "Kickoff"


@pytest.mark.parametrize(
    "update",
    [
        _update(NoteSection.RELATIONSHIP_SUMMARY, "favourite_color", "blue"),
        _update(NoteSection.KEY_HISTORY, value="   "),
        _update(NoteSection.KEY_HISTORY, value="Lunch", date="03/02/2024"),
        _update(NoteSection.KEY_HISTORY, value="Lunch", date="2024-02-30"),
    ],
)
def test_invalid_updates_are_rejected(update: NoteUpdate) -> None:
    with pytest.raises(ValidationError):
        apply_update(parse_notes(SAMPLE_NOTES), update)


def test_serialization_is_a_normal_form() -> None:
    document = parse_notes(None)
    for update in [
        _update(NoteSection.RELATIONSHIP_SUMMARY, "role", "  Investor  "),
        _update(NoteSection.WHAT_THEY_CARE_ABOUT, "pains", "Hiring, Burn rate"),
        _update(NoteSection.WHAT_THEY_CARE_ABOUT, "pains", "Burn rate; Board"),
        _update(NoteSection.KEY_HISTORY, value="Met - at   the bar", date="2024-05-01"),
        _update(NoteSection.KEY_HISTORY, value="Follow up", date="2024-06-01"),
        _update(NoteSection.CURRENT_STATUS, "next_step", "Send deck"),
        _update(NoteSection.PREFERENCES, "landmines", "Politics"),
    ]:
        document = apply_update(document, update)

    once = serialize_notes(document)
    assert serialize_notes(parse_notes(once)) == once
    assert "- **Main pains:** Hiring, Burn rate, Board" in once
    assert "- 2024-05-01 - Met - at the bar" in once


def test_repeated_labels_keep_the_extra_line_as_raw() -> None:
    text = (
        "## RELATIONSHIP SUMMARY\n"
        "- **Role in our world:** Design partner\n"
        "- **Role in our world:** Angel investor\n"
        "\n"
        "## WHAT THEY CARE ABOUT\n"
        "- **Goals/KPIs:** Ship v2\n"
        "- **Goals/KPIs:** Cut churn"
    )

    document = parse_notes(text)

    assert document.relationship_summary.values == {"role": "Design partner"}
    assert document.relationship_summary.raw == ["**Role in our world:** Angel investor"]
    assert document.what_they_care_about.values == {"goals": ["Ship v2"]}
    assert document.what_they_care_about.raw == ["**Goals/KPIs:** Cut churn"]
    once = serialize_notes(document)
    assert "Angel investor" in once and "Cut churn" in once
    assert serialize_notes(parse_notes(once)) == once
