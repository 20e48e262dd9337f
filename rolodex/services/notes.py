"""Structured contact notes: parsing, serialization and incremental updates.

The notes blob is plain markdown-ish text made of five sections in a fixed
order. Labeled lines look like ``- **Label:** value``; anything else inside
a section is kept as a raw bullet. Text before the first header is kept
verbatim as the unstructured blob so legacy free-text notes survive.

Both people and the email analysis writer produce this format, so
``serialize_notes`` is a normal form: serializing a parsed serialization
yields the same text.
"""
from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from datetime import date

from rolodex.core.errors import ValidationError
from rolodex.schemas.notes import NoteSection, NoteUpdate

SECTION_HEADERS: dict[NoteSection, str] = {
    NoteSection.RELATIONSHIP_SUMMARY: "## RELATIONSHIP SUMMARY",
    NoteSection.WHAT_THEY_CARE_ABOUT: "## WHAT THEY CARE ABOUT",
    NoteSection.KEY_HISTORY: "## KEY HISTORY",
    NoteSection.CURRENT_STATUS: "## CURRENT STATUS",
    NoteSection.PREFERENCES: "## PREFERENCES & NOTES",
}

FIELD_LABELS: dict[NoteSection, dict[str, str]] = {
    NoteSection.RELATIONSHIP_SUMMARY: {
        "role": "Role in our world",
        "how_we_met": "How we met",
        "relationship_owner": "Relationship owner",
    },
    NoteSection.WHAT_THEY_CARE_ABOUT: {
        "goals": "Goals/KPIs",
        "pains": "Main pains",
        "hot_buttons": "Hot buttons",
    },
    NoteSection.CURRENT_STATUS: {
        "where_things_stand": "Where things stand",
        "risks": "Risks/blockers",
        "next_step": "Next step",
    },
    NoteSection.PREFERENCES: {
        "communication": "Communication",
        "style": "Style",
        "landmines": "Landmines",
        "personal": "Personal",
    },
}

LIST_FIELDS = frozenset({"goals", "pains", "hot_buttons", "risks", "landmines", "personal"})

LABELED_LINE = re.compile(r"^-?\s*\*\*([^:*]+):\*\*\s*(.*)$")
BULLET_LINE = re.compile(r"^-\s+(.+)$")
HISTORY_LINE = re.compile(r"^-?\s*(\d{4}-\d{2}-\d{2})\s*[-:]\s*(.+)$")
ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LIST_SEPARATOR = re.compile(r"[,;]")


@dataclass
class NotesSection:
    """Labeled values of one section plus bullets that matched no label."""

    values: dict[str, str | list[str]] = field(default_factory=dict)
    raw: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.raw and not any(self.values.values())


@dataclass
class HistoryEntry:
    date: str
    summary: str


@dataclass
class NotesDocument:
    relationship_summary: NotesSection = field(default_factory=NotesSection)
    what_they_care_about: NotesSection = field(default_factory=NotesSection)
    key_history: list[HistoryEntry] = field(default_factory=list)
    current_status: NotesSection = field(default_factory=NotesSection)
    preferences: NotesSection = field(default_factory=NotesSection)
    unstructured: str | None = None

    def section(self, name: NoteSection) -> NotesSection:
        if name is NoteSection.KEY_HISTORY:
            msg = "Key history is not a labeled section"
            raise ValueError(msg)
        return getattr(self, name.value)

    def has_content(self) -> bool:
        if self.unstructured or self.key_history:
            return True
        return any(
            not self.section(name).is_empty()
            for name in SECTION_HEADERS
            if name is not NoteSection.KEY_HISTORY
        )


def parse_notes(text: str | None) -> NotesDocument:
    """Parse a notes blob. Never raises; unknown content is preserved as raw."""

    document = NotesDocument()
    if not text or not text.strip():
        return document

    current: NoteSection | None = None
    unstructured_lines: list[str] = []
    section_lines: list[str] = []

    for line in text.splitlines():
        header = _match_header(line)
        if header is not None:
            if current is not None:
                _parse_section(document, current, section_lines)
            current = header
            section_lines = []
            continue

        if current is None:
            unstructured_lines.append(line)
        else:
            section_lines.append(line)

    if current is not None:
        _parse_section(document, current, section_lines)

    unstructured = "\n".join(unstructured_lines).strip()
    if unstructured:
        document.unstructured = unstructured
    return document


def serialize_notes(document: NotesDocument) -> str:
    """Render a document in canonical section order."""

    parts: list[str] = []
    if document.unstructured:
        parts.append(document.unstructured)
        parts.append("")

    for name, header in SECTION_HEADERS.items():
        if name is NoteSection.KEY_HISTORY:
            lines = _serialize_history(document.key_history)
        else:
            lines = _serialize_section(name, document.section(name))
        if lines:
            parts.append(header)
            parts.extend(lines)

    return "\n".join(parts).strip()


def apply_update(document: NotesDocument, update: NoteUpdate) -> NotesDocument:
    """Return a copy of ``document`` with ``update`` applied.

    History updates always append. List fields append each comma or
    semicolon separated piece that is not already present. Scalar fields
    overwrite.
    """

    result = copy.deepcopy(document)
    value = _collapse_whitespace(update.value)

    if update.section is NoteSection.KEY_HISTORY:
        if not value:
            raise ValidationError("History entries need a summary")
        entry_date = update.date or date.today().isoformat()
        _require_iso_date(entry_date)
        result.key_history.append(HistoryEntry(date=entry_date, summary=value))
        return result

    field_name = _resolve_field(update.section, update.field)
    section = result.section(update.section)

    if field_name in LIST_FIELDS:
        existing = list(section.values.get(field_name) or [])
        for item in _split_list(value):
            if item not in existing:
                existing.append(item)
        if existing:
            section.values[field_name] = existing
    elif value:
        section.values[field_name] = value
    else:
        section.values.pop(field_name, None)

    return result


def _match_header(line: str) -> NoteSection | None:
    normalized = line.strip().upper()
    for name, header in SECTION_HEADERS.items():
        if normalized.startswith(header):
            return name
    return None


def _parse_section(document: NotesDocument, name: NoteSection, lines: list[str]) -> None:
    if name is NoteSection.KEY_HISTORY:
        for line in lines:
            match = HISTORY_LINE.match(line.strip())
            if match:
                document.key_history.append(
                    HistoryEntry(date=match.group(1), summary=match.group(2).strip())
                )
        return

    section = document.section(name)
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue

        labeled = LABELED_LINE.match(stripped)
        if labeled:
            field_name = _field_for_label(name, labeled.group(1).strip())
            value = labeled.group(2).strip()
            if field_name and value and field_name not in section.values:
                section.values[field_name] = (
                    _split_list(value) if field_name in LIST_FIELDS else value
                )
                continue

        bullet = BULLET_LINE.match(stripped)
        section.raw.append(bullet.group(1) if bullet else stripped)


def _serialize_section(name: NoteSection, section: NotesSection) -> list[str]:
    lines: list[str] = []
    for field_name, label in FIELD_LABELS[name].items():
        value = section.values.get(field_name)
        if not value:
            continue
        rendered = ", ".join(value) if isinstance(value, list) else value
        lines.append(f"- **{label}:** {rendered}")
    lines.extend(f"- {item}" for item in section.raw)
    return lines


def _serialize_history(entries: list[HistoryEntry]) -> list[str]:
    ordered = sorted(entries, key=lambda entry: entry.date, reverse=True)
    return [f"- {entry.date} - {entry.summary}" for entry in ordered]


def _field_for_label(name: NoteSection, label: str) -> str | None:
    lowered = label.lower()
    for field_name, field_label in FIELD_LABELS[name].items():
        if field_label.lower() == lowered:
            return field_name
    return None


def _resolve_field(name: NoteSection, requested: str) -> str:
    labels = FIELD_LABELS[name]
    key = requested.strip()
    if key in labels:
        return key
    by_label = _field_for_label(name, key)
    if by_label is not None:
        return by_label
    raise ValidationError(f"Unknown field '{requested}' for section '{name.value}'")


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in LIST_SEPARATOR.split(value) if item.strip()]


def _collapse_whitespace(value: str) -> str:
    return " ".join(value.split())


def _require_iso_date(value: str) -> None:
    if not ISO_DATE.match(value):
        raise ValidationError("History dates must use the YYYY-MM-DD format")
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid history date '{value}'") from exc
