"""Utilities for importing contacts from CSV payloads."""
from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from rolodex.core.errors import CRMError, ValidationError
from rolodex.schemas.contact import ContactCreate
from rolodex.services.contacts import ContactService
from rolodex.services.duplicates import DuplicateDetector, normalize_email, normalize_phone

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"first_name", "last_name"}
MULTI_VALUE_SEPARATOR = ";"


class ImportRowError(Exception):
    """Raised when a row cannot be processed."""


@dataclass
class ParsedRow:
    row_index: int
    original: dict[str, Any]
    payload: ContactCreate


@dataclass
class RowError:
    row_index: int
    message: str
    original: dict[str, Any]


@dataclass
class RowOutcome:
    row_index: int
    status: str
    message: str = ""
    contact_id: int | None = None


@dataclass
class ImportSummary:
    dry_run: bool
    created: int = 0
    skipped: int = 0
    failed: int = 0
    rows: list[RowOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rows)


class ContactImportProcessor:
    """Parse contacts from CSV and create the ones that are not duplicates.

    ``email`` and ``phone`` cells may hold several values separated by
    ``;``; ``tags`` are comma separated. A row is skipped when
    ``DuplicateDetector.find_duplicate`` finds an existing contact, or when
    an earlier row of the same file already claimed its email or its name
    and phone.
    """

    def __init__(
        self,
        *,
        session: AsyncSession,
        owner_id: str,
        dry_run: bool,
        contact_service: ContactService | None = None,
        detector: DuplicateDetector | None = None,
    ) -> None:
        self.session = session
        self.owner_id = owner_id
        self.dry_run = dry_run
        self.contact_service = contact_service or ContactService(session)
        self.detector = detector or DuplicateDetector(session)

    async def run(self, file_bytes: bytes) -> ImportSummary:
        parsed_rows, errors = self.parse(file_bytes)
        summary = ImportSummary(dry_run=self.dry_run)
        outcomes: list[RowOutcome] = [
            RowOutcome(error.row_index, "failed", error.message) for error in errors
        ]
        summary.failed = len(errors)

        seen_emails: set[str] = set()
        seen_name_phones: set[tuple[str, str, str]] = set()

        for row in parsed_rows:
            payload = row.payload
            email_keys = {normalize_email(entry.address) for entry in payload.emails}
            name_phone_keys = {
                (payload.first_name.lower(), payload.last_name.lower(), normalize_phone(p.number))
                for p in payload.phones
                if normalize_phone(p.number)
            }

            existing = await self.detector.find_duplicate(self.owner_id, payload)
            if existing is not None:
                outcomes.append(
                    RowOutcome(
                        row.row_index, "skipped", "Duplicate of an existing contact", existing.id
                    )
                )
                summary.skipped += 1
                continue
            if email_keys & seen_emails or name_phone_keys & seen_name_phones:
                outcomes.append(
                    RowOutcome(row.row_index, "skipped", "Duplicate of an earlier row")
                )
                summary.skipped += 1
                continue

            seen_emails |= email_keys
            seen_name_phones |= name_phone_keys

            if self.dry_run:
                outcomes.append(RowOutcome(row.row_index, "would_create"))
                summary.created += 1
                continue

            try:
                contact = await self.contact_service.create_contact(self.owner_id, payload)
            except CRMError as exc:
                outcomes.append(RowOutcome(row.row_index, "failed", exc.message))
                summary.failed += 1
                continue
            outcomes.append(RowOutcome(row.row_index, "created", contact_id=contact.id))
            summary.created += 1

        summary.rows = sorted(outcomes, key=lambda outcome: outcome.row_index)
        logger.info(
            "Contact import processed",
            extra={
                "owner_id": self.owner_id,
                "dry_run": self.dry_run,
                "created_count": summary.created,
                "skipped_count": summary.skipped,
                "failed_count": summary.failed,
            },
        )
        return summary

    def parse(self, file_bytes: bytes) -> tuple[list[ParsedRow], list[RowError]]:
        """Parse the incoming CSV and return parsed rows and row errors."""

        reader, header = self._build_reader(file_bytes)
        parsed_rows: list[ParsedRow] = []
        errors: list[RowError] = []

        for row_number, raw_row in enumerate(reader, start=1):
            row_copy = {key: raw_row.get(key) for key in header}
            try:
                parsed = self._parse_row(row_number, row_copy)
            except ImportRowError as exc:
                errors.append(RowError(row_number, str(exc), row_copy))
                continue
            parsed_rows.append(parsed)

        return parsed_rows, errors

    def _parse_row(self, row_index: int, original: dict[str, Any]) -> ParsedRow:
        payload: dict[str, Any] = {
            "first_name": self._clean_optional(original.get("first_name")),
            "last_name": self._clean_optional(original.get("last_name")),
            "company": self._clean_optional(original.get("company")),
            "title": self._clean_optional(original.get("title")),
            "linkedin_url": self._clean_optional(original.get("linkedin_url")),
            "birthday": self._clean_optional(original.get("birthday")),
            "notes": self._clean_optional(original.get("notes")),
            "emails": [{"address": item} for item in self._split_values(original.get("email"))],
            "phones": [{"number": item} for item in self._split_values(original.get("phone"))],
            "tags": self._parse_tags(original.get("tags")),
        }
        if not payload["first_name"] or not payload["last_name"]:
            msg = "first_name and last_name are required"
            raise ImportRowError(msg)

        try:
            contact = ContactCreate.model_validate(payload)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise ImportRowError(f"{location}: {first.get('msg', 'invalid value')}") from exc

        return ParsedRow(row_index=row_index, original=original, payload=contact)

    def _build_reader(self, file_bytes: bytes) -> tuple[csv.DictReader, list[str]]:
        try:
            text = file_bytes.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            msg = "Uploaded file must be UTF-8 encoded"
            raise ValidationError(msg) from exc

        stream = io.StringIO(text)
        reader = csv.DictReader(stream)
        raw_header = reader.fieldnames
        if raw_header is None:
            msg = "CSV file must include a header row"
            raise ValidationError(msg)
        header = [column.strip() for column in raw_header]
        reader.fieldnames = header
        missing = REQUIRED_COLUMNS - set(header)
        if missing:
            msg = f"Missing required columns: {', '.join(sorted(missing))}"
            raise ValidationError(msg)
        return reader, header

    def _split_values(self, value: Any) -> list[str]:
        if value is None:
            return []
        return [item.strip() for item in str(value).split(MULTI_VALUE_SEPARATOR) if item.strip()]

    def _parse_tags(self, value: Any) -> list[str]:
        if value is None:
            return []
        return [item.strip() for item in str(value).split(",") if item.strip()]

    def _clean_optional(self, value: Any) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None
