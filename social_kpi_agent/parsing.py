from __future__ import annotations

import csv
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, Iterable, Iterator

from social_kpi_agent.errors import MalformedDocumentError


class ParserState(str, Enum):
    SEEKING_SENTINEL = "seeking_sentinel"
    IN_SECTION = "in_section"
    SECTION_ENDED = "section_ended"


@dataclass(frozen=True)
class SectionSpec:
    name: str
    sentinel: str
    required: bool = False
    max_rows: int | None = None
    stop_prefixes: tuple[str, ...] = ()
    min_fields: int = 1
    skip_leading_blanks: bool = False


def open_export(path: str | Path) -> IO[str]:
    # utf-8-sig drops the BOM some exporters prepend to the first cell.
    return open(path, "r", encoding="utf-8-sig", newline="")


def _first_field(fields: list[str]) -> str:
    return fields[0].strip() if fields else ""


def _is_blank(fields: list[str]) -> bool:
    return not any(str(value).strip() for value in fields)


def _iter_records(stream: Iterable[str]) -> Iterator[list[str]]:
    reader = csv.reader(stream, skipinitialspace=True, strict=False)
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error:
            # Unreadable record; the reader resumes on the next line.
            continue
        yield row


class SectionedTableParser:
    """Locate labeled sections inside a ragged export and yield their rows.

    The parser is a small state machine. While ``SEEKING_SENTINEL`` every row is
    checked against the sentinels of sections not read yet; a match switches to
    ``IN_SECTION`` and the sentinel row itself is treated as a header. Data rows
    are emitted until a blank row, a short row, ``max_rows``, or a row that starts
    with another section's sentinel (or one of the section's ``stop_prefixes``).
    The state then becomes ``SECTION_ENDED`` and the closing row is re-examined as
    a potential sentinel. Each section is read at most once. With
    ``skip_leading_blanks`` blank rows before the first data row are ignored.

    ``feed``/``finish`` drive the machine one row at a time; ``parse`` wraps them
    into a lazy single-pass iterator of ``(section_name, fields)`` pairs.
    """

    def __init__(self, sections: Iterable[SectionSpec]) -> None:
        self.sections = tuple(sections)
        if not self.sections:
            raise ValueError("at least one section is required")
        names = [spec.name for spec in self.sections]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate section names: {names}")
        for spec in self.sections:
            if not spec.sentinel.strip():
                raise ValueError(f"section {spec.name!r} has an empty sentinel")
        self.reset()

    def reset(self) -> None:
        self.state = ParserState.SEEKING_SENTINEL
        self.current: SectionSpec | None = None
        self.seen: set[str] = set()
        self._emitted = 0

    @property
    def done(self) -> bool:
        return self.state != ParserState.IN_SECTION and len(self.seen) == len(self.sections)

    def _match_sentinel(self, fields: list[str]) -> SectionSpec | None:
        first = _first_field(fields)
        if not first:
            return None
        for spec in self.sections:
            if spec.name in self.seen:
                continue
            if first.startswith(spec.sentinel):
                return spec
        return None

    def _closes_section(self, spec: SectionSpec, fields: list[str]) -> bool:
        if _is_blank(fields) or len(fields) < spec.min_fields:
            return True
        first = _first_field(fields)
        for other in self.sections:
            if other.name != spec.name and first.startswith(other.sentinel):
                return True
        return any(first.startswith(prefix) for prefix in spec.stop_prefixes if prefix)

    def _end_section(self) -> None:
        self.state = ParserState.SECTION_ENDED
        self.current = None
        self._emitted = 0

    def _open_section(self, spec: SectionSpec) -> None:
        self.seen.add(spec.name)
        self.current = spec
        self._emitted = 0
        self.state = ParserState.IN_SECTION
        if spec.max_rows is not None and spec.max_rows <= 0:
            self._end_section()

    def feed(self, fields: list[str]) -> tuple[str, list[str]] | None:
        """Advance by one row; return ``(section, fields)`` when the row is data."""
        if self.state == ParserState.IN_SECTION and self.current is not None:
            spec = self.current
            if spec.skip_leading_blanks and self._emitted == 0 and _is_blank(fields):
                return None
            if not self._closes_section(spec, fields):
                self._emitted += 1
                if spec.max_rows is not None and self._emitted >= spec.max_rows:
                    self._end_section()
                return spec.name, fields
            self._end_section()

        if self.done:
            return None

        spec = self._match_sentinel(fields)
        if spec is not None:
            self._open_section(spec)
        elif self.state == ParserState.SECTION_ENDED:
            self.state = ParserState.SEEKING_SENTINEL
        return None

    def finish(self) -> None:
        missing = [
            spec.sentinel
            for spec in self.sections
            if spec.required and spec.name not in self.seen
        ]
        if missing:
            raise MalformedDocumentError(
                "required section(s) not found before end of input: "
                + ", ".join(repr(label) for label in missing)
            )

    def parse(self, stream: Iterable[str]) -> Iterator[tuple[str, list[str]]]:
        self.reset()
        for fields in _iter_records(stream):
            emitted = self.feed(fields)
            if emitted is not None:
                yield emitted
            if self.done:
                break
        self.finish()


def group_sections(pairs: Iterable[tuple[str, list[str]]]) -> dict[str, list[list[str]]]:
    grouped: dict[str, list[list[str]]] = {}
    for name, fields in pairs:
        grouped.setdefault(name, []).append(fields)
    return grouped


def iter_preamble_rows(stream: Iterable[str], preamble_lines: int = 4) -> Iterator[list[str]]:
    """Skip a fixed preamble and yield the remaining records.

    Blank lines are not counted towards the preamble. A file that ends inside
    its preamble is malformed.
    """
    records = _iter_records(stream)
    skipped = 0
    while skipped < preamble_lines:
        try:
            row = next(records)
        except StopIteration:
            raise MalformedDocumentError(
                f"expected a {preamble_lines}-line preamble, found {skipped} line(s)"
            ) from None
        if not row:
            continue
        skipped += 1
    yield from records
