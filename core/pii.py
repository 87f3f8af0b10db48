"""
Personal Information Detectors
==============================

Regex detectors run against free-text memos before anything is sent to an
external LLM. A hit rejects the request; the matched text itself is never
stored or logged, only the detector name.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PIIPattern:
    """A named regular expression for one kind of personal information."""
    kind: str
    pattern: re.Pattern
    description: str


@dataclass(frozen=True)
class PIIMatch:
    """Location of a detected item. Only a masked preview of the value is kept."""
    kind: str
    start: int
    end: int
    preview: str


def mask_value(value: str) -> str:
    """Replace every letter and digit except the last two with "*"."""
    keep_from = max(len(value) - 2, 0)
    return "".join(
        "*" if ch.isalnum() and i < keep_from else ch
        for i, ch in enumerate(value)
    )


PII_PATTERNS: tuple[PIIPattern, ...] = (
    PIIPattern(
        kind="credit_card",
        pattern=re.compile(r"\d{4}-\d{4}-\d{4}-\d{4}"),
        description="Credit card number (hyphenated)",
    ),
    PIIPattern(
        kind="phone_number",
        pattern=re.compile(r"\d{3}-\d{4}-\d{4}"),
        description="Mobile/IP phone number (090-1234-5678)",
    ),
    PIIPattern(
        kind="postal_code",
        pattern=re.compile(r"〒\s?\d{3}-\d{4}"),
        description="Japanese postal code with the 〒 mark",
    ),
    PIIPattern(
        kind="email_address",
        pattern=re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
        description="Email address",
    ),
)


def detect_personal_info(text: str) -> list[PIIMatch]:
    """
    Run every detector over the text.

    Args:
        text: Memo text to scan

    Returns:
        Matches ordered by position. A card number also containing a
        phone-like run is reported once per detector that fires.
    """
    matches: list[PIIMatch] = []
    for detector in PII_PATTERNS:
        for found in detector.pattern.finditer(text):
            matches.append(PIIMatch(
                kind=detector.kind,
                start=found.start(),
                end=found.end(),
                preview=mask_value(found.group()),
            ))
    return sorted(matches, key=lambda m: (m.start, m.kind))


def detected_kinds(text: str) -> list[str]:
    """Names of the detectors that fire, without duplicates, in detector order."""
    return [d.kind for d in PII_PATTERNS if d.pattern.search(text)]


def contains_personal_info(text: str) -> bool:
    return any(d.pattern.search(text) for d in PII_PATTERNS)
