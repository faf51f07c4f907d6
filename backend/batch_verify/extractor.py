"""
Verification identifier extraction from free-form pasted text.
Each line is either a bare identifier or a URL carrying one.
"""
from __future__ import annotations

import re

# Checked in order; the first pattern that matches a line wins.
ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"verificationId=([a-zA-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"verification_id=([a-zA-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"vid=([a-zA-Z0-9_-]+)", re.IGNORECASE),
    re.compile(r"/verify/([a-zA-Z0-9_-]+)", re.IGNORECASE),
)


def _extract_one(line: str) -> str:
    for pattern in ID_PATTERNS:
        match = pattern.search(line)
        if match:
            return match.group(1)
    return line


def extract_verification_ids(text: str) -> list[str]:
    """
    Extract verification identifiers from multi-line input.

    Blank lines are dropped and the rest trimmed. A line matching one of
    ``ID_PATTERNS`` contributes the captured token, otherwise the line itself.
    Duplicates are removed keeping the first occurrence.
    """
    seen: dict[str, None] = {}
    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue
        seen.setdefault(_extract_one(line), None)
    return list(seen)


def count_verification_ids(text: str) -> int:
    return len(extract_verification_ids(text))
