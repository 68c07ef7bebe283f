"""Deterministic narration text cleaning rules.

Responsibilities:
- Provide composable cleanup rules that make story text speakable.
- Keep preprocessing predictable so cache keys stay stable.
"""

from __future__ import annotations

import re
from typing import Protocol


class CleanerRule(Protocol):
    """Protocol for text cleaning rules."""

    def apply(self, text: str) -> str:
        """Apply a single cleaning transformation."""


class StripMarkdown:
    """Remove markdown emphasis, code ticks, heading markers, and link targets."""

    def apply(self, text: str) -> str:
        """Keep the visible text of markdown constructs."""

        text = re.sub(r"\*\*(.*?)\*\*", r"\1", text)
        text = re.sub(r"\*(.*?)\*", r"\1", text)
        text = re.sub(r"`(.*?)`", r"\1", text)
        text = re.sub(r"(?m)^\s*#{1,6}\s+", "", text)
        return re.sub(r"\[(.*?)\]\(.*?\)", r"\1", text)


class NormalizeQuotes:
    """Normalize mixed quote characters."""

    def apply(self, text: str) -> str:
        """Convert selected Unicode quotes to ASCII equivalents."""

        return (
            text.replace("“", '"')
            .replace("”", '"')
            .replace("‘", "'")
            .replace("’", "'")
        )


class CollapseWhitespace:
    """Collapse space runs and keep at most one blank line between paragraphs."""

    def apply(self, text: str) -> str:
        """Collapse consecutive spaces, blank-line runs, and ellipsis runs."""

        text = re.sub(r"\n\s*\n", "\n\n", text)
        text = re.sub(r"[ \t]+", " ", text)
        text = re.sub(r" *\n *", "\n", text)
        return re.sub(r"\.{3,}", "...", text)


class ExpandHonorifics:
    """Spell out honorific abbreviations so speech engines read them naturally."""

    _EXPANSIONS = (
        (re.compile(r"\bMrs\."), "Missus"),
        (re.compile(r"\bMr\."), "Mister"),
        (re.compile(r"\bDr\."), "Doctor"),
        (re.compile(r"\bProf\."), "Professor"),
    )

    def apply(self, text: str) -> str:
        """Replace `Mr.`, `Mrs.`, `Dr.`, and `Prof.` with spoken forms."""

        for pattern, replacement in self._EXPANSIONS:
            text = pattern.sub(replacement, text)
        return text


class NarrationCleaner:
    """Apply narration cleaning rules in a fixed order."""

    def __init__(self, rules: list[CleanerRule] | None = None) -> None:
        self.rules: list[CleanerRule] = (
            rules
            if rules is not None
            else [StripMarkdown(), NormalizeQuotes(), CollapseWhitespace(), ExpandHonorifics()]
        )

    def clean(self, text: str) -> str:
        """Return speakable text with surrounding whitespace removed."""

        for rule in self.rules:
            text = rule.apply(text)
        return text.strip()
