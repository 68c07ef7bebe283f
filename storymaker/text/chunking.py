"""Narration text segmentation logic.

Responsibilities:
- Split narration text into sentence-complete chunks bounded by a character cap.
- Preserve chunk indices required for deterministic reassembly.
"""

from __future__ import annotations

import re

from ..models.datatypes import TextChunk


class Chunker:
    """Greedily pack whole sentences into bounded chunks.

    A single sentence longer than the cap becomes its own oversized chunk;
    sentences are never split.
    """

    _TERMINATORS = ".!?"
    _TRAILING_SENTENCE_CLOSERS = "\"')]}»”’"
    _COMMON_ABBREVIATIONS = frozenset(
        {
            "mr.",
            "mrs.",
            "ms.",
            "dr.",
            "prof.",
            "sr.",
            "jr.",
            "st.",
            "etc.",
            "e.g.",
            "i.e.",
            "vs.",
            "no.",
            "fig.",
            "al.",
        }
    )
    _ACRONYM_PATTERN = re.compile(r"(?:[A-Za-z]\.){2,}$")
    _PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

    def split(self, text: str, max_chunk_chars: int) -> list[TextChunk]:
        """Split text into ordered chunks of at most `max_chunk_chars` where possible.

        Raises:
            ValueError: If `max_chunk_chars` is not positive.
        """

        if max_chunk_chars <= 0:
            raise ValueError("`max_chunk_chars` must be a positive integer.")

        chunks: list[TextChunk] = []
        current: list[str] = []
        current_length = 0
        for sentence in self.sentences(text):
            added_length = len(sentence) if not current else current_length + 1 + len(sentence)
            if current and added_length > max_chunk_chars:
                chunks.append(TextChunk(index=len(chunks), content=" ".join(current)))
                current = [sentence]
                current_length = len(sentence)
                continue
            current.append(sentence)
            current_length = added_length
        if current:
            chunks.append(TextChunk(index=len(chunks), content=" ".join(current)))
        return chunks

    def sentences(self, text: str) -> list[str]:
        """Return whitespace-normalized sentences; blank lines always end a sentence."""

        sentences: list[str] = []
        for paragraph in self._PARAGRAPH_BREAK.split(text):
            sentences.extend(self._paragraph_sentences(" ".join(paragraph.split())))
        return sentences

    def _paragraph_sentences(self, paragraph: str) -> list[str]:
        """Split one normalized paragraph into sentences."""

        sentences: list[str] = []
        start = 0
        index = 0
        length = len(paragraph)
        while index < length:
            if paragraph[index] in self._TERMINATORS and self._is_sentence_boundary(
                paragraph, index
            ):
                end = self._consume_trailing_sentence_tail(paragraph, index)
                if end >= length or paragraph[end].isspace():
                    sentence = paragraph[start:end].strip()
                    if sentence:
                        sentences.append(sentence)
                    start = end
                index = end
                continue
            index += 1
        tail = paragraph[start:].strip()
        if tail:
            sentences.append(tail)
        return sentences

    def _is_sentence_boundary(self, text: str, punctuation_index: int) -> bool:
        """Return whether punctuation at index terminates a sentence."""

        if text[punctuation_index] != ".":
            return True
        if self._is_decimal_period(text, punctuation_index):
            return False
        if self._is_abbreviation_period(text, punctuation_index):
            return False
        return True

    def _is_decimal_period(self, text: str, punctuation_index: int) -> bool:
        """Return whether a period is part of a decimal number."""

        if punctuation_index <= 0 or punctuation_index + 1 >= len(text):
            return False
        return text[punctuation_index - 1].isdigit() and text[punctuation_index + 1].isdigit()

    def _is_abbreviation_period(self, text: str, punctuation_index: int) -> bool:
        """Return whether a period belongs to a likely abbreviation token."""

        start = punctuation_index
        while start > 0 and text[start - 1].isalpha():
            start -= 1
        token = text[start : punctuation_index + 1].lower()
        if token in self._COMMON_ABBREVIATIONS:
            return True

        acronym_start = max(0, punctuation_index - 8)
        acronym_window = text[acronym_start : punctuation_index + 1]
        return bool(self._ACRONYM_PATTERN.search(acronym_window))

    def _consume_trailing_sentence_tail(self, text: str, index: int) -> int:
        """Consume a terminator run and trailing closers, returning the end index."""

        adjusted = index
        text_length = len(text)
        while adjusted < text_length and text[adjusted] in self._TERMINATORS:
            adjusted += 1
        while adjusted < text_length and text[adjusted] in self._TRAILING_SENTENCE_CLOSERS:
            adjusted += 1
        return adjusted
