"""Shared fixtures and test doubles for the subtrans test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import pytest

from subtrans.documents import open_document
from subtrans.errors import TranslationProviderError
from subtrans.providers import TranslationProvider


FOUR_LINE_SRT = """1
00:00:01,000 --> 00:00:04,000
Line 1

2
00:00:05,000 --> 00:00:08,000
Line 2

3
00:00:09,000 --> 00:00:12,000
Line 3

4
00:00:13,000 --> 00:00:16,000
Line 4
"""

LINE_TRANSLATIONS = {
    "Line 1": "Trans 1",
    "Line 2": "Trans 2",
    "Line 3": "Trans 3",
    "Line 4": "Trans 4",
}


def item_texts(path: Path) -> list[str]:
    """Cue texts of a subtitle file, in order."""

    return [item.text for item in open_document(path).items]


class FakeTranslator(TranslationProvider):
    """Translator double: dictionary lookups, unit lengths, optional failure."""

    name = "fake"

    def __init__(
        self,
        *,
        translations: dict[str, str] | None = None,
        max_length: int = 10,
        fail_on_call: int | None = None,
    ) -> None:
        """Store lookup table, budget and the 1-based call number that fails."""

        self.translations = translations or {}
        self.max_length = max_length
        self.fail_on_call = fail_on_call
        self.calls: list[list[str]] = []

    def translate(self, texts: Sequence[str]) -> list[str]:
        """Record the call and translate via lookup, falling back to the input."""

        self.calls.append(list(texts))
        if self.fail_on_call == len(self.calls):
            raise TranslationProviderError("translation service unavailable")
        return [self.translations.get(text, text) for text in texts]

    def measure_length(self, text: str) -> int:
        """Every text costs one unit of budget."""

        return 1

    def max_batch_length(self) -> int:
        """Return the configured budget."""

        return self.max_length


@pytest.fixture
def fake_translator() -> Callable[..., FakeTranslator]:
    """Factory for translator doubles."""

    return FakeTranslator


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write UTF-8 content below ``tmp_path`` and return the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
