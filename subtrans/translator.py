"""High-level orchestration for subtitle translation."""

from __future__ import annotations

import pathlib
import sys
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .batching import BatchBuilder
from .documents import SubtitleDocument, open_document
from .errors import (
    OverwriteRefusedError,
    PersistenceError,
    SubtitleFormatError,
    SubtransError,
    TranslationBatchError,
    TranslationProviderError,
)
from .extraction import extract_text_units, find_unit_offset
from .providers import TranslationProvider
from .structures import TextAddress, TextUnit


@dataclass
class TranslationSummary:
    """Report returned after a successful run."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    document_type: str
    total_units: int
    translated_units: int
    resumed_units: int
    total_batches: int
    provider_name: str
    model: str | None
    target_language: str | None
    elapsed_seconds: float


def translate_units(
    document: SubtitleDocument,
    units: Sequence[TextUnit],
    provider: TranslationProvider,
    output_path: pathlib.Path,
    *,
    start_offset: int = 0,
    completed_baseline: int = 0,
    verbose: bool = False,
) -> int:
    """Translate ``units[start_offset:]`` batch by batch into ``document``.

    Translations are written back at each unit's address. When a batch fails,
    whatever was translated during this call is saved to ``output_path`` and a
    :class:`TranslationBatchError` describing the resume point is raised.
    On success the document is saved and the number of units translated in
    this call is returned.
    """

    pending = units[start_offset:]
    batches = BatchBuilder(provider.max_batch_length()).build(pending)

    offset = 0
    for batch in batches:
        if verbose:
            print(
                f"Translating batch {batch.batch_id} "
                f"({len(batch.units)} items, length {batch.length})"
            )
        try:
            translations = provider.translate(batch.texts)
            if len(translations) != len(batch.units):
                raise TranslationProviderError(
                    f"Translation count mismatch: got {len(translations)} translations "
                    f"for {len(batch.units)} input texts."
                )
        except Exception as exc:
            persist_error = None
            if offset > 0:
                persist_error = _save_partial(document, output_path, offset, verbose)
            raise TranslationBatchError(
                batch_number=batch.batch_id,
                completed_items=completed_baseline + offset,
                first_failed=batch.units[0],
                cause=exc,
                persist_error=persist_error,
            ) from exc

        for unit, translated in zip(batch.units, translations):
            document.set_text(unit.address, translated)
        offset += len(batch.units)

    if verbose:
        print(f"Translation completed: {offset} items translated")
    try:
        document.save(output_path)
    except OSError as exc:
        raise PersistenceError(
            f"Could not write translated subtitles to {output_path}: {exc}"
        ) from exc
    return offset


def _save_partial(
    document: SubtitleDocument,
    output_path: pathlib.Path,
    completed: int,
    verbose: bool = False,
) -> Optional[OSError]:
    try:
        document.save(output_path)
    except OSError as exc:
        print(
            f"Warning: failed to write partial translation to {output_path}: {exc}",
            file=sys.stderr,
        )
        return exc
    if verbose:
        print(f"Wrote partial translation with {completed} completed items.")
    return None


class TranslationRunner:
    """Coordinates extraction, resumption, translation and persistence."""

    def __init__(
        self,
        *,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        provider: TranslationProvider,
        resume_from: TextAddress | None = None,
        target_language: str | None = None,
        verbose: bool = False,
    ) -> None:
        self.input_path = input_path
        self.output_path = output_path
        self.provider = provider
        self.resume_from = resume_from
        self.target_language = target_language
        self.verbose = verbose

    def run(self) -> TranslationSummary:
        start_time = time.time()

        source = open_document(self.input_path)
        units = extract_text_units(source, self.provider.measure_length)

        start_offset = 0
        document = source
        if self.resume_from is not None:
            start_offset = find_unit_offset(units, self.resume_from)
            document = self._open_partial_output(units[start_offset:])
            if self.verbose:
                print(
                    f"Resuming from {self.resume_from} "
                    f"({start_offset} of {len(units)} items already translated)."
                )

        batch_count = len(
            BatchBuilder(self.provider.max_batch_length()).build(units[start_offset:])
        )
        if self.verbose:
            print(f"Prepared {len(units)} text units in {batch_count} batches.")

        translated = translate_units(
            document,
            units,
            self.provider,
            self.output_path,
            start_offset=start_offset,
            completed_baseline=start_offset,
            verbose=self.verbose,
        )

        return TranslationSummary(
            input_path=self.input_path,
            output_path=self.output_path,
            document_type=source.format_name,
            total_units=len(units),
            translated_units=translated,
            resumed_units=start_offset,
            total_batches=batch_count,
            provider_name=self.provider.name,
            model=self.provider.model,
            target_language=self.target_language,
            elapsed_seconds=time.time() - start_time,
        )

    def _open_partial_output(self, remaining: Sequence[TextUnit]) -> SubtitleDocument:
        """Load the previous output, which keeps already translated items."""

        if not self.output_path.exists():
            raise FileNotFoundError(
                f"Cannot resume: previous output {self.output_path} does not exist."
            )
        document = open_document(self.output_path)
        missing: List[TextAddress] = [
            unit.address for unit in remaining if not document.has_address(unit.address)
        ]
        if missing:
            raise SubtitleFormatError(
                f"Cannot resume: {self.output_path} does not match the input layout "
                f"(no segment at {missing[0]})."
            )
        return document


def validate_paths(input_path: pathlib.Path, output_path: pathlib.Path) -> None:
    """Validate input/output path combinations."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .srt or .vtt file."
        )
    if not input_path.is_file():
        raise SubtransError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input file. Refusing to overwrite the source subtitles."
        )
