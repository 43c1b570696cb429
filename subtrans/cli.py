"""Command line interface for the subtrans translator."""

from __future__ import annotations

import argparse
import pathlib
import re
import sys
from typing import Iterable, Optional

from .configuration import load_config
from .errors import (
    ConfigurationError,
    InvalidAddressError,
    SubtransError,
    TranslationBatchError,
)
from .providers import build_provider
from .structures import TextAddress
from .translator import TranslationRunner, TranslationSummary, validate_paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subtrans",
        description="Translate SRT and WebVTT subtitles with a large language model.",
    )
    parser.add_argument(
        "input_file",
        help="Path to the .srt or .vtt file to translate.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    parser.add_argument(
        "-t",
        "--target-lang",
        help="Destination language; overrides target_lang from the configuration.",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="Configuration file (default: ./.env.yaml or ~/.config/subtrans/config.yaml).",
    )
    parser.add_argument(
        "--from",
        dest="resume_from",
        metavar="ITEM,LINE,SEG",
        help="Resume a failed run from this address, continuing the existing output file.",
    )
    parser.add_argument(
        "--prompt",
        default="default",
        help="Prompt key from the configuration (default: built-in prompt).",
    )
    parser.add_argument(
        "--llm",
        default="default",
        help="LLM provider name from the configuration (default: default_llm).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the pipeline without calling the translation service.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str | None,
    config_file: str | None,
    resume_from: str | None,
    prompt_key: str,
    llm_name: str,
    dry_run: bool,
    verbose: bool,
    provider_debug: bool,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    try:
        config = load_config(config_file)
    except ConfigurationError as exc:
        return 1, None, str(exc)
    if target_language:
        config.target_lang = target_language

    resume_address = None
    if resume_from:
        try:
            resume_address = TextAddress.parse(resume_from)
        except InvalidAddressError as exc:
            return 1, None, str(exc)

    input_path = pathlib.Path(input_file).expanduser().resolve()
    if output_file:
        output_path = pathlib.Path(output_file).expanduser().resolve()
    else:
        output_path = derive_output_path(input_path, config.target_lang)

    try:
        validate_paths(input_path, output_path)
    except (FileNotFoundError, SubtransError) as exc:
        return 1, None, str(exc)

    if verbose:
        print(f"Input file:  {input_path}")
        print(f"Output file: {output_path}")
        print(f"Target lang: {config.target_lang}")
        print(f"LLM provider: {llm_name}")
        print(f"Dry run: {dry_run}")

    try:
        provider = build_provider(
            config,
            llm_name=llm_name,
            prompt_key=prompt_key,
            dry_run=dry_run,
            debug=provider_debug or config.provider_debug,
        )
    except ConfigurationError as exc:
        return 1, None, str(exc)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return 1, None, f"Could not create output directory {output_path.parent}: {exc}"

    runner = TranslationRunner(
        input_path=input_path,
        output_path=output_path,
        provider=provider,
        resume_from=resume_address,
        target_language=config.target_lang,
        verbose=verbose,
    )

    try:
        summary = runner.run()
    except TranslationBatchError as exc:
        return 1, None, _batch_failure_message(exc)
    except (OSError, SubtransError) as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."
    except Exception as exc:  # pragma: no cover - defensive
        return 1, None, f"Unexpected error: {exc}"

    return 0, summary, None


def _batch_failure_message(exc: TranslationBatchError) -> str:
    """Describe a failed batch and how to continue from it."""

    if exc.persist_error is not None:
        return f"{exc}\nThe partial translation could not be saved; rerun without --from."
    if exc.completed_items == 0:
        return f"{exc}\nNothing was translated; rerun without --from."
    return f"{exc}\nResume with: --from {exc.first_failed.address}"


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(f"  Subtitle type:   {summary.document_type}")
    print(
        "  Text units:      "
        f"{summary.translated_units} translated / {summary.total_units} total"
        + (f" ({summary.resumed_units} from a previous run)" if summary.resumed_units else "")
    )
    print(f"  Batches:         {summary.total_batches}")
    print(
        f"  Provider:        {summary.provider_name}"
        + (f" ({summary.model})" if summary.model else "")
    )
    if summary.target_language:
        print(f"  Target language: {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    exit_code, summary, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_language=args.target_lang,
        config_file=args.config,
        resume_from=args.resume_from,
        prompt_key=args.prompt,
        llm_name=args.llm,
        dry_run=args.dry_run,
        verbose=args.verbose,
        provider_debug=args.debug_provider,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
