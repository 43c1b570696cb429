"""Subtitle document model on top of pysubs2.

Each pysubs2 event is an *item*; its ``\\N`` separated lines are *lines*; each
line is split around override and HTML tags into *segments*. Only segment text
is ever handed to a translator.
"""

from __future__ import annotations

import pathlib
import re
from dataclasses import dataclass
from typing import Dict, List

import pysubs2
from pysubs2.exceptions import Pysubs2Error

from .errors import SubtitleFormatError, UnsupportedFileTypeError
from .structures import TextAddress


MARKUP_PATTERN = re.compile(r"(<[^<>\n]*>|\{[^{}\n]*\})")
LINE_BREAK = "\\N"

DOCUMENT_FORMATS: Dict[str, str] = {
    ".srt": "srt",
    ".vtt": "vtt",
}


@dataclass
class SubtitleSegment:
    """A run of text together with the inline markup preceding it."""

    text: str
    markup: str = ""


@dataclass
class SubtitleLine:
    """One displayed line of a cue, split into segments around markup."""

    segments: List[SubtitleSegment]
    trailer: str = ""

    @classmethod
    def parse(cls, raw: str) -> "SubtitleLine":
        segments: List[SubtitleSegment] = []
        pending = ""
        for piece in MARKUP_PATTERN.split(raw):
            if not piece:
                continue
            if MARKUP_PATTERN.fullmatch(piece):
                pending += piece
                continue
            segments.append(SubtitleSegment(text=piece, markup=pending))
            pending = ""
        if not segments:
            return cls(segments=[SubtitleSegment(text="", markup=pending)])
        return cls(segments=segments, trailer=pending)

    def render(self) -> str:
        body = "".join(segment.markup + segment.text for segment in self.segments)
        return body + self.trailer


@dataclass
class SubtitleItem:
    """A single cue: the underlying event plus its parsed lines."""

    event: pysubs2.SSAEvent
    lines: List[SubtitleLine]

    @classmethod
    def from_event(cls, event: pysubs2.SSAEvent) -> "SubtitleItem":
        lines = [SubtitleLine.parse(raw) for raw in event.text.split(LINE_BREAK)]
        return cls(event=event, lines=lines)

    @property
    def start(self) -> int:
        return self.event.start

    @property
    def end(self) -> int:
        return self.event.end

    @property
    def text(self) -> str:
        return LINE_BREAK.join(line.render() for line in self.lines)

    def sync(self) -> None:
        """Write the edited lines back into the event."""

        self.event.text = self.text


class SubtitleDocument:
    """An SRT or WebVTT file addressed as ``items[i].lines[j].segments[k]``.

    Parsing and serialisation are delegated to pysubs2; this class only keeps
    the segment view in step with the events it wraps.
    """

    def __init__(self, subs: pysubs2.SSAFile, format_name: str) -> None:
        self.subs = subs
        self.format_name = format_name
        self.items: List[SubtitleItem] = [SubtitleItem.from_event(event) for event in subs]

    @classmethod
    def from_text(cls, content: str, format_name: str = "srt") -> "SubtitleDocument":
        content = _normalise_newlines(content)
        try:
            subs = pysubs2.SSAFile.from_string(
                content,
                format_=format_name,
                keep_unknown_html_tags=True,
            )
        except Pysubs2Error as exc:
            raise SubtitleFormatError(f"Could not parse {format_name} subtitles: {exc}") from exc
        if len(subs) == 0 and content.strip():
            raise SubtitleFormatError(
                f"No subtitle cues found in {format_name} content."
            )
        return cls(subs, format_name)

    def segment_at(self, address: TextAddress) -> SubtitleSegment:
        item = self.items[address.item_index]
        return item.lines[address.line_index].segments[address.seg_index]

    def has_address(self, address: TextAddress) -> bool:
        if min(address.item_index, address.line_index, address.seg_index) < 0:
            return False
        try:
            self.segment_at(address)
        except IndexError:
            return False
        return True

    def text_at(self, address: TextAddress) -> str:
        return self.segment_at(address).text

    def set_text(self, address: TextAddress, text: str) -> None:
        self.segment_at(address).text = text
        self.items[address.item_index].sync()

    def render(self) -> str:
        return self.subs.to_string(self.format_name)

    def save(self, destination: pathlib.Path) -> None:
        """Persist the document; raises ``OSError`` when the write fails."""

        self.subs.save(str(destination), encoding="utf-8", format_=self.format_name)


def _normalise_newlines(content: str) -> str:
    return content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


def detect_document_format(path: pathlib.Path) -> str:
    """Select the pysubs2 format identifier for the provided file."""

    format_name = DOCUMENT_FORMATS.get(path.suffix.lower())
    if format_name is None:
        raise UnsupportedFileTypeError(
            "This file type isn't supported. Please use .srt or .vtt subtitles."
        )
    return format_name


def open_document(path: pathlib.Path) -> SubtitleDocument:
    """Read and parse a subtitle file."""

    format_name = detect_document_format(path)
    try:
        content = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SubtitleFormatError(
            f"Subtitle file {path} is not valid UTF-8: {exc}"
        ) from exc
    try:
        return SubtitleDocument.from_text(content, format_name)
    except SubtitleFormatError as exc:
        raise SubtitleFormatError(f"{path}: {exc}") from exc
