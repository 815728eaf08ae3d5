"""Locate ``taylored`` marker blocks inside arbitrary source text.

Two equivalent syntaxes are recognised::

    <taylored number="3" compute="/*,*/" async="true">...</taylored>
    "anything": {"taylored": 3, "content": "...", "compute": "#!", "async": true}

The text is lexed into open-tag, close-tag and object events which a small
state machine pairs up.  Malformed blocks are logged and skipped; they never
abort the scan of the remaining file.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List

from .errors import PatchError

LOGGER = logging.getLogger(__name__)

_TOKEN = re.compile(
    r"(?P<open><taylored\b(?P<attrs>[^>]*)>)"
    r"|(?P<close></taylored\s*>)"
    r"|(?P<object>(?P<key>\"[^\"\n]*\"\s*:\s*)?(?P<brace>\{)[^{}]*\"taylored\"\s*:)"
)
_ATTRIBUTE = re.compile(r"(?P<name>[A-Za-z_][\w-]*)\s*=\s*(?P<quote>[\"'])(?P<value>.*?)(?P=quote)", re.DOTALL)
_DIGITS = re.compile(r"^\d+$")
_DECODER = json.JSONDecoder()


class BlockKind(str, Enum):
    MARKUP_TAG = "markup-tag"
    EMBEDDED_OBJECT = "embedded-object"


@dataclass(slots=True, frozen=True)
class BlockAttributes:
    number: int
    compute: str | None = None
    is_async: bool = False
    disabled: bool = False


@dataclass(slots=True)
class ParsedBlock:
    """A marker block found in ``file_path``.

    ``full_match`` is the exact span replaced or removed when the block is
    captured.  Markup blocks start at the beginning of the line holding the
    opening tag; object blocks include their optional ``"key":`` prefix.
    """

    kind: BlockKind
    attributes: BlockAttributes
    full_match: str
    content: str
    file_path: str
    start_line: int
    start_index: int

    @property
    def number(self) -> int:
        return self.attributes.number

    @property
    def end_index(self) -> int:
        return self.start_index + len(self.full_match)

    @property
    def is_compute(self) -> bool:
        return bool(self.attributes.compute)

    def compute_patterns(self) -> List[str]:
        raw = self.attributes.compute or ""
        return [item.strip() for item in raw.split(",") if item.strip()]

    def script_body(self) -> str:
        """Return the trimmed content with every ``compute`` pattern removed."""

        body = self.content.strip()
        for pattern in self.compute_patterns():
            body = body.replace(pattern, "")
        return body.strip()


class BlockEventKind(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    OBJECT = "object"


@dataclass(slots=True)
class BlockEvent:
    kind: BlockEventKind
    start: int
    end: int
    text: str
    attrs: str = ""
    key_length: int = 0


def tokenize_blocks(text: str) -> Iterator[BlockEvent]:
    """Yield open, close and object events in text order.

    Object events span the balanced JSON object starting at the matched brace,
    so braces inside string values do not end it early.  When no object can be
    decoded there, the event covers the matched prefix only and fails to parse
    downstream.
    """

    position = 0
    while True:
        match = _TOKEN.search(text, position)
        if match is None:
            return
        if match.group("open") is not None:
            yield BlockEvent(BlockEventKind.OPEN, match.start(), match.end(), match.group(0), attrs=match.group("attrs"))
            position = match.end()
            continue
        if match.group("close") is not None:
            yield BlockEvent(BlockEventKind.CLOSE, match.start(), match.end(), match.group(0))
            position = match.end()
            continue

        key = match.group("key") or ""
        try:
            _, end = _DECODER.raw_decode(text, match.start("brace"))
        except json.JSONDecodeError:
            end = match.end()
        yield BlockEvent(BlockEventKind.OBJECT, match.start(), end, text[match.start():end], key_length=len(key))
        position = end


def _line_of(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def _parse_attributes(raw: str) -> dict[str, str]:
    return {match.group("name").lower(): match.group("value") for match in _ATTRIBUTE.finditer(raw)}


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


@dataclass(slots=True)
class BlockParser:
    """Extract every well-formed marker block from a file's text."""

    warnings: List[str] = field(default_factory=list)

    def _warn(self, message: str, *args: object) -> None:
        rendered = message % args if args else message
        self.warnings.append(rendered)
        LOGGER.warning(rendered)

    def parse(self, text: str, file_path: str) -> List[ParsedBlock]:
        blocks: List[ParsedBlock] = []
        pending: BlockEvent | None = None
        consumed = 0

        for event in tokenize_blocks(text):
            if event.kind is BlockEventKind.OPEN:
                if pending is not None:
                    self._warn(
                        "Unclosed <taylored> tag at %s:%d; skipping it",
                        file_path,
                        _line_of(text, pending.start),
                    )
                pending = event
            elif event.kind is BlockEventKind.CLOSE:
                if pending is None:
                    self._warn("Stray </taylored> at %s:%d ignored", file_path, _line_of(text, event.start))
                    continue
                block = self._markup_block(text, file_path, pending, event, consumed)
                pending = None
                if block is not None:
                    blocks.append(block)
                    consumed = block.end_index
            elif pending is None:
                block = self._object_block(text, file_path, event)
                if block is not None:
                    blocks.append(block)
                    consumed = block.end_index

        if pending is not None:
            self._warn("Unclosed <taylored> tag at %s:%d; skipping it", file_path, _line_of(text, pending.start))

        blocks.sort(key=lambda item: item.start_index)
        return blocks

    def _markup_block(
        self,
        text: str,
        file_path: str,
        opening: BlockEvent,
        closing: BlockEvent,
        consumed: int,
    ) -> ParsedBlock | None:
        line = _line_of(text, opening.start)
        attributes = _parse_attributes(opening.attrs)
        raw_number = attributes.get("number")
        if raw_number is None:
            self._warn("Markup block at %s:%d has no number attribute; skipping", file_path, line)
            return None
        if not _DIGITS.match(raw_number.strip()):
            self._warn("Markup block at %s:%d has invalid number %r; skipping", file_path, line, raw_number)
            return None

        start = max(text.rfind("\n", 0, opening.start) + 1, consumed)
        return ParsedBlock(
            kind=BlockKind.MARKUP_TAG,
            attributes=BlockAttributes(
                number=int(raw_number.strip()),
                compute=attributes.get("compute"),
                is_async=_flag(attributes.get("async")),
                disabled=_flag(attributes.get("disabled")),
            ),
            full_match=text[start:closing.end],
            content=text[opening.end:closing.start].strip(),
            file_path=file_path,
            start_line=_line_of(text, start),
            start_index=start,
        )

    def _object_block(self, text: str, file_path: str, event: BlockEvent) -> ParsedBlock | None:
        line = _line_of(text, event.start)
        try:
            payload = json.loads(event.text[event.key_length:])
        except json.JSONDecodeError as error:
            self._warn("Could not parse object block at %s:%d: %s; skipping", file_path, line, error)
            return None
        if not isinstance(payload, dict):
            return None

        number = payload.get("taylored")
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            self._warn("Object block at %s:%d has invalid number %r; skipping", file_path, line, number)
            return None
        content = payload.get("content")
        if not isinstance(content, str):
            self._warn(
                "Object block %d at %s:%d has missing or non-string content; skipping",
                number,
                file_path,
                line,
            )
            return None

        compute = payload.get("compute")
        return ParsedBlock(
            kind=BlockKind.EMBEDDED_OBJECT,
            attributes=BlockAttributes(
                number=number,
                compute=compute if isinstance(compute, str) else None,
                is_async=payload.get("async") is True,
                disabled=payload.get("disabled") is True,
            ),
            full_match=event.text,
            content=content,
            file_path=file_path,
            start_line=line,
            start_index=event.start,
        )


def parse_blocks(text: str, file_path: str) -> List[ParsedBlock]:
    """Return the blocks of ``text`` sorted by offset."""

    return BlockParser().parse(text, file_path)


def _locate(text: str, block: ParsedBlock) -> tuple[int, int]:
    if text[block.start_index:block.end_index] == block.full_match:
        return block.start_index, block.end_index
    position = text.find(block.full_match)
    if position < 0:
        raise PatchError(
            f"Block {block.number} is no longer present in {block.file_path}",
            details={"file": block.file_path, "line": block.start_line},
        )
    return position, position + len(block.full_match)


def remove_block_text(text: str, block: ParsedBlock) -> str:
    """Return ``text`` without ``block``; a line left blank by the removal is dropped."""

    start, end = _locate(text, block)
    before, after = text[:start], text[end:]
    if start == 0 or text[start - 1] == "\n":
        newline = after.find("\n")
        rest = after if newline < 0 else after[:newline]
        if not rest.strip():
            after = "" if newline < 0 else after[newline + 1:]
    return before + after


def replace_block_text(text: str, block: ParsedBlock, replacement: str) -> str:
    start, end = _locate(text, block)
    return text[:start] + replacement + text[end:]


__all__ = [
    "BlockAttributes",
    "BlockEvent",
    "BlockEventKind",
    "BlockKind",
    "BlockParser",
    "ParsedBlock",
    "parse_blocks",
    "remove_block_text",
    "replace_block_text",
    "tokenize_blocks",
]
