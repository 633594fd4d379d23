"""
Prose-to-block structuring for rich export.

structure_text() turns flat proposal text into one typed Block per input
line. Every block keeps its exact source line in ``raw``, so joining the
raws with newlines gives back the input. Classification is a list of small
rules tried in order; a line no rule claims becomes a paragraph.

Inline spans mark bold emphasis, currency amounts and percentages inside
paragraph, bullet and key-value blocks.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

BREAK = "break"
RULE = "rule"
PART = "part"
HEADING = "heading"
SUBHEADING = "subheading"
FIELD = "field"
BULLET = "bullet"
KEY_VALUE = "key_value"
PARAGRAPH = "paragraph"

SPAN_TEXT = "text"
SPAN_BOLD = "bold"
SPAN_AMOUNT = "amount"
SPAN_PERCENT = "percent"

PART_KEYWORDS = (
    "COVER EMAIL",
    "COVER LETTER",
    "PROPOSAL",
    "EXECUTIVE SUMMARY",
    "BUDGET",
    "APPENDIX",
    "INTRODUCTION",
    "CONCLUSION",
    "METHODOLOGY",
    "IMPLEMENTATION",
    "IMPACT",
    "SUSTAINABILITY",
    "MONITORING",
    "EVALUATION",
)
PART_MAX_CHARS = 60
NUMBERED_HEADING_MAX_CHARS = 120
CAPS_HEADING_MAX_CHARS = 80

BULLET_GLYPHS = "•‣●○–—-*"

_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_AMOUNT_RE = re.compile(
    r"(?<![A-Za-z0-9])[R$€£]\s?\d(?:[\d,. \u00a0]*\d)?"
    r"(?:\s?(?:million|billion|bn|[mMkK])\b)?"
)
_PERCENT_RE = re.compile(r"\d{1,3}(?:\.\d+)?%")


@dataclass(frozen=True)
class Span:
    kind: str
    text: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "text": self.text}


@dataclass
class Block:
    kind: str
    raw: str = ""
    text: str = ""
    spans: list[Span] = field(default_factory=list)
    level: int = 0
    number: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"kind": self.kind, "raw": self.raw, "text": self.text}
        if self.spans:
            payload["spans"] = [span.to_dict() for span in self.spans]
        if self.level:
            payload["level"] = self.level
        if self.number is not None:
            payload["number"] = self.number
        if self.key is not None:
            payload["key"] = self.key
            payload["value"] = self.value
        return payload


def _split_plain(text: str) -> list[Span]:
    """Amount and percent spans inside text that carries no bold markers."""
    spans: list[Span] = []
    position = 0
    for match in _AMOUNT_RE.finditer(text):
        spans.extend(_split_percent(text[position:match.start()]))
        spans.append(Span(SPAN_AMOUNT, match.group(0)))
        position = match.end()
    spans.extend(_split_percent(text[position:]))
    return spans


def _split_percent(text: str) -> list[Span]:
    spans: list[Span] = []
    position = 0
    for match in _PERCENT_RE.finditer(text):
        if match.start() > position:
            spans.append(Span(SPAN_TEXT, text[position:match.start()]))
        spans.append(Span(SPAN_PERCENT, match.group(0)))
        position = match.end()
    if position < len(text):
        spans.append(Span(SPAN_TEXT, text[position:]))
    return spans


def build_spans(text: str) -> list[Span]:
    """
    Split inline text into styled spans.

    ``**bold**`` loses its markers; an unterminated ``**`` stays literal.
    """
    spans: list[Span] = []
    position = 0
    for match in _BOLD_RE.finditer(text):
        spans.extend(_split_plain(text[position:match.start()]))
        spans.append(Span(SPAN_BOLD, match.group(1)))
        position = match.end()
    spans.extend(_split_plain(text[position:]))
    return spans


def spans_text(spans: list[Span]) -> str:
    return "".join(span.text for span in spans)


class BlockRule:
    """Claims a stripped, non-blank line by returning a Block, or passes with None."""

    kind = PARAGRAPH

    def classify(self, line: str) -> Optional[Block]:
        raise NotImplementedError


class SeparatorRule(BlockRule):
    kind = RULE
    _pattern = re.compile(r"^(?:={3,}|═{3,}|-{3,}$|\*{3,}$|_{3,}$)")

    def classify(self, line):
        if self._pattern.match(line):
            return Block(RULE, text="")
        return None


class PartRule(BlockRule):
    kind = PART

    def __init__(self, keywords: tuple[str, ...] = PART_KEYWORDS, max_chars: int = PART_MAX_CHARS):
        alternatives = "|".join(re.escape(keyword) for keyword in keywords)
        self._pattern = re.compile(rf"^(?:{alternatives})\b[^.!?]*$", re.IGNORECASE)
        self.max_chars = max_chars

    def classify(self, line):
        if len(line) <= self.max_chars and self._pattern.match(line):
            return Block(PART, text=line.rstrip(":").strip())
        return None


class FieldRule(BlockRule):
    kind = FIELD
    _pattern = re.compile(r"^(Subject|Re|Dear|To|From|Date|Ref):\s*(.*)$", re.IGNORECASE)

    def classify(self, line):
        match = self._pattern.match(line)
        if not match:
            return None
        return Block(FIELD, text=line, key=match.group(1), value=match.group(2).strip())


class NumberedHeadingRule(BlockRule):
    kind = HEADING
    _pattern = re.compile(r"^(\d+)[.)]\s+(.+)$")

    def classify(self, line):
        match = self._pattern.match(line)
        if not match or len(line) >= NUMBERED_HEADING_MAX_CHARS:
            return None
        number, title = match.group(1), match.group(2).strip()
        return Block(HEADING, text=f"{number}. {title}", level=2, number=number)


class MarkdownHeadingRule(BlockRule):
    kind = HEADING
    _pattern = re.compile(r"^(#{1,6})\s+(.+?)\s*#*$")

    def classify(self, line):
        match = self._pattern.match(line)
        if not match:
            return None
        return Block(HEADING, text=match.group(2).strip("* "), level=len(match.group(1)))


class CapsHeadingRule(BlockRule):
    kind = HEADING
    _pattern = re.compile(r"^[A-Z][A-Z\s&/,:\-]{4,}$")

    def classify(self, line):
        if len(line) < CAPS_HEADING_MAX_CHARS and self._pattern.match(line):
            return Block(HEADING, text=line, level=2)
        return None


class SubheadingRule(BlockRule):
    kind = SUBHEADING
    _pattern = re.compile(r"^[A-Z][a-zA-Z\s&/,]{2,30}:$")

    def classify(self, line):
        if self._pattern.match(line):
            return Block(SUBHEADING, text=line[:-1].strip(), level=3)
        return None


class BulletRule(BlockRule):
    kind = BULLET
    _pattern = re.compile("^[" + re.escape(BULLET_GLYPHS) + r"]\s+(.*)$")

    def classify(self, line):
        match = self._pattern.match(line)
        if not match:
            return None
        spans = build_spans(match.group(1))
        return Block(BULLET, text=spans_text(spans), spans=spans)


class KeyValueRule(BlockRule):
    kind = KEY_VALUE
    _pattern = re.compile(r"^(.{3,30}):\s{2,}(.+)$")

    def classify(self, line):
        if line.lower().startswith("http"):
            return None
        match = self._pattern.match(line)
        if not match:
            return None
        key, value = match.group(1).strip(), match.group(2).strip()
        spans = build_spans(value)
        return Block(KEY_VALUE, text=f"{key}: {spans_text(spans)}", spans=spans, key=key, value=value)


DEFAULT_RULES: tuple[BlockRule, ...] = (
    SeparatorRule(),
    PartRule(),
    FieldRule(),
    NumberedHeadingRule(),
    MarkdownHeadingRule(),
    CapsHeadingRule(),
    SubheadingRule(),
    BulletRule(),
    KeyValueRule(),
)


def _paragraph(line: str) -> Block:
    spans = build_spans(line)
    return Block(PARAGRAPH, text=spans_text(spans), spans=spans)


def classify_line(line: str, rules: tuple[BlockRule, ...] | list[BlockRule] = DEFAULT_RULES) -> Block:
    """Classify one line. Blank lines are breaks; unclaimed lines are paragraphs."""
    stripped = line.strip()
    if not stripped:
        return Block(BREAK, raw=line)

    block = None
    for rule in rules:
        try:
            block = rule.classify(stripped)
        except Exception:
            logger.debug("Rule %s failed on line %r", type(rule).__name__, stripped, exc_info=True)
            block = None
        if block is not None:
            break

    if block is None:
        block = _paragraph(stripped)
    block.raw = line
    return block


def structure_text(text: str, rules: tuple[BlockRule, ...] | list[BlockRule] = DEFAULT_RULES) -> list[Block]:
    """Return one Block per line of ``text``; empty text gives an empty list."""
    if not text:
        return []
    return [classify_line(line, rules) for line in text.split("\n")]


@dataclass
class PartGroup:
    title: Optional[str]
    blocks: list[Block] = field(default_factory=list)


def group_by_part(blocks: list[Block]) -> list[PartGroup]:
    """Group blocks under the part marker that precedes them."""
    groups: list[PartGroup] = []
    current = PartGroup(title=None)
    for block in blocks:
        if block.kind == PART:
            if current.title is not None or current.blocks:
                groups.append(current)
            current = PartGroup(title=block.text)
            continue
        current.blocks.append(block)
    if current.title is not None or current.blocks:
        groups.append(current)
    return groups
