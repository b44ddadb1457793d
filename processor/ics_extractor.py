"""Splitting of raw ICS text into event blocks and extraction of fields."""
import logging
import re
from typing import Dict, List, Optional

from processor.models import RawField

logger = logging.getLogger(__name__)

EVENT_BEGIN = 'BEGIN:VEVENT'
EVENT_END = 'END:VEVENT'

_EVENT_BEGIN_RE = re.compile(r'^BEGIN:VEVENT[ \t]*$', re.MULTILINE)
_EVENT_END_RE = re.compile(r'^END:VEVENT[ \t]*$', re.MULTILINE)
# Nested components such as VALARM carry their own DESCRIPTION/SUMMARY lines
_SUBCOMPONENT_RE = re.compile(
    r'^BEGIN:(?P<kind>[A-Z-]+)[ \t]*\n.*?^END:(?P=kind)[ \t]*(?:\n|$)',
    re.MULTILINE | re.DOTALL
)
_FOLD_RE = re.compile(r'\n[ \t]')


def unfold(text: str) -> str:
    """
    Normalize line endings to ``\\n`` and join folded continuation lines.

    Args:
        text: Raw feed text

    Returns:
        Text where every logical content line sits on one physical line
    """
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return _FOLD_RE.sub('', text)


def split_blocks(text: str) -> List[str]:
    """
    Split feed text into one block per VEVENT.

    Unfolding happens before splitting so that a fold can never hide a
    component boundary. Each block starts with ``BEGIN:VEVENT`` and stops at
    its ``END:VEVENT`` when one is present, otherwise at the next event.

    Args:
        text: Raw feed text

    Returns:
        Ordered list of event blocks, possibly empty
    """
    text = unfold(text)
    starts = [m.start() for m in _EVENT_BEGIN_RE.finditer(text)]
    if not starts:
        logger.info("No VEVENT components found in feed")
        return []

    blocks = []
    for index, begin in enumerate(starts):
        stop = starts[index + 1] if index + 1 < len(starts) else len(text)
        chunk = text[begin:stop]
        end_match = _EVENT_END_RE.search(chunk)
        if end_match:
            chunk = chunk[:end_match.end()]
        blocks.append(_strip_subcomponents(chunk))
    return blocks


def _strip_subcomponents(block: str) -> str:
    header, newline, body = block.partition('\n')
    return header + newline + _SUBCOMPONENT_RE.sub('', body)


def parse_content_line(line: str) -> Optional[RawField]:
    """
    Parse one unfolded content line into a RawField.

    Parameter values may be quoted; a colon inside quotes does not end the
    parameter section. Parameter names are upper-cased.

    Returns:
        RawField, or None if the line has no name/value separator
    """
    params: Dict[str, str] = {}
    in_quotes = False
    colon_at = -1
    for index, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif char == ':' and not in_quotes:
            colon_at = index
            break
    if colon_at < 0:
        # Unbalanced quote: split at the first colon instead
        colon_at = line.find(':')
        if colon_at < 0:
            return None

    head, value = line[:colon_at], line[colon_at + 1:]
    name, *raw_params = _split_params(head)
    for token in raw_params:
        key, sep, param_value = token.partition('=')
        if not sep or not key:
            continue
        params[key.strip().upper()] = _unquote(param_value)
    return RawField(name=name, value=value, parameters=params)


def _split_params(head: str) -> List[str]:
    parts = []
    current = []
    in_quotes = False
    for char in head:
        if char == '"':
            in_quotes = not in_quotes
        if char == ';' and not in_quotes:
            parts.append(''.join(current))
            current = []
        else:
            current.append(char)
    parts.append(''.join(current))
    return parts


def _unquote(value: str) -> str:
    return value.strip('"')


def get_field(block: str, name: str) -> Optional[RawField]:
    """
    Find the first content line named ``name`` in a block.

    Matching is case-sensitive and the name must be followed directly by
    ``;`` or ``:``, so ``DTSTART`` never matches ``DTSTAMP``.

    Args:
        block: Unfolded event block
        name: Property name, e.g. ``DTSTART``

    Returns:
        RawField with value and parameters, or None when absent
    """
    for line in block.split('\n'):
        if not line.startswith(name):
            continue
        if len(line) <= len(name) or line[len(name)] not in ';:':
            continue
        parsed = parse_content_line(line)
        if parsed is not None and parsed.name == name:
            return parsed
    return None


def get(block: str, name: str) -> Optional[str]:
    """Value of the first ``name`` line in a block, or None."""
    raw = get_field(block, name)
    return raw.value if raw else None


def unescape_text(value: Optional[str]) -> str:
    """
    Decode ICS TEXT escapes and trim surrounding whitespace.

    Escapes are replaced in a fixed order: newline, comma, semicolon,
    then backslash. None decodes to an empty string.
    """
    if not value:
        return ''
    return (
        value.replace('\\n', '\n')
        .replace('\\N', '\n')
        .replace('\\,', ',')
        .replace('\\;', ';')
        .replace('\\\\', '\\')
        .strip()
    )


def get_text(block: str, name: str) -> str:
    """Decoded free-text value of a field; empty string when absent."""
    return unescape_text(get(block, name))
