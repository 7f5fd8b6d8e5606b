"""Text VDF codec for Steam's localconfig.vdf.

Line-based reader and writer for the TAB-indented text form of Valve's
key/value format. The codec is intentionally lossy in the same places Steam
tolerates: string values keep their surrounding quotes verbatim, so a
parse/serialize cycle reproduces the values Steam wrote.
"""

from __future__ import annotations

import logging
import re
import warnings
from typing import Iterator

from stardew_mod_manager.core.errors import ParseWarning
from stardew_mod_manager.core.vdf_document import VdfDocument

__all__ = ["parse", "serialize", "to_string", "escape_vdf_string", "unescape_vdf_string"]

logger = logging.getLogger("stardewmodmgr.vdf")

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_INDENT = "\t"


def parse(text: str) -> VdfDocument:
    """Parses VDF text into an ordered document.

    Malformed lines never abort the parse; they are skipped and reported
    through a ParseWarning.

    Args:
        text: Full VDF file content.

    Returns:
        The parsed document. A missing closing brace at end of input closes
        the open scope implicitly.
    """
    return _parse_object(_iter_lines(text))


def _iter_lines(text: str) -> Iterator[str]:
    for line in _LINE_BREAK.split(text):
        yield line.strip()


def _parse_object(lines: Iterator[str]) -> VdfDocument:
    result: VdfDocument = {}

    for line in lines:
        if not line:
            continue
        if line == "}":
            break

        parts = [part.strip() for part in line.split("\t")]
        parts = [part for part in parts if part]

        if not parts:
            _warn(f"Skipping line without key: {line!r}")
            continue

        key = parts[0].strip('"')

        if len(parts) >= 2:
            result[key] = parts[-1]
            continue

        # A bare key must be followed by "{"; any other line is consumed and lost.
        next_line = next(lines, None)
        if next_line == "{":
            result[key] = _parse_object(lines)
        else:
            if next_line is not None:
                _warn(f"Key {key!r} not followed by '{{', dropped line {next_line!r}")
            result[key] = ""

    return result


def _warn(message: str) -> None:
    logger.debug(message)
    warnings.warn(message, ParseWarning, stacklevel=4)


def serialize(doc: VdfDocument) -> str:
    """Serializes a document back to TAB-indented VDF text.

    Keys are quoted, string values are written verbatim after two TABs.

    Args:
        doc: Document to write.

    Returns:
        The VDF text, one entry per line.
    """
    builder: list[str] = []
    _write_object(builder, doc, 0)
    return "".join(builder)


to_string = serialize


def _write_object(builder: list[str], doc: VdfDocument, depth: int) -> None:
    indent = _INDENT * depth

    for key, value in doc.items():
        builder.append(f'{indent}"{key}"')

        if isinstance(value, dict):
            builder.append("\n")
            builder.append(f"{indent}{{\n")
            _write_object(builder, value, depth + 1)
            builder.append(f"{indent}}}\n")
        else:
            builder.append(f"{_INDENT}{_INDENT}{value}\n")


def escape_vdf_string(value: str) -> str:
    """Escapes backslash, quote, newline and tab for a quoted VDF value.

    Args:
        value: Raw text.

    Returns:
        Escaped text (empty input is returned unchanged).
    """
    if not value:
        return value

    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")


def unescape_vdf_string(value: str) -> str:
    """Reverses escape_vdf_string with four literal replacements.

    The replacements run once each, in a fixed order. Text that already
    contained a backslash followed by ``n`` or ``t`` therefore does not
    survive an escape/unescape cycle: the collapsed ``\\\\`` forms a new
    escape sequence.

    Args:
        value: Escaped text.

    Returns:
        Unescaped text (empty input is returned unchanged).
    """
    if not value:
        return value

    return value.replace("\\\\", "\\").replace('\\"', '"').replace("\\n", "\n").replace("\\t", "\t")
