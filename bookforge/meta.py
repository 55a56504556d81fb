"""YAML front matter blocks at the top of markdown documents."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Any, Optional

import yaml


def is_separator(line: str) -> bool:
    """Return True if the line, stripped of whitespace, holds only dashes."""
    return all(ch == "-" for ch in line.strip())


@dataclass
class FrontMatter:
    """The result of looking for a metadata block.

    ``raw`` is the YAML text of the block, or None when the document has no
    block. ``body`` is the document after the block. On a YAML error
    ``error`` is set and ``map``/``items`` are None.
    """

    body: str
    raw: Optional[str] = None
    map: Optional[dict[str, Any]] = None
    items: Optional[list[tuple[str, Any]]] = None
    error: Optional[Exception] = None

    def error_comment(self) -> Optional[str]:
        """Return the YAML error as an HTML comment, or None without error."""
        if self.error is None:
            return None
        return f"<!-- {self.error} -->"

    def as_table(self) -> Optional[str]:
        """Render the metadata as an HTML table of keys and values."""
        if self.error is not None or self.items is None:
            return None
        header = "".join(
            f"<th>{html.escape(_format_value(key))}</th>\n" for key, _ in self.items
        )
        row = "".join(
            f"<td>{html.escape(_format_value(value))}</td>\n" for _, value in self.items
        )
        return (
            "<table>\n<thead>\n<tr>\n"
            f"{header}"
            "</tr>\n</thead>\n<tbody>\n<tr>\n"
            f"{row}"
            "</tr>\n</tbody>\n</table>\n"
        )


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _opens_block(line: str) -> bool:
    indent = len(line) - len(line.lstrip(" "))
    return indent < 4 and line.strip() != "" and is_separator(line)


def _parse_yaml(text: str) -> dict[str, Any]:
    loaded = yaml.safe_load(text)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(
            f"metadata must be a mapping, not {type(loaded).__name__}"
        )
    return {str(key): value for key, value in loaded.items()}


def extract_front_matter(source: str) -> FrontMatter:
    """Split a leading ``---`` delimited YAML block from a document.

    The block must start on the first line. It ends at the next non-blank
    line of dashes, or at the end of the document if none follows.
    """
    lines = source.splitlines(keepends=True)
    if not lines or not _opens_block(lines[0]):
        return FrontMatter(body=source)

    block: list[str] = []
    rest_start = len(lines)
    for index, line in enumerate(lines[1:], start=1):
        if line.strip() and is_separator(line):
            rest_start = index + 1
            break
        block.append(line)

    raw = "".join(block)
    body = "".join(lines[rest_start:])
    try:
        mapping = _parse_yaml(raw)
    except (yaml.YAMLError, ValueError) as exc:
        return FrontMatter(body=body, raw=raw, error=exc)
    return FrontMatter(body=body, raw=raw, map=mapping, items=list(mapping.items()))