"""Reading collection, book and chapter directories into the data model."""

from __future__ import annotations

import html
import os
import re
from dataclasses import fields, is_dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Union

import markdown
import yaml

from bookforge.config import (
    Author,
    Book,
    Chapter,
    Collection,
    ConfigError,
    SocialLink,
)
from bookforge.highlighting import HighlightConfig, HighlightingExtension
from bookforge.meta import extract_front_matter

COLLECTION_CONFIG_NAME = "bookgen.yml"
BOOK_CONFIG_NAME = "bookgen-book.yml"
BOOK_CONTENT_NAME = "index.md"
BOOKS_DIR_NAME = "books"
CHAPTERS_DIR_NAME = "chapters"

# Back references are filled in by the decoder, never from configuration.
_SKIPPED_FIELDS = frozenset({"parent", "previous", "next"})

# Element types of list fields that hold records; other lists hold strings.
_LIST_ITEM_TYPES: dict[str, type] = {
    "authors": Author,
    "links": SocialLink,
    "mirrors": SocialLink,
    "books": Book,
    "chapters": Chapter,
}

_DATETIME_FIELDS = frozenset({"date_published", "date_modified"})


class DecodeError(ValueError):
    """Raised when a collection, book or chapter cannot be decoded."""


class _FieldTypeError(ValueError):
    pass


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_DATE = r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
_HM = r"(?P<hour>\d{1,2}):(?P<minute>\d{2})"
_SEC = r":(?P<second>\d{2})(?P<frac>\.\d+)?"
_TZ = r"(?P<tz>Z|[+-]\d{2}:\d{2})"

_DATE_FORMATS = tuple(
    (layout, re.compile(pattern))
    for layout, pattern in (
        ("2006", r"(?P<year>\d{4})"),
        ("2006-01", r"(?P<year>\d{4})-(?P<month>\d{2})"),
        ("2006-01-02", _DATE),
        ("2006-01-02 15:04", _DATE + " " + _HM),
        ("2006-01-02T15:04", _DATE + "T" + _HM),
        ("2006-01-02 15:04Z07:00", _DATE + " " + _HM + _TZ),
        ("2006-01-02T15:04Z07:00", _DATE + "T" + _HM + _TZ),
        ("2006-01-02 15:04:05", _DATE + " " + _HM + _SEC),
        ("2006-01-02T15:04:05", _DATE + "T" + _HM + _SEC),
        ("2006-01-02 15:04:05Z07:00", _DATE + " " + _HM + _SEC + _TZ),
        ("2006-01-02T15:04:05Z07:00", _DATE + "T" + _HM + _SEC + _TZ),
    )
)


def _zone(text: Optional[str]) -> timezone:
    if text is None or text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    hours, minutes = (int(part) for part in text[1:].split(":"))
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _build_datetime(found: re.Match[str]) -> datetime:
    parts = found.groupdict()
    frac = parts.get("frac")
    micro = int((frac[1:] + "000000")[:6]) if frac else 0
    return datetime(
        int(parts["year"]),
        int(parts.get("month") or 1),
        int(parts.get("day") or 1),
        int(parts.get("hour") or 0),
        int(parts.get("minute") or 0),
        int(parts.get("second") or 0),
        micro,
        tzinfo=_zone(parts.get("tz")),
    )


def string_to_time(text: str) -> datetime:
    """Parse a date string in one of the accepted layouts.

    Times without an offset are taken as UTC.
    """
    problems: list[str] = []
    for layout, pattern in _DATE_FORMATS:
        found = pattern.fullmatch(text)
        if found is None:
            problems.append(f'parsing time "{text}" as "{layout}": cannot parse')
            continue
        try:
            return _build_datetime(found)
        except ValueError as exc:
            problems.append(f'parsing time "{text}" as "{layout}": {exc}')
    raise DecodeError(
        f"date string `{text}` does not match any of the following formats:\n"
        + "\n".join(problems)
    )


def get_time_from_param(param: Any) -> datetime:
    """Turn a metadata value (a datetime, date or string) into a datetime."""
    if isinstance(param, datetime):
        return param
    if isinstance(param, date):
        return datetime(param.year, param.month, param.day, tzinfo=timezone.utc)
    if isinstance(param, str):
        return string_to_time(param)
    raise DecodeError(
        "incorrect parameter type given for date format. "
        "Must be either `string` or a date."
    )


# ---------------------------------------------------------------------------
# Mapping onto the data model
# ---------------------------------------------------------------------------


def _mismatch(path: str, expected: str, value: Any) -> _FieldTypeError:
    return _FieldTypeError(
        f"'{path}' expected type '{expected}', got unconvertible type "
        f"'{type(value).__name__}', value: '{value}'"
    )


def _to_datetime(value: Any, path: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise _mismatch(path, "datetime", value)


def _to_record(value: Any, record_type: type, current: Any, path: str) -> Any:
    if not isinstance(value, dict):
        raise _mismatch(path, "map", value)
    target = current if isinstance(current, record_type) else record_type()
    _decode_into(target, value, path)
    return target


def _convert(name: str, value: Any, current: Any, path: str) -> Any:
    """Convert a configuration value to the kind of the field it lands in."""
    if name in _DATETIME_FIELDS or isinstance(current, datetime):
        return _to_datetime(value, path)
    if current is None:
        return value
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise _mismatch(path, "bool", value)
        return value
    if isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _mismatch(path, "int", value)
        return int(value)
    if isinstance(current, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _mismatch(path, "float", value)
        return float(value)
    if isinstance(current, str):
        if not isinstance(value, str):
            raise _mismatch(path, "string", value)
        return value
    if isinstance(current, list):
        if not isinstance(value, list):
            raise _mismatch(path, "list", value)
        item_type = _LIST_ITEM_TYPES.get(name)
        converted = []
        for position, item in enumerate(value):
            item_path = f"{path}[{position}]"
            if item_type is None:
                if not isinstance(item, str):
                    raise _mismatch(item_path, "string", item)
                converted.append(item)
            else:
                converted.append(_to_record(item, item_type, None, item_path))
        return converted
    if isinstance(current, dict):
        if not isinstance(value, dict):
            raise _mismatch(path, "map", value)
        merged = dict(current)
        merged.update((str(key), item) for key, item in value.items())
        return merged
    if is_dataclass(current) and not isinstance(current, type):
        return _to_record(value, type(current), current, path)
    return value


def _decode_into(target: Any, data: dict[Any, Any], prefix: str = "") -> None:
    """Copy matching keys (case-insensitive field names) from data into target."""
    by_key = {
        item.name.replace("_", "").lower(): item.name
        for item in fields(target)
        if item.name not in _SKIPPED_FIELDS
    }
    for key, value in data.items():
        name = by_key.get(str(key).lower())
        if name is None or value is None:
            continue
        path = f"{prefix}.{name}" if prefix else name
        setattr(target, name, _convert(name, value, getattr(target, name), path))


def _load_yaml_mapping(text: str) -> dict[str, Any]:
    loaded = yaml.safe_load(text)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"expected a mapping at the top level, got {type(loaded).__name__}")
    return {str(key): value for key, value in loaded.items()}


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def _new_markdown(use_xhtml: bool) -> markdown.Markdown:
    highlighting = HighlightingExtension(
        HighlightConfig(format_options={"linenos": "inline"})
    )
    return markdown.Markdown(
        extensions=[highlighting, "tables", "footnotes", "smarty", "attr_list", "toc"],
        output_format="xhtml" if use_xhtml else "html",
    )


def convert_markdown_to_html(
    content: Union[str, bytes], use_xhtml: bool = False
) -> tuple[str, Optional[dict[str, Any]]]:
    """Render markdown to HTML (or XHTML) and return it with its front matter.

    The metadata is None when the document has no front matter block or
    the block is not valid YAML.
    """
    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
    front = extract_front_matter(text)
    rendered = _new_markdown(use_xhtml).convert(front.body)

    if front.error is not None:
        prefix = f"{html.escape(front.raw or '', quote=False)}{front.error_comment()}\n"
        return prefix + rendered, None
    return rendered, front.map


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


def _extension(path: str) -> str:
    base = os.path.basename(path)
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def _fill_dates(target: Union[Book, Chapter], label: str) -> None:
    if "published" in target.params and target.date_published is None:
        try:
            target.date_published = get_time_from_param(target.params["published"])
        except DecodeError as exc:
            raise DecodeError(f"{label}: failed to parse date published: {exc}") from exc
    if "modified" in target.params and target.date_modified is None:
        try:
            target.date_modified = get_time_from_param(target.params["modified"])
        except DecodeError as exc:
            raise DecodeError(f"{label}: failed to parse date modified: {exc}") from exc


def decode_collection(working_dir: Union[str, os.PathLike[str]]) -> Collection:
    """Decode a directory holding a collection configuration and its books."""
    working_dir = os.fspath(working_dir)
    config_path = os.path.join(working_dir, COLLECTION_CONFIG_NAME)
    try:
        with open(config_path, encoding="utf-8") as handle:
            config_text = handle.read()
    except OSError as exc:
        raise DecodeError(f"collection: failed to read file `{config_path}`. {exc}") from exc

    collection = Collection()
    collection.initialize_defaults()

    try:
        collection.params = _load_yaml_mapping(config_text)
        _decode_into(collection, collection.params)
    except (yaml.YAMLError, ValueError) as exc:
        raise DecodeError(
            f"collection: failed to decode YAML in `{config_path}`. {exc}"
        ) from exc

    try:
        collection.check_requirements()
    except ConfigError as exc:
        raise DecodeError(f"collection: failed to meet requirements. {exc}") from exc

    collection.books = []
    books_dir = os.path.join(working_dir, BOOKS_DIR_NAME)
    try:
        names = sorted(os.listdir(books_dir))
    except FileNotFoundError:
        return collection
    except OSError as exc:
        raise DecodeError(
            f"collection: failed to read books directory {books_dir}. {exc}"
        ) from exc

    for name in names:
        book_dir = os.path.join(books_dir, name)
        if os.path.isdir(book_dir):
            collection.books.append(decode_book(book_dir, collection))
    return collection


def decode_book(
    working_dir: Union[str, os.PathLike[str]], parent: Optional[Collection]
) -> Book:
    """Decode a directory holding a book configuration, content and chapters."""
    working_dir = os.fspath(working_dir)
    config_path = os.path.join(working_dir, BOOK_CONFIG_NAME)
    try:
        with open(config_path, encoding="utf-8") as handle:
            config_text = handle.read()
    except OSError as exc:
        raise DecodeError(f"book: failed to read file `{config_path}`. {exc}") from exc

    book = Book()
    book.initialize_defaults(working_dir, parent)
    label = f"book `{book.page_name}`"

    try:
        book.params = _load_yaml_mapping(config_text)
        _decode_into(book, book.params)
    except (yaml.YAMLError, ValueError) as exc:
        raise DecodeError(f"{label}: failed to decode YAML in `{config_path}`. {exc}") from exc

    try:
        book.check_requirements(working_dir)
    except ConfigError as exc:
        raise DecodeError(f"{label}: failed to meet requirements. {exc}") from exc

    content_path = os.path.join(working_dir, BOOK_CONTENT_NAME)
    try:
        with open(content_path, encoding="utf-8") as handle:
            raw = handle.read()
    except FileNotFoundError:
        raw = ""
    except OSError as exc:
        raise DecodeError(
            f"{label}: failed to read book content file at `{content_path}`, {exc}"
        ) from exc
    book.content.raw = raw
    book.content.html, _ = convert_markdown_to_html(raw, False)

    _fill_dates(book, label)

    chapters_dir = os.path.join(working_dir, CHAPTERS_DIR_NAME)
    try:
        names = sorted(os.listdir(chapters_dir))
    except FileNotFoundError:
        names = []
    except OSError as exc:
        raise DecodeError(
            f"{label}: failed to read chapters directory at `{chapters_dir}`. {exc}"
        ) from exc

    book.chapters = []
    for name in names:
        chapter_path = os.path.join(chapters_dir, name)
        if os.path.isdir(chapter_path) or not name.endswith(".md"):
            continue
        try:
            book.chapters.append(decode_chapter(chapter_path, book))
        except DecodeError as exc:
            raise DecodeError(f"book {book.page_name}: {exc}") from exc

    book.chapters.sort(key=lambda chapter: (chapter.order, chapter.title))
    for before, after in zip(book.chapters, book.chapters[1:]):
        after.previous = before
        before.next = after
    return book


def decode_chapter(path: Union[str, os.PathLike[str]], parent: Optional[Book]) -> Chapter:
    """Decode a markdown file, with optional front matter, into a Chapter."""
    path = os.fspath(path)
    if _extension(path) != ".md":
        raise DecodeError(
            f"chapter {os.path.basename(path)}: missing `.md` (markdown) file extension"
        )

    chapter = Chapter()
    chapter.initialize_defaults(path, parent)
    label = f"chapter `{chapter.page_name}`"

    try:
        with open(path, encoding="utf-8") as handle:
            raw = handle.read()
    except OSError as exc:
        raise DecodeError(f"{label}: failed to read file at `{path}`. {exc}") from exc

    chapter.content.raw = raw
    chapter.content.html, metadata = convert_markdown_to_html(raw, False)
    chapter.params = dict(metadata) if metadata else {}

    try:
        _decode_into(chapter, chapter.params)
    except ValueError as exc:
        raise DecodeError(f"{label}: failed to decode metadata in chapter. {exc}") from exc

    _fill_dates(chapter, label)
    return chapter