"""Rendering a decoded collection into a static website."""

from __future__ import annotations

import fnmatch
import os
import re
import shutil
from collections.abc import Iterable, Sequence
from typing import Union

from jinja2 import Environment, FileSystemLoader, Template, TemplateError
from markupsafe import Markup

from bookforge.config import Book, Chapter, Collection, Content

DIR_PERMS = 0o755
LAYOUTS_DIR_NAME = "layouts"
COLLECTION_TEMPLATE = "index.html"
BOOK_TEMPLATE = "_book.html"
CHAPTER_TEMPLATE = "_chapter.html"
PARTIAL_PATTERN = "_*_t.html"

_PathLike = Union[str, "os.PathLike[str]"]


class RenderError(RuntimeError):
    """Raised when the website cannot be generated."""


# ---------------------------------------------------------------------------
# Minification
# ---------------------------------------------------------------------------

_BLOCK_TAGS = (
    "html", "head", "body", "div", "p", "ul", "ol", "li", "dl", "dt", "dd",
    "h1", "h2", "h3", "h4", "h5", "h6", "table", "thead", "tbody", "tfoot",
    "tr", "td", "th", "section", "article", "aside", "header", "footer",
    "nav", "main", "figure", "figcaption", "blockquote", "form", "fieldset",
    "meta", "link", "title", "base", "br", "hr",
)
_RAW_BLOCK_RE = re.compile(
    r"<(pre|textarea|script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_COMMENT_RE = re.compile(r"<!--(.*?)-->", re.DOTALL)
_SPACE_RE = re.compile(r"\s+")
_BLOCK_TAG_RE = re.compile(
    r"\s*(</?(?:" + "|".join(_BLOCK_TAGS) + r")\b[^>]*>|<!doctype[^>]*>)\s*",
    re.IGNORECASE,
)


def _keep_special_comment(found: re.Match[str]) -> str:
    body = found.group(1)
    if body.startswith(("[if", "!", "<![endif]", "[endif")) or body.endswith("<![endif]"):
        return found.group(0)
    return ""


def _minify_segment(text: str) -> str:
    text = _COMMENT_RE.sub(_keep_special_comment, text)
    text = _SPACE_RE.sub(" ", text)
    return _BLOCK_TAG_RE.sub(r"\1", text)


def minify_html(text: str) -> str:
    """Shrink HTML by dropping ordinary comments and needless whitespace.

    Content of pre, textarea, script and style elements, quotes, default
    attribute values, document tags and conditional comments are kept.
    """
    pieces: list[str] = []
    position = 0
    for found in _RAW_BLOCK_RE.finditer(text):
        pieces.append(_minify_segment(text[position:found.start()]))
        pieces.append(found.group(0))
        position = found.end()
    pieces.append(_minify_segment(text[position:]))
    return "".join(pieces).strip()


# ---------------------------------------------------------------------------
# Static files
# ---------------------------------------------------------------------------


def _matches(pattern: str, relative: str) -> bool:
    """Match like a shell glob in which ``*`` never crosses a separator."""
    pattern_parts = pattern.replace(os.sep, "/").split("/")
    path_parts = relative.replace(os.sep, "/").split("/")
    return len(pattern_parts) == len(path_parts) and all(
        fnmatch.fnmatchcase(part, glob) for part, glob in zip(path_parts, pattern_parts)
    )


def _remove(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def copy_static_files_to_dir(
    curr_dir: _PathLike,
    new_dir: _PathLike,
    root_dir: _PathLike,
    rel_excludes: Iterable[str],
    rel_exclude_patterns: Iterable[str],
) -> None:
    """Hard-link every file below curr_dir into new_dir, mirroring its place under root_dir.

    Paths relative to root_dir that appear in rel_excludes, or that match one
    of rel_exclude_patterns, are skipped. Existing targets are replaced.
    """
    curr_dir = os.fspath(curr_dir)
    new_dir = os.fspath(new_dir)
    root_dir = os.fspath(root_dir)
    excludes = set(rel_excludes)
    patterns = list(rel_exclude_patterns)

    for name in sorted(os.listdir(curr_dir)):
        old_path = os.path.join(curr_dir, name)
        relative = os.path.relpath(old_path, root_dir)
        new_path = os.path.join(new_dir, relative)

        if relative in excludes or any(_matches(p, relative) for p in patterns):
            continue

        if os.path.isdir(old_path):
            os.makedirs(new_path, DIR_PERMS, exist_ok=True)
            copy_static_files_to_dir(old_path, new_dir, root_dir, excludes, patterns)
            continue

        _remove(new_path)
        os.link(old_path, new_path)


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


def _mark_content_safe(content: Content) -> None:
    content.html = Markup(content.html)
    content.xhtml = Markup(content.xhtml)


def _mark_book_safe(book: Book) -> None:
    _mark_content_safe(book.content)
    for chapter in book.chapters:
        _mark_content_safe(chapter.content)


def _write_page(path: str, text: str, enable_minify: bool) -> None:
    if enable_minify:
        text = minify_html(text)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text)


def _load_template(env: Environment, name: str, label: str) -> Template:
    try:
        return env.get_template(name)
    except TemplateError as exc:
        raise RenderError(f"failed to parse {label} template. {exc}") from exc


def render_book_chapters(
    chapters: Sequence[Chapter],
    template: Template,
    book_output_dir: _PathLike,
    enable_minify: bool,
) -> None:
    """Write one ``<page name>.html`` file per chapter into book_output_dir."""
    book_output_dir = os.fspath(book_output_dir)
    for chapter in chapters:
        _mark_content_safe(chapter.content)
        path = os.path.join(book_output_dir, chapter.page_name + ".html")
        _write_page(path, template.render(chapter=chapter), enable_minify)


def render_collection_to_website(
    collection: Collection,
    working_dir: _PathLike,
    output_dir: _PathLike,
    enable_minify: bool,
) -> None:
    """Generate the website for a collection from the templates in ``layouts``."""
    working_dir = os.fspath(working_dir)
    output_dir = os.fspath(output_dir)
    layouts_dir = os.path.join(working_dir, LAYOUTS_DIR_NAME)

    try:
        os.makedirs(output_dir, DIR_PERMS, exist_ok=True)
    except OSError as exc:
        raise RenderError(f"failed to create output directory. {exc}") from exc

    try:
        copy_static_files_to_dir(
            layouts_dir,
            output_dir,
            layouts_dir,
            [COLLECTION_TEMPLATE, BOOK_TEMPLATE, CHAPTER_TEMPLATE],
            [PARTIAL_PATTERN],
        )
    except OSError as exc:
        raise RenderError(f"failed to copy files to output. {exc}") from exc

    env = Environment(loader=FileSystemLoader(layouts_dir), autoescape=True)
    collection_template = _load_template(env, COLLECTION_TEMPLATE, "collection")
    book_template = _load_template(env, BOOK_TEMPLATE, "book")
    chapter_template = _load_template(env, CHAPTER_TEMPLATE, "chapter")

    for book in collection.books:
        _mark_book_safe(book)

    index_path = os.path.join(output_dir, "index.html")
    try:
        _write_page(index_path, collection_template.render(collection=collection), enable_minify)
    except (OSError, TemplateError) as exc:
        raise RenderError(f"failed to write collection index file. {exc}") from exc

    for book in collection.books:
        book_working_dir = os.path.join(working_dir, "books", book.page_name)
        book_output_dir = os.path.join(output_dir, book.page_name)
        try:
            os.makedirs(book_output_dir, DIR_PERMS, exist_ok=True)
        except OSError as exc:
            raise RenderError(
                f"failed to create book `{book.page_name}` directory. {exc}"
            ) from exc

        book_path = os.path.join(book_output_dir, "index.html")
        try:
            _write_page(book_path, book_template.render(book=book), enable_minify)
        except (OSError, TemplateError) as exc:
            raise RenderError(
                f"failed to write book `{book.page_name}` index file. {exc}"
            ) from exc

        try:
            render_book_chapters(book.chapters, chapter_template, book_output_dir, enable_minify)
        except (OSError, TemplateError) as exc:
            raise RenderError(
                f"failed to write book `{book.page_name}` chapter file. {exc}"
            ) from exc

        if book.cover_image_name.strip():
            cover_old = os.path.join(book_working_dir, book.cover_image_name)
            cover_new = os.path.join(book_output_dir, book.cover_image_name)
            try:
                _remove(cover_new)
                os.link(cover_old, cover_new)
            except OSError as exc:
                raise RenderError(
                    f"failed to add cover image of book `{book.page_name}` to output. {exc}"
                ) from exc