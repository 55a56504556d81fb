"""Data model for collections, books and chapters."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

BOOK_STATUS_VALID_VALUES = ("completed", "hiatus", "ongoing")


class ConfigError(ValueError):
    """Raised when a configuration misses or misuses a required field."""


def _base_name(path: str) -> str:
    """Return the last element of a path, ignoring trailing separators."""
    if path == "":
        return "."
    separators = "/" + os.sep + (os.altsep or "")
    stripped = path.rstrip(separators)
    if not stripped:
        return os.sep
    return os.path.basename(stripped)


@dataclass
class SocialLink:
    """A link to a website, social page, contact or donation page."""

    name: str = ""
    address: str = ""
    is_hyperlink: bool = False


@dataclass
class Author:
    """An individual writer or contributor of an original work."""

    name: str = ""
    about: str = ""
    links: list[SocialLink] = field(default_factory=list)


@dataclass
class Content:
    """Unparsed and rendered text content."""

    raw: str = ""
    html: str = ""
    xhtml: str = ""


@dataclass
class Internal:
    """Application settings that themes may want to know about."""

    generate_epub: bool = False


@dataclass
class Series:
    """A set of related books, and this book's place in it."""

    name: str = ""
    number: float = 0.0


@dataclass
class Collection:
    """A list or index of one or more books."""

    params: dict[str, Any] = field(default_factory=dict)
    internal: Internal = field(default_factory=Internal)
    title: str = ""
    description: str = ""
    base_url: str = ""
    language_code: str = ""
    books: list["Book"] = field(default_factory=list)
    favicon_image_name: str = ""
    config_format_version: int = 0

    def initialize_defaults(self) -> None:
        """Apply the defaults used before a configuration is decoded."""
        self.title = "My Writing"
        self.config_format_version = 0
        self.internal.generate_epub = True

    def check_requirements(self) -> None:
        """Raise ConfigError if a required field is missing or empty."""
        if not self.title.strip():
            raise ConfigError("missing/empty required field `title`")


@dataclass
class Book:
    """An ordered list of chapters, with its own metadata."""

    params: dict[str, Any] = field(default_factory=dict)
    parent: Optional[Collection] = field(default=None, repr=False, compare=False)
    internal: Internal = field(default_factory=Internal)
    page_name: str = ""
    title: str = ""
    subtitle: str = ""
    title_sort: str = ""
    authors: list[Author] = field(default_factory=list)
    authors_sort: str = ""
    series: Series = field(default_factory=Series)
    description: str = ""
    copyright: str = ""
    ids: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    cover_image_name: str = ""
    favicon_image_name: str = ""
    status: str = ""
    language_code: str = ""
    mirrors: list[SocialLink] = field(default_factory=list)
    date_published: Optional[datetime] = None
    date_modified: Optional[datetime] = None
    content: Content = field(default_factory=Content)
    is_stub: bool = False
    chapters: list["Chapter"] = field(default_factory=list)

    def initialize_defaults(self, working_dir: str, parent: Optional[Collection]) -> None:
        """Apply defaults, inheriting settings from the parent collection."""
        self.page_name = _base_name(working_dir)
        self.parent = parent
        self.is_stub = False
        self.status = "completed"
        self.internal.generate_epub = True

        if parent is not None:
            self.internal.generate_epub = parent.internal.generate_epub
            if parent.language_code.strip():
                self.language_code = parent.language_code

    def check_requirements(self, working_dir: str) -> None:
        """Raise ConfigError if a required field is missing or invalid."""
        if self.page_name != _base_name(working_dir):
            raise ConfigError(
                "field `PageName` must equal to the base name of the working directory."
            )

        if not self.title.strip():
            raise ConfigError("missing/empty required field `title`.")

        if self.status.strip() and self.status.lower() not in BOOK_STATUS_VALID_VALUES:
            options = " | ".join(BOOK_STATUS_VALID_VALUES)
            raise ConfigError(
                "invalid value for field `status`. Must be one of the following "
                f"options (case-insensitive): {options}."
            )


@dataclass
class Chapter:
    """A division of a book holding its text content."""

    params: dict[str, Any] = field(default_factory=dict)
    parent: Optional[Book] = field(default=None, repr=False, compare=False)
    previous: Optional["Chapter"] = field(default=None, repr=False, compare=False)
    next: Optional["Chapter"] = field(default=None, repr=False, compare=False)
    page_name: str = ""
    title: str = ""
    subtitle: str = ""
    description: str = ""
    order: int = 0
    authors: list[Author] = field(default_factory=list)
    copyright: str = ""
    language_code: str = ""
    date_published: Optional[datetime] = None
    date_modified: Optional[datetime] = None
    content: Content = field(default_factory=Content)

    def initialize_defaults(self, working_dir: str, parent: Optional[Book]) -> None:
        """Apply defaults, inheriting language and copyright from the book."""
        self.parent = parent
        self.page_name = _base_name(working_dir).removesuffix(".md")
        self.order = 1

        if parent is not None:
            if parent.language_code.strip():
                self.language_code = parent.language_code
            if parent.copyright.strip():
                self.copyright = parent.copyright