"""Syntax highlighting for fenced code blocks in markdown documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TextIO, Union

import markdown
from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name, guess_lexer
from pygments.style import Style
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

FALLBACK_STYLE = "default"

_HIGHLIGHT_LINES_ATTR = "hl_lines"
_STYLE_ATTR = "hl_style"
_NOHL_ATTR = "nohl"
_LINENOS_ATTR = "linenos"
_LINENOS_TABLE = "table"
_LINENOS_INLINE = "inline"
_LINENOSTART_ATTR = "linenostart"

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_NAME_RE = re.compile(r"[A-Za-z_:][A-Za-z0-9_:.\-]*")
_BARE_RE = re.compile(r"[^\s}\],]+")


@dataclass
class CodeBlockContext:
    """What is known about a code block while it is rendered."""

    language: Optional[str]
    highlighted: bool
    attributes: Optional[dict[str, Any]] = None


WrapperRenderer = Callable[[CodeBlockContext, bool], str]
CodeBlockOptions = Callable[[CodeBlockContext], dict[str, Any]]


@dataclass
class HighlightConfig:
    """Settings for the highlighter.

    ``format_options`` holds keyword arguments for the HTML formatter.
    ``wrapper_renderer`` returns the opening (entering=True) or closing
    markup put around a block; ``code_block_options`` returns extra
    formatter options for a single block.
    """

    style: str = "github"
    custom_style: Optional[type[Style]] = None
    guess_language: bool = False
    format_options: dict[str, Any] = field(default_factory=dict)
    css_writer: Optional[TextIO] = None
    code_block_options: Optional[CodeBlockOptions] = None
    wrapper_renderer: Optional[WrapperRenderer] = None


class _AttributeSyntaxError(ValueError):
    pass


class _AttributeReader:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_spaces(self) -> None:
        while self.peek() and self.peek().isspace():
            self.pos += 1

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise _AttributeSyntaxError(f"expected {char!r} at {self.pos}")
        self.pos += 1

    def match(self, pattern: re.Pattern[str]) -> str:
        found = pattern.match(self.text, self.pos)
        if not found:
            raise _AttributeSyntaxError(f"unexpected input at {self.pos}")
        self.pos = found.end()
        return found.group(0)

    def quoted(self) -> str:
        self.expect('"')
        chars: list[str] = []
        while True:
            char = self.peek()
            if not char:
                raise _AttributeSyntaxError("unterminated string")
            self.pos += 1
            if char == '"':
                return "".join(chars)
            if char == "\\" and self.peek():
                char = self.peek()
                self.pos += 1
            chars.append(char)

    def value(self) -> Any:
        self.skip_spaces()
        char = self.peek()
        if char == '"':
            return self.quoted()
        if char == "[":
            return self.array()
        word = self.match(_BARE_RE)
        if _NUMBER_RE.fullmatch(word):
            return float(word)
        if word == "true":
            return True
        if word == "false":
            return False
        if word == "null":
            return None
        return word

    def array(self) -> list[Any]:
        self.expect("[")
        items: list[Any] = []
        self.skip_spaces()
        if self.peek() == "]":
            self.pos += 1
            return items
        while True:
            items.append(self.value())
            self.skip_spaces()
            if self.peek() == ",":
                self.pos += 1
                continue
            self.expect("]")
            return items

    def attributes(self) -> dict[str, Any]:
        self.expect("{")
        result: dict[str, Any] = {}
        classes: list[str] = []
        while True:
            self.skip_spaces()
            char = self.peek()
            if not char:
                raise _AttributeSyntaxError("unterminated attribute block")
            if char == "}":
                self.pos += 1
                break
            if char == "#":
                self.pos += 1
                result["id"] = self.match(_BARE_RE)
                continue
            if char == ".":
                self.pos += 1
                classes.append(self.match(_BARE_RE))
                continue
            name = self.match(_NAME_RE)
            self.skip_spaces()
            if self.peek() == "=":
                self.pos += 1
                result[name] = self.value()
            else:
                result[name] = True
        if classes:
            result["class"] = " ".join(classes)
        return result


def parse_attributes(info: Optional[str]) -> Optional[dict[str, Any]]:
    """Parse a ``{key=value ...}`` block that follows the language in an info string.

    Returns None when there is no such block, when it starts the info
    string, or when it is malformed.
    """
    if not info:
        return None
    start = info.find("{")
    if start <= 0:
        return None
    try:
        return _AttributeReader(info[start:]).attributes()
    except _AttributeSyntaxError:
        return None


def parse_highlight_lines(lines: list[Any], base_line_number: int) -> list[tuple[int, int]]:
    """Turn ``hl_lines`` entries (numbers or "a-b" strings) into absolute line ranges.

    Entries that cannot be read are skipped.
    """
    ranges: list[tuple[int, int]] = []
    offset = base_line_number - 1
    for entry in lines:
        if isinstance(entry, bool):
            continue
        if isinstance(entry, (int, float)):
            line = int(entry) + offset
            ranges.append((line, line))
        elif isinstance(entry, str):
            parts = entry.split("-")
            try:
                lhs = int(parts[0])
                rhs = int(parts[1]) if len(parts) > 1 else lhs
            except ValueError:
                continue
            ranges.append((lhs + offset, rhs + offset))
    return ranges


def _language_of(info: Optional[str]) -> Optional[str]:
    if not info:
        return None
    word = re.split(r"[\s{]", info.strip(), maxsplit=1)[0]
    return word or None


def _escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _get_style(name: str) -> Optional[type[Style]]:
    try:
        return get_style_by_name(name)
    except ClassNotFound:
        return None


def _get_lexer(language: Optional[str]) -> Optional[Lexer]:
    if language is None:
        return None
    try:
        return get_lexer_by_name(language)
    except ClassNotFound:
        return None


class Highlighter:
    """Renders fenced code blocks as highlighted HTML."""

    def __init__(self, config: Optional[HighlightConfig] = None) -> None:
        self.config = config if config is not None else HighlightConfig()

    def render_fenced_code_block(self, info: Optional[str], code: str) -> str:
        """Render one fenced block from its info string and its code."""
        config = self.config
        language = _language_of(info)
        options: dict[str, Any] = {"noclasses": True}
        options.update(config.format_options)

        style: Union[type[Style], None] = config.custom_style
        if style is None:
            style = _get_style(config.style)
        nohl = False

        attrs = parse_attributes(info)
        if attrs is not None:
            base_line_number = 1
            start = attrs.get(_LINENOSTART_ATTR)
            if isinstance(start, (int, float)) and not isinstance(start, bool):
                base_line_number = int(start)
                options["linenostart"] = base_line_number
            lines_attr = attrs.get(_HIGHLIGHT_LINES_ATTR)
            if isinstance(lines_attr, list):
                relative: list[int] = []
                for lhs, rhs in parse_highlight_lines(lines_attr, base_line_number):
                    relative.extend(
                        range(lhs - base_line_number + 1, rhs - base_line_number + 2)
                    )
                options["hl_lines"] = relative
            style_attr = attrs.get(_STYLE_ATTR)
            if isinstance(style_attr, str):
                style = _get_style(style_attr)
            if _NOHL_ATTR in attrs:
                nohl = True
            if _LINENOS_ATTR in attrs:
                linenos = attrs[_LINENOS_ATTR]
                if isinstance(linenos, bool):
                    options["linenos"] = _LINENOS_INLINE if linenos else False
                elif isinstance(linenos, str):
                    if linenos in (_LINENOS_TABLE, _LINENOS_INLINE):
                        options["linenos"] = linenos
                    elif not options.get("linenos"):
                        options["linenos"] = _LINENOS_INLINE

        lexer = _get_lexer(language)
        if not nohl and (lexer is not None or config.guess_language):
            if style is None:
                style = _get_style(FALLBACK_STYLE)
            if lexer is None:
                try:
                    lexer = guess_lexer(code)
                except ClassNotFound:
                    lexer = TextLexer()
                language = lexer.name.lower()

            context = CodeBlockContext(language, True, attrs)
            if config.code_block_options is not None:
                options.update(config.code_block_options(context))
            formatter = HtmlFormatter(style=style, **options)
            parts: list[str] = []
            if config.wrapper_renderer is not None:
                parts.append(config.wrapper_renderer(context, True))
            parts.append(highlight(code, lexer, formatter))
            if config.wrapper_renderer is not None:
                parts.append(config.wrapper_renderer(context, False))
            if config.css_writer is not None:
                config.css_writer.write(formatter.get_style_defs())
            return "".join(parts)

        parts = []
        context = CodeBlockContext(language, False, attrs)
        if config.wrapper_renderer is not None:
            parts.append(config.wrapper_renderer(context, True))
        else:
            parts.append("<pre><code")
            if language is not None:
                parts.append(f' class="language-{_escape(language)}"')
            parts.append(">")
        parts.append(_escape(code))
        if config.wrapper_renderer is not None:
            parts.append(config.wrapper_renderer(context, False))
        else:
            parts.append("</code></pre>\n")
        return "".join(parts)


_FENCE_RE = re.compile(
    r"^(?P<fence>~{3,}|`{3,})[ ]*(?P<info>[^\n]*)\n"
    r"(?P<code>.*?)(?<=\n)(?P=fence)[ ]*$",
    re.MULTILINE | re.DOTALL,
)


class _FencedBlockPreprocessor(Preprocessor):
    def __init__(self, md: markdown.Markdown, highlighter: Highlighter) -> None:
        super().__init__(md)
        self.highlighter = highlighter

    def run(self, lines: list[str]) -> list[str]:
        text = "\n".join(lines)
        position = 0
        while True:
            found = _FENCE_RE.search(text, position)
            if not found:
                break
            rendered = self.highlighter.render_fenced_code_block(
                found.group("info").strip(), found.group("code")
            )
            placeholder = self.md.htmlStash.store(rendered)
            head = f"{text[:found.start()]}\n{placeholder}\n"
            position = len(head)
            text = head + text[found.end():]
        return text.split("\n")


class HighlightingExtension(Extension):
    """Markdown extension that highlights fenced code blocks."""

    def __init__(self, config: Optional[HighlightConfig] = None, **kwargs: Any) -> None:
        self.highlight_config = config if config is not None else HighlightConfig()
        super().__init__(**kwargs)

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.registerExtension(self)
        md.preprocessors.register(
            _FencedBlockPreprocessor(md, Highlighter(self.highlight_config)),
            "bookforge_highlighting",
            25,
        )