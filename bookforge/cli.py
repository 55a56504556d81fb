"""Command line entry point: decode a collection and generate its website."""

from __future__ import annotations

import enum
import os
import platform
import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from bookforge.decode import DecodeError, decode_collection
from bookforge.render import RenderError, render_collection_to_website

VERSION = "0.9.0"
PROGRAM_NAME = "bookforge"
_INDENT = " " * 4


class UsageError(ValueError):
    """Raised when the command line cannot be understood."""


class FlagType(enum.Enum):
    """Whether a flag takes a value or is a switch."""

    STRING = "string"
    BOOL = "bool"


@dataclass
class Flag:
    """A command line option with its current value."""

    name: str
    kind: FlagType
    short_name: str
    description: str
    value: str
    is_set: bool = False

    def matches(self, arg: str) -> bool:
        """Return True if arg names this flag in long or short form."""
        return arg == "--" + self.name or (bool(self.short_name) and arg == "-" + self.short_name)


def bold(text: str, plain: bool) -> str:
    """Wrap text in terminal bold escape codes unless plain output is wanted."""
    if plain:
        return text
    return "\033[1m" + text + "\033[0m"


def format_help(flags: Sequence[Flag], program_name: str) -> str:
    """Return the usage text listing every flag with its default."""
    detail = _INDENT * 3
    lines = [
        "USAGE",
        f"{_INDENT}{program_name} [FLAGS...] [/path/to/input-directory]",
        "",
        "FLAGS",
        f"{_INDENT}-h, -?, --help",
        f"{detail}Get help information on how to use this program.",
        f"{_INDENT}-v, -V, --version",
        f"{detail}Get program version.",
    ]
    for flag in flags:
        if flag.short_name:
            names = f"-{flag.short_name}, --{flag.name}"
        else:
            names = f"    --{flag.name}"
        if flag.kind is FlagType.STRING:
            names += " <string>"
        lines.append(_INDENT + names)
        lines.append(f"{detail}{flag.description} (default: {flag.value})")
    return "\n".join(lines) + "\n"


def _version_line(program_name: str) -> str:
    system = platform.system().lower() or sys.platform
    machine = platform.machine().lower() or "unknown"
    return f"{program_name} version {VERSION} {system}/{machine}"


def parse_flags(flags: Sequence[Flag], args: Sequence[str], program_name: str) -> list[str]:
    """Set flag values from args and return the positional arguments.

    Parsing stops at ``--``. Help and version requests print their text and
    raise SystemExit(0). Unknown flags are treated as positional arguments.
    """
    positional: list[str] = []
    items = iter(args)
    for arg in items:
        if arg == "--":
            break
        if arg in ("--help", "-h", "-?"):
            print(format_help(flags, program_name), end="")
            raise SystemExit(0)
        if arg in ("--version", "-v", "-V"):
            print(_version_line(program_name))
            raise SystemExit(0)

        flag = next((candidate for candidate in flags if candidate.matches(arg)), None)
        if flag is None:
            positional.append(arg)
            continue
        if flag.kind is FlagType.STRING:
            value = next(items, None)
            if value is None:
                raise UsageError(
                    f"missing value for `{arg}`. See `{program_name} --help for more information`"
                )
            flag.value = value
        else:
            flag.value = "true"
        flag.is_set = True
    return positional


def _format_duration(seconds: float) -> str:
    if seconds < 1e-6:
        return f"{seconds * 1e9:.0f}ns"
    if seconds < 1e-3:
        return f"{seconds * 1e6:.3f}µs"
    if seconds < 1:
        return f"{seconds * 1e3:.3f}ms"
    return f"{seconds:.3f}s"


def _default_flags() -> tuple[Flag, Flag, Flag, Flag, Flag]:
    return (
        Flag(
            "input-directory",
            FlagType.STRING,
            "i",
            "The working/input directory that contains a bookgen.yml file.",
            "./",
        ),
        Flag(
            "output-directory",
            FlagType.STRING,
            "o",
            "The output directory where the distributable contents will be generated in.",
            "./out",
        ),
        Flag(
            "plain",
            FlagType.BOOL,
            "",
            "Strip text styling/terminal escape codes from terminal output.",
            "false",
        ),
        Flag(
            "no-non-essential-output",
            FlagType.BOOL,
            "q",
            "Disable non-essential terminal output.",
            "false",
        ),
        Flag("minify", FlagType.BOOL, "", "Enable minification of output files.", "false"),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the generator and return the process exit status."""
    if argv is None:
        program_name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else PROGRAM_NAME
        args = list(sys.argv[1:])
    else:
        program_name = PROGRAM_NAME
        args = list(argv)

    plain = False

    def fail(message: str) -> int:
        print(bold(f"{PROGRAM_NAME} error: ", plain) + message, file=sys.stderr)
        return 1

    input_flag, output_flag, plain_flag, quiet_flag, minify_flag = flags = _default_flags()
    try:
        positional = parse_flags(flags, args, program_name)
    except UsageError as exc:
        return fail(str(exc))

    if positional and not input_flag.is_set:
        input_flag.value = positional[0]

    plain = plain_flag.value == "true"
    quiet = quiet_flag.value == "true"
    enable_minify = minify_flag.value == "true"

    if not output_flag.is_set:
        output_flag.value = os.path.join(input_flag.value, "out")

    if os.path.normpath(input_flag.value) == os.path.normpath(output_flag.value):
        return fail(
            "output directory cannot be equal to the working/input directory "
            f"(`{input_flag.value}` and `{output_flag.value}` reference the same path)."
        )

    total_start = time.perf_counter()

    decode_start = time.perf_counter()
    try:
        collection = decode_collection(input_flag.value)
    except DecodeError as exc:
        return fail(str(exc))
    if not quiet:
        print(f"Decoded ({_format_duration(time.perf_counter() - decode_start)})")

    render_start = time.perf_counter()
    try:
        render_collection_to_website(
            collection, input_flag.value, output_flag.value, enable_minify
        )
    except RenderError as exc:
        return fail(str(exc))
    if not quiet:
        print(f"Generated website ({_format_duration(time.perf_counter() - render_start)})")
        print(bold("Done", plain) + f" ({_format_duration(time.perf_counter() - total_start)})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())