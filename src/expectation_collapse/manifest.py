"""Reader for the line-oriented annotation (``.ini`` metadata) dialect.

Only structure is parsed here; condition text is kept raw so the driver can
decide how condition errors are handled. Example::

    [test.html]
      expected:
        if (os == "win") and debug: FAIL
        if os == "linux": PASS
        TIMEOUT
      [subtest name]
        expected: FAIL
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from expectation_collapse.errors import ManifestParseError

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+\Z")
_KEY_RE = re.compile(r"([^\s:\[#][^:]*?)\s*:(.*)\Z")


@dataclass(frozen=True)
class Entry:
    condition: str
    outcome: str
    line: int


@dataclass
class PropertyBlock:
    """A ``key:`` line followed by its conditional entries.

    ``start`` is the 0-based index of the key line, ``end`` is exclusive.
    """

    section: tuple[str, ...]
    key: str
    start: int
    indent: str
    end: int = 0
    entry_indent: str | None = None
    entries: list[Entry] = field(default_factory=list)
    default: str | None = None
    has_comments: bool = False

    @property
    def line(self) -> int:
        return self.start + 1


@dataclass(frozen=True)
class Manifest:
    lines: tuple[str, ...]
    blocks: tuple[PropertyBlock, ...]
    sections: tuple[tuple[str, ...], ...]
    newline: str

    def text(self) -> str:
        return "".join(self.lines)


def split_lines(text: str) -> list[str]:
    return _LINE_RE.findall(text)


def detect_newline(lines: list[str]) -> str:
    for line in lines:
        if line.endswith("\r\n"):
            return "\r\n"
        if line.endswith("\n"):
            return "\n"
    return "\n"


def split_conditional(text: str) -> tuple[str, str] | None:
    """Split ``cond: outcome`` at the first colon outside string literals."""
    quote: str | None = None
    escaped = False
    for index, ch in enumerate(text):
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == ":":
            return text[:index].strip(), text[index + 1 :].strip()
    return None


def _unescape_section(name: str) -> str:
    return re.sub(r"\\(.)", r"\1", name)


def _header_name(body: str, line: int) -> str:
    inner = body[1:-1]
    # An odd run of backslashes escapes the closing bracket.
    if not body.endswith("]") or (len(inner) - len(inner.rstrip("\\"))) % 2:
        raise ManifestParseError(reason="unterminated_section_header", line=line)
    return _unescape_section(inner)


def parse_manifest(text: str) -> Manifest:
    lines = split_lines(text)
    blocks: list[PropertyBlock] = []
    sections: list[tuple[str, ...]] = []
    stack: list[tuple[int, str]] = []
    block: PropertyBlock | None = None

    def close(end: int) -> None:
        nonlocal block
        if block is None:
            return
        if not block.entries and block.default is None:
            raise ManifestParseError(reason="empty_property_block", line=block.line, ctx={"key": block.key})
        block.end = end
        blocks.append(block)
        block = None

    for index, raw in enumerate(lines):
        lineno = index + 1
        content = raw.rstrip("\r\n")
        stripped = content.lstrip(" \t")
        indent = len(content) - len(stripped)
        body = stripped.rstrip()

        if not body:
            close(index)
            continue
        if "\t" in content[:indent]:
            raise ManifestParseError(reason="tab_indentation", line=lineno)

        if body.startswith("#"):
            if block is not None and indent > len(block.indent):
                block.has_comments = True
            else:
                close(index)
            continue

        if block is not None and indent > len(block.indent):
            pad = content[:indent]
            if block.entry_indent is None:
                block.entry_indent = pad
            elif pad != block.entry_indent:
                raise ManifestParseError(reason="inconsistent_indentation", line=lineno)
            if block.default is not None:
                raise ManifestParseError(reason="default_not_last", line=lineno, ctx={"key": block.key})
            if body.startswith("if "):
                parts = split_conditional(body[3:])
                if parts is None:
                    raise ManifestParseError(reason="missing_colon", line=lineno)
                condition, outcome = parts
                if not condition or not outcome:
                    raise ManifestParseError(reason="missing_condition_or_outcome", line=lineno)
                block.entries.append(Entry(condition, outcome, lineno))
            else:
                block.default = body
            continue

        close(index)
        if body.startswith("if "):
            raise ManifestParseError(reason="entry_outside_block", line=lineno)

        while stack and stack[-1][0] >= indent:
            stack.pop()
        if not stack and indent != 0:
            raise ManifestParseError(reason="unexpected_indentation", line=lineno)

        if body.startswith("["):
            stack.append((indent, _header_name(body, lineno)))
            sections.append(tuple(name for _, name in stack))
            continue

        match = _KEY_RE.match(body)
        if match is None:
            raise ManifestParseError(reason="expected_key", line=lineno, ctx={"text": body})
        key, value = match.group(1), match.group(2).strip()
        if not value:
            block = PropertyBlock(
                section=tuple(name for _, name in stack),
                key=key,
                start=index,
                indent=content[:indent],
            )

    close(len(lines))
    return Manifest(tuple(lines), tuple(blocks), tuple(sections), detect_newline(lines))


__all__ = [
    "Entry",
    "PropertyBlock",
    "Manifest",
    "parse_manifest",
    "split_conditional",
    "split_lines",
]
