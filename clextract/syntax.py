"""Source positions and the libclang-backed syntax tree provider.

Positions are byte offsets into a file's original contents, which is also
what libclang reports through ``SourceLocation.offset``.  The original
bytes are never mutated during a run; every rewrite is expressed as an edit
against them (see :mod:`clextract.patch`).
"""

from __future__ import annotations

import bisect
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from clang.cindex import (
    CompilationDatabase,
    CompilationDatabaseError,
    Config,
    Cursor,
    CursorKind,
    Diagnostic,
    Index,
    TranslationUnit,
    TranslationUnitLoadError,
)

from .config import ExtractConfig
from .errors import ExtractError, ParseError

_LINE_TERMINATOR = re.compile(rb"\r\n|\r|\n")

_FUNCTION_KINDS = frozenset(
    {
        CursorKind.FUNCTION_DECL,
        CursorKind.CXX_METHOD,
        CursorKind.CONSTRUCTOR,
        CursorKind.DESTRUCTOR,
        CursorKind.CONVERSION_FUNCTION,
    }
)

# Declarations whose children may contain function definitions.
_CONTAINER_KINDS = frozenset(
    {
        CursorKind.NAMESPACE,
        CursorKind.LINKAGE_SPEC,
        CursorKind.UNEXPOSED_DECL,
        CursorKind.CLASS_DECL,
        CursorKind.STRUCT_DECL,
        CursorKind.UNION_DECL,
    }
)

# Templated code has dependent names that cannot be resolved to a single
# declaration, and the new function would need the template header.
_TEMPLATE_KINDS = frozenset(
    {
        CursorKind.FUNCTION_TEMPLATE,
        CursorKind.CLASS_TEMPLATE,
        CursorKind.CLASS_TEMPLATE_PARTIAL_SPECIALIZATION,
    }
)

_COMPILE_DB_NAME = "compile_commands.json"

# Compiler flags that take the following argument as their value and must
# be dropped together with it when reusing a compile command.
_FLAGS_WITH_OUTPUT = frozenset({"-o", "-MF", "-MT", "-MQ"})
_FLAGS_DROPPED = frozenset({"-c", "-MD", "-MMD"})


# ---------------------------------------------------------------------------
# Positions and spans
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class SourcePosition:
    """A byte offset into one file."""

    file: str
    offset: int

    def is_before(self, other: "SourcePosition") -> bool:
        if self.file != other.file:
            raise ValueError(f"cannot order {self.file} against {other.file}")
        return self.offset < other.offset

    def advance(self, delta: int) -> "SourcePosition":
        return SourcePosition(self.file, self.offset + delta)


@dataclass(frozen=True)
class SourceSpan:
    """Half-open byte range ``[begin, end)`` within one file."""

    begin: SourcePosition
    end: SourcePosition

    def __post_init__(self) -> None:
        if self.begin.file != self.end.file:
            raise ValueError("span endpoints must be in the same file")
        if self.end.offset < self.begin.offset:
            raise ValueError(
                f"span end {self.end.offset} precedes begin {self.begin.offset}"
            )

    @property
    def file(self) -> str:
        return self.begin.file

    def contains(self, other: "SourceSpan") -> bool:
        """Return True if *other* lies entirely within this span."""
        return (
            other.file == self.file
            and self.begin.offset <= other.begin.offset
            and other.end.offset <= self.end.offset
        )

    def contains_offset(self, offset: int) -> bool:
        return self.begin.offset <= offset < self.end.offset

    def overlaps(self, other: "SourceSpan") -> bool:
        return (
            other.file == self.file
            and self.begin.offset < other.end.offset
            and other.begin.offset < self.end.offset
        )


@dataclass(frozen=True, order=True)
class DeclKey:
    """Stable identity of a canonical declaration: where its name is spelled."""

    file: str
    offset: int


class SourceFile:
    """The original contents of one source file plus line bookkeeping."""

    def __init__(self, path: str, data: bytes) -> None:
        self.path = path
        self.data = data
        self._line_starts: List[int] = [0] + [
            m.end() for m in _LINE_TERMINATOR.finditer(data)
        ]

    @classmethod
    def read(cls, path: str) -> "SourceFile":
        return cls(path, Path(path).read_bytes())

    @property
    def line_count(self) -> int:
        """Number of lines, not counting the empty tail after a final newline."""
        count = len(self._line_starts)
        if count > 1 and self._line_starts[-1] == len(self.data):
            count -= 1
        return count

    def position(self, line: int, column: int = 1) -> SourcePosition:
        """Translate a 1-based (line, column) into a position."""
        if not 1 <= line <= self.line_count:
            raise ValueError(f"line {line} is outside {self.path}")
        return SourcePosition(self.path, self._line_starts[line - 1] + column - 1)

    def line_end(self, line: int) -> SourcePosition:
        """Return the position of *line*'s terminator (or end of file)."""
        if not 1 <= line <= self.line_count:
            raise ValueError(f"line {line} is outside {self.path}")
        if line == len(self._line_starts):
            return SourcePosition(self.path, len(self.data))
        end = self._line_starts[line]
        if self.data[end - 2 : end] == b"\r\n":
            end -= 2
        else:
            end -= 1
        return SourcePosition(self.path, end)

    def line_of(self, offset: int) -> int:
        """Return the 1-based line containing byte *offset*."""
        return bisect.bisect_right(self._line_starts, offset)

    def span(self, begin: int, end: int) -> SourceSpan:
        return SourceSpan(
            SourcePosition(self.path, begin), SourcePosition(self.path, end)
        )

    def text(self, span: SourceSpan) -> str:
        return self.data[span.begin.offset : span.end.offset].decode(
            "utf-8", "surrogateescape"
        )

    def skip_whitespace(self, offset: int, limit: int) -> int:
        """Advance *offset* past whitespace, stopping at *limit*."""
        while offset < limit and self.data[offset : offset + 1].isspace():
            offset += 1
        return offset

    def is_same_file(self, name: Optional[str]) -> bool:
        if not name:
            return False
        return _normalize(name) == _normalize(self.path)

    def cursor_span(self, cursor: Cursor) -> SourceSpan:
        extent = cursor.extent
        return self.span(extent.start.offset, extent.end.offset)


def _normalize(path: str) -> str:
    return os.path.realpath(path)


# ---------------------------------------------------------------------------
# Compiler arguments
# ---------------------------------------------------------------------------


def find_compilation_database(source_path: str) -> Optional[str]:
    """Find the nearest directory above *source_path* with compile_commands.json."""
    p = Path(source_path).resolve().parent
    while True:
        if (p / _COMPILE_DB_NAME).is_file():
            return str(p)
        if p == p.parent:
            return None
        p = p.parent


def _strip_compile_command(
    arguments: Sequence[str], directory: str, source_path: str
) -> List[str]:
    """Turn a recorded compile command into arguments for ``Index.parse``.

    Drops the compiler executable, the source file itself, and output and
    dependency-file flags; libclang takes the source path separately.
    """
    target = _normalize(source_path)
    result: List[str] = []
    args = list(arguments[1:])
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in _FLAGS_WITH_OUTPUT:
            i += 2
            continue
        if arg in _FLAGS_DROPPED:
            i += 1
            continue
        if not arg.startswith("-") and (
            _normalize(os.path.join(directory, arg)) == target
        ):
            i += 1
            continue
        result.append(arg)
        i += 1
    return result


def _args_from_database(build_path: str, source_path: str) -> Optional[List[str]]:
    try:
        db = CompilationDatabase.fromDirectory(build_path)
    except CompilationDatabaseError as exc:
        raise ExtractError(
            f"could not load compilation database from {build_path}: {exc}"
        ) from exc
    commands = db.getCompileCommands(str(Path(source_path).resolve()))
    if not commands:
        return None
    cmd = commands[0]
    return _strip_compile_command(list(cmd.arguments), cmd.directory, source_path)


def compile_args_for(
    source_path: str,
    config: ExtractConfig,
    build_path: Optional[str] = None,
    extra_args: Sequence[str] = (),
) -> List[str]:
    """Choose the compiler arguments for *source_path*.

    Arguments given after ``--`` on the command line act as a fixed
    compilation database and win outright.  Otherwise an explicit build
    path is required to provide a command, then an auto-detected
    compile_commands.json is consulted, and finally the configured
    defaults are used.
    """
    if extra_args:
        return list(extra_args)
    if build_path is not None:
        args = _args_from_database(build_path, source_path)
        if args is None:
            raise ExtractError(
                f"no compile command for {source_path} in {build_path}"
            )
        return args
    detected = find_compilation_database(source_path)
    if detected is not None:
        args = _args_from_database(detected, source_path)
        if args is not None:
            return args
    return list(config.clang_args)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _configure_library(config: ExtractConfig) -> None:
    if config.libclang_path and not Config.loaded:
        Config.set_library_file(config.libclang_path)


def _format_diagnostic(diag: Diagnostic) -> str:
    loc = diag.location
    where = f"{loc.line}:{loc.column}" if loc.file else "?"
    return f"{where}: {diag.spelling}"


def parse_translation_unit(
    path: str, args: Sequence[str], config: ExtractConfig
) -> TranslationUnit:
    """Parse *path* with libclang; raise ParseError on failure or error diagnostics."""
    _configure_library(config)
    index = Index.create()
    try:
        tu = index.parse(path, args=list(args))
    except TranslationUnitLoadError as exc:
        raise ParseError(f"{path}: {exc}") from exc

    errors = [d for d in tu.diagnostics if d.severity >= Diagnostic.Error]
    if errors and not config.ignore_parse_errors:
        detail = "; ".join(_format_diagnostic(d) for d in errors[:3])
        more = f" (+{len(errors) - 3} more)" if len(errors) > 3 else ""
        raise ParseError(f"{path}: {detail}{more}")
    return tu


# ---------------------------------------------------------------------------
# Declaration queries
# ---------------------------------------------------------------------------


def _walk_declarations(cursor: Cursor, source: SourceFile) -> Iterator[Cursor]:
    """Yield declarations spelled in *source*, descending into scopes."""
    for child in cursor.get_children():
        if not source.is_same_file(
            child.location.file.name if child.location.file else None
        ):
            continue
        yield child
        if child.kind in _CONTAINER_KINDS:
            yield from _walk_declarations(child, source)


def _is_templated(cursor: Cursor) -> bool:
    """Return True if *cursor* is, or is a member of, a template."""
    node: Optional[Cursor] = cursor
    while node is not None and node.kind != CursorKind.TRANSLATION_UNIT:
        if node.kind in _TEMPLATE_KINDS:
            return True
        node = node.semantic_parent
    return False


def find_enclosing_function(
    tu: TranslationUnit, source: SourceFile, first_line: int, last_line: int
) -> Optional[Cursor]:
    """Return the function definition whose extent contains both lines.

    Function templates and members of class templates are never returned.
    """
    for cursor in _walk_declarations(tu.cursor, source):
        if cursor.kind not in _FUNCTION_KINDS or not cursor.is_definition():
            continue
        if _is_templated(cursor):
            continue
        extent = cursor.extent
        if extent.start.line <= first_line and last_line <= extent.end.line:
            return cursor
    return None


def function_body(cursor: Cursor) -> Optional[Cursor]:
    """Return the compound statement forming *cursor*'s body, if any."""
    body = None
    for child in cursor.get_children():
        if child.kind == CursorKind.COMPOUND_STMT:
            body = child
    return body


def canonical_key(cursor: Cursor) -> DeclKey:
    """Return the DeclKey of *cursor*'s canonical declaration."""
    loc = cursor.canonical.location
    name = loc.file.name if loc.file else ""
    return DeclKey(_normalize(name) if name else "", loc.offset)
