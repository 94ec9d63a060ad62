"""Ordered multi-edit text patching, flushed to disk once per run."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from .errors import ExtractError, OverlappingEditError
from .syntax import SourceFile, SourcePosition, SourceSpan


@dataclass(frozen=True)
class TextEdit:
    """One atomic substitution.  An insertion is a replacement of an empty span."""

    span: SourceSpan
    text: str
    seq: int

    @property
    def is_insertion(self) -> bool:
        return self.span.begin.offset == self.span.end.offset


def _describe(span: SourceSpan) -> str:
    return f"{span.file}[{span.begin.offset}:{span.end.offset}]"


class EditBuffer:
    """Queue text edits against original file contents.

    All positions refer to the original bytes of each file, so edits may be
    queued in any order.  A replacement whose span fully contains earlier
    edits supersedes them: the text it replaces already reflects those
    edits when read through :meth:`rewritten_text`.  Any partial overlap is
    rejected with :class:`OverlappingEditError`.
    """

    def __init__(self) -> None:
        self._sources: Dict[str, SourceFile] = {}
        self._edits: Dict[str, List[TextEdit]] = {}
        self._seq = 0
        self._flushed = False

    def add_source(self, source: SourceFile) -> None:
        self._sources[source.path] = source

    def _source(self, path: str) -> SourceFile:
        try:
            return self._sources[path]
        except KeyError:
            raise ExtractError(f"no source registered for {path}") from None

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    # ------------------------------------------------------------------ #
    # Queuing                                                             #
    # ------------------------------------------------------------------ #

    def queue_replace(self, span: SourceSpan, text: str) -> None:
        """Replace the original text of *span* with *text*."""
        self._check_writable()
        self._source(span.file)
        kept: List[TextEdit] = []
        for edit in self._edits.get(span.file, []):
            if edit.is_insertion:
                if span.begin.offset < edit.span.begin.offset < span.end.offset:
                    continue  # superseded
            elif span.contains(edit.span):
                continue  # superseded
            elif edit.span.overlaps(span):
                raise OverlappingEditError(
                    f"edit {_describe(span)} overlaps queued edit"
                    f" {_describe(edit.span)}"
                )
            kept.append(edit)
        kept.append(TextEdit(span, text, self._next_seq()))
        self._edits[span.file] = kept

    def queue_insert_before(self, position: SourcePosition, text: str) -> None:
        """Insert *text* immediately before *position*."""
        self._check_writable()
        self._source(position.file)
        for edit in self._edits.get(position.file, []):
            if edit.is_insertion:
                continue
            if edit.span.begin.offset < position.offset < edit.span.end.offset:
                raise OverlappingEditError(
                    f"insertion at {position.file}[{position.offset}] lies inside"
                    f" queued edit {_describe(edit.span)}"
                )
        span = SourceSpan(position, position)
        self._edits.setdefault(position.file, []).append(
            TextEdit(span, text, self._next_seq())
        )

    # ------------------------------------------------------------------ #
    # Reading                                                             #
    # ------------------------------------------------------------------ #

    def _apply(self, source: SourceFile, begin: int, end: int) -> bytes:
        """Return original bytes ``[begin, end)`` with contained edits applied.

        Insertions exactly at *end* belong to the following text and are
        left out, except at end of file.
        """
        at_eof = end == len(source.data)
        edits = [
            e
            for e in self._edits.get(source.path, [])
            if begin <= e.span.begin.offset
            and e.span.end.offset <= end
            and (not e.is_insertion or e.span.begin.offset < end or at_eof)
        ]
        # Insertions sort ahead of a replacement starting at the same offset.
        edits.sort(key=lambda e: (e.span.begin.offset, not e.is_insertion, e.seq))
        out: List[bytes] = []
        cursor = begin
        for edit in edits:
            out.append(source.data[cursor : edit.span.begin.offset])
            out.append(edit.text.encode("utf-8", "surrogateescape"))
            cursor = edit.span.end.offset
        out.append(source.data[cursor:end])
        return b"".join(out)

    def rewritten_text(self, span: SourceSpan) -> str:
        """Return the text of *span* as it reads with all queued edits inside it."""
        source = self._source(span.file)
        return self._apply(source, span.begin.offset, span.end.offset).decode(
            "utf-8", "surrogateescape"
        )

    def render(self, path: str) -> bytes:
        """Return the full new contents of *path*."""
        source = self._source(path)
        return self._apply(source, 0, len(source.data))

    def changed_files(self) -> List[str]:
        return [path for path, edits in self._edits.items() if edits]

    def edits(self, path: str) -> List[TextEdit]:
        return list(self._edits.get(path, []))

    # ------------------------------------------------------------------ #
    # Flushing                                                            #
    # ------------------------------------------------------------------ #

    def _check_writable(self) -> None:
        if self._flushed:
            raise ExtractError("edit buffer has already been flushed")

    def flush(self) -> List[str]:
        """Write every changed file once.  Returns the paths written.

        All new contents are rendered before the first write, so a failure
        while rendering leaves every file untouched.
        """
        self._check_writable()
        rendered = {path: self.render(path) for path in self.changed_files()}
        self._flushed = True
        written: List[str] = []
        for path, data in rendered.items():
            if data == self._sources[path].data:
                continue
            Path(path).write_bytes(data)
            written.append(path)
        return written
