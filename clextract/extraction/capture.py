"""Find the outside bindings a selection reads or writes.

Every variable, parameter, or data member referenced inside the selection
but declared outside it must become a parameter of the extracted function.
Bindings are identified by their canonical declaration (see
:class:`clextract.syntax.DeclKey`), so repeated references collapse into a
single parameter while every individual occurrence is still recorded for
renaming.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Set, Tuple

from clang.cindex import Cursor, CursorKind, Type, TypeKind

from ..errors import UnresolvedBindingError
from ..syntax import DeclKey, SourceFile, SourceSpan, canonical_key

_PLAIN_REF_KINDS = frozenset({CursorKind.DECL_REF_EXPR, CursorKind.VARIABLE_REF})
_VARIABLE_DECL_KINDS = frozenset({CursorKind.VAR_DECL, CursorKind.PARM_DECL})
# Static data members are VAR_DECLs reached through a receiver too.
_MEMBER_DECL_KINDS = frozenset({CursorKind.FIELD_DECL, CursorKind.VAR_DECL})

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]+")

IMPLICIT_RECEIVER = "this"


@dataclass(frozen=True)
class BindingKey:
    """Identity of a binding: its declaration, plus the receiver for members."""

    decl: DeclKey
    receiver: Optional[str] = None


@dataclass(frozen=True)
class Binding:
    """One canonical declaration referenced from inside the selection."""

    key: BindingKey
    name: str
    type_spelling: str
    is_reference: bool = False
    # Set for constant arrays: innermost element type and the "[N]..." suffix.
    array_element: Optional[str] = None
    array_dims: str = ""
    is_member: bool = False
    # Receiver-derived prefix for member bindings, e.g. "this" or "obj".
    qualifier: str = ""


@dataclass(frozen=True)
class Use:
    """One occurrence of a binding inside the selection."""

    span: SourceSpan
    is_member: bool = False
    qualifier: str = ""


@dataclass
class CaptureSet:
    """Ordered, deduplicated bindings with their first use and all uses."""

    bindings: List[Binding] = field(default_factory=list)
    first_uses: Dict[BindingKey, Use] = field(default_factory=dict)
    uses: List[Tuple[Use, BindingKey]] = field(default_factory=list)
    # Names declared inside the selection itself.
    local_names: FrozenSet[str] = frozenset()

    def __len__(self) -> int:
        return len(self.bindings)

    def __iter__(self) -> Iterator[Binding]:
        return iter(self.bindings)

    def first_use(self, binding: Binding) -> Use:
        return self.first_uses[binding.key]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _type_info(decl_type: Type) -> Tuple[str, bool, Optional[str], str]:
    """Return (spelling, is_reference, array_element, array_dims) for a type."""
    spelling = decl_type.spelling
    if decl_type.kind in (TypeKind.LVALUEREFERENCE, TypeKind.RVALUEREFERENCE):
        return spelling, True, None, ""
    dims = ""
    t = decl_type
    while t.kind == TypeKind.CONSTANTARRAY:
        dims += f"[{t.element_count}]"
        t = t.element_type
    if dims:
        return spelling, False, t.spelling, dims
    return spelling, False, None, ""


def receiver_qualifier(receiver: Optional[str]) -> str:
    """Derive an identifier fragment from a receiver expression.

    ``None`` (implicit ``this``), ``this`` and ``(*this)`` all give
    ``"this"``; ``p->next`` gives ``"p_next"``.
    """
    if receiver is None:
        return IMPLICIT_RECEIVER
    qualifier = _NON_IDENTIFIER.sub("_", receiver).strip("_")
    return qualifier or IMPLICIT_RECEIVER


def _location_text(source: SourceFile, cursor: Cursor) -> str:
    loc = cursor.location
    return f"{source.path}:{loc.line}:{loc.column}"


# ---------------------------------------------------------------------------
# Visitor
# ---------------------------------------------------------------------------


class _CaptureFinder:
    """Walk a function and collect references that fall inside *span*."""

    def __init__(self, source: SourceFile, span: SourceSpan) -> None:
        self.source = source
        self.span = span
        self._bindings: Dict[BindingKey, Binding] = {}
        self._order: Dict[BindingKey, tuple] = {}
        self._first_uses: Dict[BindingKey, Use] = {}
        self._uses: List[Tuple[Use, BindingKey]] = []
        self._seen: Set[SourceSpan] = set()
        self._local_names: Set[str] = set()

    # ------------------------------------------------------------------ #

    def visit(self, cursor: Cursor) -> None:
        for child in cursor.get_children():
            self._visit(child)

    def _visit(self, cursor: Cursor) -> None:
        extent = cursor.extent
        start, end = extent.start.offset, extent.end.offset
        if end <= self.span.begin.offset or start >= self.span.end.offset:
            return
        inside = self.span.begin.offset <= start and end <= self.span.end.offset
        if inside:
            kind = cursor.kind
            if kind in _PLAIN_REF_KINDS:
                self._visit_decl_ref(cursor)
                return
            if kind == CursorKind.MEMBER_REF_EXPR and self._visit_member_ref(cursor):
                return
            if kind in _VARIABLE_DECL_KINDS and cursor.spelling:
                self._local_names.add(cursor.spelling)
        for child in cursor.get_children():
            self._visit(child)

    def _resolve(self, cursor: Cursor) -> Cursor:
        ref = cursor.referenced
        if ref is None:
            name = cursor.spelling or self.source.text(self.source.cursor_span(cursor))
            raise UnresolvedBindingError(
                f"{_location_text(self.source, cursor)}: cannot resolve"
                f" {name!r} to a declaration"
            )
        return ref.canonical

    def _declared_inside(self, decl: Cursor) -> bool:
        loc = decl.location
        if not self.source.is_same_file(loc.file.name if loc.file else None):
            return False
        return self.span.contains_offset(loc.offset)

    def _visit_decl_ref(self, cursor: Cursor) -> None:
        decl = self._resolve(cursor)
        if decl.kind not in _VARIABLE_DECL_KINDS or self._declared_inside(decl):
            return
        self._record(decl, Use(self.source.cursor_span(cursor)))

    def _visit_member_ref(self, cursor: Cursor) -> bool:
        """Record a data-member access.  Returns False to descend instead."""
        if cursor.referenced is None:
            # Dependent member (generic lambda): only the receiver can bind.
            return False
        decl = self._resolve(cursor)
        if decl.kind not in _MEMBER_DECL_KINDS:
            return False
        receiver = self._receiver_text(cursor)
        if receiver is not None and self._receiver_is_local(cursor):
            return False
        use = Use(
            self.source.cursor_span(cursor),
            is_member=True,
            qualifier=receiver_qualifier(receiver),
        )
        self._record(decl, use)
        return True

    def _receiver_text(self, cursor: Cursor) -> Optional[str]:
        """Return the explicit receiver's text, or None for implicit ``this``."""
        start = cursor.extent.start.offset
        member_at = cursor.location.offset
        if member_at <= start:
            return None
        text = self.source.text(self.source.span(start, member_at)).rstrip()
        for accessor in ("->", "."):
            if text.endswith(accessor):
                text = text[: -len(accessor)].rstrip()
                break
        return text

    def _receiver_is_local(self, cursor: Cursor) -> bool:
        """Return True if the receiver refers to a selection-local declaration."""
        for node in cursor.walk_preorder():
            if node.kind in _PLAIN_REF_KINDS and node.referenced is not None:
                if self._declared_inside(node.referenced.canonical):
                    return True
        return False

    def _record(self, decl: Cursor, use: Use) -> None:
        if use.span in self._seen:
            return
        self._seen.add(use.span)
        key = BindingKey(
            canonical_key(decl), use.qualifier if use.is_member else None
        )
        if key not in self._bindings:
            spelling, is_ref, element, dims = _type_info(decl.type)
            self._bindings[key] = Binding(
                key=key,
                name=decl.spelling,
                type_spelling=spelling,
                is_reference=is_ref,
                array_element=element,
                array_dims=dims,
                is_member=use.is_member,
                qualifier=use.qualifier,
            )
            self._order[key] = (
                not self.source.is_same_file(key.decl.file),
                key.decl.file,
                key.decl.offset,
                use.span.begin.offset,
            )
            self._first_uses[key] = use
        self._uses.append((use, key))

    def result(self) -> CaptureSet:
        ordered = sorted(self._bindings, key=lambda k: self._order[k])
        return CaptureSet(
            bindings=[self._bindings[k] for k in ordered],
            first_uses=dict(self._first_uses),
            uses=list(self._uses),
            local_names=frozenset(self._local_names),
        )


def find_captures(function: Cursor, span: SourceSpan, source: SourceFile) -> CaptureSet:
    """Return the CaptureSet of outside bindings referenced inside *span*."""
    finder = _CaptureFinder(source, span)
    finder.visit(function)
    return finder.result()
