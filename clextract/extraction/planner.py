"""Assign a unique parameter name and a by-reference type to every binding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..errors import NameCollisionExhausted
from .capture import Binding, CaptureSet

_DEFAULT_MAX_ATTEMPTS = 64


@dataclass(frozen=True)
class PlanEntry:
    binding: Binding
    name: str
    type_spelling: str  # reference type; "(&)" marks where an array name goes

    def declaration(self) -> str:
        """Return the formal parameter text, e.g. ``int& x`` or ``int (&a)[3]``."""
        if "(&)" in self.type_spelling:
            return self.type_spelling.replace("(&)", f"(&{self.name})", 1)
        return f"{self.type_spelling} {self.name}"


@dataclass
class ParameterPlan:
    """Plan entries in capture (declaration) order."""

    entries: List[PlanEntry]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def name_for(self, binding: Binding) -> str:
        for entry in self.entries:
            if entry.binding.key == binding.key:
                return entry.name
        raise KeyError(binding.key)

    @property
    def names(self) -> List[str]:
        return [e.name for e in self.entries]

    def parameter_list(self) -> str:
        return ", ".join(e.declaration() for e in self.entries)


def reference_type(binding: Binding) -> str:
    """Return the binding's declared type as a reference type.

    Types that are already references are kept as written.  Constant arrays
    become references to arrays, spelled with a ``(&)`` placeholder.
    """
    if binding.is_reference:
        return binding.type_spelling
    if binding.array_element is not None:
        return f"{binding.array_element} (&){binding.array_dims}"
    return f"{binding.type_spelling}&"


class _NameTable:
    """name -> binding table that hands out unique names."""

    def __init__(
        self, reserved: Iterable[str], separator: str, max_attempts: int
    ) -> None:
        self._taken: Dict[str, Optional[Binding]] = {n: None for n in reserved}
        self._separator = separator
        self._max_attempts = max_attempts

    def taken(self, name: str) -> bool:
        return name in self._taken

    def claim(self, name: str, binding: Binding) -> str:
        self._taken[name] = binding
        return name

    def claim_with_suffix(self, base: str, binding: Binding) -> str:
        """Append separators to *base* until unused, then claim it."""
        candidate = base
        for _ in range(self._max_attempts + 1):
            if not self.taken(candidate):
                return self.claim(candidate, binding)
            candidate += self._separator
        raise NameCollisionExhausted(
            f"no free parameter name for {binding.name!r} after"
            f" {self._max_attempts} attempts"
        )


def plan_parameters(
    captures: CaptureSet,
    reserved: Iterable[str] = (),
    separator: str = "_",
    max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
) -> ParameterPlan:
    """Build the ParameterPlan for *captures*.

    Plain bindings are named first, in declaration order, and keep their
    own identifier unless it is taken.  Member bindings are named second:
    the bare member name, then the receiver-qualified name once
    (``this_count``), then the bare name with separators appended.  Names
    in *reserved* are never handed out.
    """
    table = _NameTable(reserved, separator, max_attempts)
    names: Dict[int, str] = {}

    plain = [(i, b) for i, b in enumerate(captures.bindings) if not b.is_member]
    members = [(i, b) for i, b in enumerate(captures.bindings) if b.is_member]

    for i, binding in plain:
        names[i] = table.claim_with_suffix(binding.name, binding)

    for i, binding in members:
        if not table.taken(binding.name):
            names[i] = table.claim(binding.name, binding)
            continue
        qualified = f"{binding.qualifier}{separator}{binding.name}"
        if binding.qualifier and not table.taken(qualified):
            names[i] = table.claim(qualified, binding)
            continue
        names[i] = table.claim_with_suffix(binding.name, binding)

    entries = [
        PlanEntry(binding, names[i], reference_type(binding))
        for i, binding in enumerate(captures.bindings)
    ]
    if len({e.name for e in entries}) != len(entries):
        raise NameCollisionExhausted(  # pragma: no cover
            f"parameter names are not unique: {[e.name for e in entries]}"
        )
    return ParameterPlan(entries)
