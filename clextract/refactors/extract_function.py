"""Refactor: extract a line range of a function body into a new function."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from clang.cindex import Cursor

from ..config import ExtractConfig
from ..errors import ExtractError
from ..extraction.capture import BindingKey, CaptureSet, find_captures
from ..extraction.code_gen import generate_call, generate_function
from ..extraction.planner import ParameterPlan, plan_parameters
from ..extraction.range_resolver import resolve_range
from ..patch import EditBuffer
from ..syntax import SourceFile, SourcePosition, SourceSpan
from .base import Refactor

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")


@dataclass(frozen=True)
class ExtractionRequest:
    function: Cursor
    first_line: int
    last_line: int
    name: str


@dataclass(frozen=True)
class ExtractionResult:
    """Everything computed for one extraction, after its edits are queued."""

    span: SourceSpan
    captures: CaptureSet
    plan: ParameterPlan
    arguments: Tuple[str, ...]
    call: str
    body: str
    definition: str


def _strip_leading_terminator(text: str) -> str:
    for terminator in ("\r\n", "\n", "\r"):
        if text.startswith(terminator):
            return text[len(terminator) :]
    return text


def snapshot_arguments(source: SourceFile, captures: CaptureSet) -> Tuple[str, ...]:
    """Return the original text of each binding's first use, in capture order."""
    return tuple(source.text(captures.first_use(b).span) for b in captures)


class ExtractFunction(Refactor):
    """Move the selected statements into a new function and call it in place.

    Every outside binding the selection touches becomes a by-reference
    parameter, so writes inside the new function stay visible to the
    caller.  The call's argument list is built from the original text of
    each binding's first use *before* any renaming is queued; the new body
    is read back from the buffer *after* renaming.
    """

    def __init__(
        self,
        request: ExtractionRequest,
        source: SourceFile,
        buffer: EditBuffer,
        config: Optional[ExtractConfig] = None,
        verbose: bool = True,
    ) -> None:
        super().__init__(source, buffer, verbose=verbose)
        if not _IDENTIFIER.match(request.name):
            raise ExtractError(f"{request.name!r} is not a valid function name")
        self.request = request
        self.config = config if config is not None else ExtractConfig()
        self.result: Optional[ExtractionResult] = None

    def _insertion_point(self) -> SourcePosition:
        start = self.request.function.extent.start
        return SourcePosition(self.source.path, start.offset)

    def _rewrite_uses(
        self, captures: CaptureSet, plan: ParameterPlan
    ) -> Dict[BindingKey, int]:
        """Queue a rename for every use whose text differs from its parameter.

        Returns the number of renamed uses per binding.
        """
        by_key = {e.binding.key: e.name for e in plan}
        renamed: Dict[BindingKey, int] = {}
        for use, key in captures.uses:
            name = by_key[key]
            if self.source.text(use.span) == name:
                continue
            self.buffer.queue_replace(use.span, name)
            renamed[key] = renamed.get(key, 0) + 1
        return renamed

    def run(self) -> ExtractionResult:
        req = self.request
        span = resolve_range(self.source, req.function, req.first_line, req.last_line)
        captures = find_captures(req.function, span, self.source)
        plan = plan_parameters(
            captures,
            reserved=captures.local_names | {req.name},
            separator=self.config.separator,
            max_attempts=self.config.max_name_attempts,
        )

        # Phase 1: read caller-side argument text from the untouched source.
        arguments = snapshot_arguments(self.source, captures)
        call = generate_call(req.name, arguments)

        # Phase 2: rename uses in place, then read the rewritten selection.
        renamed = self._rewrite_uses(captures, plan)
        body = _strip_leading_terminator(self.buffer.rewritten_text(span))
        definition = generate_function(
            req.name, plan, body, storage_class=self.config.storage_class
        )

        self.buffer.queue_replace(span, call)
        self.buffer.queue_insert_before(self._insertion_point(), definition)

        members = sum(1 for b in captures if b.is_member)
        self.stats.functions_extracted += 1
        self.stats.parameters += len(plan)
        self.stats.member_parameters += members
        self.stats.uses_renamed += sum(renamed.values())
        self.changes_made.append(
            f"ExtractFunction: extracted {req.name!r} from"
            f" {req.function.spelling!r} (lines {req.first_line}-{req.last_line},"
            f" {len(plan)} parameters)"
        )
        if self.verbose:
            for entry in plan:
                count = renamed.get(entry.binding.key)
                if count:
                    self.changes_made.append(
                        f"ExtractFunction:   {entry.binding.name!r} passed as"
                        f" {entry.name!r} ({count} uses renamed)"
                    )
        self.result = ExtractionResult(
            span=span,
            captures=captures,
            plan=plan,
            arguments=arguments,
            call=call,
            body=body,
            definition=definition,
        )
        return self.result
