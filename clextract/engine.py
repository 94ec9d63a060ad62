"""Load files, run the extraction, and flush all edits in one batch."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Dict, Generator, List, Optional, Sequence

from .config import ExtractConfig, load_config
from .errors import InvalidRangeError
from .patch import EditBuffer
from .refactors.extract_function import ExtractFunction, ExtractionRequest
from .stats import RunStats
from .syntax import (
    SourceFile,
    compile_args_for,
    find_enclosing_function,
    parse_translation_unit,
)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", "surrogateescape")


def _unified_diff(path: str, original: str, new: str) -> str:
    diff = difflib.unified_diff(
        original.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    return "".join(diff).rstrip("\n")


def run_engine(
    paths: Sequence[str],
    first_line: int,
    last_line: int,
    name: str,
    build_path: Optional[str] = None,
    extra_args: Sequence[str] = (),
    config: Optional[ExtractConfig] = None,
    stats: Optional[RunStats] = None,
    dry_run: bool = False,
    verbose: bool = True,
) -> Generator[str, None, None]:
    """Extract lines *first_line*..*last_line* into *name* and yield messages.

    Every file is parsed and transformed before anything is written.  Any
    :class:`~clextract.errors.ExtractError` propagates out of the generator
    and leaves all files untouched.  With *dry_run* a unified diff is
    yielded per changed file instead of writing.
    """
    if config is None:
        config = load_config()
    _stats = stats if stats is not None else RunStats()

    buffer = EditBuffer()
    sources: Dict[str, SourceFile] = {}
    msgs: List[str] = []

    for filepath in paths:
        if not Path(filepath).exists():
            _stats.files_skipped += 1
            yield f"SKIP {filepath}: file not found"
            continue

        source = SourceFile.read(filepath)
        args = compile_args_for(filepath, config, build_path, extra_args)
        tu = parse_translation_unit(filepath, args, config)
        function = find_enclosing_function(tu, source, first_line, last_line)
        if function is None:
            _stats.files_skipped += 1
            yield (
                f"SKIP {filepath}: no function contains lines"
                f" {first_line}-{last_line}"
            )
            continue

        buffer.add_source(source)
        request = ExtractionRequest(function, first_line, last_line, name)
        refactor = ExtractFunction(request, source, buffer, config, verbose=verbose)
        refactor.run()
        for msg in refactor.get_changes():
            msgs.append(f"{filepath}: {msg}")
        _stats.merge(refactor.stats)
        sources[filepath] = source

    if not sources:
        raise InvalidRangeError(
            f"Did not find any function that contains lines {first_line}-{last_line}."
            " No code was extracted."
        )

    if dry_run:
        for filepath in buffer.changed_files():
            original = _decode(sources[filepath].data)
            new = _decode(buffer.render(filepath))
            _stats.count_lines_changed(original, new)
            msgs.append(_unified_diff(filepath, original, new))
    else:
        for filepath in buffer.flush():
            _stats.files_edited.append(filepath)
            _stats.count_lines_changed(
                _decode(sources[filepath].data), _decode(buffer.render(filepath))
            )

    yield from msgs
