"""Shared fixtures: parse real C++ snippets with libclang."""

from __future__ import annotations

import textwrap

import pytest

from clextract.config import ExtractConfig
from clextract.patch import EditBuffer
from clextract.refactors.extract_function import ExtractFunction, ExtractionRequest
from clextract.syntax import (
    SourceFile,
    find_enclosing_function,
    parse_translation_unit,
)


@pytest.fixture
def parse_cpp(tmp_path):
    """Write *code* to a file and return (translation unit, SourceFile)."""

    def _parse(code: str, filename: str = "input.cpp"):
        path = tmp_path / filename
        path.write_text(textwrap.dedent(code), encoding="utf-8")
        config = ExtractConfig()
        tu = parse_translation_unit(str(path), config.clang_args, config)
        return tu, SourceFile.read(str(path))

    return _parse


@pytest.fixture
def find_function(parse_cpp):
    """Return (translation unit, SourceFile, function cursor) for a selection."""

    def _find(code: str, first: int, last: int):
        tu, source = parse_cpp(code)
        function = find_enclosing_function(tu, source, first, last)
        assert function is not None, f"no function contains lines {first}-{last}"
        return tu, source, function

    return _find


@pytest.fixture
def extract(find_function):
    """Run ExtractFunction; return (result, rewritten source text, refactor)."""

    def _extract(code: str, first: int, last: int, name: str = "extracted", config=None):
        tu, source, function = find_function(code, first, last)
        buffer = EditBuffer()
        buffer.add_source(source)
        refactor = ExtractFunction(
            ExtractionRequest(function, first, last, name), source, buffer, config
        )
        result = refactor.run()
        return result, buffer.render(source.path).decode("utf-8"), refactor

    return _extract
