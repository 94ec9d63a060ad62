"""Tests for clextract.extraction.capture."""

from unittest.mock import MagicMock

import pytest

from clextract.errors import UnresolvedBindingError
from clextract.extraction.capture import (
    _CaptureFinder,
    find_captures,
    receiver_qualifier,
)
from clextract.extraction.range_resolver import resolve_range


def _captures(find_function, code, first, last):
    _, source, fn = find_function(code, first, last)
    span = resolve_range(source, fn, first, last)
    return source, find_captures(fn, span, source)


def _names(captures):
    return [b.name for b in captures]


# ---------------------------------------------------------------------------
# receiver_qualifier
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "receiver, expected",
    [
        (None, "this"),
        ("this", "this"),
        ("(*this)", "this"),
        ("obj", "obj"),
        ("p->next", "p_next"),
        ("items[0]", "items_0"),
    ],
)
def test_receiver_qualifier(receiver, expected):
    assert receiver_qualifier(receiver) == expected


# ---------------------------------------------------------------------------
# Plain bindings
# ---------------------------------------------------------------------------


def test_bindings_ordered_by_declaration(find_function):
    code = """\
    void foo() {
      int x = 1;
      int y = 0;
      y = x + 1;
    }
    """
    source, captures = _captures(find_function, code, 4, 4)
    assert _names(captures) == ["x", "y"]
    assert [b.type_spelling for b in captures] == ["int", "int"]
    assert source.text(captures.first_use(captures.bindings[0]).span) == "x"


def test_repeated_references_collapse(find_function):
    code = """\
    int scale(int a, int b) {
      int total = 0;
      total += a;
      total += a * b;
      total += b;
      return total;
    }
    """
    _, captures = _captures(find_function, code, 3, 5)
    assert _names(captures) == ["a", "b", "total"]
    assert len(captures) == 3
    assert len(captures.uses) == 7


def test_declarations_inside_selection_not_captured(find_function):
    code = """\
    void f() {
      int i = 0;
      i++;
      { int i = 5; i++; }
    }
    """
    _, captures = _captures(find_function, code, 3, 4)
    assert _names(captures) == ["i"]
    assert len(captures.uses) == 1
    assert captures.local_names == frozenset({"i"})


def test_functions_not_captured(find_function):
    code = """\
    int g() { return 1; }

    void f() {
      int x = 0;
      x = g();
    }
    """
    _, captures = _captures(find_function, code, 5, 5)
    assert _names(captures) == ["x"]


def test_global_variable_captured(find_function):
    code = """\
    int counter = 0;

    void f() {
      counter++;
    }
    """
    _, captures = _captures(find_function, code, 4, 4)
    assert _names(captures) == ["counter"]
    assert not captures.bindings[0].is_member


def test_no_bindings(find_function):
    code = """\
    void tick();

    void run() {
      tick();
      int local = 3;
      local += 1;
    }
    """
    _, captures = _captures(find_function, code, 4, 6)
    assert len(captures) == 0
    assert captures.local_names == frozenset({"local"})


def test_array_type_info(find_function):
    code = """\
    void fill() {
      int buf[4];
      buf[0] = 1;
      buf[1] = 2;
    }
    """
    _, captures = _captures(find_function, code, 3, 4)
    (binding,) = captures.bindings
    assert binding.array_element == "int"
    assert binding.array_dims == "[4]"
    assert not binding.is_reference


def test_reference_type_info(find_function):
    code = """\
    void set(int& r) {
      r = 2;
    }
    """
    _, captures = _captures(find_function, code, 2, 2)
    (binding,) = captures.bindings
    assert binding.is_reference
    assert binding.array_element is None


# ---------------------------------------------------------------------------
# Member bindings
# ---------------------------------------------------------------------------

COUNTER = """\
class Counter {
public:
  void bump(int step) {
    int count = step;
    this->count += count;
    total = this->count;
  }

private:
  int count = 0;
  int total = 0;
};
"""


def test_member_and_local_with_same_name(find_function):
    source, captures = _captures(find_function, COUNTER, 5, 6)
    summary = [(b.name, b.is_member, b.qualifier) for b in captures]
    assert summary == [
        ("count", False, ""),
        ("count", True, "this"),
        ("total", True, "this"),
    ]
    member = captures.bindings[1]
    assert source.text(captures.first_use(member).span) == "this->count"
    assert sum(1 for _, key in captures.uses if key == member.key) == 2


def test_implicit_member_access(find_function):
    source, captures = _captures(find_function, COUNTER, 6, 6)
    total = [b for b in captures if b.name == "total"][0]
    assert total.is_member
    assert total.key.receiver == "this"
    assert source.text(captures.first_use(total).span) == "total"


def test_object_receiver(find_function):
    code = """\
    struct Point { int x; int y; };

    void move(Point& p, int dx) {
      p.x += dx;
      p.y += 1;
    }
    """
    source, captures = _captures(find_function, code, 4, 5)
    assert _names(captures) == ["x", "y", "dx"]
    x = captures.bindings[0]
    assert x.is_member and x.qualifier == "p"
    assert source.text(captures.first_use(x).span) == "p.x"


def test_local_receiver_not_captured(find_function):
    code = """\
    struct Point { int x; };

    int make(int v) {
      Point p;
      p.x = v;
      return p.x;
    }
    """
    _, captures = _captures(find_function, code, 4, 5)
    assert _names(captures) == ["v"]
    assert "p" in captures.local_names


# ---------------------------------------------------------------------------
# Resolution failures
# ---------------------------------------------------------------------------


def test_unresolved_reference_raises(find_function):
    _, source, fn = find_function("void f() {\n  int a = 0;\n}\n", 2, 2)
    finder = _CaptureFinder(source, resolve_range(source, fn, 2, 2))
    cursor = MagicMock()
    cursor.referenced = None
    cursor.spelling = "ghost"
    cursor.location.line = 2
    cursor.location.column = 3
    with pytest.raises(UnresolvedBindingError, match="ghost"):
        finder._resolve(cursor)


def test_unresolved_reference_without_spelling_shows_source_text(find_function):
    _, source, fn = find_function("void f() {\n  int a = 0;\n}\n", 2, 2)
    finder = _CaptureFinder(source, resolve_range(source, fn, 2, 2))
    at = source.data.index(b"a =")
    cursor = MagicMock()
    cursor.referenced = None
    cursor.spelling = ""
    cursor.extent.start.offset = at
    cursor.extent.end.offset = at + 1
    with pytest.raises(UnresolvedBindingError, match="cannot resolve 'a'"):
        finder._resolve(cursor)
