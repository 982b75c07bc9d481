import math

import pytest

from vimscript.vimscript_errors import VimTypeError
from vimscript.vimscript_values import (
    INT64_MAX, INT64_MIN, VimBlob, VimDictionary, VimFloat, VimFuncref, VimList, VimNumber,
    VimString, from_vim, str_to_number, to_vim, values_equal, values_identical, wrap_int64,
)


# --- numbers and coercion ---

@pytest.mark.parametrize("text, expected", [
    ("42", 42),
    ("12abc", 12),
    ("-5x", -5),
    ("0x1F", 31),
    ("0b101", 5),
    ("017", 15),
    ("019", 19),
    ("abc", 0),
    ("", 0),
])
def test_str_to_number_reads_numeric_prefix(text, expected):
    assert str_to_number(text) == expected


def test_numbers_wrap_to_int64():
    assert wrap_int64(INT64_MAX + 1) == INT64_MIN
    assert VimNumber(INT64_MIN - 1).value == INT64_MAX


def test_float_coercions():
    assert VimFloat(3.9).as_number() == 3
    assert VimFloat(-3.9).as_number() == -3
    assert VimFloat(math.nan).as_number() == 0
    assert VimFloat(math.inf).as_number() == INT64_MAX
    with pytest.raises(VimTypeError, match="E806"):
        VimFloat(1.5).as_string()


@pytest.mark.parametrize("value, code", [
    (VimList(), "E745"),
    (VimDictionary(), "E728"),
    (VimBlob(), "E974"),
    (VimFuncref(object()), "E703"),
])
def test_containers_are_not_numbers(value, code):
    with pytest.raises(VimTypeError, match=code):
        value.as_number()


@pytest.mark.parametrize("value, code", [
    (VimList(), "E730"),
    (VimDictionary(), "E731"),
    (VimBlob(), "E976"),
])
def test_containers_are_not_strings(value, code):
    with pytest.raises(VimTypeError, match=code):
        value.as_string()


def test_string_truthiness_uses_numeric_prefix():
    assert VimString("1abc").as_boolean()
    assert not VimString("abc").as_boolean()
    assert not VimString("0").as_boolean()


# --- copy rules ---

def test_scalars_are_copied_containers_are_shared():
    n = VimNumber(10)
    assert n.clone_for_assignment() is not n
    assert n.clone_for_assignment() == n
    lst = VimList([VimNumber(1)])
    assert lst.clone_for_assignment() is lst
    d = VimDictionary()
    assert d.clone_for_assignment() is d


def test_deep_copy_preserves_cycles():
    lst = VimList([VimNumber(1)])
    lst.values.append(lst)
    copy = lst.deep_copy()
    assert copy is not lst
    assert copy.values[1] is copy
    assert copy.values[0] == VimNumber(1)


def test_deep_copy_preserves_shared_items():
    inner = VimList([VimNumber(1)])
    outer = VimList([inner, inner])
    copy = outer.deep_copy()
    assert copy.values[0] is copy.values[1]
    assert copy.values[0] is not inner


# --- equality ---

def test_structural_equality():
    a = to_vim([1, "x", {"k": [2]}])
    b = to_vim([1, "x", {"k": [2]}])
    assert values_equal(a, b)
    assert not values_identical(a, b)
    assert values_identical(a, a)


def test_nested_items_must_have_same_type():
    assert values_equal(VimNumber(1), VimString("1"))
    assert not values_equal(to_vim([1]), to_vim(["1"]))


def test_cyclic_equality_terminates():
    a = VimList()
    a.values.append(a)
    b = VimList()
    b.values.append(b)
    assert values_equal(a, b)


def test_comparing_container_with_scalar_is_an_error():
    with pytest.raises(VimTypeError, match="E691"):
        values_equal(VimList(), VimNumber(0))
    with pytest.raises(VimTypeError, match="E735"):
        values_equal(VimDictionary(), VimString(""))


def test_ignore_case_equality():
    assert values_equal(VimString("ABC"), VimString("abc"), ignore_case=True)
    assert not values_equal(VimString("ABC"), VimString("abc"))


# --- locking ---

def test_lock_depth_two_locks_items_but_not_grandchildren():
    grandchild = VimList()
    child = VimList([grandchild])
    top = VimList([child])
    top.lock(2, "g:top")
    assert top.locked and child.locked
    assert not grandchild.locked
    assert top.lock_owner == "g:top"


def test_lock_depth_one_locks_only_the_value():
    child = VimList()
    top = VimList([child])
    top.lock(1)
    assert top.locked
    assert not child.locked


def test_negative_depth_locks_all_the_way_down_and_handles_cycles():
    grandchild = VimList()
    top = VimList([VimList([grandchild])])
    top.values.append(top)
    top.lock(-1)
    assert grandchild.locked
    top.unlock(-1)
    assert not grandchild.locked
    assert top.lock_owner is None


# --- interop ---

def test_to_vim_and_back():
    data = {"a": [1, 2.5, "s"], "b": b"\x01\x02", "c": None, "d": True}
    value = to_vim(data)
    assert isinstance(value, VimDictionary)
    assert isinstance(value["b"], VimBlob)
    assert from_vim(value) == {"a": [1, 2.5, "s"], "b": b"\x01\x02", "c": 0, "d": 1}


def test_to_vim_rejects_unknown_objects():
    with pytest.raises(TypeError):
        to_vim(object())


def test_from_vim_keeps_shared_structure():
    inner = VimList([VimNumber(1)])
    outer = VimList([inner, inner])
    py = from_vim(outer)
    assert py[0] is py[1]
