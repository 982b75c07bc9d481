"""
Runtime values for the Vim script engine.

Number, Float and String are copied when assigned; List, Dictionary and
Blob are shared, so two bindings to the same container observe each
other's mutations. Every value carries a `locked` flag and the name of the
variable whose :lockvar locked it.
"""
import collections.abc
import math
import re
from typing import Any, Dict, Iterable, List, Optional

from vimscript.vimscript_errors import VimTypeError

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

# Type codes as reported by type()
TYPE_NUMBER = 0
TYPE_STRING = 1
TYPE_FUNCREF = 2
TYPE_LIST = 3
TYPE_DICTIONARY = 4
TYPE_FLOAT = 5
TYPE_BLOB = 10

_NUMBER_PREFIX = re.compile(r"([-+]?)(0[xX][0-9a-fA-F]+|0[bB][01]+|\d+)")
_OCTAL = re.compile(r"0[0-7]+$")


def wrap_int64(n: int) -> int:
    """Wrap an arbitrary Python int into the signed 64-bit range."""
    n &= 0xFFFFFFFFFFFFFFFF
    return n - (1 << 64) if n > INT64_MAX else n


def str_to_number(text: str) -> int:
    """Read the leading numeric prefix of `text`; no prefix reads as 0."""
    m = _NUMBER_PREFIX.match(text)
    if not m:
        return 0
    sign, digits = m.groups()
    lowered = digits.lower()
    if lowered.startswith("0x"):
        n = int(digits[2:], 16)
    elif lowered.startswith("0b"):
        n = int(digits[2:], 2)
    elif _OCTAL.match(digits):
        n = int(digits, 8)
    else:
        n = int(digits)
    return wrap_int64(-n if sign == "-" else n)


# =================================================================
# Base class
# =================================================================

class VimValue:
    """Base class for all script values."""
    type_name = "unknown"
    type_code = -1

    def __init__(self):
        self.locked: bool = False
        self.lock_owner: Optional[str] = None

    # --- coercion ---

    def as_string(self) -> str:
        raise VimTypeError(f"E908: using an invalid value as a String: {self.type_name}")

    def as_number(self) -> int:
        raise VimTypeError(f"E685: using an invalid value as a Number: {self.type_name}")

    def as_float(self) -> float:
        return float(self.as_number())

    def as_boolean(self) -> bool:
        return self.as_number() != 0

    def to_vim_number(self) -> 'VimNumber':
        return VimNumber(self.as_number())

    # --- copy rules ---

    def clone_for_assignment(self) -> 'VimValue':
        """Scalars are copied, containers return the same shared handle."""
        return self

    def deep_copy(self, memo: Optional[Dict[int, 'VimValue']] = None) -> 'VimValue':
        return self.clone_for_assignment()

    # --- locking ---

    def _children(self) -> Iterable['VimValue']:
        return ()

    def lock(self, depth: int = 2, owner: Optional[str] = None, _seen: Optional[set] = None):
        """Lock this value; depth 2 also locks direct items, negative is unbounded."""
        self.locked = True
        self.lock_owner = owner
        if depth == 1:
            return
        seen = _seen if _seen is not None else set()
        if id(self) in seen:
            return
        seen.add(id(self))
        for item in self._children():
            item.lock(depth - 1 if depth > 0 else depth, owner, seen)

    def unlock(self, depth: int = 2, _seen: Optional[set] = None):
        self.locked = False
        self.lock_owner = None
        if depth == 1:
            return
        seen = _seen if _seen is not None else set()
        if id(self) in seen:
            return
        seen.add(id(self))
        for item in self._children():
            item.unlock(depth - 1 if depth > 0 else depth, seen)


# =================================================================
# Scalars
# =================================================================

class VimNumber(VimValue):
    type_name = "Number"
    type_code = TYPE_NUMBER

    def __init__(self, value: int = 0):
        super().__init__()
        self.value = wrap_int64(int(value))

    def as_string(self) -> str:
        return str(self.value)

    def as_number(self) -> int:
        return self.value

    def clone_for_assignment(self) -> 'VimNumber':
        return VimNumber(self.value)

    def __eq__(self, other):
        return isinstance(other, VimNumber) and self.value == other.value

    def __hash__(self):
        return hash((TYPE_NUMBER, self.value))

    def __repr__(self) -> str:
        return f"VimNumber({self.value})"


class VimFloat(VimValue):
    type_name = "Float"
    type_code = TYPE_FLOAT

    def __init__(self, value: float = 0.0):
        super().__init__()
        self.value = float(value)

    def as_string(self) -> str:
        raise VimTypeError("E806: using Float as a String")

    def as_number(self) -> int:
        if math.isnan(self.value):
            return 0
        if math.isinf(self.value):
            return INT64_MAX if self.value > 0 else INT64_MIN
        return wrap_int64(int(self.value))

    def as_float(self) -> float:
        return self.value

    def as_boolean(self) -> bool:
        return self.value != 0.0

    def clone_for_assignment(self) -> 'VimFloat':
        return VimFloat(self.value)

    def __eq__(self, other):
        return isinstance(other, VimFloat) and self.value == other.value

    def __hash__(self):
        return hash((TYPE_FLOAT, self.value))

    def __repr__(self) -> str:
        return f"VimFloat({self.value!r})"


class VimString(VimValue):
    type_name = "String"
    type_code = TYPE_STRING

    def __init__(self, value: str = ""):
        super().__init__()
        self.value = str(value)

    def as_string(self) -> str:
        return self.value

    def as_number(self) -> int:
        return str_to_number(self.value)

    def clone_for_assignment(self) -> 'VimString':
        return VimString(self.value)

    def __eq__(self, other):
        return isinstance(other, VimString) and self.value == other.value

    def __hash__(self):
        return hash((TYPE_STRING, self.value))

    def __repr__(self) -> str:
        return f"VimString({self.value!r})"


# =================================================================
# Shared containers
# =================================================================

class VimList(VimValue, collections.abc.MutableSequence):
    """An ordered, shared, mutable sequence of values."""
    type_name = "List"
    type_code = TYPE_LIST

    def __init__(self, values: Optional[List[VimValue]] = None):
        super().__init__()
        self.values: List[VimValue] = list(values) if values is not None else []

    def as_string(self) -> str:
        raise VimTypeError("E730: using List as a String")

    def as_number(self) -> int:
        raise VimTypeError("E745: Using a List as a Number")

    def deep_copy(self, memo=None) -> 'VimList':
        memo = {} if memo is None else memo
        if id(self) in memo:
            return memo[id(self)]
        copy = VimList()
        memo[id(self)] = copy
        copy.values = [v.deep_copy(memo) for v in self.values]
        return copy

    def _children(self):
        return list(self.values)

    def __getitem__(self, index):
        return self.values[index]

    def __setitem__(self, index, value):
        self.values[index] = value

    def __delitem__(self, index):
        del self.values[index]

    def __len__(self) -> int:
        return len(self.values)

    def insert(self, index, value):
        self.values.insert(index, value)

    def __eq__(self, other):
        if not isinstance(other, VimList):
            return NotImplemented
        return values_equal(self, other, strict=False)

    __hash__ = None

    def __repr__(self) -> str:
        return f"VimList(<{len(self.values)} items>)"


class VimDictionary(VimValue, collections.abc.MutableMapping):
    """A shared, mutable String -> Value mapping preserving insertion order."""
    type_name = "Dictionary"
    type_code = TYPE_DICTIONARY

    def __init__(self, dictionary: Optional[Dict[str, VimValue]] = None):
        super().__init__()
        self.dictionary: Dict[str, VimValue] = dict(dictionary) if dictionary is not None else {}

    def as_string(self) -> str:
        raise VimTypeError("E731: using Dictionary as a String")

    def as_number(self) -> int:
        raise VimTypeError("E728: Using a Dictionary as a Number")

    def deep_copy(self, memo=None) -> 'VimDictionary':
        memo = {} if memo is None else memo
        if id(self) in memo:
            return memo[id(self)]
        copy = VimDictionary()
        memo[id(self)] = copy
        copy.dictionary = {k: v.deep_copy(memo) for k, v in self.dictionary.items()}
        return copy

    def _children(self):
        return list(self.dictionary.values())

    def __getitem__(self, key: str) -> VimValue:
        return self.dictionary[key]

    def __setitem__(self, key: str, value: VimValue):
        if not isinstance(key, str):
            raise TypeError(f"Dictionary key must be a str, not {type(key)}")
        self.dictionary[key] = value

    def __delitem__(self, key: str):
        del self.dictionary[key]

    def __iter__(self):
        return iter(self.dictionary)

    def __len__(self) -> int:
        return len(self.dictionary)

    def __eq__(self, other):
        if not isinstance(other, VimDictionary):
            return NotImplemented
        return values_equal(self, other, strict=False)

    __hash__ = None

    def __repr__(self) -> str:
        keys = ', '.join(self.dictionary.keys())
        return f"VimDictionary(keys=[{keys}])"


class VimBlob(VimValue):
    """A shared, mutable byte sequence."""
    type_name = "Blob"
    type_code = TYPE_BLOB

    def __init__(self, data: Optional[Iterable[int]] = None):
        super().__init__()
        self.data = bytearray(data) if data is not None else bytearray()

    def as_string(self) -> str:
        raise VimTypeError("E976: using Blob as a String")

    def as_number(self) -> int:
        raise VimTypeError("E974: Using a Blob as a Number")

    def deep_copy(self, memo=None) -> 'VimBlob':
        return VimBlob(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __eq__(self, other):
        return isinstance(other, VimBlob) and self.data == other.data

    __hash__ = None

    def __repr__(self) -> str:
        return f"VimBlob({bytes(self.data)!r})"


class VimFuncref(VimValue):
    """A reference to a function handler, optionally partially applied.

    `dictionary` is the bound receiver (`self`); `is_self_fixed` marks a
    receiver that was bound explicitly and must not be replaced when the
    funcref is stored into another dictionary.
    """
    type_name = "Funcref"
    type_code = TYPE_FUNCREF

    def __init__(self, handler: Any, arguments: Optional[List[VimValue]] = None,
                 dictionary: Optional[VimDictionary] = None, is_self_fixed: bool = False):
        super().__init__()
        self.handler = handler
        self.arguments: List[VimValue] = list(arguments) if arguments else []
        self.dictionary = dictionary
        self.is_self_fixed = is_self_fixed

    @property
    def name(self) -> str:
        return getattr(self.handler, "name", "<unknown>")

    def as_string(self) -> str:
        raise VimTypeError("E729: using Funcref as a String")

    def as_number(self) -> int:
        raise VimTypeError("E703: Using a Funcref as a Number")

    def copy(self) -> 'VimFuncref':
        return VimFuncref(self.handler, self.arguments, self.dictionary, self.is_self_fixed)

    def __eq__(self, other):
        if not isinstance(other, VimFuncref):
            return NotImplemented
        return values_equal(self, other, strict=False)

    __hash__ = None

    def __repr__(self) -> str:
        return f"VimFuncref({self.name!r})"


# =================================================================
# Equality and identity
# =================================================================

def values_equal(a: VimValue, b: VimValue, *, ignore_case: bool = False,
                 strict: bool = True, _seen: Optional[set] = None) -> bool:
    """Compare two values the way `==` does.

    With `strict` (the top level of a comparison) Strings and Numbers are
    coerced against each other and comparing a container with a value of
    another kind is an error. Nested items must have the same type.
    """
    if strict:
        if isinstance(a, VimList) != isinstance(b, VimList):
            raise VimTypeError("E691: Can only compare List with List")
        if isinstance(a, VimDictionary) != isinstance(b, VimDictionary):
            raise VimTypeError("E735: Can only compare Dictionary with Dictionary")
        if isinstance(a, VimBlob) != isinstance(b, VimBlob):
            raise VimTypeError("E977: Can only compare Blob with Blob")
        if isinstance(a, VimFuncref) != isinstance(b, VimFuncref):
            return False
        if isinstance(a, VimFloat) or isinstance(b, VimFloat):
            return a.as_float() == b.as_float()
        if isinstance(a, VimNumber) or isinstance(b, VimNumber):
            return a.as_number() == b.as_number()
    elif type(a) is not type(b):
        return False

    match a:
        case VimString():
            if ignore_case:
                return a.value.lower() == b.value.lower()
            return a.value == b.value
        case VimNumber() | VimFloat():
            return a.value == b.value
        case VimBlob():
            return a.data == b.data

    seen = _seen if _seen is not None else set()
    key = (id(a), id(b))
    if a is b or key in seen:
        return True
    seen.add(key)

    match a:
        case VimList():
            if len(a.values) != len(b.values):
                return False
            return all(values_equal(x, y, ignore_case=ignore_case, strict=False, _seen=seen)
                       for x, y in zip(a.values, b.values))
        case VimDictionary():
            if a.dictionary.keys() != b.dictionary.keys():
                return False
            return all(values_equal(v, b.dictionary[k], ignore_case=ignore_case, strict=False, _seen=seen)
                       for k, v in a.dictionary.items())
        case VimFuncref():
            if a.name != b.name or a.dictionary is not b.dictionary:
                return False
            if len(a.arguments) != len(b.arguments):
                return False
            return all(values_equal(x, y, ignore_case=ignore_case, strict=False, _seen=seen)
                       for x, y in zip(a.arguments, b.arguments))
    return False


def values_identical(a: VimValue, b: VimValue, *, ignore_case: bool = False) -> bool:
    """The `is` operator: identity for containers, typed equality otherwise."""
    if isinstance(a, (VimList, VimDictionary, VimBlob)):
        return a is b
    if type(a) is not type(b):
        return False
    return values_equal(a, b, ignore_case=ignore_case, strict=False)


# =================================================================
# Python interop
# =================================================================

def to_vim(obj: Any) -> VimValue:
    """Convert a plain Python object into a script value."""
    match obj:
        case VimValue():
            return obj
        case None:
            return VimNumber(0)
        case bool():
            return VimNumber(1 if obj else 0)
        case int():
            return VimNumber(obj)
        case float():
            return VimFloat(obj)
        case str():
            return VimString(obj)
        case bytes() | bytearray():
            return VimBlob(obj)
        case collections.abc.Mapping():
            return VimDictionary({str(k): to_vim(v) for k, v in obj.items()})
        case list() | tuple():
            return VimList([to_vim(x) for x in obj])
    raise TypeError(f"Cannot convert {type(obj).__name__} to a script value")


def from_vim(value: VimValue, _memo: Optional[Dict[int, Any]] = None) -> Any:
    """Convert a script value into plain Python objects, keeping shared structure."""
    memo = {} if _memo is None else _memo
    match value:
        case VimNumber() | VimFloat() | VimString():
            return value.value
        case VimBlob():
            return bytes(value.data)
        case VimFuncref():
            return value
        case VimList():
            if id(value) in memo:
                return memo[id(value)]
            out: list = []
            memo[id(value)] = out
            out.extend(from_vim(v, memo) for v in value.values)
            return out
        case VimDictionary():
            if id(value) in memo:
                return memo[id(value)]
            out_d: dict = {}
            memo[id(value)] = out_d
            for k, v in value.dictionary.items():
                out_d[k] = from_vim(v, memo)
            return out_d
    raise TypeError(f"Not a script value: {value!r}")


__all__ = [
    "VimValue", "VimNumber", "VimFloat", "VimString",
    "VimList", "VimDictionary", "VimBlob", "VimFuncref",
    "values_equal", "values_identical", "to_vim", "from_vim",
    "str_to_number", "wrap_int64", "INT64_MIN", "INT64_MAX",
]
