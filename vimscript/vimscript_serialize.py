from __future__ import annotations

import json
from typing import Any

from vimscript.vimscript_errors import VimTypeError
from vimscript.vimscript_values import (
    VimBlob, VimDictionary, VimFloat, VimFuncref, VimList, VimNumber, VimString, VimValue,
    to_vim,
)


# --------------------------
# Helpers
# --------------------------

def _to_builtin(value: VimValue, path: frozenset = frozenset()) -> Any:
    match value:
        case VimNumber() | VimString():
            return value.value
        case VimFloat():
            return value.value
        case VimBlob():
            return list(value.data)
        case VimFuncref():
            raise VimTypeError("E1161: Cannot json encode a Funcref")
        case VimList():
            if id(value) in path:
                raise VimTypeError("E724: variable nested too deep for displaying")
            inner = path | {id(value)}
            return [_to_builtin(v, inner) for v in value.values]
        case VimDictionary():
            if id(value) in path:
                raise VimTypeError("E724: variable nested too deep for displaying")
            inner = path | {id(value)}
            return {k: _to_builtin(v, inner) for k, v in value.dictionary.items()}
    raise VimTypeError(f"E474: Invalid argument: {value!r}")


def _norm_text(data: str | bytes | bytearray) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode("utf-8", errors="replace")
    return data


# --------------------------
# Public API
# --------------------------

def json_encode(value: VimValue) -> str:
    """Encode a value as compact JSON; NaN and infinities use the JavaScript spellings."""
    return json.dumps(_to_builtin(value), separators=(",", ":"), ensure_ascii=False, allow_nan=True)


def json_decode(text: str | bytes | bytearray) -> VimValue:
    """Decode JSON text; an empty string decodes to Number 0."""
    source = _norm_text(text)
    if not source.strip():
        return VimNumber(0)
    try:
        data = json.loads(source)
    except json.JSONDecodeError as e:
        raise VimTypeError(f"E491: JSON decode error at '{source[e.pos:]}'") from None
    return to_vim(data)


__all__ = ["json_encode", "json_decode"]
