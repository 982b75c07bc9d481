"""
Renders script values the way :echo and string() show them.
"""
import math

from vimscript.vimscript_values import (
    VimBlob, VimDictionary, VimFloat, VimFuncref, VimList, VimNumber, VimString, VimValue,
)


def format_float(value: float) -> str:
    """'%g' with a '.0' added when the mantissa has no decimal point."""
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = "%g" % value
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        return f"{mantissa}e{int(exponent)}"
    if "." not in text:
        text += ".0"
    return text


def quote_string(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


class Printer:
    """Formats script values into their string() form."""

    def __init__(self, max_depth: int = 100):
        self.max_depth = max_depth
        self._handlers = self._create_handlers()

    def _create_handlers(self):
        return {
            VimNumber: self._pformat_number,
            VimFloat: self._pformat_float,
            VimString: self._pformat_string,
            VimList: self._pformat_list,
            VimDictionary: self._pformat_dict,
            VimBlob: self._pformat_blob,
            VimFuncref: self._pformat_funcref,
        }

    def echo(self, value: VimValue) -> str:
        """:echo shows Strings raw and Funcrefs by name; the rest as string()."""
        match value:
            case VimString():
                return value.value
            case VimFuncref():
                return value.name
        return self.pformat(value)

    def pformat(self, value: VimValue, level: int = 0, _path: frozenset = frozenset()) -> str:
        handler = self._handlers.get(type(value))
        if handler is None:
            return repr(value)
        return handler(value, level, _path)

    def _pformat_number(self, value, level, path):
        return str(value.value)

    def _pformat_float(self, value, level, path):
        return format_float(value.value)

    def _pformat_string(self, value, level, path):
        return quote_string(value.value)

    def _pformat_list(self, value, level, path):
        if id(value) in path or level >= self.max_depth:
            return "[...]"
        inner = path | {id(value)}
        return "[" + ", ".join(self.pformat(v, level + 1, inner) for v in value.values) + "]"

    def _pformat_dict(self, value, level, path):
        if id(value) in path or level >= self.max_depth:
            return "{...}"
        inner = path | {id(value)}
        items = (f"{quote_string(k)}: {self.pformat(v, level + 1, inner)}"
                 for k, v in value.dictionary.items())
        return "{" + ", ".join(items) + "}"

    def _pformat_blob(self, value, level, path):
        hex_bytes = [f"{b:02X}" for b in value.data]
        groups = ["".join(hex_bytes[i:i + 4]) for i in range(0, len(hex_bytes), 4)]
        return "0z" + ".".join(groups)

    def _pformat_funcref(self, value, level, path):
        parts = [quote_string(value.name)]
        if value.arguments:
            parts.append(self.pformat(VimList(value.arguments), level + 1, path))
        if value.dictionary is not None and value.is_self_fixed:
            parts.append(self.pformat(value.dictionary, level + 1, path))
        return f"function({', '.join(parts)})"


__all__ = ["Printer", "format_float", "quote_string"]
