"""
The native function library, the host binding and the ScriptRunner facade.
"""
import asyncio
import functools
import inspect
import logging
import re
import weakref
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Tuple

from vimscript.vimscript_assignment import index_number
from vimscript.vimscript_config import EngineConfig
from vimscript.vimscript_datatypes import Executable, Expression, Scope, Variable
from vimscript.vimscript_errors import (
    UserError, VimNameError, VimPermissionError, VimRangeError, VimScriptError, VimTypeError,
)
from vimscript.vimscript_functions import BuiltinFunctionHandler
from vimscript.vimscript_interpreter import Evaluator, compile_vim_pattern
from vimscript.vimscript_providers import (
    EnvironmentProvider, MemoryOptions, MemoryRegisters, OptionProvider, OsEnvironment,
    RegisterProvider,
)
from vimscript.vimscript_scopes import ExecutionContext, Script
from vimscript.vimscript_serialize import json_decode, json_encode
from vimscript.vimscript_values import (
    VimBlob, VimDictionary, VimFloat, VimFuncref, VimList, VimNumber, VimString, VimValue,
    from_vim, to_vim, values_equal,
)

logger = logging.getLogger(__name__)


# ===================================================================
# 1. Host binding
# ===================================================================

def vim_api_method(func):
    """A decorator to explicitly mark host methods as callable from scripts."""
    func._is_vim_api = True
    return func


class VimHost:
    """Base class for Python objects exposed to scripts.

    Methods marked with @vim_api_method become native functions of every
    ScriptRunner bound to the host. A host may also implement the
    register, option or environment provider interfaces.
    """
    def __init__(self):
        self.active_runners: weakref.WeakSet = weakref.WeakSet()

    def interrupt(self) -> int:
        """Request cancellation on every bound runner."""
        for runner in list(self.active_runners):
            runner.cancel()
        return len(self.active_runners)

    def _register_runner(self, runner: 'ScriptRunner'):
        self.active_runners.add(runner)


# ===================================================================
# 2. Native function library
# ===================================================================

_STR2FLOAT_RE = re.compile(r"[-+]?(?:inf|nan|\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)", re.IGNORECASE)
_STR2NR_DIGITS = {2: r"[01]+", 8: r"[0-7]+", 10: r"\d+", 16: r"[0-9a-fA-F]+"}
_STR2NR_PREFIX = {2: ("0b", "0B"), 8: ("0o", "0O"), 16: ("0x", "0X")}
_DEFAULT_SPLIT = re.compile(r"\s+")


def split_scoped_name(text: str) -> Tuple[Optional[Scope], str]:
    """'g:name' -> (Scope.GLOBAL, 'name'); 'name' -> (None, 'name')."""
    if len(text) > 2 and text[1] == ":" and text[0] in "gslav":
        return Scope.from_prefix(text[0]), text[2:]
    return None, text


def _check_not_locked(value: VimValue, fname: str) -> None:
    if value.locked:
        raise VimPermissionError(f"E741: Value is locked: {fname}() argument")


def _list_position(n: int, size: int, allow_end: bool = False) -> int:
    i = n + size if n < 0 else n
    limit = size if allow_end else size - 1
    if not 0 <= i <= limit:
        raise VimRangeError(f"E684: list index out of range: {n}")
    return i


def _numbers_of(container: VimValue) -> List[int]:
    match container:
        case VimList():
            return [v.as_number() for v in container.values]
        case VimDictionary():
            return [v.as_number() for v in container.dictionary.values()]
    raise VimTypeError("E712: Argument of max() must be a List or Dictionary")


def _resolve_path(evaluator: Evaluator, text: str, context: ExecutionContext) -> Optional[VimValue]:
    """Resolve 'name' or 'g:dict.key.key' to a value, or None."""
    head, *keys = text.split(".")
    scope, name = split_scoped_name(head)
    value = evaluator.variables.resolve(scope, name, context)
    for key in keys:
        if not isinstance(value, VimDictionary) or key not in value:
            return None
        value = value[key]
    return value


async def _merge_sort(items: List[VimValue], compare: Callable[..., Awaitable[int]]) -> List[VimValue]:
    if len(items) <= 1:
        return items
    mid = len(items) // 2
    left = await _merge_sort(items[:mid], compare)
    right = await _merge_sort(items[mid:], compare)
    merged: List[VimValue] = []
    i = j = 0
    while i < len(left) and j < len(right):
        if await compare(right[j], left[i]) < 0:
            merged.append(right[j])
            j += 1
        else:
            merged.append(left[i])
            i += 1
    merged.extend(left[i:])
    merged.extend(right[j:])
    return merged


class StdLib:
    """Python implementations of the native functions.

    Every method named `_name` is registered as the native function `name`.
    """
    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator

    def install(self) -> None:
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                self.evaluator.functions.register_native(name[1:], member)

    # --- Collections ---

    def _len(self, value):
        match value:
            case VimString() | VimNumber():
                return len(value.as_string())
            case VimList():
                return len(value.values)
            case VimDictionary():
                return len(value.dictionary)
            case VimBlob():
                return len(value.data)
        raise VimTypeError("E701: Invalid type for len()")

    def _empty(self, value):
        match value:
            case VimList() | VimDictionary() | VimBlob():
                return len(value) == 0
            case VimString():
                return value.value == ""
            case VimNumber() | VimFloat():
                return value.value == 0
        return False

    def _add(self, obj, item):
        _check_not_locked(obj, "add")
        match obj:
            case VimList():
                obj.values.append(item.clone_for_assignment())
            case VimBlob():
                obj.data.append(item.as_number() & 0xFF)
            case _:
                raise VimTypeError("E897: List or Blob required")
        return obj

    def _insert(self, obj, item, idx=None):
        _check_not_locked(obj, "insert")
        n = idx.as_number() if idx is not None else 0
        match obj:
            case VimList():
                obj.values.insert(_list_position(n, len(obj.values), allow_end=True),
                                  item.clone_for_assignment())
            case VimBlob():
                obj.data.insert(_list_position(n, len(obj.data), allow_end=True),
                                item.as_number() & 0xFF)
            case _:
                raise VimTypeError("E899: Argument of insert() must be a List or Blob")
        return obj

    def _remove(self, obj, idx, end=None):
        _check_not_locked(obj, "remove")
        match obj:
            case VimDictionary():
                key = idx.as_string()
                if key not in obj:
                    raise VimNameError(f'E716: Key not present in Dictionary: "{key}"')
                if obj[key].locked:
                    raise VimPermissionError(f"E741: Value is locked: remove() argument")
                return obj.dictionary.pop(key)
            case VimList() | VimBlob():
                sequence = obj.values if isinstance(obj, VimList) else obj.data
                start = _list_position(idx.as_number(), len(sequence))
                if end is None:
                    item = sequence.pop(start)
                    return item if isinstance(obj, VimList) else VimNumber(item)
                stop = _list_position(end.as_number(), len(sequence))
                if stop < start:
                    raise VimTypeError("E16: Invalid range")
                removed = sequence[start:stop + 1]
                del sequence[start:stop + 1]
                return VimList(removed) if isinstance(obj, VimList) else VimBlob(removed)
        raise VimTypeError("E896: Argument of remove() must be a List, Dictionary or Blob")

    def _extend(self, expr1, expr2, expr3=None):
        _check_not_locked(expr1, "extend")
        match expr1, expr2:
            case VimList(), VimList():
                at = len(expr1.values) if expr3 is None else \
                    _list_position(expr3.as_number(), len(expr1.values), allow_end=True)
                expr1.values[at:at] = [v.clone_for_assignment() for v in list(expr2.values)]
            case VimDictionary(), VimDictionary():
                mode = expr3.as_string() if expr3 is not None else "force"
                if mode not in ("force", "keep", "error"):
                    raise VimTypeError(f"E475: Invalid argument: {mode}")
                for key, value in list(expr2.dictionary.items()):
                    if key in expr1:
                        if mode == "keep":
                            continue
                        if mode == "error":
                            raise VimTypeError(f"E737: Key already exists: {key}")
                    expr1[key] = value.clone_for_assignment()
            case _:
                raise VimTypeError("E712: Argument of extend() must be a List or Dictionary")
        return expr1

    def _get(self, container, key, default=None):
        fallback = default if default is not None else VimNumber(0)
        match container:
            case VimList():
                n = index_number(key)
                i = n + len(container.values) if n < 0 else n
                return container.values[i] if 0 <= i < len(container.values) else fallback
            case VimDictionary():
                return container.dictionary.get(key.as_string(), fallback)
            case VimBlob():
                n = index_number(key)
                i = n + len(container.data) if n < 0 else n
                return VimNumber(container.data[i]) if 0 <= i < len(container.data) else fallback
            case VimFuncref():
                match key.as_string():
                    case "name":
                        return VimString(container.name)
                    case "args":
                        return VimList(container.arguments)
                    case "dict" if container.dictionary is not None:
                        return container.dictionary
                return fallback
        raise VimTypeError("E896: Argument of get() must be a List, Dictionary or Blob")

    def _has_key(self, dictionary, key):
        if not isinstance(dictionary, VimDictionary):
            raise VimTypeError("E715: Dictionary required")
        return key.as_string() in dictionary

    def _keys(self, dictionary):
        if not isinstance(dictionary, VimDictionary):
            raise VimTypeError("E715: Dictionary required")
        return VimList([VimString(k) for k in dictionary.dictionary])

    def _values(self, dictionary):
        if not isinstance(dictionary, VimDictionary):
            raise VimTypeError("E715: Dictionary required")
        return VimList(list(dictionary.dictionary.values()))

    def _items(self, dictionary):
        if not isinstance(dictionary, VimDictionary):
            raise VimTypeError("E715: Dictionary required")
        return VimList([VimList([VimString(k), v]) for k, v in dictionary.dictionary.items()])

    def _copy(self, value):
        match value:
            case VimList():
                return VimList([v.clone_for_assignment() for v in value.values])
            case VimDictionary():
                return VimDictionary({k: v.clone_for_assignment() for k, v in value.dictionary.items()})
            case VimBlob():
                return VimBlob(value.data)
        return value.clone_for_assignment()

    def _deepcopy(self, value, noref=None):
        return value.deep_copy()

    def _count(self, comp, expr, ic=None, start=None):
        ignore_case = ic is not None and ic.as_boolean()
        match comp:
            case VimString():
                haystack, needle = comp.value, expr.as_string()
                if ignore_case:
                    haystack, needle = haystack.lower(), needle.lower()
                return haystack.count(needle) if needle else 0
            case VimList():
                items = comp.values
                if start is not None:
                    items = items[_list_position(start.as_number(), len(items)):]
            case VimDictionary():
                items = list(comp.dictionary.values())
            case _:
                raise VimTypeError("E712: Argument of count() must be a List or Dictionary")
        return sum(1 for item in items if values_equal(item, expr, ignore_case=ignore_case, strict=False))

    def _index(self, obj, expr, start=None, ic=None):
        ignore_case = ic is not None and ic.as_boolean()
        match obj:
            case VimList():
                first = 0
                if start is not None:
                    first = start.as_number()
                    first = max(first + len(obj.values), 0) if first < 0 else first
                for i in range(first, len(obj.values)):
                    if values_equal(obj.values[i], expr, ignore_case=ignore_case, strict=False):
                        return i
                return -1
            case VimBlob():
                byte = expr.as_number()
                for i in range(start.as_number() if start is not None else 0, len(obj.data)):
                    if obj.data[i] == byte:
                        return i
                return -1
        raise VimTypeError("E897: List or Blob required")

    def _reverse(self, obj):
        match obj:
            case VimList():
                _check_not_locked(obj, "reverse")
                obj.values.reverse()
                return obj
            case VimBlob():
                _check_not_locked(obj, "reverse")
                obj.data.reverse()
                return obj
            case VimString():
                return VimString(obj.value[::-1])
        return VimNumber(0)

    async def _sort(self, obj, how=None, *, context):
        if not isinstance(obj, VimList):
            raise VimTypeError("E686: Argument of sort() must be a List")
        _check_not_locked(obj, "sort")
        printer = self.evaluator.printer

        def string_key(v):
            return v.value if isinstance(v, VimString) else printer.pformat(v)

        match how:
            case None:
                obj.values.sort(key=string_key)
            case VimFuncref():
                async def compare(a, b):
                    result = await self.evaluator.call_funcref(how, [a, b], context)
                    return result.as_number()
                obj.values[:] = await _merge_sort(list(obj.values), compare)
            case VimString() if how.value in ("", "0"):
                obj.values.sort(key=string_key)
            case VimString() if how.value in ("i", "1"):
                obj.values.sort(key=lambda v: string_key(v).lower())
            case VimString() if how.value == "n":
                obj.values.sort(key=lambda v: (1, v.value) if isinstance(v, VimNumber) else (0, 0))
            case VimString() if how.value == "N":
                obj.values.sort(key=lambda v: v.as_number())
            case VimString() if how.value == "f":
                obj.values.sort(key=lambda v: v.as_float())
            case VimNumber() if how.value == 1:
                obj.values.sort(key=lambda v: string_key(v).lower())
            case VimNumber() if how.value == 0:
                obj.values.sort(key=string_key)
            case _:
                func = VimFuncref(self.evaluator.functions.get_handler(None, how.as_string(), context))
                return await self._sort(obj, func, context=context)
        return obj

    def _repeat(self, expr, count):
        n = max(count.as_number(), 0)
        match expr:
            case VimList():
                return VimList([v.clone_for_assignment() for _ in range(n) for v in expr.values])
            case VimBlob():
                return VimBlob(bytes(expr.data) * n)
        return VimString(expr.as_string() * n)

    def _range(self, expr, max=None, stride=None):
        step = stride.as_number() if stride is not None else 1
        if step == 0:
            raise VimTypeError("E726: Stride is zero")
        if max is None:
            start, end = 0, expr.as_number() - 1
        else:
            start, end = expr.as_number(), max.as_number()
        if (step > 0 and end < start - 1) or (step < 0 and end > start + 1):
            raise VimTypeError("E727: Start past end")
        stop = end + 1 if step > 0 else end - 1
        return VimList([VimNumber(i) for i in range(start, stop, step)])

    # --- Strings ---

    def _string(self, value):
        return self.evaluator.printer.pformat(value)

    def _type(self, value):
        return value.type_code

    def _join(self, lst, sep=None):
        if not isinstance(lst, VimList):
            raise VimTypeError("E714: List required")
        separator = sep.as_string() if sep is not None else " "
        printer = self.evaluator.printer
        return separator.join(v.value if isinstance(v, VimString) else printer.pformat(v)
                              for v in lst.values)

    def _split(self, string, pattern=None, keepempty=None):
        text = string.as_string()
        regex = _DEFAULT_SPLIT if pattern is None or pattern.as_string() == "" \
            else compile_vim_pattern(pattern.as_string())
        parts: List[str] = []
        pos = 0
        for m in regex.finditer(text):
            if m.start() == m.end():
                continue
            parts.append(text[pos:m.start()])
            pos = m.end()
        parts.append(text[pos:])
        if keepempty is None or not keepempty.as_boolean():
            if parts and parts[0] == "":
                parts.pop(0)
            if parts and parts[-1] == "":
                parts.pop()
        return VimList([VimString(p) for p in parts])

    def _toupper(self, string):
        return string.as_string().upper()

    def _tolower(self, string):
        return string.as_string().lower()

    def _str2nr(self, string, base=None):
        radix = base.as_number() if base is not None else 10
        if radix not in _STR2NR_DIGITS:
            raise VimTypeError(f"E474: Invalid argument: {radix}")
        text = string.as_string().lstrip()
        sign = 1
        if text[:1] in ("-", "+"):
            sign = -1 if text[0] == "-" else 1
            text = text[1:]
        if text.startswith(_STR2NR_PREFIX.get(radix, ())):
            text = text[2:]
        m = re.match(_STR2NR_DIGITS[radix], text)
        return sign * int(m.group(0), radix) if m else 0

    def _str2float(self, string):
        m = _STR2FLOAT_RE.match(string.as_string().lstrip())
        return float(m.group(0)) if m else 0.0

    # --- Numbers ---

    def _float2nr(self, value):
        return value.as_number()

    def _abs(self, value):
        if isinstance(value, VimFloat):
            return abs(value.value)
        return abs(value.as_number())

    def _max(self, container):
        return max(_numbers_of(container), default=0)

    def _min(self, container):
        return min(_numbers_of(container), default=0)

    # --- Functions and variables ---

    def _function(self, name, arglist=None, dictionary=None, *, context):
        if isinstance(arglist, VimDictionary) and dictionary is None:
            arglist, dictionary = None, arglist
        if arglist is not None and not isinstance(arglist, VimList):
            raise VimTypeError("E923: Second argument of function() must be a list or a dict")
        if dictionary is not None and not isinstance(dictionary, VimDictionary):
            raise VimTypeError("E922: expected a dict")
        extra = list(arglist.values) if arglist is not None else []
        if isinstance(name, VimFuncref):
            funcref = name.copy()
            funcref.arguments = funcref.arguments + extra
        else:
            scope, bare = split_scoped_name(name.as_string())
            handler = self.evaluator.functions.lookup(scope, bare, context)
            if handler is None:
                raise VimNameError(f"E700: Unknown function: {name.as_string()}")
            funcref = VimFuncref(handler, extra)
        if dictionary is not None:
            funcref.dictionary = dictionary
            funcref.is_self_fixed = True
        return funcref

    def _funcref(self, name, arglist=None, dictionary=None, *, context):
        return self._function(name, arglist, dictionary, context=context)

    async def _call(self, func, arglist, dictionary=None, *, context):
        if not isinstance(arglist, VimList):
            raise VimTypeError("E714: List required")
        if dictionary is not None and not isinstance(dictionary, VimDictionary):
            raise VimTypeError("E715: Dictionary required")
        if not isinstance(func, VimFuncref):
            scope, bare = split_scoped_name(func.as_string())
            func = VimFuncref(self.evaluator.functions.get_handler(scope, bare, context))
        if dictionary is not None:
            func = func.copy()
            func.dictionary = dictionary
        return await self.evaluator.call_funcref(func, list(arglist.values), context)

    def _exists(self, expr, *, context):
        text = expr.as_string()
        try:
            match text[:1]:
                case "&":
                    scope, name = split_scoped_name(text[1:])
                    return self.evaluator.options.get_option(name, scope) is not None
                case "$":
                    return self.evaluator.environment.get_env(text[1:]) is not None
                case "*":
                    scope, name = split_scoped_name(text[1:])
                    return self.evaluator.functions.lookup(scope, name, context) is not None
            return _resolve_path(self.evaluator, text, context) is not None
        except VimScriptError:
            return False

    def _islocked(self, expr, *, context):
        value = _resolve_path(self.evaluator, expr.as_string(), context)
        if value is None:
            raise VimNameError(f"E121: Undefined variable: {expr.as_string()}")
        return value.locked

    # --- Serialization ---

    def _json_encode(self, value):
        return json_encode(value)

    def _json_decode(self, string):
        return json_decode(string.as_string())

    # --- Registers and environment ---

    def _getreg(self, regname=None):
        name = regname.as_string() if regname is not None else '"'
        return self.evaluator.registers.get_register(name.lower() or '"') or ""

    def _setreg(self, regname, value):
        name = regname.as_string() or '"'
        if isinstance(value, VimList):
            text = "\n".join(v.as_string() for v in value.values)
        else:
            text = value.as_string()
        registers = self.evaluator.registers
        if name.isupper():
            text = (registers.get_register(name.lower()) or "") + text
        registers.set_register(name.lower(), text)
        return 0

    def _getenv(self, name):
        return self.evaluator.environment.get_env(name.as_string())

    def _setenv(self, name, value):
        self.evaluator.environment.set_env(name.as_string(), value.as_string())
        return 0


# ===================================================================
# 3. Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Optional[VimValue] = None
    error_message: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)
    interrupted: bool = False

    @property
    def output(self) -> List[str]:
        """Messages written by :echo during the run."""
        return [e['message'] for e in self.side_effects if 'stdout' in e['topics']]


def _host_callable(member):
    """Wrap a host API method so it takes and returns plain Python values."""
    @functools.wraps(member)
    async def call(*args, **kwargs):
        result = member(*(from_vim(a) for a in args), **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
    return call


def _as_scope(scope: Scope | str | None) -> Optional[Scope]:
    if scope is None or isinstance(scope, Scope):
        return scope
    return Scope.from_prefix(scope)


class ScriptRunner:
    """Executes parse trees against one isolated engine instance."""

    def __init__(self, host_object: Optional[VimHost] = None, *,
                 registers: Optional[RegisterProvider] = None,
                 options: Optional[OptionProvider] = None,
                 environment: Optional[EnvironmentProvider] = None,
                 config: Optional[EngineConfig] = None):
        self.host_object = host_object
        self.config = config or EngineConfig()
        self.config.apply_logging()

        if registers is None:
            registers = host_object if isinstance(host_object, RegisterProvider) else MemoryRegisters()
        if options is None:
            options = host_object if isinstance(host_object, OptionProvider) else MemoryOptions()
        if environment is None:
            environment = host_object if isinstance(host_object, EnvironmentProvider) else OsEnvironment()

        self.evaluator = Evaluator(registers=registers, options=options,
                                   environment=environment, config=self.config)
        StdLib(self.evaluator).install()
        self.scripts: Dict[str, Script] = {}
        if host_object is not None:
            host_object._register_runner(self)
            self._bind_host_api_methods()

    def _bind_host_api_methods(self):
        """Register @vim_api_method methods of the host as native functions."""
        for name, member in inspect.getmembers(self.host_object):
            if not callable(member):
                continue
            is_api = getattr(member, "_is_vim_api", False) \
                or getattr(getattr(member, "__func__", None), "_is_vim_api", False)
            if not is_api:
                continue
            self.evaluator.functions.register_native(name, _host_callable(member))

    def _format_runtime_error(self, e: Exception) -> str:
        match e:
            case UserError():
                return e.uncaught_message()
            case VimScriptError():
                return e.message
        return f"InternalError: {e}"

    def _error_result(self, e: Exception) -> ExecutionResult:
        message = self._format_runtime_error(e)
        if isinstance(e, VimScriptError):
            logger.debug("Uncaught script error: %s", message)
        else:
            logger.debug("Internal error during execution", exc_info=e)
        self.evaluator.side_effects.append({'topics': ['stderr'], 'message': message})
        return ExecutionResult(status='error', error_message=message,
                               side_effects=list(self.evaluator.side_effects))

    # --- public API ---

    def new_script(self, name: str = "<script>") -> Script:
        script = self.evaluator.variables.new_script(name)
        self.scripts[name] = script
        return script

    def script_context(self, script: Script) -> ExecutionContext:
        return ExecutionContext(script=script)

    async def execute(self, block: List[Executable],
                      context: Optional[ExecutionContext] = None) -> ExecutionResult:
        """The main entry point to execute a parsed block of statements."""
        context = context or ExecutionContext()
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()
        try:
            await self.evaluator.run_block(block, context)
        except Exception as e:
            return self._error_result(e)
        return ExecutionResult(status='success',
                               side_effects=list(self.evaluator.side_effects),
                               interrupted=self.evaluator.was_interrupted)

    async def source(self, block: List[Executable], name: str = "<script>") -> ExecutionResult:
        """Execute `block` as a new script unit."""
        return await self.execute(block, self.script_context(self.new_script(name)))

    async def evaluate(self, expression: Expression,
                       context: Optional[ExecutionContext] = None) -> ExecutionResult:
        context = context or ExecutionContext()
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()
        try:
            value = await self.evaluator.eval(expression, context)
        except Exception as e:
            return self._error_result(e)
        return ExecutionResult(status='success', value=value,
                               side_effects=list(self.evaluator.side_effects))

    def run(self, block: List[Executable], context: Optional[ExecutionContext] = None) -> ExecutionResult:
        """Synchronous wrapper around `execute`."""
        return asyncio.run(self.execute(block, context))

    def register_native_function(self, name: str, handler: Callable | BuiltinFunctionHandler) -> None:
        self.evaluator.functions.register_native(name, handler)

    def get_variable(self, scope: Scope | str | None, name: str,
                     context: Optional[ExecutionContext] = None) -> VimValue:
        return self.evaluator.variables.get(_as_scope(scope), name, context or ExecutionContext())

    def set_variable(self, scope: Scope | str | None, name: str, value: Any,
                     context: Optional[ExecutionContext] = None) -> None:
        self.evaluator.variables.store(Variable(_as_scope(scope), name), to_vim(value),
                                       context or ExecutionContext())

    def cancel(self) -> None:
        self.evaluator.request_interrupt()


__all__ = [
    "VimHost", "vim_api_method", "StdLib", "ExecutionResult", "ScriptRunner",
    "split_scoped_name",
]
