"""
The core Vim script interpreter, containing the Evaluator.

Statements run against an ExecutionContext and return a control signal
(None, a ReturnSignal, BREAK, CONTINUE or FINISH); errors propagate as
VimScriptError exceptions through the :try machinery.
"""
import functools
import inspect
import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from vimscript.vimscript_assignment import TargetResolver, index_number
from vimscript.vimscript_config import EngineConfig
from vimscript.vimscript_datatypes import (
    AnonymousFunctionDefinition, BinaryExpression, BreakStatement, CallStatement,
    ContinueStatement, DelFunctionStatement, DictionaryExpression, EchoStatement,
    EnvVariableExpression, Executable, Expression, FinishStatement, ForLoop,
    ForLoopWithList, FuncrefCallExpression, FunctionCallExpression, FunctionDefinition,
    FunctionFlag, IfStatement, IndexExpression, LambdaExpression, LetStatement,
    ListExpression, LockVarStatement, OptionExpression, RegisterExpression,
    ReturnStatement, SimpleExpression, SublistExpression, TernaryExpression,
    ThrowStatement, TryStatement, UnaryExpression, UnletStatement, Variable, WhileLoop,
)
from vimscript.vimscript_errors import (
    ScopeContextError, ScriptFinished, UserError, VimNameError, VimRangeError,
    VimScriptError, VimTypeError,
)
from vimscript.vimscript_functions import (
    BuiltinFunctionHandler, DefinedFunction, DefinedFunctionHandler, FunctionHandler,
    FunctionRegistry,
)
from vimscript.vimscript_printer import Printer
from vimscript.vimscript_providers import (
    EnvironmentProvider, MemoryOptions, MemoryRegisters, OptionProvider, OsEnvironment,
    RegisterProvider,
)
from vimscript.vimscript_scopes import ExecutionContext, FunctionFrame, VariableStore
from vimscript.vimscript_values import (
    INT64_MAX, INT64_MIN, VimBlob, VimDictionary, VimFloat, VimFuncref, VimList, VimNumber,
    VimString, VimValue, to_vim, values_equal, values_identical, wrap_int64,
)

logger = logging.getLogger(__name__)


# =================================================================
# Control signals
# =================================================================

class _ControlSignal:
    """Internal helper class for stateless control-flow signals."""
    def __init__(self, name: str):
        self._name = name

    def __repr__(self):
        return f"<{self._name}>"


BREAK = _ControlSignal("break")
CONTINUE = _ControlSignal("continue")
FINISH = _ControlSignal("finish")


class ReturnSignal:
    def __init__(self, value: VimValue):
        self.value = value

    def __repr__(self):
        return f"<return {self.value!r}>"


# =================================================================
# Patterns
# =================================================================

_CLASS_ESCAPES = {
    "a": "[A-Za-z]", "A": "[^A-Za-z]",
    "l": "[a-z]", "L": "[^a-z]",
    "u": "[A-Z]", "U": "[^A-Z]",
    "h": "[A-Za-z_]", "H": "[^A-Za-z_]",
    "x": "[0-9A-Fa-f]", "X": "[^0-9A-Fa-f]",
    "o": "[0-7]", "O": "[^0-7]",
    "d": r"\d", "D": r"\D",
    "s": r"[ \t]", "S": r"[^ \t]",
    "w": r"[0-9A-Za-z_]", "W": r"[^0-9A-Za-z_]",
    "n": "\n", "t": "\t", "e": "\x1b", "r": "\r",
    "<": r"\b", ">": r"\b",
}


@functools.lru_cache(maxsize=256)
def compile_vim_pattern(pattern: str, ignore_case: bool = False) -> re.Pattern:
    """Translate a pattern in the editor's 'magic' regex dialect to Python `re`."""
    out: List[str] = []
    flags = re.IGNORECASE if ignore_case else 0
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            n = pattern[i + 1]
            i += 2
            if n == "{":
                close = pattern.find("}", i)
                if close < 0:
                    raise re.error("unmatched \\{")
                bounds = pattern[i:close].rstrip("\\")
                i = close + 1
                lazy = bounds.startswith("-")
                bounds = bounds.lstrip("-")
                out.append(("{" + bounds + "}") if bounds else "*")
                if lazy:
                    out.append("?")
            elif n in "()|+=?":
                out.append("?" if n == "=" else n)
            elif n == "%" and pattern.startswith("(", i):
                out.append("(?:")
                i += 1
            elif n in _CLASS_ESCAPES:
                out.append(_CLASS_ESCAPES[n])
            elif n == "c":
                flags |= re.IGNORECASE
            elif n == "C":
                flags &= ~re.IGNORECASE
            else:
                out.append(re.escape(n))
        elif c in "()|+?{}":
            out.append("\\" + c)
            i += 1
        else:
            out.append(c)
            i += 1
    return re.compile("".join(out), flags)


def vim_pattern_search(pattern: str, text: str, ignore_case: bool = False) -> bool:
    try:
        regex = compile_vim_pattern(pattern, ignore_case)
    except re.error:
        raise VimScriptError(f"E383: Invalid search string: {pattern}") from None
    return regex.search(text) is not None


# =================================================================
# Arithmetic
# =================================================================

def _number_divide(a: int, b: int) -> int:
    if b == 0:
        if a > 0:
            return INT64_MAX
        return -INT64_MAX
    q = abs(a) // abs(b)
    return wrap_int64(q if (a < 0) == (b < 0) else -q)


def _number_modulo(a: int, b: int) -> int:
    if b == 0:
        return 0
    r = abs(a) % abs(b)
    return r if a >= 0 else -r


def _float_divide(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


_COMPARISONS = ("==", "!=", ">=", "<=", ">", "<", "=~", "!~", "isnot", "is")


def split_comparison(operator: str) -> Tuple[str, Optional[bool]]:
    """'==?' -> ('==', True), '==#' -> ('==', False), '==' -> ('==', None)."""
    if operator[-1:] in ("#", "?") and operator[:-1] in _COMPARISONS:
        return operator[:-1], operator[-1] == "?"
    return operator, None


# =================================================================
# Evaluator
# =================================================================

class Evaluator:
    """The Vim script execution engine."""

    def __init__(self, *, registers: Optional[RegisterProvider] = None,
                 options: Optional[OptionProvider] = None,
                 environment: Optional[EnvironmentProvider] = None,
                 config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.variables = VariableStore()
        self.functions = FunctionRegistry()
        self.registers = registers if registers is not None else MemoryRegisters()
        self.options = options if options is not None else MemoryOptions()
        self.environment = environment if environment is not None else OsEnvironment()
        self.target_resolver = TargetResolver(self)
        self.printer = Printer(max_depth=self.config.max_render_depth)
        self.side_effects: List[Dict[str, Any]] = []
        self.call_stack: List[Dict[str, Any]] = []
        self.interrupt_requested = False
        self.was_interrupted = False
        self._call_depth = 0

    def request_interrupt(self) -> None:
        self.interrupt_requested = True

    def _push_frame(self, name, func, args):
        self.call_stack.append({'name': name, 'func': func, 'args': args})

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _throwpoint(self) -> str:
        names = [f['name'] for f in self.call_stack if isinstance(f['func'], DefinedFunction)]
        return f"function {'..'.join(names)}" if names else ""

    def _command_name(self, statement: Executable) -> str:
        if isinstance(statement, LockVarStatement) and not statement.lock:
            return "unlockvar"
        return statement.command

    def ignore_case(self) -> bool:
        value = self.options.get_option(self.config.ignorecase_option)
        return value is not None and value.as_boolean()

    # --- top level ---

    async def run_block(self, block: List[Executable], context: ExecutionContext) -> None:
        """Execute one script unit: :finish and interruption stop it quietly."""
        try:
            signal = await self.execute_block(block, context)
        except ScriptFinished:
            signal = None
        finally:
            self.was_interrupted = self.interrupt_requested
            self.interrupt_requested = False
        self._check_stray_signal(signal)

    def _check_stray_signal(self, signal) -> None:
        if signal is BREAK:
            err = ScopeContextError("E587: :break without :while or :for")
            err.command = "break"
            raise err
        if signal is CONTINUE:
            err = ScopeContextError("E586: :continue without :while or :for")
            err.command = "continue"
            raise err

    # --- statements ---

    async def execute_block(self, statements: List[Executable], context: ExecutionContext):
        for statement in statements:
            if self.interrupt_requested:
                return FINISH
            signal = await self.execute(statement, context)
            if signal is not None:
                return signal
        return None

    async def execute(self, statement: Executable, context: ExecutionContext):
        """Execute one statement, tagging escaping errors with the command name."""
        try:
            return await self._execute(statement, context)
        except VimScriptError as e:
            if e.command is None:
                e.command = self._command_name(statement)
                e.throwpoint = self._throwpoint()
            raise

    async def _execute(self, statement: Executable, context: ExecutionContext):
        match statement:
            case LetStatement():
                await self.target_resolver.let(statement, context)
            case UnletStatement():
                for target in statement.targets:
                    await self.target_resolver.unlet(target, context, force=statement.force)
            case LockVarStatement():
                for target in statement.targets:
                    await self.target_resolver.lock(target, context, statement.depth, statement.lock)
            case EchoStatement():
                values = [await self.eval(e, context) for e in statement.expressions]
                message = " ".join(self.printer.echo(v) for v in values)
                self.side_effects.append({'topics': ['stdout'], 'message': message})
            case CallStatement():
                await self.eval(statement.expression, context)
            case IfStatement():
                for condition, body in statement.branches:
                    if (await self.eval(condition, context)).as_boolean():
                        return await self.execute_block(body, context)
            case WhileLoop():
                return await self._execute_while(statement, context)
            case ForLoop():
                return await self._execute_for(statement, context)
            case ForLoopWithList():
                return await self._execute_for_list(statement, context)
            case FunctionDefinition():
                self.functions.declare(DefinedFunction.from_definition(statement, context), context)
            case AnonymousFunctionDefinition():
                await self._define_dict_function(statement, context)
            case DelFunctionStatement():
                try:
                    self.functions.delete(statement.name, statement.scope, context)
                except VimNameError:
                    if not statement.force:
                        raise
            case ReturnStatement():
                if context.frame is None:
                    raise ScopeContextError("E133: :return not inside a function")
                if statement.expression is None:
                    return ReturnSignal(VimNumber(0))
                return ReturnSignal(await self.eval(statement.expression, context))
            case BreakStatement():
                return BREAK
            case ContinueStatement():
                return CONTINUE
            case FinishStatement():
                return FINISH
            case TryStatement():
                return await self._execute_try(statement, context)
            case ThrowStatement():
                value = await self.eval(statement.expression, context)
                text = value.as_string()
                if text.startswith("Vim"):
                    raise VimScriptError("E608: Cannot :throw exceptions with 'Vim' prefix")
                raise UserError(text)
            case _:
                raise TypeError(f"Unknown statement node: {statement!r}")
        return None

    async def _execute_while(self, loop: WhileLoop, context: ExecutionContext):
        while not self.interrupt_requested:
            if not (await self.eval(loop.condition, context)).as_boolean():
                return None
            signal = await self.execute_block(loop.body, context)
            if signal is BREAK:
                return None
            if signal is not None and signal is not CONTINUE:
                return signal
        return FINISH

    def _iteration_items(self, value: VimValue) -> List[VimValue]:
        match value:
            case VimList():
                return list(value.values)
            case VimString():
                return [VimString(ch) for ch in value.value]
            case VimBlob():
                return [VimNumber(b) for b in value.data]
        raise VimTypeError("E1098: String, List or Blob required")

    async def _run_loop_body(self, body, context):
        """Returns (stop, signal) for one iteration."""
        signal = await self.execute_block(body, context)
        if signal is BREAK:
            return True, None
        if signal is not None and signal is not CONTINUE:
            return True, signal
        return False, None

    async def _execute_for(self, loop: ForLoop, context: ExecutionContext):
        items = self._iteration_items(await self.eval(loop.iterable, context))
        for item in items:
            if self.interrupt_requested:
                return FINISH
            self.variables.store(loop.variable, item, context)
            stop, signal = await self._run_loop_body(loop.body, context)
            if stop:
                return signal
        return None

    async def _execute_for_list(self, loop: ForLoopWithList, context: ExecutionContext):
        items = self._iteration_items(await self.eval(loop.iterable, context))
        count = len(loop.variables)
        for item in items:
            if self.interrupt_requested:
                return FINISH
            if not isinstance(item, VimList):
                raise VimTypeError("E714: List required")
            if len(item.values) < count:
                raise VimTypeError("E688: More targets than List items")
            if len(item.values) > count:
                raise VimTypeError("E687: Less targets than List items")
            for variable, value in zip(loop.variables, item.values):
                self.variables.store(variable, value, context)
            stop, signal = await self._run_loop_body(loop.body, context)
            if stop:
                return signal
        return None

    async def _execute_try(self, statement: TryStatement, context: ExecutionContext):
        pending_error: Optional[BaseException] = None
        caught: Optional[VimScriptError] = None
        signal = None
        try:
            signal = await self.execute_block(statement.try_block, context)
        except VimScriptError as e:
            caught = pending_error = e
        except ScriptFinished as finished:
            pending_error = finished

        if caught is not None:
            try:
                handler = self._find_catch(statement, caught)
            except VimScriptError as bad_pattern:
                pending_error = bad_pattern
                handler = None
            if handler is not None:
                logger.debug("Caught %s", caught.exception_text)
                pending_error = None
                try:
                    signal = await self._run_catch(handler, caught, context)
                except VimScriptError as inner:
                    pending_error = inner
                except ScriptFinished as finished:
                    pending_error = finished

        if statement.finally_block is not None:
            # :finally runs even while a cancellation is unwinding the script.
            cancelled, self.interrupt_requested = self.interrupt_requested, False
            try:
                final_signal = await self.execute_block(statement.finally_block, context)
            finally:
                self.interrupt_requested = self.interrupt_requested or cancelled
            if final_signal is not None:
                return final_signal

        if pending_error is not None:
            raise pending_error
        return signal

    def _find_catch(self, statement: TryStatement, error: VimScriptError):
        text = error.exception_text
        for block in statement.catch_blocks:
            if vim_pattern_search(block.pattern, text):
                return block
        return None

    async def _run_catch(self, block, error: VimScriptError, context: ExecutionContext):
        saved = (self.variables.vim_variables["exception"],
                 self.variables.vim_variables["throwpoint"])
        self.variables.vim_variables["exception"] = VimString(error.exception_text)
        self.variables.vim_variables["throwpoint"] = VimString(error.throwpoint)
        try:
            return await self.execute_block(block.body, context)
        finally:
            self.variables.vim_variables["exception"], \
                self.variables.vim_variables["throwpoint"] = saved

    async def _define_dict_function(self, statement: AnonymousFunctionDefinition,
                                    context: ExecutionContext) -> None:
        container = await self.eval(statement.target.container, context)
        if not isinstance(container, VimDictionary):
            raise VimTypeError("E1203: Dot can only be used on a dictionary")
        key = (await self.eval(statement.target.index, context)).as_string()
        if key in container and not statement.replace_existing:
            raise VimTypeError(f"E717: Dictionary entry already exists: {key}")
        if container.locked or (key in container and container[key].locked):
            raise self.target_resolver.locked_error(key)
        function = DefinedFunction.from_anonymous(self.functions.next_anonymous_name(),
                                                  statement, context)
        container[key] = VimFuncref(DefinedFunctionHandler(function))

    # --- expressions ---

    async def eval(self, expression: Expression, context: ExecutionContext) -> VimValue:
        """Evaluate an expression node to a value."""
        match expression:
            case SimpleExpression():
                return expression.value
            case Variable():
                return self.variables.get(expression.scope, expression.name, context)
            case OptionExpression():
                return self.read_option(expression)
            case RegisterExpression():
                return VimString(self.registers.get_register(expression.char) or "")
            case EnvVariableExpression():
                return VimString(self.environment.get_env(expression.name) or "")
            case ListExpression():
                return VimList([(await self.eval(item, context)).clone_for_assignment()
                                for item in expression.items])
            case DictionaryExpression():
                result = VimDictionary()
                for key_expr, value_expr in expression.pairs:
                    key = (await self.eval(key_expr, context)).as_string()
                    result[key] = (await self.eval(value_expr, context)).clone_for_assignment()
                return result
            case IndexExpression():
                container = await self.eval(expression.container, context)
                index = await self.eval(expression.index, context)
                return self.index(container, index)
            case SublistExpression():
                return await self._sublist(expression, context)
            case BinaryExpression():
                return await self._binary(expression, context)
            case UnaryExpression():
                return self.unary_operation(expression.operator,
                                            await self.eval(expression.operand, context))
            case TernaryExpression():
                if (await self.eval(expression.condition, context)).as_boolean():
                    return await self.eval(expression.then, context)
                return await self.eval(expression.otherwise, context)
            case FunctionCallExpression():
                return await self._call_named(expression, context)
            case FuncrefCallExpression():
                return await self._call_expression(expression, context)
            case LambdaExpression():
                return self._make_lambda(expression, context)
        raise TypeError(f"Unknown expression node: {expression!r}")

    def read_option(self, expression: OptionExpression) -> VimValue:
        value = self.options.get_option(expression.name, expression.scope)
        if value is None:
            raise VimNameError(f"E113: Unknown option: {expression.name}")
        return value

    def index(self, container: VimValue, index: VimValue) -> VimValue:
        """`container[index]` as an rvalue."""
        match container:
            case VimList():
                n = index_number(index)
                i = n + len(container.values) if n < 0 else n
                if not 0 <= i < len(container.values):
                    raise VimRangeError(f"E684: list index out of range: {n}")
                return container.values[i]
            case VimDictionary():
                key = index.as_string()
                if key not in container:
                    raise VimNameError(f'E716: Key not present in Dictionary: "{key}"')
                value = container[key]
                if isinstance(value, VimFuncref) and not value.is_self_fixed \
                        and value.dictionary is not container and self.is_dict_function(value):
                    value = value.copy()
                    value.dictionary = container
                return value
            case VimString() | VimNumber():
                text = container.as_string()
                n = index_number(index)
                if 0 <= n < len(text):
                    return VimString(text[n])
                return VimString("")
            case VimBlob():
                n = index_number(index)
                i = n + len(container.data) if n < 0 else n
                if not 0 <= i < len(container.data):
                    raise VimRangeError(f"E979: Blob index out of range: {n}")
                return VimNumber(container.data[i])
            case VimFloat():
                raise VimTypeError("E806: using Float as a String")
            case VimFuncref():
                raise VimTypeError("E695: Cannot index a Funcref")
        raise VimTypeError("E689: Can only index a List, Dictionary or Blob")

    @staticmethod
    def is_dict_function(funcref: VimFuncref) -> bool:
        handler = funcref.handler
        return isinstance(handler, DefinedFunctionHandler) \
            and FunctionFlag.DICT in handler.function.flags

    async def _sublist(self, expression: SublistExpression, context: ExecutionContext) -> VimValue:
        container = await self.eval(expression.container, context)
        if isinstance(container, VimDictionary):
            raise VimTypeError("E719: Cannot slice a Dictionary")
        if isinstance(container, VimFuncref):
            raise VimTypeError("E695: Cannot index a Funcref")
        match container:
            case VimList():
                sequence = container.values
            case VimBlob():
                sequence = container.data
            case _:
                sequence = container.as_string()
        size = len(sequence)
        start = 0
        end = size - 1
        if expression.from_ is not None:
            start = index_number(await self.eval(expression.from_, context))
        if expression.to is not None:
            end = index_number(await self.eval(expression.to, context))
        if start < 0:
            start = max(start + size, 0)
        if end < 0:
            end += size
        end = min(end, size - 1)
        part = sequence[start:end + 1] if start <= end else sequence[0:0]
        match container:
            case VimList():
                return VimList(part)
            case VimBlob():
                return VimBlob(part)
        return VimString(part)

    async def _binary(self, expression: BinaryExpression, context: ExecutionContext) -> VimValue:
        operator = expression.operator
        if operator in ("&&", "||"):
            left = (await self.eval(expression.left, context)).as_boolean()
            if operator == "&&" and not left:
                return VimNumber(0)
            if operator == "||" and left:
                return VimNumber(1)
            right = (await self.eval(expression.right, context)).as_boolean()
            return VimNumber(1 if right else 0)
        left = await self.eval(expression.left, context)
        right = await self.eval(expression.right, context)
        return self.binary_operation(operator, left, right)

    def binary_operation(self, operator: str, left: VimValue, right: VimValue) -> VimValue:
        base, ignore_case = split_comparison(operator)
        match base:
            case "+" | "-" | "*" | "/" | "%":
                return self._arithmetic(base, left, right)
            case "." | "..":
                return VimString(left.as_string() + right.as_string())
            case "==" | "!=":
                if ignore_case is None:
                    ignore_case = self.ignore_case()
                equal = values_equal(left, right, ignore_case=ignore_case)
                return VimNumber(1 if equal == (base == "==") else 0)
            case ">" | ">=" | "<" | "<=":
                if ignore_case is None:
                    ignore_case = self.ignore_case()
                return VimNumber(1 if self._ordering(base, left, right, ignore_case) else 0)
            case "=~" | "!~":
                if ignore_case is None:
                    ignore_case = self.ignore_case()
                found = vim_pattern_search(right.as_string(), left.as_string(), ignore_case)
                return VimNumber(1 if found == (base == "=~") else 0)
            case "is" | "isnot":
                same = values_identical(left, right, ignore_case=bool(ignore_case))
                return VimNumber(1 if same == (base == "is") else 0)
        raise TypeError(f"Unknown binary operator: {operator!r}")

    def _arithmetic(self, operator: str, left: VimValue, right: VimValue) -> VimValue:
        if operator == "+":
            if isinstance(left, VimList) and isinstance(right, VimList):
                return VimList(left.values + right.values)
            if isinstance(left, VimBlob) and isinstance(right, VimBlob):
                return VimBlob(left.data + right.data)
        if isinstance(left, VimFloat) or isinstance(right, VimFloat):
            if operator == "%":
                raise VimTypeError("E804: Cannot use '%' with Float")
            a, b = left.as_float(), right.as_float()
            match operator:
                case "+":
                    return VimFloat(a + b)
                case "-":
                    return VimFloat(a - b)
                case "*":
                    return VimFloat(a * b)
            return VimFloat(_float_divide(a, b))
        a, b = left.as_number(), right.as_number()
        match operator:
            case "+":
                return VimNumber(a + b)
            case "-":
                return VimNumber(a - b)
            case "*":
                return VimNumber(a * b)
            case "/":
                return VimNumber(_number_divide(a, b))
        return VimNumber(_number_modulo(a, b))

    def _ordering(self, operator: str, left: VimValue, right: VimValue, ignore_case: bool) -> bool:
        for value in (left, right):
            match value:
                case VimList():
                    raise VimTypeError("E692: Invalid operation for List")
                case VimDictionary():
                    raise VimTypeError("E736: Invalid operation for Dictionary")
                case VimFuncref():
                    raise VimTypeError("E694: Invalid operation for Funcrefs")
                case VimBlob():
                    raise VimTypeError("E978: Invalid operation for Blob")
        if isinstance(left, VimString) and isinstance(right, VimString):
            a, b = left.value, right.value
            if ignore_case:
                a, b = a.lower(), b.lower()
        elif isinstance(left, VimFloat) or isinstance(right, VimFloat):
            a, b = left.as_float(), right.as_float()
        else:
            a, b = left.as_number(), right.as_number()
        match operator:
            case ">":
                return a > b
            case ">=":
                return a >= b
            case "<":
                return a < b
        return a <= b

    def unary_operation(self, operator: str, operand: VimValue) -> VimValue:
        match operator:
            case "!":
                return VimNumber(0 if operand.as_boolean() else 1)
            case "-":
                if isinstance(operand, VimFloat):
                    return VimFloat(-operand.value)
                return VimNumber(-operand.as_number())
            case "+":
                if isinstance(operand, VimFloat):
                    return operand
                return VimNumber(operand.as_number())
        raise TypeError(f"Unknown unary operator: {operator!r}")

    # --- calls ---

    async def _call_named(self, expression: FunctionCallExpression, context: ExecutionContext) -> VimValue:
        args = [await self.eval(a, context) for a in expression.arguments]
        handler = self.functions.lookup(expression.scope, expression.name, context)
        if handler is None:
            candidate = self.variables.resolve(expression.scope, expression.name, context)
            if isinstance(candidate, VimFuncref):
                return await self.call_funcref(candidate, args, context)
            prefix = expression.scope.prefix if expression.scope else ""
            raise VimNameError(f"E117: Unknown function: {prefix}{expression.name}")
        return await self.call_function(handler, args, context)

    async def _call_expression(self, expression: FuncrefCallExpression, context: ExecutionContext) -> VimValue:
        receiver = None
        target = expression.expression
        if isinstance(target, IndexExpression):
            container = await self.eval(target.container, context)
            func = self.index(container, await self.eval(target.index, context))
            if isinstance(container, VimDictionary):
                receiver = container
        else:
            func = await self.eval(target, context)
        if isinstance(func, VimString):
            func = VimFuncref(self.functions.get_handler(None, func.value, context))
        if not isinstance(func, VimFuncref):
            raise VimTypeError(f"E1085: Not a callable type: {self.printer.pformat(func)}")
        args = [await self.eval(a, context) for a in expression.arguments]
        return await self.call_funcref(func, args, context, receiver)

    async def call_funcref(self, funcref: VimFuncref, args: List[VimValue],
                           context: ExecutionContext,
                           receiver: Optional[VimDictionary] = None) -> VimValue:
        handler = funcref.handler
        if isinstance(handler, DefinedFunctionHandler) and handler.function.deleted:
            raise VimNameError(f"E933: Function was deleted: {handler.name}")
        self_dict = funcref.dictionary if funcref.dictionary is not None else receiver
        return await self.call_function(handler, funcref.arguments + list(args), context, self_dict)

    async def call_function(self, handler: FunctionHandler, args: List[VimValue],
                            context: ExecutionContext,
                            self_dict: Optional[VimDictionary] = None) -> VimValue:
        match handler:
            case BuiltinFunctionHandler():
                return await self._call_builtin(handler, args, context)
            case DefinedFunctionHandler():
                return await self._call_defined(handler.function, args, self_dict)
        raise TypeError(f"Unknown function handler: {handler!r}")

    async def _call_builtin(self, handler: BuiltinFunctionHandler, args: List[VimValue],
                            context: ExecutionContext) -> VimValue:
        handler.check_arity(len(args))
        kwargs = {'context': context} if handler.wants_context else {}
        self._push_frame(handler.name, handler, args)
        try:
            result = handler.func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        finally:
            self._pop_frame()
        return to_vim(result)

    async def _call_defined(self, function: DefinedFunction, args: List[VimValue],
                            self_dict: Optional[VimDictionary]) -> VimValue:
        name = function.display_name
        if self._call_depth >= self.config.maxfuncdepth:
            raise VimRangeError("E132: Function call depth is higher than 'maxfuncdepth'")
        is_dict = FunctionFlag.DICT in function.flags
        if is_dict and self_dict is None:
            raise VimTypeError(f"E725: Calling dict function without Dictionary: {name}")
        if len(args) < function.required_count:
            raise VimTypeError(f"E119: Not enough arguments for function: {name}")
        if len(args) > len(function.parameters) and not function.has_optional_arguments:
            raise VimTypeError(f"E118: Too many arguments for function: {name}")

        frame = FunctionFrame(function, self_dict if is_dict else None, function.closure)
        call_context = ExecutionContext(script=function.script, frame=frame)
        self._push_frame(name, function, args)
        self._call_depth += 1
        try:
            await self._bind_arguments(function, frame, args, call_context)
            signal = await self.execute_block(function.body, call_context)
        except RecursionError:
            # The Python stack ran out before maxfuncdepth was reached.
            raise VimRangeError("E132: Function call depth is higher than 'maxfuncdepth'") from None
        finally:
            self._call_depth -= 1
            self._pop_frame()

        if isinstance(signal, ReturnSignal):
            return signal.value
        if signal is FINISH:
            raise ScriptFinished(interrupted=self.interrupt_requested)
        self._check_stray_signal(signal)
        return VimNumber(0)

    async def _bind_arguments(self, function: DefinedFunction, frame: FunctionFrame,
                              args: List[VimValue], call_context: ExecutionContext) -> None:
        for i, param in enumerate(function.parameters):
            if i < len(args):
                value = args[i].clone_for_assignment()
            else:
                # Defaults see the parameters bound before them.
                value = (await self.eval(function.defaults[param], call_context)).clone_for_assignment()
            frame.arguments[param] = value
            if function.is_lambda:
                frame.locals[param] = value
        if function.has_optional_arguments:
            extras = [a.clone_for_assignment() for a in args[len(function.parameters):]]
            frame.arguments["0"] = VimNumber(len(extras))
            frame.arguments["000"] = VimList(extras)
            for i, extra in enumerate(extras, 1):
                frame.arguments[str(i)] = extra

    def _make_lambda(self, expression: LambdaExpression, context: ExecutionContext) -> VimFuncref:
        function = DefinedFunction(self.functions.next_lambda_name(), expression.parameters,
                                   [ReturnStatement(expression.body)],
                                   flags=frozenset({FunctionFlag.CLOSURE}),
                                   script=context.script, closure=context.frame,
                                   is_lambda=True)
        return VimFuncref(DefinedFunctionHandler(function))


__all__ = [
    "Evaluator", "ReturnSignal", "BREAK", "CONTINUE", "FINISH",
    "compile_vim_pattern", "vim_pattern_search", "split_comparison",
]
