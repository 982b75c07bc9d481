"""
Assignment targets: :let, :unlet and :lockvar over variables, list items,
list and blob ranges, dictionary keys, options, registers and
environment variables.
"""
import logging
from typing import TYPE_CHECKING, List, Optional

from vimscript.vimscript_datatypes import (
    AssignmentOperator, EnvVariableExpression, Expression, IndexExpression, LetStatement,
    OptionExpression, RegisterExpression, Scope, SublistExpression, Variable,
)
from vimscript.vimscript_errors import (
    ScopeContextError, VimNameError, VimPermissionError, VimRangeError, VimTypeError,
)
from vimscript.vimscript_values import (
    VimBlob, VimDictionary, VimFuncref, VimList, VimNumber, VimString, VimValue,
    str_to_number,
)

if TYPE_CHECKING:
    from vimscript.vimscript_interpreter import Evaluator
    from vimscript.vimscript_scopes import ExecutionContext

logger = logging.getLogger(__name__)

_BINARY_FOR_OPERATOR = {
    AssignmentOperator.ADDITION: "+",
    AssignmentOperator.SUBTRACTION: "-",
    AssignmentOperator.MULTIPLICATION: "*",
    AssignmentOperator.DIVISION: "/",
    AssignmentOperator.MODULUS: "%",
    AssignmentOperator.CONCATENATION: "..",
}

# Operators the option, register and environment pseudo-scopes accept.
_PSEUDO_SCOPE_OPERATORS = frozenset({
    AssignmentOperator.ASSIGNMENT,
    AssignmentOperator.ADDITION,
    AssignmentOperator.SUBTRACTION,
    AssignmentOperator.CONCATENATION,
})


def index_number(value: VimValue) -> int:
    """List and blob indexes are read from the string form of the index value."""
    return str_to_number(value.as_string())


def _is_writable_register(char: str) -> bool:
    return len(char) == 1 and (char == '"' or (char.isascii() and char.isalnum()))


class TargetResolver:
    """Applies assignments, deletions and locks to every kind of target."""

    def __init__(self, evaluator: 'Evaluator'):
        self.evaluator = evaluator

    @staticmethod
    def locked_error(name: str) -> VimPermissionError:
        return VimPermissionError(f"E741: Value is locked: {name}")

    # =================================================================
    # :let
    # =================================================================

    async def let(self, statement: LetStatement, context: 'ExecutionContext') -> None:
        target = statement.target
        match target:
            case Variable():
                await self._let_variable(target, statement.operator, statement.expression, context)
            case IndexExpression():
                await self._let_index(target, statement.operator, statement.expression, context)
            case SublistExpression():
                await self._let_sublist(target, statement.operator, statement.expression, context)
            case OptionExpression():
                await self._let_option(target, statement.operator, statement.expression, context)
            case RegisterExpression():
                await self._let_register(target, statement.operator, statement.expression, context)
            case EnvVariableExpression():
                await self._let_env(target, statement.operator, statement.expression, context)
            case _:
                raise VimNameError(f"E121: Undefined variable: {target!r}")

    def new_value(self, operator: AssignmentOperator, current: Optional[VimValue],
                  right: VimValue, name: str) -> VimValue:
        """Combine the current value with the right-hand side for `operator`.

        `+=` on a List or Blob extends it in place, so every alias sees it.
        """
        if operator is AssignmentOperator.ASSIGNMENT:
            return right
        if current is None:
            raise VimNameError(f"E121: Undefined variable: {name}")
        if operator is AssignmentOperator.ADDITION:
            if isinstance(current, VimList) and isinstance(right, VimList):
                if current.locked:
                    raise self.locked_error(name)
                current.values.extend(v.clone_for_assignment() for v in list(right.values))
                return current
            if isinstance(current, VimBlob) and isinstance(right, VimBlob):
                if current.locked:
                    raise self.locked_error(name)
                current.data.extend(bytes(right.data))
                return current
        return self.evaluator.binary_operation(_BINARY_FOR_OPERATOR[operator], current, right)

    async def _let_variable(self, variable: Variable, operator: AssignmentOperator,
                            expression: Expression, context: 'ExecutionContext') -> None:
        store = self.evaluator.variables
        store.check_writable(variable, context)
        current = store.resolve(variable.scope, variable.name, context)
        if operator is not AssignmentOperator.ASSIGNMENT and current is None:
            raise VimNameError(f"E121: Undefined variable: {variable}")
        right = await self.evaluator.eval(expression, context)
        store.store(variable, self.new_value(operator, current, right, str(variable)), context)

    async def _let_index(self, target: IndexExpression, operator: AssignmentOperator,
                         expression: Expression, context: 'ExecutionContext') -> None:
        container = await self.evaluator.eval(target.container, context)
        index = await self.evaluator.eval(target.index, context)
        match container:
            case VimDictionary():
                key = index.as_string()
                if operator is not AssignmentOperator.ASSIGNMENT and key not in container:
                    raise VimNameError(f'E716: Key not present in Dictionary: "{key}"')
                right = await self.evaluator.eval(expression, context)
                if key in container:
                    current = container[key]
                    if current.locked:
                        raise self.locked_error(key)
                    value = self.new_value(operator, current, right, key)
                else:
                    if container.locked:
                        raise self.locked_error(key)
                    value = right
                if isinstance(value, VimFuncref) and not value.is_self_fixed \
                        and self.evaluator.is_dict_function(value):
                    value = value.copy()
                    value.dictionary = container
                container[key] = value.clone_for_assignment()
            case VimList():
                n = index_number(index)
                i = n + len(container.values) if n < 0 else n
                if not 0 <= i < len(container.values):
                    raise VimRangeError(f"E684: list index out of range: {n}")
                current = container.values[i]
                if current.locked:
                    raise self.locked_error(f"[{n}]")
                right = await self.evaluator.eval(expression, context)
                value = self.new_value(operator, current, right, f"[{n}]")
                container.values[i] = value.clone_for_assignment()
            case VimBlob():
                n = index_number(index)
                i = n + len(container.data) if n < 0 else n
                if not 0 <= i < len(container.data):
                    raise VimRangeError(f"E979: Blob index out of range: {n}")
                if container.locked:
                    raise self.locked_error(f"[{n}]")
                right = await self.evaluator.eval(expression, context)
                byte = self.new_value(operator, VimNumber(container.data[i]), right, f"[{n}]").as_number()
                if not 0 <= byte <= 255:
                    raise VimTypeError(f"E1239: Invalid value for blob: {byte}")
                container.data[i] = byte
            case _:
                raise VimTypeError("E689: Can only index a List, Dictionary or Blob")

    async def _let_sublist(self, target: SublistExpression, operator: AssignmentOperator,
                           expression: Expression, context: 'ExecutionContext') -> None:
        container = await self.evaluator.eval(target.container, context)
        if isinstance(container, VimDictionary):
            raise VimTypeError("E719: Cannot slice a Dictionary")
        if not isinstance(container, (VimList, VimBlob)):
            raise VimTypeError("E689: Can only index a List, Dictionary or Blob")
        if operator is not AssignmentOperator.ASSIGNMENT:
            raise VimTypeError(f"E734: Wrong variable type for {operator.value}")
        is_list = isinstance(container, VimList)
        sequence = container.values if is_list else container.data
        size = len(sequence)
        first = index_number(await self.evaluator.eval(target.from_, context)) \
            if target.from_ is not None else 0
        last = index_number(await self.evaluator.eval(target.to, context)) \
            if target.to is not None else size - 1
        start = first + size if first < 0 else first
        end = last + size if last < 0 else last
        if start < 0 or start > size:
            raise VimRangeError(f"E684: list index out of range: {first}")
        if target.to is not None and end >= size:
            raise VimRangeError(f"E684: list index out of range: {last}")
        if container.locked:
            raise self.locked_error(f"[{first}:{last}]")

        value = await self.evaluator.eval(expression, context)
        if is_list and not isinstance(value, VimList):
            raise VimTypeError("E709: [:] requires a List or Blob value")
        if not is_list and not isinstance(value, VimBlob):
            raise VimTypeError("E709: [:] requires a List or Blob value")
        items = list(value.values) if is_list else list(value.data)
        count = end - start + 1
        if len(items) < count:
            if not is_list:
                raise VimTypeError("E972: Blob value does not have the right number of bytes")
            raise VimTypeError("E711: List value does not have enough items")
        if target.to is not None and len(items) > count:
            if not is_list:
                raise VimTypeError("E972: Blob value does not have the right number of bytes")
            raise VimTypeError("E710: List value has more items than targets")
        if is_list:
            for item in sequence[start:end + 1]:
                if item.locked:
                    raise self.locked_error(f"[{first}:{last}]")
            items = [v.clone_for_assignment() for v in items]
        # An open-ended range takes every replacement item and may resize.
        stop = end + 1 if target.to is not None else size
        sequence[start:stop] = items

    async def _let_option(self, target: OptionExpression, operator: AssignmentOperator,
                          expression: Expression, context: 'ExecutionContext') -> None:
        if operator not in _PSEUDO_SCOPE_OPERATORS:
            raise VimTypeError(f"E734: Wrong variable type for {operator.value}")
        if target.scope not in (None, Scope.GLOBAL, Scope.LOCAL):
            raise ScopeContextError(f"E461: Illegal variable name: {target}")
        current = self.evaluator.read_option(target)
        right = await self.evaluator.eval(expression, context)
        value = self.new_value(operator, current, right, str(target))
        self.evaluator.options.set_option(target.name, value, target.scope)

    async def _let_register(self, target: RegisterExpression, operator: AssignmentOperator,
                            expression: Expression, context: 'ExecutionContext') -> None:
        char = target.char
        if not _is_writable_register(char):
            raise VimPermissionError(f"E354: Invalid register name: '{char}'")
        if operator not in _PSEUDO_SCOPE_OPERATORS:
            raise VimTypeError(f"E734: Wrong variable type for {operator.value}")
        registers = self.evaluator.registers
        name = char.lower()
        right = await self.evaluator.eval(expression, context)
        current = VimString(registers.get_register(name) or "")
        if char.isupper() and operator is AssignmentOperator.ASSIGNMENT:
            # An uppercase register appends to its lowercase counterpart.
            operator = AssignmentOperator.CONCATENATION
        text = self.new_value(operator, current, right, str(target)).as_string()
        registers.set_register(name, text)

    async def _let_env(self, target: EnvVariableExpression, operator: AssignmentOperator,
                       expression: Expression, context: 'ExecutionContext') -> None:
        if operator not in _PSEUDO_SCOPE_OPERATORS:
            raise VimTypeError(f"E734: Wrong variable type for {operator.value}")
        environment = self.evaluator.environment
        right = await self.evaluator.eval(expression, context)
        current = VimString(environment.get_env(target.name) or "")
        environment.set_env(target.name, self.new_value(operator, current, right, str(target)).as_string())

    # =================================================================
    # :unlet
    # =================================================================

    async def unlet(self, target: Expression, context: 'ExecutionContext', force: bool = False) -> None:
        match target:
            case Variable():
                try:
                    self.evaluator.variables.delete(target.scope, target.name, context)
                except VimNameError:
                    if not force:
                        raise
            case IndexExpression():
                await self._unlet_index(target, context, force)
            case SublistExpression():
                await self._unlet_sublist(target, context)
            case EnvVariableExpression():
                self.evaluator.environment.unset_env(target.name)
            case _:
                raise VimTypeError(f"E475: Invalid argument: {target!r}")

    async def _unlet_index(self, target: IndexExpression, context: 'ExecutionContext', force: bool) -> None:
        container = await self.evaluator.eval(target.container, context)
        index = await self.evaluator.eval(target.index, context)
        match container:
            case VimDictionary():
                key = index.as_string()
                if key not in container:
                    if force:
                        return
                    raise VimNameError(f'E716: Key not present in Dictionary: "{key}"')
                if container.locked or container[key].locked:
                    raise self.locked_error(key)
                del container[key]
            case VimList():
                n = index_number(index)
                i = n + len(container.values) if n < 0 else n
                if not 0 <= i < len(container.values):
                    raise VimRangeError(f"E684: list index out of range: {n}")
                if container.locked or container.values[i].locked:
                    raise self.locked_error(f"[{n}]")
                del container.values[i]
            case VimBlob():
                n = index_number(index)
                i = n + len(container.data) if n < 0 else n
                if not 0 <= i < len(container.data):
                    raise VimRangeError(f"E979: Blob index out of range: {n}")
                if container.locked:
                    raise self.locked_error(f"[{n}]")
                del container.data[i]
            case _:
                raise VimTypeError("E689: Can only index a List, Dictionary or Blob")

    async def _unlet_sublist(self, target: SublistExpression, context: 'ExecutionContext') -> None:
        container = await self.evaluator.eval(target.container, context)
        if isinstance(container, VimDictionary):
            raise VimTypeError("E719: Cannot slice a Dictionary")
        if not isinstance(container, (VimList, VimBlob)):
            raise VimTypeError("E689: Can only index a List, Dictionary or Blob")
        sequence = container.values if isinstance(container, VimList) else container.data
        size = len(sequence)
        first = index_number(await self.evaluator.eval(target.from_, context)) \
            if target.from_ is not None else 0
        last = index_number(await self.evaluator.eval(target.to, context)) \
            if target.to is not None else size - 1
        start = first + size if first < 0 else first
        end = last + size if last < 0 else last
        if not 0 <= start < size:
            raise VimRangeError(f"E684: list index out of range: {first}")
        if end >= size:
            raise VimRangeError(f"E684: list index out of range: {last}")
        if container.locked:
            raise self.locked_error(f"[{first}:{last}]")
        if isinstance(container, VimList):
            for item in sequence[start:end + 1]:
                if item.locked:
                    raise self.locked_error(f"[{first}:{last}]")
        del sequence[start:end + 1]

    # =================================================================
    # :lockvar / :unlockvar
    # =================================================================

    async def lock(self, target: Expression, context: 'ExecutionContext', depth: int, lock: bool) -> None:
        value = await self.evaluator.eval(target, context)
        if not lock:
            value.unlock(depth)
            return
        owner = None
        if isinstance(target, Variable):
            owner = self.evaluator.variables.canonical_name(target, context)
        value.lock(depth, owner)
        logger.debug("Locked %s to depth %d", owner or target, depth)


__all__ = ["TargetResolver", "index_number"]
