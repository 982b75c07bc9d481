"""
Function handlers and the function registry.

Builtins are host callables; defined functions are declared by :function
statements and live in the global table or in their script's table.
"""
import inspect
import itertools
import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from vimscript.vimscript_datatypes import (
    AnonymousFunctionDefinition, Executable, Expression, FunctionDefinition,
    FunctionFlag, Scope,
)
from vimscript.vimscript_errors import (
    ScopeContextError, VimNameError, VimPermissionError, VimScriptError, VimTypeError,
)

logger = logging.getLogger(__name__)


# =================================================================
# Defined functions
# =================================================================

class DefinedFunction:
    """A function declared by script code, as stored in a registry table."""
    def __init__(self, name: str, parameters: List[str], body: List[Executable], *,
                 defaults: Optional[List[Tuple[str, Expression]]] = None,
                 scope: Scope = Scope.GLOBAL,
                 flags: FrozenSet[FunctionFlag] = frozenset(),
                 has_optional_arguments: bool = False,
                 replace_existing: bool = False,
                 script: Any = None,
                 closure: Any = None,
                 is_lambda: bool = False):
        self.name = name
        self.parameters = list(parameters)
        self.body = body
        self.defaults: Dict[str, Expression] = dict(defaults or [])
        seen_default = False
        for param in self.parameters:
            if param in self.defaults:
                seen_default = True
            elif seen_default:
                raise VimScriptError(f"E989: Non-default argument follows default argument: {param}")
        self.scope = scope
        self.flags = frozenset(flags)
        self.has_optional_arguments = has_optional_arguments
        self.replace_existing = replace_existing
        self.script = script
        self.closure = closure
        self.is_lambda = is_lambda
        self.deleted = False

    @classmethod
    def from_definition(cls, node: FunctionDefinition, context) -> 'DefinedFunction':
        closure = None
        if FunctionFlag.CLOSURE in node.flags:
            if context.frame is None:
                raise ScopeContextError(
                    f"E932: Closure function should not be at top level: {node.name}")
            closure = context.frame
        return cls(node.name, node.parameters, node.body,
                   defaults=node.defaults,
                   scope=node.scope or Scope.GLOBAL,
                   flags=node.flags,
                   has_optional_arguments=node.has_optional_arguments,
                   replace_existing=node.replace_existing,
                   script=context.script,
                   closure=closure)

    @classmethod
    def from_anonymous(cls, name: str, node: AnonymousFunctionDefinition, context) -> 'DefinedFunction':
        closure = context.frame if FunctionFlag.CLOSURE in node.flags else None
        return cls(name, node.parameters, node.body,
                   defaults=node.defaults,
                   flags=node.flags | {FunctionFlag.DICT},
                   has_optional_arguments=node.has_optional_arguments,
                   replace_existing=node.replace_existing,
                   script=context.script,
                   closure=closure)

    @property
    def required_count(self) -> int:
        return len(self.parameters) - len(self.defaults)

    @property
    def display_name(self) -> str:
        if self.scope is Scope.SCRIPT and self.script is not None:
            return f"<SNR>{self.script.sid}_{self.name}"
        return self.name

    def __repr__(self) -> str:
        return f"<DefinedFunction {self.display_name}({', '.join(self.parameters)})>"


# =================================================================
# Handlers
# =================================================================

class FunctionHandler:
    """Something a funcref can point at."""
    name: str = "<function>"


class BuiltinFunctionHandler(FunctionHandler):
    """Wraps a host callable taking script values positionally.

    Arity comes from the callable's signature. A keyword-only `context`
    parameter receives the caller's ExecutionContext.
    """
    def __init__(self, name: str, func: Callable):
        self.name = name
        self.func = func
        self.min_args = 0
        self.max_args: Optional[int] = 0
        self.wants_context = False
        for param in inspect.signature(func).parameters.values():
            match param.kind:
                case inspect.Parameter.POSITIONAL_ONLY | inspect.Parameter.POSITIONAL_OR_KEYWORD:
                    self.max_args += 1
                    if param.default is inspect.Parameter.empty:
                        self.min_args += 1
                case inspect.Parameter.VAR_POSITIONAL:
                    self.max_args = None
                case inspect.Parameter.KEYWORD_ONLY if param.name == "context":
                    self.wants_context = True

    def check_arity(self, count: int) -> None:
        if count < self.min_args:
            raise VimTypeError(f"E119: Not enough arguments for function: {self.name}")
        if self.max_args is not None and count > self.max_args:
            raise VimTypeError(f"E118: Too many arguments for function: {self.name}")

    def __repr__(self) -> str:
        return f"<builtin {self.name}>"


class DefinedFunctionHandler(FunctionHandler):
    def __init__(self, function: DefinedFunction):
        self.function = function

    @property
    def name(self) -> str:
        return self.function.display_name

    def __repr__(self) -> str:
        return f"<handler {self.function!r}>"


# =================================================================
# Registry
# =================================================================

class FunctionRegistry:
    """Resolves function names to handlers for one engine instance."""

    def __init__(self):
        self.builtin_functions: Dict[str, BuiltinFunctionHandler] = {}
        self.global_functions: Dict[str, DefinedFunction] = {}
        self._anonymous_ids = itertools.count(1)
        self._lambda_ids = itertools.count(1)

    # --- builtins ---

    def register_native(self, name: str, handler: Callable | BuiltinFunctionHandler) -> BuiltinFunctionHandler:
        if not isinstance(handler, BuiltinFunctionHandler):
            handler = BuiltinFunctionHandler(name, handler)
        if name in self.builtin_functions:
            logger.warning("Replacing builtin function %s", name)
        self.builtin_functions[name] = handler
        return handler

    # --- defined functions ---

    def _table_for(self, scope: Scope, name: str, context) -> Dict[str, DefinedFunction]:
        if scope is Scope.SCRIPT:
            if context.script is None:
                raise ScopeContextError(f"E81: Using <SID> not in a script context: s:{name}")
            return context.script.functions
        return self.global_functions

    def declare(self, function: DefinedFunction, context) -> None:
        name = function.name
        if ":" in name:
            raise VimPermissionError(f"E884: Function name cannot contain a colon: {name}")
        if function.scope not in (Scope.GLOBAL, Scope.SCRIPT):
            raise VimPermissionError(
                f"E884: Function name cannot contain a colon: {function.scope.prefix}{name}")
        if function.scope is Scope.GLOBAL and not name[:1].isupper() and "#" not in name:
            raise VimPermissionError(f'E128: Function name must start with a capital or "s:": {name}')
        table = self._table_for(function.scope, name, context)
        if name in table and not function.replace_existing:
            raise VimPermissionError(f"E122: Function {name} already exists, add ! to replace it")
        table[name] = function
        logger.debug("Declared function %s", function.display_name)

    def lookup(self, scope: Optional[Scope], name: str, context) -> Optional[FunctionHandler]:
        """Find a handler; unscoped names try builtins first, then global, then script."""
        if scope is None and name in self.builtin_functions:
            return self.builtin_functions[name]
        function = self.lookup_defined(scope, name, context)
        return DefinedFunctionHandler(function) if function is not None else None

    def lookup_defined(self, scope: Optional[Scope], name: str, context) -> Optional[DefinedFunction]:
        match scope:
            case Scope.GLOBAL:
                return self.global_functions.get(name)
            case Scope.SCRIPT:
                return self._table_for(Scope.SCRIPT, name, context).get(name)
            case None:
                found = self.global_functions.get(name)
                if found is None and context.script is not None:
                    found = context.script.functions.get(name)
                return found
        return None

    def get_handler(self, scope: Optional[Scope], name: str, context) -> FunctionHandler:
        handler = self.lookup(scope, name, context)
        if handler is None:
            prefix = scope.prefix if scope else ""
            raise VimNameError(f"E117: Unknown function: {prefix}{name}")
        return handler

    def delete(self, name: str, scope: Optional[Scope], context) -> None:
        if scope is not Scope.SCRIPT and name[:1].islower():
            raise VimPermissionError(f'E128: Function name must start with a capital or "s:": {name}')
        if scope is Scope.SCRIPT and context.script is None:
            raise ScopeContextError(f"E81: Using <SID> not in a script context: s:{name}")
        function = self.lookup_defined(scope, name, context)
        if function is None:
            prefix = scope.prefix if scope else ""
            raise VimNameError(f"E130: Unknown function: {prefix}{name}")
        function.deleted = True
        if function.scope is Scope.SCRIPT:
            function.script.functions.pop(name, None)
        else:
            self.global_functions.pop(name, None)
        logger.debug("Deleted function %s", function.display_name)

    # --- anonymous functions ---

    def next_anonymous_name(self) -> str:
        return str(next(self._anonymous_ids))

    def next_lambda_name(self) -> str:
        return f"<lambda>{next(self._lambda_ids)}"


__all__ = [
    "DefinedFunction", "FunctionHandler", "BuiltinFunctionHandler",
    "DefinedFunctionHandler", "FunctionRegistry",
]
