"""
Variable scopes for the Vim script engine.

A Script owns s: variables and s: functions, a FunctionFrame owns the a:
and l: bindings of one invocation, and an ExecutionContext names the
script and frame a statement executes in. The VariableStore resolves,
stores and deletes bindings against a context.
"""
import itertools
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from vimscript.vimscript_datatypes import FunctionFlag, Scope, Variable
from vimscript.vimscript_errors import (
    ScopeContextError, VimNameError, VimPermissionError,
)
from vimscript.vimscript_values import VimFuncref, VimNumber, VimString, VimValue


class Script:
    """One loaded script unit."""
    def __init__(self, name: str, sid: int):
        self.name = name
        self.sid = sid
        self.variables: Dict[str, VimValue] = {}
        # name -> DefinedFunction
        self.functions: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"<Script {self.name!r} sid={self.sid}>"


class FunctionFrame:
    """The a: and l: bindings of one function invocation.

    `closure` is the frame the function was defined in, for `closure`
    functions and lambdas.
    """
    def __init__(self, function: Any, self_dict: Optional[VimValue] = None,
                 closure: Optional['FunctionFrame'] = None):
        self.function = function
        self.arguments: Dict[str, VimValue] = {}
        self.locals: Dict[str, VimValue] = {}
        self.closure = closure
        if self_dict is not None:
            self.locals["self"] = self_dict

    @property
    def is_dict_function(self) -> bool:
        return FunctionFlag.DICT in self.function.flags

    def chain(self) -> Iterator['FunctionFrame']:
        frame: Optional[FunctionFrame] = self
        while frame is not None:
            yield frame
            frame = frame.closure

    def __repr__(self) -> str:
        return f"<FunctionFrame {self.function.name} locals=[{', '.join(self.locals)}]>"


@dataclass(frozen=True)
class ExecutionContext:
    """The lexical position a statement executes in.

    No script and no frame is the command line.
    """
    script: Optional[Script] = None
    frame: Optional[FunctionFrame] = None

    @property
    def inside_function(self) -> bool:
        return self.frame is not None

    @property
    def inside_dict_function(self) -> bool:
        return self.frame is not None and self.frame.is_dict_function


def _initial_vim_variables() -> Dict[str, VimValue]:
    return {
        "true": VimNumber(1),
        "false": VimNumber(0),
        "exception": VimString(""),
        "throwpoint": VimString(""),
        "version": VimNumber(900),
    }


class VariableStore:
    """Resolves and mutates variable bindings for one engine instance."""

    def __init__(self):
        self.global_variables: Dict[str, VimValue] = {}
        self.vim_variables: Dict[str, VimValue] = _initial_vim_variables()
        self._script_ids = itertools.count(1)

    def new_script(self, name: str = "<script>") -> Script:
        return Script(name, next(self._script_ids))

    # --- scope resolution ---

    def effective_scope(self, scope: Optional[Scope], context: ExecutionContext) -> Scope:
        if scope is not None:
            return scope
        if context.frame is not None:
            return Scope.LOCAL
        if context.script is not None:
            return Scope.SCRIPT
        return Scope.GLOBAL

    def canonical_name(self, variable: Variable, context: ExecutionContext) -> str:
        """The scoped name used as a lock owner, e.g. 'g:list'."""
        return f"{self.effective_scope(variable.scope, context).prefix}{variable.name}"

    def _scope_map(self, scope: Scope, name: str, context: ExecutionContext,
                   for_write: bool = False) -> Dict[str, VimValue]:
        match scope:
            case Scope.GLOBAL:
                return self.global_variables
            case Scope.VIM:
                return self.vim_variables
            case Scope.SCRIPT:
                if context.script is None:
                    if for_write:
                        raise ScopeContextError(f"E461: Illegal variable name: s:{name}")
                    raise ScopeContextError(f"E120: Using <SID> not in a script context: s:{name}")
                return context.script.variables
            case Scope.LOCAL:
                if context.frame is None:
                    raise ScopeContextError(f"E461: Illegal variable name: l:{name}")
                return context.frame.locals
            case Scope.FUNCTION:
                if context.frame is None:
                    raise ScopeContextError(f"E461: Illegal variable name: a:{name}")
                return context.frame.arguments
        raise ScopeContextError(f"E461: Illegal variable name: {name}")

    def _find_in_closure(self, scope: Scope, name: str,
                         context: ExecutionContext) -> Optional[Dict[str, VimValue]]:
        """The map in the current frame or an enclosing closure frame that binds `name`."""
        for frame in context.frame.chain():
            table = frame.arguments if scope is Scope.FUNCTION else frame.locals
            if name in table:
                return table
        return None

    def resolve(self, scope: Optional[Scope], name: str,
                context: ExecutionContext) -> Optional[VimValue]:
        """Return the bound value or None when the name is unbound."""
        effective = self.effective_scope(scope, context)
        if effective in (Scope.LOCAL, Scope.FUNCTION) and context.frame is not None:
            table = self._find_in_closure(effective, name, context)
            return table[name] if table is not None else None
        return self._scope_map(effective, name, context).get(name)

    def get(self, scope: Optional[Scope], name: str, context: ExecutionContext) -> VimValue:
        value = self.resolve(scope, name, context)
        if value is None:
            prefix = scope.prefix if scope else ""
            raise VimNameError(f"E121: Undefined variable: {prefix}{name}")
        return value

    # --- writes ---

    def is_read_only(self, variable: Variable, context: ExecutionContext) -> bool:
        if variable.scope in (Scope.FUNCTION, Scope.VIM):
            return True
        if variable.name == "self" and variable.scope in (None, Scope.LOCAL):
            return context.inside_dict_function
        return False

    def check_writable(self, variable: Variable, context: ExecutionContext) -> None:
        """Validate name legality, read-only bindings and locks before a write."""
        name = str(variable)
        if variable.scope is Scope.SCRIPT and context.script is None:
            raise ScopeContextError(f"E461: Illegal variable name: {name}")
        if variable.scope in (Scope.FUNCTION, Scope.LOCAL) and context.frame is None:
            raise ScopeContextError(f"E461: Illegal variable name: {name}")
        if self.is_read_only(variable, context):
            raise VimPermissionError(f'E46: Cannot change read-only variable "{name}"')
        current = self.resolve(variable.scope, variable.name, context)
        if current is not None and current.locked \
                and current.lock_owner == self.canonical_name(variable, context):
            raise VimPermissionError(f"E741: Value is locked: {name}")

    def store(self, variable: Variable, value: VimValue, context: ExecutionContext) -> None:
        """Bind `variable`, copying scalars and aliasing containers."""
        self.check_writable(variable, context)
        effective = self.effective_scope(variable.scope, context)
        if isinstance(value, VimFuncref) and effective is Scope.GLOBAL \
                and variable.name[:1].islower():
            raise VimPermissionError(
                f"E704: Funcref variable name must start with a capital: {variable}")
        table = None
        if effective is Scope.LOCAL and context.frame is not None:
            # Writes to a name an enclosing closure frame binds go to that frame.
            table = self._find_in_closure(effective, variable.name, context)
        if table is None:
            table = self._scope_map(effective, variable.name, context, for_write=True)
        table[variable.name] = value.clone_for_assignment()

    def delete(self, scope: Optional[Scope], name: str, context: ExecutionContext) -> None:
        variable = Variable(scope, name)
        if scope in (Scope.FUNCTION, Scope.VIM):
            raise VimPermissionError(f"E795: Cannot delete variable {variable}")
        effective = self.effective_scope(scope, context)
        table = self._scope_map(effective, name, context, for_write=True)
        if name not in table:
            raise VimNameError(f'E108: No such variable: "{variable}"')
        current = table[name]
        if current.locked and current.lock_owner == self.canonical_name(variable, context):
            raise VimPermissionError(f"E741: Value is locked: {variable}")
        del table[name]


__all__ = ["Script", "FunctionFrame", "ExecutionContext", "VariableStore"]
