import logging

import pytest

from vimscript.vimscript_datatypes import FunctionFlag, Scope
from vimscript.vimscript_errors import (
    ScopeContextError, VimNameError, VimPermissionError, VimScriptError, VimTypeError,
)
from vimscript.vimscript_functions import (
    BuiltinFunctionHandler, DefinedFunction, DefinedFunctionHandler, FunctionRegistry,
)
from vimscript.vimscript_scopes import ExecutionContext, Script


@pytest.fixture
def registry():
    return FunctionRegistry()


def defined(name, scope=Scope.GLOBAL, script=None, **kwargs):
    return DefinedFunction(name, kwargs.pop("parameters", []), [], scope=scope,
                           script=script, **kwargs)


# --- builtin handlers ---

def test_builtin_arity_from_signature():
    def native(a, b=None, *, context):
        return a
    handler = BuiltinFunctionHandler("native", native)
    assert (handler.min_args, handler.max_args) == (1, 2)
    assert handler.wants_context
    handler.check_arity(1)
    with pytest.raises(VimTypeError, match="E119"):
        handler.check_arity(0)
    with pytest.raises(VimTypeError, match="E118"):
        handler.check_arity(3)


def test_variadic_builtin_has_no_maximum():
    handler = BuiltinFunctionHandler("any", lambda *args: 0)
    assert handler.max_args is None
    assert not handler.wants_context
    handler.check_arity(20)


def test_registering_a_builtin_twice_warns(registry, caplog):
    registry.register_native("f", lambda: 1)
    with caplog.at_level(logging.WARNING, logger="vimscript"):
        registry.register_native("f", lambda: 2)
    assert "Replacing builtin function f" in caplog.text


# --- declare and lookup ---

def test_declare_and_lookup_global(registry):
    ctx = ExecutionContext()
    function = defined("Greet")
    registry.declare(function, ctx)
    handler = registry.lookup(None, "Greet", ctx)
    assert isinstance(handler, DefinedFunctionHandler)
    assert handler.function is function
    assert registry.lookup(Scope.GLOBAL, "Greet", ctx).function is function


def test_builtins_are_only_found_unscoped(registry):
    ctx = ExecutionContext()
    registry.register_native("len", len)
    assert isinstance(registry.lookup(None, "len", ctx), BuiltinFunctionHandler)
    assert registry.lookup(Scope.GLOBAL, "len", ctx) is None


def test_script_functions_are_private_to_their_script(registry):
    one, two = Script("one", 1), Script("two", 2)
    function = defined("Helper", Scope.SCRIPT, one)
    registry.declare(function, ExecutionContext(script=one))
    assert registry.lookup(None, "Helper", ExecutionContext(script=one)).function is function
    assert registry.lookup(Scope.SCRIPT, "Helper", ExecutionContext(script=two)) is None
    assert registry.lookup(None, "Helper", ExecutionContext()) is None
    assert function.display_name == "<SNR>1_Helper"


def test_script_function_outside_a_script(registry):
    with pytest.raises(ScopeContextError, match="E81"):
        registry.declare(defined("Helper", Scope.SCRIPT), ExecutionContext())


@pytest.mark.parametrize("name, scope, code", [
    ("lower", Scope.GLOBAL, "E128"),
    ("a:b", Scope.GLOBAL, "E884"),
    ("Local", Scope.LOCAL, "E884"),
])
def test_invalid_function_names(registry, name, scope, code):
    with pytest.raises(VimPermissionError, match=code):
        registry.declare(defined(name, scope), ExecutionContext())


def test_autoload_style_names_are_allowed(registry):
    registry.declare(defined("my#plugin#run"), ExecutionContext())
    assert registry.lookup(None, "my#plugin#run", ExecutionContext()) is not None


def test_redefinition_needs_replace(registry):
    ctx = ExecutionContext()
    registry.declare(defined("F"), ctx)
    with pytest.raises(VimPermissionError, match="E122"):
        registry.declare(defined("F"), ctx)
    replacement = defined("F", replace_existing=True)
    registry.declare(replacement, ctx)
    assert registry.lookup(None, "F", ctx).function is replacement


def test_get_handler_unknown(registry):
    with pytest.raises(VimNameError, match="E117: Unknown function: g:Nope"):
        registry.get_handler(Scope.GLOBAL, "Nope", ExecutionContext())


# --- delete ---

def test_delete_marks_the_function(registry):
    ctx = ExecutionContext()
    function = defined("F")
    registry.declare(function, ctx)
    registry.delete("F", None, ctx)
    assert function.deleted
    assert registry.lookup(None, "F", ctx) is None


def test_delete_script_function(registry):
    script = Script("<script>", 1)
    ctx = ExecutionContext(script=script)
    function = defined("Helper", Scope.SCRIPT, script)
    registry.declare(function, ctx)
    registry.delete("Helper", Scope.SCRIPT, ctx)
    assert "Helper" not in script.functions
    assert function.deleted


def test_delete_errors(registry):
    ctx = ExecutionContext()
    with pytest.raises(VimNameError, match="E130"):
        registry.delete("Missing", None, ctx)
    with pytest.raises(VimPermissionError, match="E128"):
        registry.delete("lower", None, ctx)
    with pytest.raises(ScopeContextError, match="E81"):
        registry.delete("Helper", Scope.SCRIPT, ctx)


# --- defined functions ---

def test_required_count_excludes_defaults():
    function = defined("F", parameters=["a", "b", "c"], defaults=[("c", None)])
    assert function.required_count == 2


def test_default_must_not_precede_a_required_parameter():
    with pytest.raises(VimScriptError, match="E989"):
        defined("F", parameters=["a", "b"], defaults=[("a", None)])


def test_generated_names(registry):
    assert [registry.next_anonymous_name() for _ in range(2)] == ["1", "2"]
    assert registry.next_lambda_name() == "<lambda>1"


def test_flags_are_kept():
    function = defined("F", flags=frozenset({FunctionFlag.ABORT, FunctionFlag.RANGE}))
    assert FunctionFlag.ABORT in function.flags
    assert FunctionFlag.DICT not in function.flags
