import pytest

from vimscript.vimscript_datatypes import FunctionFlag, Scope, Variable
from vimscript.vimscript_errors import ScopeContextError, VimNameError, VimPermissionError
from vimscript.vimscript_functions import DefinedFunction
from vimscript.vimscript_scopes import ExecutionContext, FunctionFrame, VariableStore
from vimscript.vimscript_values import VimDictionary, VimFuncref, VimList, VimNumber, VimString


@pytest.fixture
def store():
    return VariableStore()


def frame_for(name="F", flags=(), closure=None, self_dict=None):
    function = DefinedFunction(name, [], [], flags=frozenset(flags))
    return FunctionFrame(function, self_dict, closure)


def test_unscoped_names_follow_the_context(store):
    script = store.new_script()
    frame = frame_for()
    assert store.effective_scope(None, ExecutionContext()) is Scope.GLOBAL
    assert store.effective_scope(None, ExecutionContext(script=script)) is Scope.SCRIPT
    assert store.effective_scope(None, ExecutionContext(script, frame)) is Scope.LOCAL


def test_unscoped_lookup_does_not_fall_back_to_globals(store):
    store.store(Variable(Scope.GLOBAL, "x"), VimNumber(1), ExecutionContext())
    ctx = ExecutionContext(frame=frame_for())
    assert store.resolve(None, "x", ctx) is None
    assert store.resolve(Scope.GLOBAL, "x", ctx) == VimNumber(1)


def test_get_undefined_variable(store):
    with pytest.raises(VimNameError, match="E121: Undefined variable: g:nope"):
        store.get(Scope.GLOBAL, "nope", ExecutionContext())


def test_script_variables_are_per_script(store):
    one, two = store.new_script("one"), store.new_script("two")
    store.store(Variable(Scope.SCRIPT, "x"), VimNumber(1), ExecutionContext(script=one))
    assert store.resolve(Scope.SCRIPT, "x", ExecutionContext(script=two)) is None
    assert (one.sid, two.sid) == (1, 2)


def test_script_ids_are_per_store():
    assert VariableStore().new_script().sid == VariableStore().new_script().sid == 1


def test_script_scope_without_a_script(store):
    with pytest.raises(ScopeContextError, match="E120"):
        store.get(Scope.SCRIPT, "x", ExecutionContext())
    with pytest.raises(ScopeContextError, match="E461"):
        store.store(Variable(Scope.SCRIPT, "x"), VimNumber(1), ExecutionContext())


def test_local_scope_outside_a_function(store):
    with pytest.raises(ScopeContextError, match="E461"):
        store.get(Scope.LOCAL, "x", ExecutionContext())


def test_store_copies_scalars_and_shares_containers(store):
    ctx = ExecutionContext()
    number = VimNumber(1)
    lst = VimList()
    store.store(Variable(Scope.GLOBAL, "n"), number, ctx)
    store.store(Variable(Scope.GLOBAL, "l"), lst, ctx)
    assert store.global_variables["n"] is not number
    assert store.global_variables["l"] is lst


def test_arguments_and_vim_variables_are_read_only(store):
    ctx = ExecutionContext(frame=frame_for())
    for variable in (Variable(Scope.FUNCTION, "x"), Variable(Scope.VIM, "true")):
        with pytest.raises(VimPermissionError, match="E46"):
            store.store(variable, VimNumber(1), ctx)


def test_self_is_read_only_only_in_dict_functions(store):
    self_dict = VimDictionary()
    dict_ctx = ExecutionContext(frame=frame_for(flags=[FunctionFlag.DICT], self_dict=self_dict))
    with pytest.raises(VimPermissionError, match="E46"):
        store.store(Variable(None, "self"), VimNumber(1), dict_ctx)
    plain_ctx = ExecutionContext(frame=frame_for())
    store.store(Variable(None, "self"), VimNumber(1), plain_ctx)
    assert plain_ctx.frame.locals["self"] == VimNumber(1)


def test_lowercase_global_funcref_is_rejected(store):
    funcref = VimFuncref(object())
    with pytest.raises(VimPermissionError, match="E704"):
        store.store(Variable(Scope.GLOBAL, "fn"), funcref, ExecutionContext())
    store.store(Variable(Scope.GLOBAL, "Fn"), funcref, ExecutionContext())
    ctx = ExecutionContext(frame=frame_for())
    store.store(Variable(None, "fn"), funcref, ctx)
    assert ctx.frame.locals["fn"] is funcref


def test_closure_frames_are_searched_and_written(store):
    outer = frame_for("Outer")
    outer.locals["count"] = VimNumber(0)
    outer.arguments["n"] = VimNumber(5)
    inner_ctx = ExecutionContext(frame=frame_for("Inner", closure=outer))
    assert store.get(None, "count", inner_ctx) == VimNumber(0)
    assert store.get(Scope.FUNCTION, "n", inner_ctx) == VimNumber(5)
    store.store(Variable(None, "count"), VimNumber(1), inner_ctx)
    assert outer.locals["count"] == VimNumber(1)
    assert "count" not in inner_ctx.frame.locals
    store.store(Variable(None, "fresh"), VimString("x"), inner_ctx)
    assert "fresh" in inner_ctx.frame.locals


def test_locked_value_is_protected_only_under_its_owner(store):
    ctx = ExecutionContext()
    lst = VimList()
    store.store(Variable(Scope.GLOBAL, "a"), lst, ctx)
    store.store(Variable(Scope.GLOBAL, "b"), lst, ctx)
    lst.lock(2, "g:a")
    with pytest.raises(VimPermissionError, match="E741"):
        store.store(Variable(Scope.GLOBAL, "a"), VimNumber(0), ctx)
    with pytest.raises(VimPermissionError, match="E741"):
        store.delete(Scope.GLOBAL, "a", ctx)
    store.store(Variable(Scope.GLOBAL, "b"), VimNumber(0), ctx)
    store.delete(Scope.GLOBAL, "b", ctx)


def test_delete_errors(store):
    ctx = ExecutionContext(frame=frame_for())
    with pytest.raises(VimNameError, match="E108"):
        store.delete(Scope.GLOBAL, "missing", ctx)
    with pytest.raises(VimPermissionError, match="E795"):
        store.delete(Scope.FUNCTION, "x", ctx)
    with pytest.raises(VimPermissionError, match="E795"):
        store.delete(Scope.VIM, "true", ctx)


def test_canonical_name(store):
    ctx = ExecutionContext(frame=frame_for())
    assert store.canonical_name(Variable(None, "x"), ctx) == "l:x"
    assert store.canonical_name(Variable(Scope.GLOBAL, "x"), ctx) == "g:x"


def test_initial_vim_variables(store):
    assert store.get(Scope.VIM, "true", ExecutionContext()) == VimNumber(1)
    assert store.get(Scope.VIM, "exception", ExecutionContext()) == VimString("")
