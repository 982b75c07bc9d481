"""Builders for parse trees and helpers for running them in an engine."""
from vimscript import ScriptRunner
from vimscript.vimscript_datatypes import (
    AssignmentOperator, BinaryExpression, CallStatement, CatchBlock, DictionaryExpression,
    EchoStatement, FuncrefCallExpression, FunctionCallExpression, FunctionDefinition,
    FunctionFlag, IfStatement, IndexExpression, LambdaExpression, LetStatement, ListExpression,
    ReturnStatement, Scope, SimpleExpression, SublistExpression, ThrowStatement, TryStatement,
    UnaryExpression, Variable,
)
from vimscript.vimscript_values import (
    VimFloat, VimNumber, VimString, VimValue, from_vim,
)


def expr(x):
    """Coerce Python literals into expression nodes; nodes pass through."""
    match x:
        case bool() | int():
            return SimpleExpression(VimNumber(int(x)))
        case float():
            return SimpleExpression(VimFloat(x))
        case str():
            return SimpleExpression(VimString(x))
        case list():
            return ListExpression([expr(i) for i in x])
        case dict():
            return DictionaryExpression([(expr(k), expr(v)) for k, v in x.items()])
        case VimValue():
            return SimpleExpression(x)
    return x


def _split(name):
    if len(name) > 2 and name[1] == ":":
        return Scope.from_prefix(name[0]), name[2:]
    return None, name


def var(name):
    """var('g:x') -> Variable(Scope.GLOBAL, 'x')."""
    return Variable(*_split(name))


def target(x):
    return var(x) if isinstance(x, str) else x


def idx(container, index):
    return IndexExpression(target(container), expr(index))


def member(container, key):
    """`container.key`."""
    return IndexExpression(target(container), SimpleExpression(VimString(key)))


def sl(container, from_=None, to=None):
    return SublistExpression(target(container),
                             expr(from_) if from_ is not None else None,
                             expr(to) if to is not None else None)


def op(operator, left, right):
    return BinaryExpression(operator, expr(left), expr(right))


def neg(operand):
    return UnaryExpression("-", expr(operand))


def let(lhs, value, operator="="):
    return LetStatement(target(lhs), AssignmentOperator.from_text(operator), expr(value))


def call(name, *args):
    scope, bare = _split(name)
    return FunctionCallExpression(scope, bare, [expr(a) for a in args])


def call_ref(expression, *args):
    return FuncrefCallExpression(target(expression), [expr(a) for a in args])


def call_stmt(name, *args):
    return CallStatement(call(name, *args))


def echo(*values):
    return EchoStatement([expr(v) for v in values])


def ret(value=None):
    return ReturnStatement(expr(value) if value is not None else None)


def throw(value):
    return ThrowStatement(expr(value))


def if_(condition, body, else_body=None):
    branches = [(expr(condition), body)]
    if else_body is not None:
        return IfStatement.with_else(branches, else_body)
    return IfStatement(branches)


def try_(body, catches=(), finally_=None):
    blocks = [c if isinstance(c, CatchBlock) else CatchBlock(c[1], c[0]) for c in catches]
    return TryStatement(body, blocks, finally_)


def func(name, params, body, *, defaults=None, flags=(), varargs=False, bang=False):
    scope, bare = _split(name)
    return FunctionDefinition(bare, list(params), body, scope=scope,
                              defaults=[(k, expr(v)) for k, v in (defaults or {}).items()],
                              replace_existing=bang,
                              flags=frozenset(FunctionFlag(f) for f in flags),
                              has_optional_arguments=varargs)


def lam(params, body):
    return LambdaExpression(list(params), expr(body))


# --- running ---

def assert_ok(res):
    assert res.status == "success", f"expected success, got {res.error_message!r}"
    return res


def assert_error(res, code):
    assert res.status == "error", f"expected {code}, got success"
    assert res.error_message.startswith(code), f"expected {code}, got {res.error_message!r}"
    return res


async def run(runner: ScriptRunner, *statements, context=None):
    return await runner.execute(list(statements), context)


async def value_of(runner: ScriptRunner, expression, context=None):
    """Evaluate an expression and return it as plain Python data."""
    res = assert_ok(await runner.evaluate(expr(expression), context))
    return from_vim(res.value)


def py(runner: ScriptRunner, name, context=None):
    """Read a variable as plain Python data."""
    scope, bare = _split(name)
    return from_vim(runner.get_variable(scope, bare, context))
