"""
Defines the parse tree consumed by the Vim script evaluator.

The surface parser lives outside this package; it produces these nodes
directly. Expressions and statements are plain dataclasses, matched
structurally by the evaluator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, FrozenSet, List, Optional, Tuple

from vimscript.vimscript_values import VimNumber, VimValue


# =================================================================
# Enumerations
# =================================================================

class Scope(Enum):
    """Variable scope prefixes."""
    GLOBAL = "g"
    SCRIPT = "s"
    LOCAL = "l"
    FUNCTION = "a"
    VIM = "v"

    @property
    def prefix(self) -> str:
        return f"{self.value}:"

    @classmethod
    def from_prefix(cls, text: str) -> Optional['Scope']:
        """Accepts 'g', 'g:' or '' (no scope)."""
        letter = text.rstrip(":")
        if not letter:
            return None
        for scope in cls:
            if scope.value == letter:
                return scope
        raise ValueError(f"Unknown scope prefix: {text!r}")


class AssignmentOperator(Enum):
    ASSIGNMENT = "="
    ADDITION = "+="
    SUBTRACTION = "-="
    MULTIPLICATION = "*="
    DIVISION = "/="
    MODULUS = "%="
    CONCATENATION = ".="

    @classmethod
    def from_text(cls, text: str) -> 'AssignmentOperator':
        if text == "..=":
            return cls.CONCATENATION
        for op in cls:
            if op.value == text:
                return op
        raise ValueError(f"Unknown assignment operator: {text!r}")


class FunctionFlag(Enum):
    RANGE = "range"
    ABORT = "abort"
    DICT = "dict"
    CLOSURE = "closure"


# =================================================================
# Expressions
# =================================================================

class Expression:
    """Base class for expression nodes."""


@dataclass
class SimpleExpression(Expression):
    """A constant scalar."""
    value: VimValue


@dataclass
class Variable(Expression):
    scope: Optional[Scope]
    name: str

    def __str__(self) -> str:
        return f"{self.scope.prefix if self.scope else ''}{self.name}"


@dataclass
class OptionExpression(Expression):
    """`&name`, `&g:name` or `&l:name`."""
    scope: Optional[Scope]
    name: str

    def __str__(self) -> str:
        return f"&{self.scope.prefix if self.scope else ''}{self.name}"


@dataclass
class RegisterExpression(Expression):
    char: str

    def __str__(self) -> str:
        return f"@{self.char}"


@dataclass
class EnvVariableExpression(Expression):
    name: str

    def __str__(self) -> str:
        return f"${self.name}"


@dataclass
class ListExpression(Expression):
    items: List[Expression] = field(default_factory=list)


@dataclass
class DictionaryExpression(Expression):
    pairs: List[Tuple[Expression, Expression]] = field(default_factory=list)


@dataclass
class IndexExpression(Expression):
    """`container[index]`; `dict.key` is an IndexExpression with a constant key."""
    container: Expression
    index: Expression


@dataclass
class SublistExpression(Expression):
    """`container[from:to]`, both bounds optional and inclusive."""
    container: Expression
    from_: Optional[Expression] = None
    to: Optional[Expression] = None


@dataclass
class BinaryExpression(Expression):
    operator: str
    left: Expression
    right: Expression


@dataclass
class UnaryExpression(Expression):
    operator: str
    operand: Expression


@dataclass
class TernaryExpression(Expression):
    condition: Expression
    then: Expression
    otherwise: Expression


@dataclass
class FunctionCallExpression(Expression):
    scope: Optional[Scope]
    name: str
    arguments: List[Expression] = field(default_factory=list)


@dataclass
class FuncrefCallExpression(Expression):
    """Calls whatever funcref `expression` evaluates to, e.g. `dict.Method()`."""
    expression: Expression
    arguments: List[Expression] = field(default_factory=list)


@dataclass
class LambdaExpression(Expression):
    parameters: List[str]
    body: Expression


# =================================================================
# Statements
# =================================================================

class Executable:
    """Base class for statement nodes."""
    command: ClassVar[str] = ""


@dataclass
class LetStatement(Executable):
    command: ClassVar[str] = "let"
    target: Expression
    operator: AssignmentOperator
    expression: Expression


@dataclass
class UnletStatement(Executable):
    command: ClassVar[str] = "unlet"
    targets: List[Expression]
    force: bool = False


@dataclass
class LockVarStatement(Executable):
    """:lockvar and :unlockvar; a negative depth means `!` (unbounded)."""
    command: ClassVar[str] = "lockvar"
    targets: List[Expression]
    depth: int = 2
    lock: bool = True


@dataclass
class EchoStatement(Executable):
    command: ClassVar[str] = "echo"
    expressions: List[Expression] = field(default_factory=list)


@dataclass
class CallStatement(Executable):
    command: ClassVar[str] = "call"
    expression: Expression


@dataclass
class IfStatement(Executable):
    """Ordered (condition, body) pairs; an else branch has a constant true condition."""
    command: ClassVar[str] = "if"
    branches: List[Tuple[Expression, List[Executable]]]

    @classmethod
    def with_else(cls, branches, else_body: List[Executable]) -> 'IfStatement':
        return cls(list(branches) + [(SimpleExpression(VimNumber(1)), else_body)])


@dataclass
class WhileLoop(Executable):
    command: ClassVar[str] = "while"
    condition: Expression
    body: List[Executable]


@dataclass
class ForLoop(Executable):
    command: ClassVar[str] = "for"
    variable: Variable
    iterable: Expression
    body: List[Executable]


@dataclass
class ForLoopWithList(Executable):
    """`for [a, b] in list_of_lists`."""
    command: ClassVar[str] = "for"
    variables: List[Variable]
    iterable: Expression
    body: List[Executable]


@dataclass
class FunctionDefinition(Executable):
    command: ClassVar[str] = "function"
    name: str
    parameters: List[str]
    body: List[Executable]
    scope: Optional[Scope] = None
    defaults: List[Tuple[str, Expression]] = field(default_factory=list)
    replace_existing: bool = False
    flags: FrozenSet[FunctionFlag] = frozenset()
    has_optional_arguments: bool = False


@dataclass
class AnonymousFunctionDefinition(Executable):
    """`function dict.name()`: stores a funcref to a numbered function in `target`."""
    command: ClassVar[str] = "function"
    target: IndexExpression
    parameters: List[str]
    body: List[Executable]
    defaults: List[Tuple[str, Expression]] = field(default_factory=list)
    replace_existing: bool = False
    flags: FrozenSet[FunctionFlag] = frozenset()
    has_optional_arguments: bool = False


@dataclass
class DelFunctionStatement(Executable):
    command: ClassVar[str] = "delfunction"
    name: str
    scope: Optional[Scope] = None
    force: bool = False


@dataclass
class ReturnStatement(Executable):
    command: ClassVar[str] = "return"
    expression: Optional[Expression] = None


@dataclass
class BreakStatement(Executable):
    command: ClassVar[str] = "break"


@dataclass
class ContinueStatement(Executable):
    command: ClassVar[str] = "continue"


@dataclass
class FinishStatement(Executable):
    command: ClassVar[str] = "finish"


@dataclass
class CatchBlock:
    """A :catch clause; the default pattern matches any exception."""
    body: List[Executable]
    pattern: str = "."


@dataclass
class TryStatement(Executable):
    command: ClassVar[str] = "try"
    try_block: List[Executable]
    catch_blocks: List[CatchBlock] = field(default_factory=list)
    finally_block: Optional[List[Executable]] = None


@dataclass
class ThrowStatement(Executable):
    command: ClassVar[str] = "throw"
    expression: Expression


__all__ = [
    "Scope", "AssignmentOperator", "FunctionFlag",
    "Expression", "SimpleExpression", "Variable", "OptionExpression",
    "RegisterExpression", "EnvVariableExpression", "ListExpression",
    "DictionaryExpression", "IndexExpression", "SublistExpression",
    "BinaryExpression", "UnaryExpression", "TernaryExpression",
    "FunctionCallExpression", "FuncrefCallExpression", "LambdaExpression",
    "Executable", "LetStatement", "UnletStatement", "LockVarStatement",
    "EchoStatement", "CallStatement", "IfStatement", "WhileLoop", "ForLoop",
    "ForLoopWithList", "FunctionDefinition", "AnonymousFunctionDefinition",
    "DelFunctionStatement", "ReturnStatement", "BreakStatement",
    "ContinueStatement", "FinishStatement", "CatchBlock", "TryStatement",
    "ThrowStatement",
]
