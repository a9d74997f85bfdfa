# src/groovy2cs/transpile/csharp_syntax.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

# ==============================================================================
# C# syntax model (immutable; built bottom-up by the transformer)
# ==============================================================================


class Expression:
    """Marker base for expression nodes."""


class Statement:
    """Marker base for statement nodes."""


class MemberDeclaration:
    """Marker base for compilation-unit members."""


class BinaryOperator(str, Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN_OR_EQUAL = ">="
    EQUALS = "=="
    NOT_EQUALS = "!="
    LOGICAL_AND = "&&"
    LOGICAL_OR = "||"


class AssignmentOperator(str, Enum):
    SIMPLE = "="
    ADD = "+="
    SUBTRACT = "-="
    MULTIPLY = "*="
    DIVIDE = "/="
    MODULO = "%="


class UnaryOperator(str, Enum):
    NEGATE = "-"
    NOT = "!"
    INCREMENT = "++"
    DECREMENT = "--"


class LiteralKind(str, Enum):
    STRING = "string"
    NUMERIC = "numeric"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"


# ---- expressions ---------------------------------------------------------------


@dataclass(frozen=True)
class IdentifierName(Expression):
    name: str


@dataclass(frozen=True)
class LiteralExpression(Expression):
    kind: LiteralKind
    value: Union[str, int, None] = None   # decoded text for strings, int or source text for numbers


@dataclass(frozen=True)
class InterpolatedText:
    text: str


@dataclass(frozen=True)
class Interpolation:
    expression: Expression


@dataclass(frozen=True)
class InterpolatedStringExpression(Expression):
    contents: Tuple[Union[InterpolatedText, Interpolation], ...]


@dataclass(frozen=True)
class BinaryExpression(Expression):
    operator: BinaryOperator
    left: Expression
    right: Expression


@dataclass(frozen=True)
class PrefixUnaryExpression(Expression):
    operator: UnaryOperator
    operand: Expression


@dataclass(frozen=True)
class PostfixUnaryExpression(Expression):
    operator: UnaryOperator
    operand: Expression


@dataclass(frozen=True)
class AssignmentExpression(Expression):
    operator: AssignmentOperator
    left: Expression
    right: Expression


@dataclass(frozen=True)
class ConditionalExpression(Expression):
    condition: Expression
    when_true: Expression
    when_false: Expression


@dataclass(frozen=True)
class MemberAccessExpression(Expression):
    expression: Expression
    name: str
    conditional: bool = False     # `?.`


@dataclass(frozen=True)
class Argument:
    expression: Expression
    name: Optional[str] = None    # named argument `name: value`


@dataclass(frozen=True)
class ArgumentList:
    arguments: Tuple[Argument, ...] = ()


@dataclass(frozen=True)
class InvocationExpression(Expression):
    expression: Expression
    arguments: ArgumentList = ArgumentList()


@dataclass(frozen=True)
class ElementAccessExpression(Expression):
    expression: Expression
    index: Expression


@dataclass(frozen=True)
class ObjectCreationExpression(Expression):
    type_name: str
    arguments: ArgumentList = ArgumentList()


@dataclass(frozen=True)
class ArrayCreationExpression(Expression):
    element_type: str
    elements: Tuple[Expression, ...] = ()


@dataclass(frozen=True)
class LambdaExpression(Expression):
    parameters: Tuple[str, ...]
    body: Union[Expression, "Block"]


# ---- statements ----------------------------------------------------------------


@dataclass(frozen=True)
class Block(Statement):
    statements: Tuple[Statement, ...] = ()


@dataclass(frozen=True)
class LocalDeclaration(Statement):
    type_name: str
    name: str
    initializer: Optional[Expression] = None


@dataclass(frozen=True)
class ExpressionStatement(Statement):
    expression: Expression


@dataclass(frozen=True)
class IfStatement(Statement):
    condition: Expression
    then: Statement
    else_: Optional[Statement] = None


@dataclass(frozen=True)
class WhileStatement(Statement):
    condition: Expression
    body: Statement


@dataclass(frozen=True)
class ForStatement(Statement):
    declaration: Optional[LocalDeclaration]
    initializers: Tuple[Expression, ...]
    condition: Optional[Expression]
    incrementors: Tuple[Expression, ...]
    body: Statement


@dataclass(frozen=True)
class ForEachStatement(Statement):
    type_name: str
    identifier: str
    expression: Expression
    body: Statement


@dataclass(frozen=True)
class CaseLabel:
    value: Expression


@dataclass(frozen=True)
class DefaultLabel:
    pass


@dataclass(frozen=True)
class SwitchSection:
    labels: Tuple[Union[CaseLabel, DefaultLabel], ...]
    statements: Tuple[Statement, ...]


@dataclass(frozen=True)
class SwitchStatement(Statement):
    expression: Expression
    sections: Tuple[SwitchSection, ...]


@dataclass(frozen=True)
class BreakStatement(Statement):
    pass


@dataclass(frozen=True)
class ContinueStatement(Statement):
    pass


@dataclass(frozen=True)
class ReturnStatement(Statement):
    expression: Optional[Expression] = None


@dataclass(frozen=True)
class ThrowStatement(Statement):
    expression: Expression


@dataclass(frozen=True)
class CatchClause:
    type_name: str
    identifier: Optional[str]
    block: Block


@dataclass(frozen=True)
class TryStatement(Statement):
    block: Block
    catches: Tuple[CatchClause, ...] = ()
    finally_: Optional[Block] = None


# ---- declarations --------------------------------------------------------------


@dataclass(frozen=True)
class UsingDirective:
    name: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class Parameter:
    type_name: str
    name: str


@dataclass(frozen=True)
class MethodDeclaration(MemberDeclaration):
    return_type: str
    name: str
    parameters: Tuple[Parameter, ...]
    body: Block
    modifiers: Tuple[str, ...] = ("static",)


@dataclass(frozen=True)
class GlobalStatement(MemberDeclaration):
    """A top-level program statement."""
    statement: Statement


@dataclass(frozen=True)
class CompilationUnit:
    usings: Tuple[UsingDirective, ...] = ()
    members: Tuple[MemberDeclaration, ...] = ()


# Control flow that already leaves a switch section.
JUMP_STATEMENTS = (BreakStatement, ContinueStatement, ReturnStatement, ThrowStatement)

SyntaxNode = Union[
    CompilationUnit, UsingDirective, MemberDeclaration, Statement, Expression,
    SwitchSection, CatchClause, ArgumentList, Argument, Parameter,
]
