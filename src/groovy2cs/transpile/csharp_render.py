# src/groovy2cs/transpile/csharp_render.py
from __future__ import annotations

from typing import List, Optional

from .csharp_syntax import (
    ArgumentList,
    ArrayCreationExpression,
    AssignmentExpression,
    BinaryExpression,
    BinaryOperator,
    Block,
    BreakStatement,
    CaseLabel,
    CompilationUnit,
    ConditionalExpression,
    ContinueStatement,
    ElementAccessExpression,
    Expression,
    ExpressionStatement,
    ForEachStatement,
    ForStatement,
    GlobalStatement,
    IdentifierName,
    IfStatement,
    InterpolatedStringExpression,
    InterpolatedText,
    InvocationExpression,
    LambdaExpression,
    LiteralExpression,
    LiteralKind,
    LocalDeclaration,
    MemberAccessExpression,
    MethodDeclaration,
    ObjectCreationExpression,
    PostfixUnaryExpression,
    PrefixUnaryExpression,
    ReturnStatement,
    Statement,
    SwitchStatement,
    ThrowStatement,
    TryStatement,
    UsingDirective,
    WhileStatement,
)

# Lower number binds looser.
_PREC_ASSIGNMENT = 1
_PREC_CONDITIONAL = 2
_PREC_UNARY = 12
_PREC_PRIMARY = 13

_BINARY_PRECEDENCE = {
    BinaryOperator.LOGICAL_OR: 3,
    BinaryOperator.LOGICAL_AND: 4,
    BinaryOperator.EQUALS: 7,
    BinaryOperator.NOT_EQUALS: 7,
    BinaryOperator.LESS_THAN: 8,
    BinaryOperator.GREATER_THAN: 8,
    BinaryOperator.LESS_THAN_OR_EQUAL: 8,
    BinaryOperator.GREATER_THAN_OR_EQUAL: 8,
    BinaryOperator.ADD: 10,
    BinaryOperator.SUBTRACT: 10,
    BinaryOperator.MULTIPLY: 11,
    BinaryOperator.DIVIDE: 11,
    BinaryOperator.MODULO: 11,
}

_ASSOCIATIVE = {BinaryOperator.LOGICAL_AND, BinaryOperator.LOGICAL_OR}

_CSHARP_KEYWORDS = frozenset("""
abstract as base bool break byte case catch char checked class const continue decimal default
delegate do double else enum event explicit extern false finally fixed float for foreach goto if
implicit in int interface internal is lock long namespace new null object operator out override
params private protected public readonly ref return sbyte sealed short sizeof stackalloc static
string struct switch this throw true try typeof uint ulong unchecked unsafe ushort using virtual
void volatile while
""".split())

_STRING_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}


def escape_identifier(name: str) -> str:
    return "@" + name if name in _CSHARP_KEYWORDS else name


def _escape_string(text: str) -> str:
    return "".join(_STRING_ESCAPES.get(ch, ch) for ch in text)


def _precedence(expr: Expression) -> int:
    if isinstance(expr, (AssignmentExpression, LambdaExpression)):
        return _PREC_ASSIGNMENT
    if isinstance(expr, ConditionalExpression):
        return _PREC_CONDITIONAL
    if isinstance(expr, BinaryExpression):
        return _BINARY_PRECEDENCE[expr.operator]
    if isinstance(expr, PrefixUnaryExpression):
        return _PREC_UNARY
    return _PREC_PRIMARY


class CSharpRenderer:
    """
    Formats the C# syntax model as source text: Allman braces, four-space
    indentation, parentheses only where precedence requires them.
    """

    def __init__(self, indent: str = "    ") -> None:
        self._indent = indent

    def render(self, unit: CompilationUnit) -> str:
        lines: List[str] = [f"{self._using(u)}" for u in unit.usings]
        previous_was_method = False
        for i, member in enumerate(unit.members):
            is_method = isinstance(member, MethodDeclaration)
            if lines and (i == 0 or is_method or previous_was_method):
                lines.append("")
            if is_method:
                lines.extend(self._method(member, 0))
            elif isinstance(member, GlobalStatement):
                lines.extend(self._statement(member.statement, 0))
            else:
                raise TypeError(f"Cannot render member {type(member).__name__}")
            previous_was_method = is_method
        return "\n".join(lines) + "\n" if lines else ""

    # ---- declarations ---------------------------------------------------------

    def _using(self, u: UsingDirective) -> str:
        if u.alias:
            return f"using {u.alias} = {u.name};"
        return f"using {u.name};"

    def _method(self, m: MethodDeclaration, level: int) -> List[str]:
        params = ", ".join(f"{p.type_name} {escape_identifier(p.name)}" for p in m.parameters)
        head = " ".join(list(m.modifiers) + [m.return_type, escape_identifier(m.name)])
        return [self._pad(level) + f"{head}({params})"] + self._block(m.body, level)

    # ---- statements -----------------------------------------------------------

    def _pad(self, level: int) -> str:
        return self._indent * level

    def _block(self, block: Block, level: int) -> List[str]:
        lines = [self._pad(level) + "{"]
        for stmt in block.statements:
            lines.extend(self._statement(stmt, level + 1))
        lines.append(self._pad(level) + "}")
        return lines

    def _body(self, stmt: Statement, level: int) -> List[str]:
        """Block bodies stay at the header's level; single statements are indented."""
        if isinstance(stmt, Block):
            return self._block(stmt, level)
        return self._statement(stmt, level + 1)

    def _statement(self, stmt: Statement, level: int) -> List[str]:
        pad = self._pad(level)
        if isinstance(stmt, Block):
            return self._block(stmt, level)
        if isinstance(stmt, LocalDeclaration):
            return [pad + self._declaration(stmt, level) + ";"]
        if isinstance(stmt, ExpressionStatement):
            return [pad + self._expr(stmt.expression, level) + ";"]
        if isinstance(stmt, IfStatement):
            lines = [pad + f"if ({self._expr(stmt.condition, level)})"] + self._body(stmt.then, level)
            else_ = stmt.else_
            while else_ is not None:
                if isinstance(else_, IfStatement):
                    lines.append(pad + f"else if ({self._expr(else_.condition, level)})")
                    lines.extend(self._body(else_.then, level))
                    else_ = else_.else_
                else:
                    lines.append(pad + "else")
                    lines.extend(self._body(else_, level))
                    else_ = None
            return lines
        if isinstance(stmt, WhileStatement):
            return [pad + f"while ({self._expr(stmt.condition, level)})"] + self._body(stmt.body, level)
        if isinstance(stmt, ForStatement):
            init = ""
            if stmt.declaration is not None:
                init = self._declaration(stmt.declaration, level)
            elif stmt.initializers:
                init = ", ".join(self._expr(e, level) for e in stmt.initializers)
            cond = self._expr(stmt.condition, level) if stmt.condition is not None else ""
            incr = ", ".join(self._expr(e, level) for e in stmt.incrementors)
            return [pad + f"for ({init}; {cond}; {incr})"] + self._body(stmt.body, level)
        if isinstance(stmt, ForEachStatement):
            head = f"foreach ({stmt.type_name} {escape_identifier(stmt.identifier)} in {self._expr(stmt.expression, level)})"
            return [pad + head] + self._body(stmt.body, level)
        if isinstance(stmt, SwitchStatement):
            lines = [pad + f"switch ({self._expr(stmt.expression, level)})", pad + "{"]
            inner = self._pad(level + 1)
            for section in stmt.sections:
                for label in section.labels:
                    if isinstance(label, CaseLabel):
                        lines.append(inner + f"case {self._expr(label.value, level + 1)}:")
                    else:
                        lines.append(inner + "default:")
                for s in section.statements:
                    lines.extend(self._statement(s, level + 2))
            lines.append(pad + "}")
            return lines
        if isinstance(stmt, TryStatement):
            lines = [pad + "try"] + self._block(stmt.block, level)
            for c in stmt.catches:
                head = f"catch ({c.type_name} {escape_identifier(c.identifier)})" if c.identifier else f"catch ({c.type_name})"
                lines.append(pad + head)
                lines.extend(self._block(c.block, level))
            if stmt.finally_ is not None:
                lines.append(pad + "finally")
                lines.extend(self._block(stmt.finally_, level))
            return lines
        if isinstance(stmt, ReturnStatement):
            if stmt.expression is None:
                return [pad + "return;"]
            return [pad + f"return {self._expr(stmt.expression, level)};"]
        if isinstance(stmt, BreakStatement):
            return [pad + "break;"]
        if isinstance(stmt, ContinueStatement):
            return [pad + "continue;"]
        if isinstance(stmt, ThrowStatement):
            return [pad + f"throw {self._expr(stmt.expression, level)};"]
        raise TypeError(f"Cannot render statement {type(stmt).__name__}")

    def _declaration(self, decl: LocalDeclaration, level: int) -> str:
        out = f"{decl.type_name} {escape_identifier(decl.name)}"
        if decl.initializer is not None:
            out += f" = {self._expr(decl.initializer, level)}"
        return out

    # ---- expressions ----------------------------------------------------------

    def _wrapped(self, expr: Expression, level: int, min_prec: int) -> str:
        text = self._expr(expr, level)
        return f"({text})" if _precedence(expr) < min_prec else text

    def _arguments(self, args: ArgumentList, level: int) -> str:
        parts = []
        for a in args.arguments:
            value = self._expr(a.expression, level)
            parts.append(f"{escape_identifier(a.name)}: {value}" if a.name else value)
        return ", ".join(parts)

    def _expr(self, expr: Optional[Expression], level: int) -> str:
        if isinstance(expr, IdentifierName):
            return escape_identifier(expr.name)
        if isinstance(expr, LiteralExpression):
            return self._literal(expr)
        if isinstance(expr, InterpolatedStringExpression):
            out = []
            for part in expr.contents:
                if isinstance(part, InterpolatedText):
                    out.append(_escape_string(part.text).replace("{", "{{").replace("}", "}}"))
                else:
                    inner = self._expr(part.expression, level)
                    # ':' would start a format specifier
                    if isinstance(part.expression, (ConditionalExpression, LambdaExpression)) or ":" in inner:
                        inner = f"({inner})"
                    out.append("{" + inner + "}")
            return '$"' + "".join(out) + '"'
        if isinstance(expr, BinaryExpression):
            prec = _BINARY_PRECEDENCE[expr.operator]
            left = self._wrapped(expr.left, level, prec)
            right_min = prec if expr.operator in _ASSOCIATIVE and isinstance(expr.right, BinaryExpression) \
                and expr.right.operator == expr.operator else prec + 1
            right = self._wrapped(expr.right, level, right_min)
            return f"{left} {expr.operator.value} {right}"
        if isinstance(expr, PrefixUnaryExpression):
            operand = self._wrapped(expr.operand, level, _PREC_UNARY)
            # keep `- -x` from collapsing into `--x`
            if operand.startswith(expr.operator.value[0]):
                operand = f"({operand})"
            return f"{expr.operator.value}{operand}"
        if isinstance(expr, PostfixUnaryExpression):
            return f"{self._wrapped(expr.operand, level, _PREC_PRIMARY)}{expr.operator.value}"
        if isinstance(expr, AssignmentExpression):
            left = self._wrapped(expr.left, level, _PREC_UNARY)
            return f"{left} {expr.operator.value} {self._expr(expr.right, level)}"
        if isinstance(expr, ConditionalExpression):
            cond = self._wrapped(expr.condition, level, _PREC_CONDITIONAL + 1)
            when_true = self._wrapped(expr.when_true, level, _PREC_CONDITIONAL)
            when_false = self._wrapped(expr.when_false, level, _PREC_CONDITIONAL)
            return f"{cond} ? {when_true} : {when_false}"
        if isinstance(expr, MemberAccessExpression):
            target = self._wrapped(expr.expression, level, _PREC_PRIMARY)
            dot = "?." if expr.conditional else "."
            return f"{target}{dot}{expr.name}"
        if isinstance(expr, InvocationExpression):
            target = self._wrapped(expr.expression, level, _PREC_PRIMARY)
            return f"{target}({self._arguments(expr.arguments, level)})"
        if isinstance(expr, ElementAccessExpression):
            target = self._wrapped(expr.expression, level, _PREC_PRIMARY)
            return f"{target}[{self._expr(expr.index, level)}]"
        if isinstance(expr, ObjectCreationExpression):
            return f"new {expr.type_name}({self._arguments(expr.arguments, level)})"
        if isinstance(expr, ArrayCreationExpression):
            if not expr.elements:
                return f"new {expr.element_type}[] {{ }}"
            items = ", ".join(self._expr(e, level) for e in expr.elements)
            return f"new {expr.element_type}[] {{ {items} }}"
        if isinstance(expr, LambdaExpression):
            names = [escape_identifier(p) for p in expr.parameters]
            params = names[0] if len(names) == 1 else f"({', '.join(names)})"
            if isinstance(expr.body, Block):
                return f"{params} =>\n" + "\n".join(self._block(expr.body, level))
            return f"{params} => {self._expr(expr.body, level)}"
        raise TypeError(f"Cannot render expression {type(expr).__name__}")

    def _literal(self, lit: LiteralExpression) -> str:
        if lit.kind is LiteralKind.STRING:
            return '"' + _escape_string(str(lit.value)) + '"'
        if lit.kind is LiteralKind.NUMERIC:
            return str(lit.value)
        if lit.kind is LiteralKind.TRUE:
            return "true"
        if lit.kind is LiteralKind.FALSE:
            return "false"
        return "null"
