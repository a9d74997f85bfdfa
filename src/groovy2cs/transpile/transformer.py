# src/groovy2cs/transpile/transformer.py
from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Tuple, Union

from ..core.config import feature_enabled
from .csharp_syntax import (
    JUMP_STATEMENTS,
    Argument,
    ArgumentList,
    ArrayCreationExpression,
    AssignmentExpression,
    AssignmentOperator,
    BinaryExpression,
    BinaryOperator,
    Block,
    BreakStatement,
    CaseLabel,
    CatchClause,
    CompilationUnit,
    ConditionalExpression,
    ContinueStatement,
    DefaultLabel,
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
    Interpolation,
    InvocationExpression,
    LambdaExpression,
    LiteralExpression,
    LiteralKind,
    LocalDeclaration,
    MemberAccessExpression,
    MemberDeclaration,
    MethodDeclaration,
    ObjectCreationExpression,
    Parameter,
    PostfixUnaryExpression,
    PrefixUnaryExpression,
    ReturnStatement,
    Statement,
    SwitchSection,
    SwitchStatement,
    ThrowStatement,
    TryStatement,
    UnaryOperator,
    UsingDirective,
    WhileStatement,
)
from .errors import MissingConstructError, TypeMismatchError, UnsupportedConstructError
from .parse_tree import ConstructKind, ParseNode, ParseToken

logger = logging.getLogger(__name__)

PRESERVE_FOR_CONDITION = "feature.transform.preserve_for_condition"
IMPLICIT_SYSTEM_USING = "feature.transform.implicit_system_using"

# --- Mapping tables -------------------------------------------------------------

_TYPE_MAP: Dict[str, str] = {
    "def": "var",
    "Object": "object",
    "String": "string",
    "Integer": "int",
    "int": "int",
    "Long": "long",
    "long": "long",
    "Short": "short",
    "short": "short",
    "Byte": "byte",
    "byte": "byte",
    "Double": "double",
    "double": "double",
    "Float": "float",
    "float": "float",
    "BigDecimal": "decimal",
    "Boolean": "bool",
    "boolean": "bool",
    "Character": "char",
    "char": "char",
}

_CONSOLE_CALLS = {
    "println": "WriteLine",
    "print": "Write",
}

_BINARY_OPERATORS: Dict[str, BinaryOperator] = {op.value: op for op in BinaryOperator}
_ASSIGNMENT_OPERATORS: Dict[str, AssignmentOperator] = {op.value: op for op in AssignmentOperator}
_PREFIX_OPERATORS = {"-": UnaryOperator.NEGATE, "!": UnaryOperator.NOT}
_POSTFIX_OPERATORS = {"++": UnaryOperator.INCREMENT, "--": UnaryOperator.DECREMENT}

_INT32_MIN, _INT32_MAX = -(2 ** 31), 2 ** 31 - 1

_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f",
    "\\": "\\", "'": "'", '"': '"', "$": "$",
}
_UNICODE_ESCAPE_RE = re.compile(r"[0-9A-Fa-f]{4}")


def map_type(name: str) -> str:
    """Groovy/Java type name → C# type name (unknown names pass through)."""
    return _TYPE_MAP.get(name, name)


def _unescape(raw: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(raw):
        c = raw[i]
        if c == "\\" and i + 1 < len(raw):
            nxt = raw[i + 1]
            if nxt == "u" and _UNICODE_ESCAPE_RE.fullmatch(raw[i + 2:i + 6]):
                out.append(chr(int(raw[i + 2:i + 6], 16)))
                i += 6
                continue
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(c)
        i += 1
    return "".join(out)


def _returns_value(node: ParseNode) -> bool:
    """True if a `return <expr>` occurs in node, ignoring nested closures."""
    for child in node.nodes():
        if child.kind is ConstructKind.CLOSURE:
            continue
        if child.kind is ConstructKind.RETURN_STATEMENT and child.nodes():
            return True
        if _returns_value(child):
            return True
    return False


# ==============================================================================
# Transformer
# ==============================================================================


Handler = Callable[[ParseNode], object]


class Transformer:
    """
    Converts a Groovy parse tree into the C# syntax model.

    Dispatch is a table from every ConstructKind to a handler. Handlers for
    statement and expression kinds return C# nodes; handlers for structural
    kinds (arguments, parameters, for clauses, catch clauses, ...) return the
    pieces their parent assembles.

    One instance may be reused, but each ``transform`` call starts from fresh
    working lists.
    """

    def __init__(self) -> None:
        self._handlers: Dict[ConstructKind, Handler] = {
            ConstructKind.COMPILATION_UNIT: self._compilation_unit,
            ConstructKind.IMPORT_DIRECTIVE: self._import_directive,
            ConstructKind.QUALIFIED_NAME: self._qualified_name,
            ConstructKind.METHOD_DECLARATION: self._method_declaration,
            ConstructKind.PARAMETERS: self._parameters,
            ConstructKind.PARAMETER: self._parameter,
            ConstructKind.LOCAL_DECLARATION: self._local_declaration,
            ConstructKind.EXPRESSION_STATEMENT: self._expression_statement,
            ConstructKind.COMMAND_CALL: self._command_call,
            ConstructKind.BLOCK: self._block,
            ConstructKind.IF_STATEMENT: self._if_statement,
            ConstructKind.WHILE_STATEMENT: self._while_statement,
            ConstructKind.CLASSIC_FOR: self._classic_for,
            ConstructKind.FOR_INIT: self._for_init,
            ConstructKind.FOR_CONDITION: self._for_condition,
            ConstructKind.FOR_UPDATE: self._for_update,
            ConstructKind.FOR_IN: self._foreach,
            ConstructKind.FOR_EACH: self._foreach,
            ConstructKind.SWITCH_STATEMENT: self._switch_statement,
            ConstructKind.SWITCH_CASE: self._switch_case,
            ConstructKind.TRY_STATEMENT: self._try_statement,
            ConstructKind.CATCH_CLAUSE: self._catch_clause,
            ConstructKind.FINALLY_CLAUSE: self._finally_clause,
            ConstructKind.RETURN_STATEMENT: self._return_statement,
            ConstructKind.BREAK_STATEMENT: lambda node: BreakStatement(),
            ConstructKind.CONTINUE_STATEMENT: lambda node: ContinueStatement(),
            ConstructKind.THROW_STATEMENT: self._throw_statement,
            ConstructKind.EMPTY_STATEMENT: lambda node: None,
            ConstructKind.ASSIGNMENT: self._assignment,
            ConstructKind.TERNARY: self._ternary,
            ConstructKind.BINARY: self._binary,
            ConstructKind.UNARY: self._unary,
            ConstructKind.POSTFIX: self._postfix,
            ConstructKind.MEMBER_ACCESS: self._member_access,
            ConstructKind.METHOD_CALL: self._method_call,
            ConstructKind.INDEX: self._index,
            ConstructKind.CALL: self._call,
            ConstructKind.OBJECT_CREATION: self._object_creation,
            ConstructKind.CREATION_TYPE: self._creation_type,
            ConstructKind.ARGUMENTS: self._arguments,
            ConstructKind.NAMED_ARGUMENT: self._named_argument,
            ConstructKind.CLOSURE: self._closure,
            ConstructKind.CLOSURE_PARAMETERS: self._closure_parameters,
            ConstructKind.IDENTIFIER: self._identifier,
            ConstructKind.INTEGER_LITERAL: self._integer_literal,
            ConstructKind.DECIMAL_LITERAL: self._decimal_literal,
            ConstructKind.STRING_LITERAL: self._string_literal,
            ConstructKind.GSTRING: self._gstring,
            ConstructKind.BOOLEAN_LITERAL: self._boolean_literal,
            ConstructKind.NULL_LITERAL: lambda node: LiteralExpression(LiteralKind.NULL),
            ConstructKind.LIST_LITERAL: self._list_literal,
            ConstructKind.MAP_LITERAL: self._unsupported,
            ConstructKind.MAP_ENTRY: self._unsupported,
        }
        self._usings: List[UsingDirective] = []
        self._members: List[MemberDeclaration] = []
        self._needs_system = False

    @property
    def handled_kinds(self) -> frozenset:
        return frozenset(self._handlers)

    # ---- public API -----------------------------------------------------------

    def transform(self, unit: ParseNode) -> CompilationUnit:
        if unit.kind is not ConstructKind.COMPILATION_UNIT:
            raise TypeMismatchError(
                ConstructKind.COMPILATION_UNIT.value, unit.kind.value, **self._where(unit)
            )
        self._usings = []
        self._members = []
        self._needs_system = False
        return self.visit(unit)

    def visit(self, node: ParseNode) -> object:
        handler = self._handlers.get(node.kind)
        if handler is None:
            raise UnsupportedConstructError(str(node.kind), **self._where(node))
        logger.debug("transform %s (line %s)", node.kind.value, node.span.line_start)
        return handler(node)

    # ---- typed helpers --------------------------------------------------------

    @staticmethod
    def _where(node: ParseNode) -> dict:
        return {
            "line_start": node.span.line_start or None,
            "line_end": node.span.line_end or None,
            "source": node.text,
        }

    def _missing(self, node: ParseNode, what: str) -> MissingConstructError:
        return MissingConstructError(node.kind.value, what, **self._where(node))

    def _nth(self, node: ParseNode, index: int, what: str) -> ParseNode:
        nodes = node.nodes()
        if index >= len(nodes):
            raise self._missing(node, what)
        return nodes[index]

    def _expr(self, node: ParseNode) -> Expression:
        result = self.visit(node)
        if not isinstance(result, Expression):
            raise TypeMismatchError("expression", type(result).__name__, **self._where(node))
        return result

    def _stmt(self, node: ParseNode) -> Optional[Statement]:
        """Statement for node; None for dropped constructs (empty statements)."""
        result = self.visit(node)
        if result is not None and not isinstance(result, Statement):
            raise TypeMismatchError("statement", type(result).__name__, **self._where(node))
        return result

    def _statements(self, nodes) -> Tuple[Statement, ...]:
        out = []
        for n in nodes:
            s = self._stmt(n)
            if s is not None:
                out.append(s)
        return tuple(out)

    def _body(self, node: ParseNode) -> Statement:
        s = self._stmt(node)
        return s if s is not None else Block()

    def _as_block(self, node: ParseNode) -> Block:
        result = self._stmt(node)
        if not isinstance(result, Block):
            raise TypeMismatchError("block", type(result).__name__, **self._where(node))
        return result

    def _name_token(self, node: ParseNode, *types: str) -> str:
        tok = node.token(*types)
        if tok is None:
            raise self._missing(node, "name")
        return tok.text

    def _unsupported(self, node: ParseNode) -> object:
        raise UnsupportedConstructError(node.kind.value, **self._where(node))

    # ---- units & declarations -------------------------------------------------

    def _compilation_unit(self, node: ParseNode) -> CompilationUnit:
        for child in node.nodes():
            result = self.visit(child)
            if result is None:
                continue
            if isinstance(result, UsingDirective):
                self._usings.append(result)
            elif isinstance(result, MethodDeclaration):
                self._members.append(result)
            elif isinstance(result, Statement):
                self._members.append(GlobalStatement(result))
            else:
                raise TypeMismatchError(
                    "statement or declaration", type(result).__name__, **self._where(child)
                )

        usings = list(self._usings)
        if (
            self._needs_system
            and feature_enabled(IMPLICIT_SYSTEM_USING, True)
            and not any(u.name == "System" and u.alias is None for u in usings)
        ):
            usings.insert(0, UsingDirective("System"))
        return CompilationUnit(usings=tuple(usings), members=tuple(self._members))

    def _import_directive(self, node: ParseNode) -> UsingDirective:
        name = self.visit(self._nth(node, 0, "qualified name"))
        if node.token("WILDCARD") is not None:
            return UsingDirective(name)
        return UsingDirective(name, alias=name.rsplit(".", 1)[-1])

    def _qualified_name(self, node: ParseNode) -> str:
        return ".".join(t.text for t in node.tokens())

    def _method_declaration(self, node: ParseNode) -> MethodDeclaration:
        name = self._name_token(node, "CALL_NAME")
        params_node = node.child(ConstructKind.PARAMETERS)
        params = self.visit(params_node) if params_node is not None else ()
        body_node = node.child(ConstructKind.BLOCK)
        if body_node is None:
            raise self._missing(node, "body")
        if node.token("VOID") is not None:
            return_type = "void"
        else:
            return_type = "dynamic" if _returns_value(body_node) else "void"
        return MethodDeclaration(return_type, name, params, self._as_block(body_node))

    def _parameters(self, node: ParseNode) -> Tuple[Parameter, ...]:
        return tuple(self.visit(p) for p in node.nodes())

    def _parameter(self, node: ParseNode) -> Parameter:
        type_tok = node.token("COMMAND_NAME")
        type_name = map_type(type_tok.text) if type_tok is not None else "dynamic"
        return Parameter(type_name, self._name_token(node, "NAME"))

    def _declared_type(self, node: ParseNode) -> str:
        type_tok = node.token("COMMAND_NAME")
        return map_type(type_tok.text) if type_tok is not None else "var"

    def _declaration(self, node: ParseNode) -> LocalDeclaration:
        """Shared by local declarations and for-initializers."""
        name = self._name_token(node, "NAME")
        op = node.token("ASSIGN_OP")
        if op is None or not node.nodes():
            raise self._missing(node, "initializer")
        if op.text != "=":
            raise UnsupportedConstructError(f"declaration operator '{op.text}'", **self._where(node))
        initializer = self._expr(node.nodes()[0])
        type_name = self._declared_type(node)
        if type_name == "var":
            type_name = _inferred_type(initializer)
            if type_name.startswith(("Func", "Action")):
                self._needs_system = True
        return LocalDeclaration(type_name, name, initializer)

    def _local_declaration(self, node: ParseNode) -> LocalDeclaration:
        return self._declaration(node)

    # ---- statements -----------------------------------------------------------

    def _expression_statement(self, node: ParseNode) -> ExpressionStatement:
        return ExpressionStatement(self._expr(self._nth(node, 0, "expression")))

    def _command_call(self, node: ParseNode) -> InvocationExpression:
        name = self._name_token(node, "COMMAND_NAME")
        args = node.nodes()
        if not args:
            raise self._missing(node, "argument")
        # `int x` / `String s` reach here as command calls: a declaration lacking its initializer.
        if (
            (name in _TYPE_MAP or name[:1].isupper())
            and len(args) == 1
            and args[0].kind is ConstructKind.IDENTIFIER
        ):
            raise MissingConstructError(ConstructKind.LOCAL_DECLARATION.value, "initializer", **self._where(node))
        return InvocationExpression(
            self._callee(name),
            ArgumentList(tuple(Argument(self._expr(a)) for a in args)),
        )

    def _block(self, node: ParseNode) -> Block:
        return Block(self._statements(node.nodes()))

    def _if_statement(self, node: ParseNode) -> IfStatement:
        condition = self._expr(self._nth(node, 0, "condition"))
        then = self._body(self._nth(node, 1, "body"))
        nodes = node.nodes()
        else_ = self._body(nodes[2]) if len(nodes) > 2 else None
        return IfStatement(condition, then, else_)

    def _while_statement(self, node: ParseNode) -> WhileStatement:
        condition = self._expr(self._nth(node, 0, "condition"))
        return WhileStatement(condition, self._body(self._nth(node, 1, "body")))

    def _classic_for(self, node: ParseNode) -> ForStatement:
        clauses = (ConstructKind.FOR_INIT, ConstructKind.FOR_CONDITION, ConstructKind.FOR_UPDATE)
        body_nodes = [n for n in node.nodes() if n.kind not in clauses]
        if not body_nodes:
            raise self._missing(node, "body")

        declaration: Optional[LocalDeclaration] = None
        initializers: Tuple[Expression, ...] = ()
        init = node.child(ConstructKind.FOR_INIT)
        if init is not None:
            result = self.visit(init)
            if isinstance(result, LocalDeclaration):
                declaration = result
            else:
                initializers = (result,)

        cond = node.child(ConstructKind.FOR_CONDITION)
        condition = self.visit(cond) if cond is not None else None
        update = node.child(ConstructKind.FOR_UPDATE)
        incrementors = self.visit(update) if update is not None else ()

        return ForStatement(declaration, initializers, condition, incrementors, self._body(body_nodes[-1]))

    def _for_init(self, node: ParseNode) -> Union[LocalDeclaration, Expression]:
        if node.token("NAME") is not None:
            return self._declaration(node)
        return self._expr(self._nth(node, 0, "initializer"))

    def _for_condition(self, node: ParseNode) -> Expression:
        condition = self._expr(self._nth(node, 0, "condition"))
        if (
            isinstance(condition, BinaryExpression)
            and condition.operator is not BinaryOperator.LESS_THAN
            and not feature_enabled(PRESERVE_FOR_CONDITION)
        ):
            logger.warning(
                "for-loop condition operator '%s' rewritten to '<' (line %s)",
                condition.operator.value,
                node.span.line_start or "?",
            )
            condition = BinaryExpression(BinaryOperator.LESS_THAN, condition.left, condition.right)
        return condition

    def _for_update(self, node: ParseNode) -> Tuple[Expression, ...]:
        return tuple(self._expr(n) for n in node.nodes())

    def _foreach(self, node: ParseNode) -> ForEachStatement:
        identifier = self._name_token(node, "NAME")
        iterable = self._expr(self._nth(node, 0, "iterable"))
        body = self._body(self._nth(node, 1, "body"))
        return ForEachStatement("var", identifier, iterable, body)

    def _switch_statement(self, node: ParseNode) -> SwitchStatement:
        subject = self._expr(self._nth(node, 0, "subject"))
        sections: List[SwitchSection] = []
        labels: List[Union[CaseLabel, DefaultLabel]] = []

        for case in node.children_of(ConstructKind.SWITCH_CASE):
            label, statements = self.visit(case)
            labels.append(label)
            if not statements:
                continue   # fall through into the next section
            sections.append(SwitchSection(tuple(labels), _terminated(statements)))
            labels = []

        default_at = next(
            (i for i, c in enumerate(node.children) if isinstance(c, ParseToken) and c.type == "DEFAULT"),
            None,
        )
        if default_at is not None:
            tail = [c for c in node.children[default_at + 1:] if isinstance(c, ParseNode)]
            labels.append(DefaultLabel())
            sections.append(SwitchSection(tuple(labels), _terminated(self._statements(tail))))
        elif labels:
            sections.append(SwitchSection(tuple(labels), (BreakStatement(),)))
        return SwitchStatement(subject, tuple(sections))

    def _switch_case(self, node: ParseNode) -> Tuple[CaseLabel, Tuple[Statement, ...]]:
        value = self._expr(self._nth(node, 0, "case value"))
        return CaseLabel(value), self._statements(node.nodes()[1:])

    def _try_statement(self, node: ParseNode) -> TryStatement:
        block_node = node.child(ConstructKind.BLOCK)
        if block_node is None:
            raise self._missing(node, "block")
        catches = tuple(self.visit(c) for c in node.children_of(ConstructKind.CATCH_CLAUSE))
        fin = node.child(ConstructKind.FINALLY_CLAUSE)
        finally_ = self.visit(fin) if fin is not None else None
        if not catches and finally_ is None:
            raise self._missing(node, "catch or finally clause")
        return TryStatement(self._as_block(block_node), catches, finally_)

    def _catch_clause(self, node: ParseNode) -> CatchClause:
        type_tok = node.token("COMMAND_NAME")
        type_name = map_type(type_tok.text) if type_tok is not None else "Exception"
        if type_name == "Exception":
            self._needs_system = True
        return CatchClause(type_name, self._name_token(node, "NAME"), self._as_block(self._nth(node, 0, "block")))

    def _finally_clause(self, node: ParseNode) -> Block:
        return self._as_block(self._nth(node, 0, "block"))

    def _return_statement(self, node: ParseNode) -> ReturnStatement:
        nodes = node.nodes()
        return ReturnStatement(self._expr(nodes[0]) if nodes else None)

    def _throw_statement(self, node: ParseNode) -> ThrowStatement:
        return ThrowStatement(self._expr(self._nth(node, 0, "expression")))

    # ---- expressions ----------------------------------------------------------

    def _assignment(self, node: ParseNode) -> AssignmentExpression:
        op_tok = node.token("ASSIGN_OP")
        if op_tok is None:
            raise self._missing(node, "operator")
        op = _ASSIGNMENT_OPERATORS.get(op_tok.text)
        if op is None:
            raise UnsupportedConstructError(f"assignment operator '{op_tok.text}'", **self._where(node))
        left = self._expr(self._nth(node, 0, "target"))
        right = self._expr(self._nth(node, 1, "value"))
        return AssignmentExpression(op, left, right)

    def _ternary(self, node: ParseNode) -> ConditionalExpression:
        return ConditionalExpression(
            self._expr(self._nth(node, 0, "condition")),
            self._expr(self._nth(node, 1, "true branch")),
            self._expr(self._nth(node, 2, "false branch")),
        )

    def _binary(self, node: ParseNode) -> BinaryExpression:
        tokens = node.tokens()
        if not tokens:
            raise self._missing(node, "operator")
        op = _BINARY_OPERATORS.get(tokens[0].text)
        if op is None:
            raise UnsupportedConstructError(f"operator '{tokens[0].text}'", **self._where(node))
        left = self._expr(self._nth(node, 0, "left operand"))
        right = self._expr(self._nth(node, 1, "right operand"))
        return BinaryExpression(op, left, right)

    def _unary(self, node: ParseNode) -> PrefixUnaryExpression:
        tokens = node.tokens()
        op = _PREFIX_OPERATORS.get(tokens[0].text) if tokens else None
        if op is None:
            raise self._missing(node, "operator")
        return PrefixUnaryExpression(op, self._expr(self._nth(node, 0, "operand")))

    def _postfix(self, node: ParseNode) -> PostfixUnaryExpression:
        tokens = node.tokens()
        op = _POSTFIX_OPERATORS.get(tokens[0].text) if tokens else None
        if op is None:
            raise self._missing(node, "operator")
        return PostfixUnaryExpression(op, self._expr(self._nth(node, 0, "operand")))

    def _member_access(self, node: ParseNode) -> MemberAccessExpression:
        target = self._expr(self._nth(node, 0, "target"))
        return MemberAccessExpression(
            target,
            self._name_token(node, "NAME"),
            conditional=node.token("SAFE_NAV") is not None,
        )

    def _method_call(self, node: ParseNode) -> InvocationExpression:
        target = self._expr(self._nth(node, 0, "target"))
        member = MemberAccessExpression(
            target,
            self._name_token(node, "CALL_NAME", "NAME"),
            conditional=node.token("SAFE_NAV") is not None,
        )
        return InvocationExpression(member, self._call_arguments(node.nodes()[1:]))

    def _index(self, node: ParseNode) -> ElementAccessExpression:
        return ElementAccessExpression(
            self._expr(self._nth(node, 0, "target")),
            self._expr(self._nth(node, 1, "index")),
        )

    def _call(self, node: ParseNode) -> InvocationExpression:
        name = self._name_token(node, "CALL_NAME", "NAME")
        return InvocationExpression(self._callee(name), self._call_arguments(node.nodes()))

    def _callee(self, name: str) -> Expression:
        mapped = _CONSOLE_CALLS.get(name)
        if mapped is None:
            return IdentifierName(name)
        self._needs_system = True
        return MemberAccessExpression(IdentifierName("Console"), mapped)

    def _call_arguments(self, nodes) -> ArgumentList:
        """Argument list plus an optional trailing closure, appended last."""
        args: Tuple[Argument, ...] = ()
        for n in nodes:
            if n.kind is ConstructKind.ARGUMENTS:
                args = args + self.visit(n).arguments
            else:
                args = args + (Argument(self._expr(n)),)
        return ArgumentList(args)

    def _object_creation(self, node: ParseNode) -> ObjectCreationExpression:
        type_name = self.visit(self._nth(node, 0, "type"))
        args_node = node.child(ConstructKind.ARGUMENTS)
        args = self.visit(args_node) if args_node is not None else ArgumentList()
        return ObjectCreationExpression(type_name, args)

    def _creation_type(self, node: ParseNode) -> str:
        return map_type(".".join(t.text for t in node.tokens()))

    def _arguments(self, node: ParseNode) -> ArgumentList:
        args = []
        for n in node.nodes():
            if n.kind is ConstructKind.NAMED_ARGUMENT:
                args.append(self.visit(n))
            else:
                args.append(Argument(self._expr(n)))
        return ArgumentList(tuple(args))

    def _named_argument(self, node: ParseNode) -> Argument:
        return Argument(self._expr(self._nth(node, 0, "value")), name=self._name_token(node, "NAME"))

    def _closure(self, node: ParseNode) -> LambdaExpression:
        params_node = node.child(ConstructKind.CLOSURE_PARAMETERS)
        if params_node is not None:
            params = self.visit(params_node)
        elif node.token("ARROW") is not None:
            params = ()
        else:
            params = ("it",)

        body_nodes = [n for n in node.nodes() if n.kind is not ConstructKind.CLOSURE_PARAMETERS]
        if len(body_nodes) == 1 and body_nodes[0].kind is ConstructKind.EXPRESSION_STATEMENT:
            return LambdaExpression(params, self._expr(self._nth(body_nodes[0], 0, "expression")))
        return LambdaExpression(params, Block(self._statements(body_nodes)))

    def _closure_parameters(self, node: ParseNode) -> Tuple[str, ...]:
        return tuple(t.text for t in node.tokens())

    def _identifier(self, node: ParseNode) -> IdentifierName:
        return IdentifierName(self._name_token(node, "NAME"))

    # ---- literals -------------------------------------------------------------

    def _integer_literal(self, node: ParseNode) -> LiteralExpression:
        tok = node.token("INT")
        if tok is None:
            raise self._missing(node, "value")
        value = int(tok.text)
        if not _INT32_MIN <= value <= _INT32_MAX:
            raise UnsupportedConstructError(f"integer literal {tok.text} outside 32-bit range", **self._where(node))
        return LiteralExpression(LiteralKind.NUMERIC, value)

    def _decimal_literal(self, node: ParseNode) -> LiteralExpression:
        tok = node.token("DECIMAL")
        if tok is None:
            raise self._missing(node, "value")
        return LiteralExpression(LiteralKind.NUMERIC, tok.text)

    def _string_literal(self, node: ParseNode) -> LiteralExpression:
        tok = node.token("SQ_STRING", "DQ_STRING", "TRIPLE_STRING")
        if tok is None:
            raise self._missing(node, "value")
        quote = 3 if tok.type == "TRIPLE_STRING" else 1
        return LiteralExpression(LiteralKind.STRING, _unescape(tok.text[quote:-quote]))

    def _gstring(self, node: ParseNode) -> InterpolatedStringExpression:
        children = node.children
        if not children or getattr(children[0], "type", None) != "GSTRING_BEGIN":
            raise self._missing(node, "start token")
        contents: List[Union[InterpolatedText, Interpolation]] = []
        for child in children:
            if isinstance(child, ParseNode):
                contents.append(Interpolation(self._expr(child)))
                continue
            # BEGIN: opening quote and trailing `$`; PART: trailing `$`; END: closing quote.
            text = child.text[1:-1] if child.type == "GSTRING_BEGIN" else child.text[:-1]
            if text:
                contents.append(InterpolatedText(_unescape(text)))
        return InterpolatedStringExpression(tuple(contents))

    def _boolean_literal(self, node: ParseNode) -> LiteralExpression:
        if node.token("TRUE") is not None:
            return LiteralExpression(LiteralKind.TRUE)
        if node.token("FALSE") is not None:
            return LiteralExpression(LiteralKind.FALSE)
        raise self._missing(node, "value")

    def _list_literal(self, node: ParseNode) -> ArrayCreationExpression:
        return ArrayCreationExpression("object", tuple(self._expr(n) for n in node.nodes()))


# ---- helpers -------------------------------------------------------------------


def _terminated(statements: Tuple[Statement, ...]) -> Tuple[Statement, ...]:
    """Switch section statements, with a trailing break unless control already leaves."""
    if any(isinstance(s, JUMP_STATEMENTS) for s in statements):
        return statements
    return statements + (BreakStatement(),)


def _inferred_type(initializer: Expression) -> str:
    """C# declaration type for `def x = e`; `var` cannot take null or a lambda."""
    if isinstance(initializer, LiteralExpression) and initializer.kind is LiteralKind.NULL:
        return "object"
    if isinstance(initializer, LambdaExpression):
        return _delegate_type(initializer)
    return "var"


def _delegate_type(fn: LambdaExpression) -> str:
    arity = len(fn.parameters)
    body = fn.body
    if isinstance(body, Block):
        returns = _yields_value(body)
    else:
        returns = not (
            isinstance(body, InvocationExpression)
            and isinstance(body.expression, MemberAccessExpression)
            and body.expression.expression == IdentifierName("Console")
        )
    if returns:
        return "Func<" + "dynamic, " * arity + "dynamic>"
    if arity == 0:
        return "Action"
    return "Action<" + ", ".join(["dynamic"] * arity) + ">"


def _yields_value(stmt: Optional[Statement]) -> bool:
    """True if a `return <expr>` is reachable in stmt; lambdas sit in expressions and are not entered."""
    if stmt is None:
        return False
    if isinstance(stmt, ReturnStatement):
        return stmt.expression is not None
    if isinstance(stmt, Block):
        return any(_yields_value(s) for s in stmt.statements)
    if isinstance(stmt, IfStatement):
        return _yields_value(stmt.then) or _yields_value(stmt.else_)
    if isinstance(stmt, (WhileStatement, ForStatement, ForEachStatement)):
        return _yields_value(stmt.body)
    if isinstance(stmt, SwitchStatement):
        return any(_yields_value(s) for section in stmt.sections for s in section.statements)
    if isinstance(stmt, TryStatement):
        return (
            _yields_value(stmt.block)
            or any(_yields_value(c.block) for c in stmt.catches)
            or _yields_value(stmt.finally_)
        )
    return False


def transform(unit: ParseNode) -> CompilationUnit:
    return Transformer().transform(unit)
