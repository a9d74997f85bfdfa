# src/groovy2cs/transpile/parse_tree.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

# ==============================================================================
# Construct kinds (closed set produced by the parser driver)
# ==============================================================================


class ConstructKind(str, Enum):
    # Units & declarations
    COMPILATION_UNIT = "compilation_unit"
    IMPORT_DIRECTIVE = "import_directive"
    QUALIFIED_NAME = "qualified_name"
    METHOD_DECLARATION = "method_declaration"
    PARAMETERS = "parameters"
    PARAMETER = "parameter"
    LOCAL_DECLARATION = "local_declaration"
    # Statements
    EXPRESSION_STATEMENT = "expression_statement"
    COMMAND_CALL = "command_call"
    BLOCK = "block"
    IF_STATEMENT = "if_statement"
    WHILE_STATEMENT = "while_statement"
    CLASSIC_FOR = "classic_for"
    FOR_INIT = "for_init"
    FOR_CONDITION = "for_condition"
    FOR_UPDATE = "for_update"
    FOR_IN = "for_in"
    FOR_EACH = "for_each"
    SWITCH_STATEMENT = "switch_statement"
    SWITCH_CASE = "switch_case"
    TRY_STATEMENT = "try_statement"
    CATCH_CLAUSE = "catch_clause"
    FINALLY_CLAUSE = "finally_clause"
    RETURN_STATEMENT = "return_statement"
    BREAK_STATEMENT = "break_statement"
    CONTINUE_STATEMENT = "continue_statement"
    THROW_STATEMENT = "throw_statement"
    EMPTY_STATEMENT = "empty_statement"
    # Expressions
    ASSIGNMENT = "assignment_expression"
    TERNARY = "ternary_expression"
    BINARY = "binary_expression"
    UNARY = "unary_expression"
    POSTFIX = "postfix_expression"
    MEMBER_ACCESS = "member_access"
    METHOD_CALL = "method_call"
    INDEX = "index_expression"
    CALL = "call_expression"
    OBJECT_CREATION = "object_creation"
    CREATION_TYPE = "creation_type"
    ARGUMENTS = "arguments"
    NAMED_ARGUMENT = "named_argument"
    CLOSURE = "closure"
    CLOSURE_PARAMETERS = "closure_parameters"
    IDENTIFIER = "identifier"
    # Literals
    INTEGER_LITERAL = "integer_literal"
    DECIMAL_LITERAL = "decimal_literal"
    STRING_LITERAL = "string_literal"
    GSTRING = "gstring"
    BOOLEAN_LITERAL = "boolean_literal"
    NULL_LITERAL = "null_literal"
    LIST_LITERAL = "list_literal"
    MAP_LITERAL = "map_literal"
    MAP_ENTRY = "map_entry"


# ==============================================================================
# Tree
# ==============================================================================


@dataclass(frozen=True)
class SourceSpan:
    """Char offsets are 0-based; lines and columns are 1-based."""
    start: int = 0
    end: int = 0
    line_start: int = 0
    col_start: int = 0
    line_end: int = 0
    col_end: int = 0


@dataclass(frozen=True)
class ParseToken:
    type: str
    text: str
    span: SourceSpan = SourceSpan()


@dataclass(frozen=True)
class ParseNode:
    """
    One grammar construct. Children are nodes and the significant tokens
    (names, operators, literals); punctuation is not kept.
    """
    kind: ConstructKind
    children: Tuple[Union["ParseNode", ParseToken], ...] = ()
    span: SourceSpan = SourceSpan()
    text: str = ""

    # ---- accessors ------------------------------------------------------------

    def nodes(self) -> Tuple["ParseNode", ...]:
        return tuple(c for c in self.children if isinstance(c, ParseNode))

    def tokens(self) -> Tuple[ParseToken, ...]:
        return tuple(c for c in self.children if isinstance(c, ParseToken))

    def child(self, kind: ConstructKind) -> Optional["ParseNode"]:
        for c in self.children:
            if isinstance(c, ParseNode) and c.kind is kind:
                return c
        return None

    def children_of(self, kind: ConstructKind) -> Tuple["ParseNode", ...]:
        return tuple(c for c in self.children if isinstance(c, ParseNode) and c.kind is kind)

    def token(self, *types: str) -> Optional[ParseToken]:
        for c in self.children:
            if isinstance(c, ParseToken) and c.type in types:
                return c
        return None


Child = Union[ParseNode, ParseToken]


def make_node(kind: ConstructKind, *children: Child, text: str = "", span: Optional[SourceSpan] = None) -> ParseNode:
    return ParseNode(kind=kind, children=tuple(children), span=span or SourceSpan(), text=text)


def make_token(type_: str, text: str, span: Optional[SourceSpan] = None) -> ParseToken:
    return ParseToken(type=type_, text=text, span=span or SourceSpan())
