import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from groovy2cs.transpile.csharp_render import CSharpRenderer, escape_identifier
from groovy2cs.transpile.csharp_syntax import (
    BinaryExpression,
    BinaryOperator,
    Block,
    BreakStatement,
    CaseLabel,
    CompilationUnit,
    ConditionalExpression,
    DefaultLabel,
    ExpressionStatement,
    GlobalStatement,
    IdentifierName,
    IfStatement,
    InterpolatedStringExpression,
    InterpolatedText,
    Interpolation,
    LiteralExpression,
    LiteralKind,
    MethodDeclaration,
    Parameter,
    PrefixUnaryExpression,
    ReturnStatement,
    SwitchSection,
    SwitchStatement,
    UnaryOperator,
    UsingDirective,
)

a, b, c = IdentifierName("a"), IdentifierName("b"), IdentifierName("c")


def expr(e):
    text = CSharpRenderer().render(CompilationUnit(members=(GlobalStatement(ExpressionStatement(e)),)))
    return text.strip().rstrip(";")


def test_parentheses_only_where_precedence_requires():
    add = BinaryExpression(BinaryOperator.ADD, a, b)
    assert expr(BinaryExpression(BinaryOperator.MULTIPLY, add, c)) == "(a + b) * c"
    assert expr(BinaryExpression(BinaryOperator.ADD, BinaryExpression(BinaryOperator.MULTIPLY, a, b), c)) == "a * b + c"
    # left-associative: a - (b - c) keeps its parentheses, (a - b) - c drops them
    assert expr(BinaryExpression(BinaryOperator.SUBTRACT, a, BinaryExpression(BinaryOperator.SUBTRACT, b, c))) == "a - (b - c)"
    assert expr(BinaryExpression(BinaryOperator.SUBTRACT, BinaryExpression(BinaryOperator.SUBTRACT, a, b), c)) == "a - b - c"


def test_unary_and_conditional():
    neg = PrefixUnaryExpression(UnaryOperator.NEGATE, BinaryExpression(BinaryOperator.ADD, a, b))
    assert expr(neg) == "-(a + b)"
    double_neg = PrefixUnaryExpression(UnaryOperator.NEGATE, PrefixUnaryExpression(UnaryOperator.NEGATE, a))
    assert expr(double_neg) == "-(-a)"
    cond = ConditionalExpression(BinaryExpression(BinaryOperator.GREATER_THAN, a, b), a, b)
    assert expr(cond) == "a > b ? a : b"


def test_string_and_interpolation_escaping():
    assert expr(LiteralExpression(LiteralKind.STRING, 'say "hi"\n')) == r'"say \"hi\"\n"'
    interp = InterpolatedStringExpression((
        InterpolatedText("{x} = "),
        Interpolation(ConditionalExpression(a, b, c)),
    ))
    assert expr(interp) == '$"{{x}} = {(a ? b : c)}"'


def test_keywords_are_escaped_as_identifiers():
    assert escape_identifier("string") == "@string"
    assert escape_identifier("name") == "name"


def test_allman_layout_for_methods_and_if():
    method = MethodDeclaration(
        "dynamic",
        "max",
        (Parameter("dynamic", "a"), Parameter("dynamic", "b")),
        Block((
            IfStatement(BinaryExpression(BinaryOperator.GREATER_THAN, a, b), Block((ReturnStatement(a),))),
            ReturnStatement(b),
        )),
    )
    unit = CompilationUnit(usings=(UsingDirective("System"),), members=(method,))
    assert CSharpRenderer().render(unit) == (
        "using System;\n"
        "\n"
        "static dynamic max(dynamic a, dynamic b)\n"
        "{\n"
        "    if (a > b)\n"
        "    {\n"
        "        return a;\n"
        "    }\n"
        "    return b;\n"
        "}\n"
    )


def test_switch_layout():
    switch = SwitchStatement(a, (
        SwitchSection((CaseLabel(LiteralExpression(LiteralKind.NUMERIC, 1)),), (BreakStatement(),)),
        SwitchSection((DefaultLabel(),), (BreakStatement(),)),
    ))
    text = CSharpRenderer().render(CompilationUnit(members=(GlobalStatement(switch),)))
    assert text == (
        "switch (a)\n"
        "{\n"
        "    case 1:\n"
        "        break;\n"
        "    default:\n"
        "        break;\n"
        "}\n"
    )


def test_empty_unit_renders_empty_text():
    assert CSharpRenderer().render(CompilationUnit()) == ""
