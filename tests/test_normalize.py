import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from groovy2cs.transpile.errors import StructuralError
from groovy2cs.transpile.normalize import LineRule, Normalizer, normalize


# (input, expected) pairs; CRLF endings are kept as-is.
CASES = {
    "simple_statement": (
        "def greeting = 'Hello'",
        "def greeting = 'Hello';",
    ),
    "multi_line_expression": (
        "def sum = 1 +\r\n          2 +\r\n          3",
        "def sum = 1 +\r\n          2 +\r\n          3;",
    ),
    "method_body": (
        "def greet() {\r\n    println 'Hello, World!'\r\n}",
        "def greet() {\r\n    println 'Hello, World!';\r\n}",
    ),
    "list_declaration": (
        "list = [1,\r\n        2,\r\n        3]",
        "list = [1,\r\n        2,\r\n        3];",
    ),
    "control_statement": (
        "if (x > 0) {\r\n    println 'Positive'\r\n}",
        "if (x > 0) {\r\n    println 'Positive';\r\n}",
    ),
    "annotation": (
        "@Override\r\ndef toString() {\r\n    println 'Hello, World!'\r\n}",
        "@Override\r\ndef toString() {\r\n    println 'Hello, World!';\r\n}",
    ),
    "inline_comment": (
        "def greeting = 'Hello'  // Insert semicolon here",
        "def greeting = 'Hello';  // Insert semicolon here",
    ),
    "standalone_comment": (
        "// This is a comment",
        "// This is a comment",
    ),
    "standalone_block_comment": (
        "/* a standalone multiline comment\r\n   spanning two lines */",
        "/* a standalone multiline comment\r\n   spanning two lines */",
    ),
    "inline_block_comment": (
        "def greeting = 'Hello'  /* a standalone multiline comment*/\r\n",
        "def greeting = 'Hello';  /* a standalone multiline comment*/\r\n",
    ),
    "groovydoc": (
        "/**\r\n * A Class description\r\n */\r\nclass Person {\r\n    /** the name of the person */\r\n"
        "    String name\r\n\r\n    /**\r\n     * Creates a greeting method for a certain person.\r\n"
        "     *\r\n     * @param otherPerson the person to greet\r\n     * @return a greeting message\r\n"
        "     */\r\n    String greet(String otherPerson) {\r\n}\r\n}",
        "/**\r\n * A Class description\r\n */\r\nclass Person {\r\n    /** the name of the person */\r\n"
        "    String name;\r\n\r\n    /**\r\n     * Creates a greeting method for a certain person.\r\n"
        "     *\r\n     * @param otherPerson the person to greet\r\n     * @return a greeting message\r\n"
        "     */\r\n    String greet(String otherPerson) {\r\n}\r\n}",
    ),
    "trailing_block_comment": (
        "/* a standalone multiline comment\r\n   spanning two lines */\r\n"
        "println \"hello\" /* a multiline comment starting\r\n                   at the end of a statement */",
        "/* a standalone multiline comment\r\n   spanning two lines */\r\n"
        "println \"hello\"; /* a multiline comment starting\r\n                   at the end of a statement */",
    ),
    "closure": (
        "def list = [1, 2, 3];\r\nlist.each { item ->\r\n    println item\r\n}",
        "def list = [1, 2, 3];\r\nlist.each { item ->\r\n    println item;\r\n};",
    ),
    "multi_line_call": (
        "println(\r\n    \"Hello, World!\"\r\n)",
        "println(\r\n    \"Hello, World!\"\r\n);",
    ),
    "multi_line_enumerables": (
        "def numbers = [\r\n    1,\r\n    2,\r\n    3\r\n]\r\ndef person = [\r\n    name: 'Alice',\r\n    age: 30\r\n]",
        "def numbers = [\r\n    1,\r\n    2,\r\n    3\r\n];\r\ndef person = [\r\n    name: 'Alice',\r\n    age: 30\r\n];",
    ),
    "for_loop": (
        "for (int i = 0; i < 5; i++) {\r\n    println i\r\n}",
        "for (int i = 0; i < 5; i++) {\r\n    println i;\r\n}",
    ),
    "while_loop": (
        "int count = 5\r\nwhile (count > 0) {\r\n    println count\r\n    count--\r\n    count++\r\n}",
        "int count = 5;\r\nwhile (count > 0) {\r\n    println count;\r\n    count--;\r\n    count++;\r\n}",
    ),
    "inline_closure": (
        "def square = { num -> num * num }\r\nprintln square(5)",
        "def square = { num -> num * num };\r\nprintln square(5);",
    ),
    "string_continuation": (
        "def message = \"This is a long message \" +\r\n              \"that spans multiple lines.\"\r\nprintln message",
        "def message = \"This is a long message \" +\r\n              \"that spans multiple lines.\";\r\nprintln message;",
    ),
    "method_call": (
        "def result = \"Hello\".toUpperCase().reverse()\r\nprintln result",
        "def result = \"Hello\".toUpperCase().reverse();\r\nprintln result;",
    ),
    "chained_calls": (
        "def result = \"Hello\"\r\n                .toUpperCase()\r\n                .reverse()\r\nprintln result",
        "def result = \"Hello\"\r\n                .toUpperCase()\r\n                .reverse();\r\nprintln result;",
    ),
    "ternary": (
        "def max = (a > b) ? a : b",
        "def max = (a > b) ? a : b;",
    ),
    "switch": (
        "def value = 2\r\nswitch (value) {\r\n    case 1:\r\n        println 'One'\r\n        break\r\n"
        "    case 2:\r\n        println 'Two'\r\n        break\r\n    default:\r\n        println 'Other'\r\n}",
        "def value = 2;\r\nswitch (value) {\r\n    case 1:\r\n        println 'One';\r\n        break;\r\n"
        "    case 2:\r\n        println 'Two';\r\n        break;\r\n    default:\r\n        println 'Other';\r\n}",
    ),
    "try_catch_finally": (
        "try {\r\n    // Some code that might throw an exception\r\n} catch (Exception e) {\r\n"
        "    println 'An error occurred'\r\n} finally {\r\n    println 'This always executes'\r\n}",
        "try {\r\n    // Some code that might throw an exception\r\n} catch (Exception e) {\r\n"
        "    println 'An error occurred';\r\n} finally {\r\n    println 'This always executes';\r\n}",
    ),
    "named_arguments": (
        "def configure(Map options) {\r\n    println options\r\n}\r\nconfigure(\r\n    timeout: 30,\r\n    verbose: true\r\n)",
        "def configure(Map options) {\r\n    println options;\r\n}\r\nconfigure(\r\n    timeout: 30,\r\n    verbose: true\r\n);",
    ),
    "class_definition": (
        "class Person {\r\n    String name\r\n    int age\r\n\r\n    def introduce() {\r\n"
        "        println \"Hi, I'm $name and I'm $age years old.\"\r\n    }\r\n}\r\n\r\n"
        "def person = new Person(name: 'Alice', age: 30)\r\nperson.introduce()",
        "class Person {\r\n    String name;\r\n    int age;\r\n\r\n    def introduce() {\r\n"
        "        println \"Hi, I'm $name and I'm $age years old.\";\r\n    }\r\n}\r\n\r\n"
        "def person = new Person(name: 'Alice', age: 30);\r\nperson.introduce();",
    ),
    "nested_closures": (
        "def times = { n, closure ->\r\n    for (int i = 0; i < n; i++) {\r\n        closure(i)\r\n    }\r\n}\r\n"
        "times(3) { println it }",
        "def times = { n, closure ->\r\n    for (int i = 0; i < n; i++) {\r\n        closure(i);\r\n    }\r\n};\r\n"
        "times(3) { println it; };",
    ),
    "multi_line_string": (
        "def multiLineString = '''\r\nThis is a\r\nmulti-line\r\nstring\r\n'''\r\nprintln multiLineString",
        "def multiLineString = '''\r\nThis is a\r\nmulti-line\r\nstring\r\n''';\r\nprintln multiLineString;",
    ),
    "multi_line_if_condition": (
        "if (a &&\n    b) {\n    println 1\n}\nelse {\n    println 2\n}",
        "if (a &&\n    b) {\n    println 1;\n}\nelse {\n    println 2;\n}",
    ),
    "multi_line_while_condition": (
        "while (c >\n       0) {\n    c--\n}",
        "while (c >\n       0) {\n    c--;\n}",
    ),
    "multi_line_parameters": (
        "def add(a,\n        b) {\n    return a + b\n}\nprintln add(1, 2)",
        "def add(a,\n        b) {\n    return a + b;\n}\nprintln add(1, 2);",
    ),
    "if_else_inside_closure": (
        "def sign = { x ->\n    if (x > 0) {\n        return 1\n    } else {\n        return -1\n    }\n}\nprintln sign(3)",
        "def sign = { x ->\n    if (x > 0) {\n        return 1;\n    } else {\n        return -1;\n    }\n};\nprintln sign(3);",
    ),
}


@pytest.mark.parametrize("name", sorted(CASES))
def test_normalizer_inserts_terminators(name):
    source, expected = CASES[name]
    assert Normalizer().normalize(source) == expected


@pytest.mark.parametrize("name", sorted(CASES))
def test_normalizer_is_idempotent(name):
    once = normalize(CASES[name][0])
    assert normalize(once) == once


def test_header_line_untouched_and_lf_endings_kept():
    out = normalize("if (x > 0) {\n    println 'Positive'\n}")
    assert out == "if (x > 0) {\n    println 'Positive';\n}"


def test_chain_gets_one_terminator_on_last_line():
    out = normalize("def r = s\n    .trim()\n    .reverse()\nprintln r\n")
    lines = out.split("\n")
    assert lines[0] == "def r = s"
    assert lines[1] == "    .trim()"
    assert lines[2] == "    .reverse();"
    assert lines[3] == "println r;"
    assert out.count(";") == 2


def test_line_count_and_comments_preserved():
    src = "// header\ndef a = 1 // one\n/* block */\ndef b = 'x // not a comment'\n"
    out = normalize(src)
    assert out.count("\n") == src.count("\n")
    assert "// header" in out
    assert "def a = 1; // one" in out
    assert "/* block */" in out
    assert "def b = 'x // not a comment';" in out


def test_instance_is_reusable_between_calls():
    n = Normalizer()
    with pytest.raises(StructuralError):
        n.normalize("def f() {\n")
    assert n.normalize("println 'ok'") == "println 'ok';"


def test_unclosed_brace_reports_opening_line():
    with pytest.raises(StructuralError) as ei:
        normalize("def a = 1\ndef f() {\n    println a\n")
    err = ei.value
    assert err.construct == "brace"
    assert err.opened_at == 2
    assert err.code == "STRUCTURAL"
    assert "line 2" in err.describe()


def test_unclosed_closure_reports_opening_line():
    with pytest.raises(StructuralError) as ei:
        normalize("def xs = [1]\nxs.each { x ->\n    println x\n")
    assert ei.value.construct == "closure"
    assert ei.value.opened_at == 2


def test_unclosed_parenthesis_and_bracket():
    with pytest.raises(StructuralError) as ei:
        normalize("println(\n    'a'\n")
    assert ei.value.construct == "parenthesis"
    assert ei.value.opened_at == 1

    with pytest.raises(StructuralError) as ei:
        normalize("def xs = [\n    1,\n")
    assert ei.value.construct == "bracket"


def test_unterminated_comment_and_string():
    with pytest.raises(StructuralError) as ei:
        normalize("def a = 1\n/* never closed\n")
    assert ei.value.construct == "block comment"
    assert ei.value.opened_at == 2

    with pytest.raises(StructuralError) as ei:
        normalize("def s = '''\nbody\n")
    assert ei.value.construct == "multiline string"
    assert ei.value.opened_at == 1

    with pytest.raises(StructuralError) as ei:
        normalize("def a = 1\ndef s = 'abc\n")
    assert ei.value.construct == "string"
    assert ei.value.opened_at == 2


def test_unmatched_closer_fails_on_its_line():
    with pytest.raises(StructuralError) as ei:
        normalize("println 'a'\n}\n")
    assert ei.value.opened_at == 2


def test_brackets_inside_strings_are_ignored():
    assert normalize("println '{ ( ['") == "println '{ ( [';"


def test_rule_order_is_fixed():
    assert list(LineRule)[0] is LineRule.BLANK
    assert list(LineRule)[-1] is LineRule.DEFAULT_INSERT
