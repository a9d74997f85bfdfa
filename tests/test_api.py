from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from groovy2cs.transpile.__main__ import load_receipt, main, run_on_path
from groovy2cs.transpile.api import translate_source
from groovy2cs.transpile.errors import MissingConstructError, StructuralError


# ---- single-source translation ---------------------------------------------------

def test_classic_for_loop() -> None:
    out = translate_source("for (def i = 0; i < 5; i++) { println i }")
    assert "for (var i = 0; i < 5; i++)" in out
    assert "Console.WriteLine(i);" in out
    assert out.startswith("using System;\n")


def test_for_in_over_named_collection() -> None:
    out = translate_source("def numbers = [1, 2, 3]\nfor (num in numbers) {\n    println num\n}\n")
    assert "var numbers = new object[] { 1, 2, 3 };" in out
    assert "foreach (var num in numbers)" in out
    assert "Console.WriteLine(num);" in out


def test_while_loop_full_output() -> None:
    src = "int count = 3\nwhile (count > 0) {\n    println count\n    count--\n}\n"
    assert translate_source(src) == (
        "using System;\n"
        "\n"
        "int count = 3;\n"
        "while (count > 0)\n"
        "{\n"
        "    Console.WriteLine(count);\n"
        "    count--;\n"
        "}\n"
    )


def test_method_and_call() -> None:
    out = translate_source("def add(a, b) {\n    return a + b\n}\nprintln add(1, 2)\n")
    assert "static dynamic add(dynamic a, dynamic b)\n{\n    return a + b;\n}\n" in out
    assert out.endswith("\nConsole.WriteLine(add(1, 2));\n")


def test_interpolated_string() -> None:
    out = translate_source('def name = "World"\nprintln "Hello, $name!"\n')
    assert 'var name = "World";' in out
    assert 'Console.WriteLine($"Hello, {name}!");' in out


def test_multi_line_condition_keeps_else_attached() -> None:
    out = translate_source("if (a &&\n    b) {\n    println 1\n}\nelse {\n    println 2\n}\n")
    assert "if (a && b)\n{\n    Console.WriteLine(1);\n}\nelse\n{\n    Console.WriteLine(2);\n}\n" in out


def test_multi_line_parameter_list() -> None:
    out = translate_source("def add(a,\n        b) {\n    return a + b\n}\nprintln add(1, 2)\n")
    assert "static dynamic add(dynamic a, dynamic b)\n{\n    return a + b;\n}\n" in out


def test_closure_with_branch_returns_is_func() -> None:
    src = (
        "def sign = { x ->\n"
        "    if (x > 0) {\n"
        "        return 1\n"
        "    } else {\n"
        "        return -1\n"
        "    }\n"
        "}\n"
        "println sign(3)\n"
    )
    out = translate_source(src)
    assert "Func<dynamic, dynamic> sign = x =>" in out
    assert "Action" not in out
    assert "Console.WriteLine(sign(3));" in out


def test_errors_propagate_from_each_stage() -> None:
    with pytest.raises(StructuralError):
        translate_source("def f() {\n    println 1\n")
    with pytest.raises(MissingConstructError):
        translate_source("def x\n")
    with pytest.raises(MissingConstructError):
        translate_source("int x\n")


# ---- batch -----------------------------------------------------------------------

@pytest.fixture()
def source_tree(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    (root / "a").mkdir(parents=True)
    (root / "a" / "hello.groovy").write_text((REPO_ROOT / "test_repo" / "hello.groovy").read_text(), encoding="utf-8")
    (root / "loops.groovy").write_text((REPO_ROOT / "test_repo" / "loops.groovy").read_text(), encoding="utf-8")
    (root / "broken.groovy").write_text("def f() {\n    println 'never closed'\n", encoding="utf-8")
    (root / "notes.txt").write_text("not groovy\n", encoding="utf-8")
    return root


def test_batch_publishes_outputs_and_receipt(source_tree: Path, tmp_path: Path) -> None:
    pq = pytest.importorskip("pyarrow.parquet")
    out_dir = tmp_path / "out"

    result = run_on_path(source_tree, out_dir=out_dir, run_meta={"run_id": "t1"})
    summary = result["summary"]
    assert summary["files_total"] == 3
    assert summary["files_translated"] == 2
    assert summary["files_failed"] == 1

    assert (out_dir / "cs" / "a" / "hello.cs").exists()
    assert (out_dir / "cs" / "loops.cs").exists()
    assert not (out_dir / "cs" / "broken.cs").exists()
    assert not Path(str(out_dir) + ".staging").exists()

    receipt = json.loads((out_dir / "run_receipt.json").read_text(encoding="utf-8"))
    assert receipt == result["receipt"]
    assert receipt["step"] == "translate"
    assert receipt["run_meta"]["run_id"] == "t1"
    assert receipt["translation_rows"] == 3
    assert receipt["outputs"] == 2
    assert receipt["counters"]["kind:STRUCTURAL_ERROR"] == 1
    assert "cs/loops.cs" in receipt["integrity"]

    translations = pq.read_table(out_dir / "translations").to_pylist()
    by_path = {row["path"]: row for row in translations}
    assert by_path["broken.groovy"]["ok"] is False
    assert by_path["broken.groovy"]["stage"] == "normalize"
    assert by_path["loops.groovy"]["output_path"] == "cs/loops.cs"

    anomalies = pq.read_table(out_dir / "anomalies").to_pylist()
    assert [a["kind"] for a in anomalies] == ["STRUCTURAL_ERROR"]


def test_discovery_anomalies_reach_the_anomaly_table(source_tree: Path, tmp_path: Path) -> None:
    pq = pytest.importorskip("pyarrow.parquet")
    (source_tree / "blob.groovy").write_bytes(b"\x00\x01binary")
    out_dir = tmp_path / "out"

    result = run_on_path(source_tree, out_dir=out_dir)
    assert result["discovery_counters"]["kind:SKIPPED"] == 1

    kinds = sorted(row["kind"] for row in pq.read_table(out_dir / "anomalies").to_pylist())
    assert kinds == ["SKIPPED", "STRUCTURAL_ERROR"]
    assert result["receipt"]["counters"]["kind:SKIPPED"] == 1


def test_second_run_keeps_backup(source_tree: Path, tmp_path: Path) -> None:
    pytest.importorskip("pyarrow")
    out_dir = tmp_path / "out"
    run_on_path(source_tree, out_dir=out_dir)
    run_on_path(source_tree, out_dir=out_dir)
    assert (Path(str(out_dir) + ".bak") / "run_receipt.json").exists()
    assert load_receipt(out_dir)["outputs"] == 2


def test_load_receipt_missing_dir(tmp_path: Path) -> None:
    assert load_receipt(tmp_path / "nowhere") == {}


# ---- CLI -------------------------------------------------------------------------

def test_cli_translate_and_normalize(capsys) -> None:
    hello = REPO_ROOT / "test_repo" / "hello.groovy"
    assert main(["translate", str(hello)]) == 0
    assert "Console.WriteLine" in capsys.readouterr().out

    assert main(["normalize", str(hello)]) == 0
    assert ";" in capsys.readouterr().out


def test_cli_translate_reports_errors(tmp_path: Path, capsys) -> None:
    bad = tmp_path / "bad.groovy"
    bad.write_text("xs.each { x ->\n    println x\n", encoding="utf-8")
    assert main(["translate", str(bad)]) == 1
    err = capsys.readouterr().err
    assert "STRUCTURAL" in err
    assert "line 1" in err


def test_cli_normalize_reports_errors(tmp_path: Path, capsys) -> None:
    bad = tmp_path / "bad.groovy"
    bad.write_text("def s = 'abc\n", encoding="utf-8")
    assert main(["normalize", str(bad)]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Unterminated string at line 1" in captured.err
