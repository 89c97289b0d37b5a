import csv
import json
from pathlib import Path

import pytest
from openpyxl import Workbook, load_workbook

from core.cnf import CnfInvariantError
from core.operator_config import OperatorConfigError
from core.pipeline import FormulaFileError, load_formulas, process_formula_file


FORMULAS = """# weather rules
p & q => r

q | r
p |
(p & q) | r
"""


def _write_text(path: Path, text: str = FORMULAS) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_formulas_skips_blank_lines_and_comments(tmp_path):
    sources = load_formulas(_write_text(tmp_path / "rules.txt"))
    assert [(s.line_number, s.text) for s in sources] == [
        (2, "p & q => r"),
        (4, "q | r"),
        (5, "p |"),
        (6, "(p & q) | r"),
    ]


def test_load_formulas_from_workbook(tmp_path):
    path = tmp_path / "rules.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.append(["Formula"])
    ws.append(["p => q"])
    ws.append([None])
    ws.append(["q <=> r"])
    wb.save(path)

    sources = load_formulas(path)
    assert [(s.line_number, s.text) for s in sources] == [(2, "p => q"), (4, "q <=> r")]


def test_load_formulas_missing_file(tmp_path):
    with pytest.raises(FormulaFileError):
        load_formulas(tmp_path / "missing.txt")


def test_process_formula_file_happy_path_creates_outputs(tmp_path):
    input_path = _write_text(tmp_path / "rules.txt")
    output_root = tmp_path / "out"

    result = process_formula_file(input_path, output_root)

    assert [f.status for f in result.formulas] == ["OK", "OK", "FAILED", "OK"]
    assert [len(f.clauses) for f in result.formulas] == [1, 1, 0, 2]
    assert result.succeeded == 3
    assert result.failed == 1
    assert len(result.clauses) == 4
    assert "PARSE_FAILED" in result.formulas[2].error

    wb = load_workbook(output_root / "rules_kb.xlsx")
    assert wb.sheetnames == ["Formulas", "Clauses", "Summary"]
    clause_rows = list(wb["Clauses"].iter_rows(min_row=2, values_only=True))
    assert [row[3] for row in clause_rows] == ["~ p | ~ q | r", "q | r", "p | r", "q | r"]
    assert wb["Summary"]["B4"].value == 4

    with (output_root / "rules_kb.csv").open(encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[0][0] == "Line"
    assert len(rows) == 1 + 4 + 1

    data = json.loads((output_root / "rules_kb.json").read_text(encoding="utf-8"))
    assert data["symbols"] == ["p", "q", "r"]
    assert data["summary"]["formulasFailed"] == 1
    assert data["summary"]["clausesTotal"] == 4
    assert data["formulas"][0]["clauses"] == [
        [
            {"symbol": "p", "negated": True},
            {"symbol": "q", "negated": True},
            {"symbol": "r", "negated": False},
        ]
    ]


def test_process_formula_file_enforces_max_clauses(tmp_path):
    input_path = _write_text(tmp_path / "rules.txt")
    result = process_formula_file(input_path, tmp_path / "out", max_clauses=1)

    last = result.formulas[-1]
    assert last.status == "FAILED"
    assert "clause limit" in last.error
    assert len(result.clauses) == 2


def test_process_formula_file_with_custom_operators(tmp_path):
    cfg = {
        "AND": ["AND"],
        "OR": ["OR"],
        "IMPLIES": ["IMPLIES"],
        "IFF": ["IFF"],
        "NOT": ["NOT"],
        "LPAREN": ["("],
        "RPAREN": [")"],
    }
    ops_path = tmp_path / "ops.json"
    ops_path.write_text(json.dumps(cfg), encoding="utf-8")
    input_path = _write_text(tmp_path / "rules.txt", "a AND b IMPLIES c\nNOT (a OR b)\n")

    result = process_formula_file(input_path, tmp_path / "out", operator_config_path=ops_path)

    assert result.failed == 0
    assert [len(f.clauses) for f in result.formulas] == [1, 2]

    wb = load_workbook(tmp_path / "out" / "rules_kb.xlsx")
    clause_rows = list(wb["Clauses"].iter_rows(min_row=2, values_only=True))
    assert [row[3] for row in clause_rows] == ["NOT a OR NOT b OR c", "NOT a", "NOT b"]
    assert wb["Summary"]["B5"].value == "(NOT a OR NOT b OR c) AND (NOT a) AND (NOT b)"


def test_process_formula_file_bad_operator_config(tmp_path):
    input_path = _write_text(tmp_path / "rules.txt")
    ops_path = tmp_path / "ops.json"
    ops_path.write_text("[]", encoding="utf-8")
    with pytest.raises(OperatorConfigError):
        process_formula_file(input_path, tmp_path / "out", operator_config_path=ops_path)


def test_process_formula_file_does_not_swallow_invariant_errors(tmp_path, monkeypatch):
    import core.knowledge_base as knowledge_base

    def broken_cnf(prop):
        raise CnfInvariantError("Must eliminate implications and biconditionals before distributing")

    monkeypatch.setattr(knowledge_base, "cnf", broken_cnf)
    input_path = _write_text(tmp_path / "rules.txt", "p => q\n")
    with pytest.raises(CnfInvariantError):
        process_formula_file(input_path, tmp_path / "out")


def test_process_formula_file_handles_very_long_conjunctions(tmp_path):
    long_line = " & ".join(f"x{i}" for i in range(1200))
    input_path = _write_text(tmp_path / "rules.txt", f"p | q\n{long_line}\nr\n")
    output_root = tmp_path / "out"

    result = process_formula_file(input_path, output_root)

    assert [f.status for f in result.formulas] == ["OK", "OK", "OK"]
    assert [len(f.clauses) for f in result.formulas] == [1, 1200, 1]
    assert len(result.clauses) == 1202
    assert (output_root / "rules_kb.xlsx").exists()
    data = json.loads((output_root / "rules_kb.json").read_text(encoding="utf-8"))
    assert data["summary"]["clausesTotal"] == 1202
    assert len(data["symbols"]) == 1203


def test_exports_spell_negations_without_a_configured_not_token(tmp_path):
    cfg = {"AND": ["AND"], "OR": ["OR"], "IMPLIES": ["IMPLIES"], "IFF": ["IFF"], "LPAREN": ["("], "RPAREN": [")"]}
    ops_path = tmp_path / "ops.json"
    ops_path.write_text(json.dumps(cfg), encoding="utf-8")
    input_path = _write_text(tmp_path / "rules.txt", "a IMPLIES b\n")

    result = process_formula_file(input_path, tmp_path / "out", operator_config_path=ops_path)

    assert result.failed == 0
    with (tmp_path / "out" / "rules_kb.csv").open(encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[1][5] == "~ a OR b"
