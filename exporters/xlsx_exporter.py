from __future__ import annotations

from pathlib import Path

from core.models import RunResult
from core.operator_config import default_operator_config
from core.utils import clause_literals, clause_to_text


FORMULA_COLUMNS = ["Line", "Formula", "Status", "Error", "Clauses"]
CLAUSE_COLUMNS = ["Line", "Formula", "Clause", "ClauseText", "LiteralCount"]


def write_kb_workbook(path: Path, result: RunResult) -> None:
    from openpyxl import Workbook

    op_config = result.op_config or default_operator_config()
    workbook = Workbook()
    formulas_sheet = workbook.active
    formulas_sheet.title = "Formulas"
    formulas_sheet.append(FORMULA_COLUMNS)
    for formula in result.formulas:
        formulas_sheet.append(
            [
                formula.source.line_number,
                formula.source.text,
                formula.status,
                formula.error or "",
                len(formula.clauses),
            ]
        )

    clauses_sheet = workbook.create_sheet("Clauses")
    clauses_sheet.append(CLAUSE_COLUMNS)
    for formula in result.formulas:
        if formula.status != "OK":
            continue
        for idx, clause in enumerate(formula.clauses, start=1):
            clauses_sheet.append(
                [
                    formula.source.line_number,
                    formula.source.text,
                    idx,
                    clause_to_text(clause, op_config),
                    len(clause_literals(clause)),
                ]
            )

    if not result.clauses:
        clauses_sheet.cell(row=2, column=1, value="No clauses were generated.")

    summary = workbook.create_sheet("Summary")
    summary["A1"] = "Input"
    summary["B1"] = result.input_path
    summary["A2"] = "Formulas"
    summary["B2"] = len(result.formulas)
    summary["A3"] = "Failed"
    summary["B3"] = result.failed
    summary["A4"] = "Clauses"
    summary["B4"] = len(result.clauses)
    summary["A5"] = "Knowledge base"
    summary["B5"] = f" {op_config.canonical('AND')} ".join(f"({clause_to_text(clause, op_config)})" for clause in result.clauses)

    workbook.save(path)
