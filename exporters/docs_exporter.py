from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path

from core.models import RunResult
from core.operator_config import OperatorConfig
from core.prop import NotNode, Prop, SymbolNode, symbols
from core.utils import clause_literals, clause_to_text, natural_key, to_infix


DOC_COLUMNS = [
    "Line",
    "Formula",
    "Status",
    "ErrorMessage",
    "ClauseIndex",
    "ClauseText",
    "LiteralCount",
]


def literal_to_json(literal: Prop, op_config: OperatorConfig | None = None) -> dict[str, object]:
    if isinstance(literal, SymbolNode):
        return {"symbol": literal.name, "negated": False}
    if isinstance(literal, NotNode) and isinstance(literal.child, SymbolNode):
        return {"symbol": literal.child.name, "negated": True}
    return {"constant": to_infix(literal, op_config)}


def write_docs_files(folder: Path, stem: str, result: RunResult) -> None:
    rows: list[list[object]] = []
    json_formulas = []

    for formula in result.formulas:
        if formula.status != "OK":
            rows.append(
                [
                    formula.source.line_number,
                    formula.source.text,
                    formula.status,
                    formula.error,
                    "",
                    "",
                    0,
                ]
            )
        for idx, clause in enumerate(formula.clauses, start=1):
            rows.append(
                [
                    formula.source.line_number,
                    formula.source.text,
                    formula.status,
                    formula.error,
                    idx,
                    clause_to_text(clause, result.op_config),
                    len(clause_literals(clause)),
                ]
            )

        json_formulas.append(
            {
                "line": formula.source.line_number,
                "formula": formula.source.text,
                "status": formula.status,
                "error": formula.error,
                "clauses": [
                    [literal_to_json(literal, result.op_config) for literal in clause_literals(clause)]
                    for clause in formula.clauses
                ],
            }
        )

    csv_path = folder / f"{stem}_kb.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(DOC_COLUMNS)
        writer.writerows(rows)

    all_symbols: set[str] = set()
    for clause in result.clauses:
        all_symbols.update(symbols(clause))

    json_path = folder / f"{stem}_kb.json"
    data = {
        "input": result.input_path,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "symbols": sorted(all_symbols, key=natural_key),
        "formulas": json_formulas,
        "summary": {
            "formulasTotal": len(result.formulas),
            "formulasSucceeded": result.succeeded,
            "formulasFailed": result.failed,
            "clausesTotal": len(result.clauses),
        },
    }
    json_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
