from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from core.operator_config import OperatorConfig
from core.prop import Prop


FormulaStatus = Literal["OK", "FAILED"]


@dataclass(frozen=True)
class FormulaSource:
    line_number: int
    text: str


@dataclass
class FormulaResult:
    source: FormulaSource
    clauses: list[Prop] = field(default_factory=list)
    status: FormulaStatus = "OK"
    error: str | None = None


@dataclass
class RunResult:
    input_path: str
    formulas: list[FormulaResult]
    clauses: list[Prop]
    op_config: OperatorConfig | None = None

    @property
    def succeeded(self) -> int:
        return len([f for f in self.formulas if f.status == "OK"])

    @property
    def failed(self) -> int:
        return len(self.formulas) - self.succeeded
