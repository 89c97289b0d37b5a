from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    RUN = "RUN"
    LOAD_OPERATOR_CONFIG = "LOAD_OPERATOR_CONFIG"
    LOAD_FORMULAS = "LOAD_FORMULAS"
    FORMULA_PARSE = "FORMULA_PARSE"
    FORMULA_TELL = "FORMULA_TELL"
    EXPORT_WORKBOOK = "EXPORT_WORKBOOK"
    EXPORT_DOCS = "EXPORT_DOCS"
