from __future__ import annotations

import logging
from pathlib import Path

from core.formula_parser import FormulaParseError, parse_formula
from core.knowledge_base import ClauseLimitError, KnowledgeBase
from core.models import FormulaResult, FormulaSource, RunResult
from core.operator_config import OperatorConfigError, load_operator_config
from core.stages import Stage
from core.utils import format_tree, sanitize_filename
from exporters.docs_exporter import write_docs_files
from exporters.xlsx_exporter import write_kb_workbook

logger = logging.getLogger(__name__)


class FormulaFileError(ValueError):
    pass


def _extra(stage: Stage, section: str | None) -> dict[str, str]:
    return {"stage": stage.value, "section": section or "-"}


def _format_section_ref(source: FormulaSource) -> str:
    text = source.text.replace("\t", " ").strip()
    text_short = text if len(text) <= 80 else (text[:77] + "...")
    return f"line={source.line_number} | {text_short}"


def _run_stage(stage: Stage, section: str | None, func, expected_exceptions: tuple[type[BaseException], ...] = ()):
    logger.info("START", extra=_extra(stage, section))
    try:
        value = func()
    except expected_exceptions as exc:
        logger.error("FAILED: %s", exc, exc_info=True, extra=_extra(stage, section))
        raise
    except Exception:
        logger.exception("FAILED: unexpected error", extra=_extra(stage, section))
        raise
    else:
        logger.info("OK", extra=_extra(stage, section))
        return value


def _load_text_formulas(path: Path) -> list[FormulaSource]:
    sources: list[FormulaSource] = []
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            text = line.strip()
            if not text or text.startswith("#"):
                continue
            sources.append(FormulaSource(line_number=line_number, text=text))
    return sources


def _load_workbook_formulas(path: Path) -> list[FormulaSource]:
    from openpyxl import load_workbook

    workbook = load_workbook(path, data_only=True)
    sheet = workbook.active
    sources: list[FormulaSource] = []
    for (cell,) in sheet.iter_rows(min_row=1, min_col=1, max_col=1):
        if cell.value is None:
            continue
        text = str(cell.value).strip()
        if not text or text.startswith("#"):
            continue
        if cell.row == 1 and text.casefold() == "formula":
            continue
        sources.append(FormulaSource(line_number=cell.row, text=text))
    return sources


def load_formulas(path: Path) -> list[FormulaSource]:
    """Read formulas from a text file (one per line) or the first column of an .xlsx workbook."""
    try:
        if path.suffix.lower() == ".xlsx":
            return _load_workbook_formulas(path)
        return _load_text_formulas(path)
    except Exception as exc:
        raise FormulaFileError(f"could not read formulas from '{path}'") from exc


def process_formula_file(
    input_path: Path,
    output_root: Path,
    max_clauses: int | None = None,
    operator_config_path: Path | None = None,
) -> RunResult:
    output_root.mkdir(parents=True, exist_ok=True)
    logger.info("START processing", extra=_extra(Stage.RUN, None))
    logger.info("Input=%s Output=%s max_clauses=%s", input_path, output_root, max_clauses, extra=_extra(Stage.RUN, None))

    op_config = _run_stage(
        Stage.LOAD_OPERATOR_CONFIG,
        None,
        lambda: load_operator_config(operator_config_path, log_extra=_extra(Stage.LOAD_OPERATOR_CONFIG, None)),
        expected_exceptions=(OperatorConfigError,),
    )

    sources = _run_stage(
        Stage.LOAD_FORMULAS,
        None,
        lambda: load_formulas(input_path),
        expected_exceptions=(FormulaFileError,),
    )
    logger.info("Loaded formulas=%d", len(sources), extra=_extra(Stage.LOAD_FORMULAS, None))

    kb = KnowledgeBase.empty(max_clauses_per_tell=max_clauses, op_config=op_config)
    results: list[FormulaResult] = []

    for source in sources:
        section_ref = _format_section_ref(source)
        try:
            prop = _run_stage(
                Stage.FORMULA_PARSE,
                section_ref,
                lambda: parse_formula(source.text, op_config, log_extra=_extra(Stage.FORMULA_PARSE, section_ref)),
                expected_exceptions=(FormulaParseError,),
            )
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("TREE:\n%s", format_tree(prop), extra=_extra(Stage.FORMULA_PARSE, section_ref))

            before = len(kb)
            _run_stage(
                Stage.FORMULA_TELL,
                section_ref,
                lambda: kb.tell(prop, log_extra=_extra(Stage.FORMULA_TELL, section_ref)),
                expected_exceptions=(ClauseLimitError,),
            )
            result = FormulaResult(source=source, clauses=kb.sentences[before:])
        except (FormulaParseError, ClauseLimitError) as exc:
            result = FormulaResult(source=source, status="FAILED", error=str(exc))
        results.append(result)

    run_result = RunResult(input_path=str(input_path), formulas=results, clauses=kb.clauses, op_config=op_config)
    stem = sanitize_filename(input_path.stem)

    try:
        _run_stage(Stage.EXPORT_WORKBOOK, None, lambda: write_kb_workbook(output_root / f"{stem}_kb.xlsx", run_result))
    except Exception:
        # Keep going: docs export may still be helpful.
        pass

    _run_stage(Stage.EXPORT_DOCS, None, lambda: write_docs_files(output_root, stem, run_result))

    logger.info(
        "DONE processing: formulas=%d failed=%d clauses=%d",
        len(results),
        run_result.failed,
        len(run_result.clauses),
        extra=_extra(Stage.RUN, None),
    )
    return run_result
