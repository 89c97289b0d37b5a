from __future__ import annotations

import argparse
import logging
from pathlib import Path

from core.logging_conf import setup_run_logging, teardown_run_logging
from core.pipeline import process_formula_file
from core.stages import Stage
from core.utils import create_run_output_dir

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Convert propositional formulas to a CNF knowledge base.")
    parser.add_argument("--input", required=True, type=Path, help="Formula file (.txt, one per line) or .xlsx (column A).")
    parser.add_argument("--output", default=Path("output"), type=Path, help="Output root folder.")
    parser.add_argument(
        "--operators",
        default=None,
        type=Path,
        help="Optional operator config (.json). Defaults to config/operators.json or built-in tokens.",
    )
    parser.add_argument("--max-clauses", default=2000, type=int, help="Max CNF clauses per formula.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    parser.add_argument("--verbose", action="store_true", help="Echo the run log to stderr.")
    args = parser.parse_args(argv)

    level = getattr(logging, args.log_level)
    run_output_dir = create_run_output_dir(str(args.output))
    log_path = setup_run_logging(output_root=run_output_dir, level=level, console=args.verbose)
    print(f"Output directory: {run_output_dir}")
    print(f"Log file: {log_path}")

    logger.info("CLI start", extra={"stage": Stage.RUN.value, "section": "-"})
    logger.info("Log file: %s", log_path, extra={"stage": Stage.RUN.value, "section": "-"})

    try:
        result = process_formula_file(
            args.input,
            run_output_dir,
            args.max_clauses,
            operator_config_path=args.operators,
        )
    except Exception:
        logger.exception("Pipeline failed", extra={"stage": Stage.RUN.value, "section": "-"})
        teardown_run_logging()
        return 2

    total = len(result.formulas)
    logger.info(
        "Summary: total=%s succeeded=%s failed=%s clauses=%s",
        total,
        result.succeeded,
        result.failed,
        len(result.clauses),
        extra={"stage": Stage.RUN.value, "section": "-"},
    )
    teardown_run_logging()
    print(f"Summary: total={total} succeeded={result.succeeded} failed={result.failed} clauses={len(result.clauses)}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
