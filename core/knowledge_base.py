from __future__ import annotations

import logging
from typing import Iterator

from core.cnf import cnf
from core.formula_parser import parse_formula
from core.operator_config import OperatorConfig
from core.prop import Prop

logger = logging.getLogger(__name__)


class ClauseLimitError(ValueError):
    pass


class KnowledgeBase:
    """An ordered collection of CNF clauses.

    Every stored sentence is a single clause: a constant, a literal, or an
    `|`-tree of those. Order is insertion order; duplicates are kept.
    """

    def __init__(
        self,
        sentences: list[Prop] | None = None,
        *,
        max_clauses_per_tell: int | None = None,
        op_config: OperatorConfig | None = None,
    ) -> None:
        self.sentences: list[Prop] = list(sentences or [])
        self.max_clauses_per_tell = max_clauses_per_tell
        self.op_config = op_config

    @classmethod
    def empty(cls, **kwargs) -> KnowledgeBase:
        return cls(**kwargs)

    def __len__(self) -> int:
        return len(self.sentences)

    def __iter__(self) -> Iterator[Prop]:
        return iter(self.sentences)

    @property
    def clauses(self) -> list[Prop]:
        return list(self.sentences)

    def tell(self, prop: Prop | str, *, log_extra: dict[str, str] | None = None) -> None:
        """Convert `prop` to CNF and append its clauses.

        Strings are parsed first; a `FormulaParseError` leaves the base untouched.
        """
        if isinstance(prop, str):
            prop = parse_formula(prop, self.op_config, log_extra=log_extra)

        new_clauses = cnf(prop)
        if self.max_clauses_per_tell is not None and len(new_clauses) > self.max_clauses_per_tell:
            raise ClauseLimitError(
                f"CNF clause limit exceeded: {len(new_clauses)} > {self.max_clauses_per_tell}"
            )
        self.sentences.extend(new_clauses)

        if log_extra:
            logger.info("TELL_OK: added=%d total=%d", len(new_clauses), len(self.sentences), extra=log_extra)
        else:
            logger.info("TELL_OK: added=%d total=%d", len(new_clauses), len(self.sentences))

    def split_clauses(self) -> None:
        """Split top-level conjunctions anywhere in the base into separate clauses."""
        new_sentences: list[Prop] = []
        while self.sentences:
            prop = self.sentences.pop()
            if not prop.is_and():
                new_sentences.append(prop)
                continue
            for part in (prop.left, prop.right):
                if part.is_and():
                    self.sentences.append(part)
                else:
                    new_sentences.append(part)
        self.sentences = new_sentences
