from __future__ import annotations

import logging
from typing import Callable

from core.prop import (
    AndNode,
    FalseNode,
    IffNode,
    ImplicNode,
    NotNode,
    OrNode,
    Prop,
    SymbolNode,
    TrueNode,
    transform,
)

logger = logging.getLogger(__name__)

# Every pass walks the tree with an explicit stack, so formula depth is not
# bounded by the interpreter's recursion limit.


class CnfInvariantError(AssertionError):
    """Raised when a rewrite pass meets a node an earlier pass should have removed.

    This is a programming error (passes run out of order), not bad input.
    """


def _expand_iff(node: Prop) -> Prop:
    if isinstance(node, IffNode):
        return AndNode(
            ImplicNode(node.left, node.right),
            ImplicNode(node.right.clone(), node.left.clone()),
        )
    return node


def _expand_implic(node: Prop) -> Prop:
    if isinstance(node, ImplicNode):
        return OrNode(NotNode(node.left), node.right)
    return node


def eliminate_biconditionals(node: Prop) -> Prop:
    """Rewrite every `a <=> b` into `(a => b) & (b => a)`, innermost first."""
    return transform(node, _expand_iff)


def eliminate_implications(node: Prop) -> Prop:
    """Rewrite every `a => b` into `~a | b`, innermost first."""
    return transform(node, _expand_implic)


def move_not_inward(node: Prop) -> Prop:
    """Push negations down until each one sits directly on a symbol.

    Walks top-down carrying the parity of the negations above each node:
    double negations cancel, De Morgan swaps `&` and `|` under an odd parity,
    and negated constants flip.
    """
    tasks: list[tuple[Prop | type[Prop], bool]] = [(node, False)]
    results: list[Prop] = []
    while tasks:
        current, negated = tasks.pop()
        if isinstance(current, type):
            right = results.pop()
            left = results.pop()
            results.append(current(left, right))
        elif isinstance(current, NotNode):
            tasks.append((current.child, not negated))
        elif isinstance(current, (AndNode, OrNode)):
            if negated:
                connective = OrNode if isinstance(current, AndNode) else AndNode
            else:
                connective = type(current)
            tasks.append((connective, negated))
            tasks.append((current.right, negated))
            tasks.append((current.left, negated))
        elif isinstance(current, TrueNode):
            results.append(FalseNode() if negated else current)
        elif isinstance(current, FalseNode):
            results.append(TrueNode() if negated else current)
        elif isinstance(current, SymbolNode):
            results.append(NotNode(current) if negated else current)
        elif isinstance(current, (ImplicNode, IffNode)):
            raise CnfInvariantError("Must eliminate implications and biconditionals before moving not inward")
        else:
            raise TypeError(f"Unsupported node: {current!r}")
    return results[0]


def _map_clauses(node: Prop, func: Callable[[Prop], Prop]) -> Prop:
    """Replace each clause hanging off the `&` spine of `node` with `func(clause)`."""
    return transform(node, lambda n: n if n.is_and() else func(n), descend=(AndNode,))


def _distribute_step(node: Prop) -> Prop:
    if isinstance(node, (ImplicNode, IffNode)):
        raise CnfInvariantError("Must eliminate implications and biconditionals before distributing")
    if not isinstance(node, OrNode):
        return node
    left, right = node.left, node.right
    if not left.is_and() and not right.is_and():
        return node
    # Left spine outermost, matching the left-first split of `(a & b) | (c & d)`.
    return _map_clauses(
        left,
        lambda lhs: _map_clauses(right, lambda rhs: OrNode(lhs.clone(), rhs.clone())),
    )


def distribute_or_over_and(node: Prop) -> Prop:
    """Distribute disjunctions over conjunctions, yielding a conjunction of clauses.

    When both operands of an `|` are conjunctions, the left one is split first.
    """
    return transform(node, _distribute_step)


def split_clause(node: Prop) -> list[Prop]:
    """Flatten the top-level `&` spine into its clauses without recursion."""
    stack = [node]
    clauses: list[Prop] = []
    while stack:
        prop = stack.pop()
        if not prop.is_and():
            clauses.append(prop)
            continue
        for part in (prop.left, prop.right):
            if part.is_and():
                stack.append(part)
            else:
                clauses.append(part)
    return clauses


def cnf(node: Prop) -> list[Prop]:
    """Convert a formula into its list of CNF clauses.

    The input is consumed: callers must not reuse it afterwards.
    """
    logger.debug("CNF_START: node=%s", type(node).__name__)
    node = eliminate_biconditionals(node)
    node = eliminate_implications(node)
    node = move_not_inward(node)
    node = distribute_or_over_and(node)
    clauses = split_clause(node)
    logger.debug("CNF_OK: clauses=%d", len(clauses))
    return clauses
