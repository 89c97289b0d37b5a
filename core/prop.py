from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Iterable, Iterator


Model = dict[str, bool]


@dataclass(frozen=True)
class Prop:
    """Base class of the propositional expression tree.

    Nodes are immutable; rewriting builds new nodes. Subtrees are never shared
    between two positions of a tree, duplication goes through `clone()`.
    """

    def clone(self) -> Prop:
        return transform(self, _copy_leaf)

    def is_and(self) -> bool:
        return isinstance(self, AndNode)

    def is_literal(self) -> bool:
        if isinstance(self, SymbolNode):
            return True
        return isinstance(self, NotNode) and isinstance(self.child, SymbolNode)

    # Operator DSL: a & b, a | b, ~a, a >> b (implication), a % b (biconditional)
    def __and__(self, other: Prop) -> Prop:
        return AndNode(self, other)

    def __or__(self, other: Prop) -> Prop:
        return OrNode(self, other)

    def __invert__(self) -> Prop:
        return NotNode(self)

    def __rshift__(self, other: Prop) -> Prop:
        return ImplicNode(self, other)

    def __mod__(self, other: Prop) -> Prop:
        return IffNode(self, other)


@dataclass(frozen=True)
class TrueNode(Prop):
    pass


@dataclass(frozen=True)
class FalseNode(Prop):
    pass


@dataclass(frozen=True)
class SymbolNode(Prop):
    name: str


@dataclass(frozen=True)
class NotNode(Prop):
    child: Prop


@dataclass(frozen=True)
class BinaryNode(Prop):
    left: Prop
    right: Prop


@dataclass(frozen=True)
class AndNode(BinaryNode):
    pass


@dataclass(frozen=True)
class OrNode(BinaryNode):
    pass


@dataclass(frozen=True)
class ImplicNode(BinaryNode):
    pass


@dataclass(frozen=True)
class IffNode(BinaryNode):
    pass


def true_literal() -> Prop:
    return TrueNode()


def false_literal() -> Prop:
    return FalseNode()


def symbol(name: str) -> Prop:
    return SymbolNode(name)


def not_(child: Prop) -> Prop:
    return NotNode(child)


def and_(left: Prop, right: Prop) -> Prop:
    return AndNode(left, right)


def or_(left: Prop, right: Prop) -> Prop:
    return OrNode(left, right)


def implic(left: Prop, right: Prop) -> Prop:
    return ImplicNode(left, right)


def iff(left: Prop, right: Prop) -> Prop:
    return IffNode(left, right)


def conjoin(props: Iterable[Prop]) -> Prop:
    """Fold props into a right-nested And; an empty input is `True`."""
    items = list(props)
    if not items:
        return TrueNode()
    node = items[-1]
    for item in reversed(items[:-1]):
        node = AndNode(item, node)
    return node


def _copy_leaf(node: Prop) -> Prop:
    if isinstance(node, (NotNode, BinaryNode)):
        return node
    return replace(node)


def transform(
    node: Prop,
    rewrite: Callable[[Prop], Prop],
    descend: tuple[type[Prop], ...] | None = None,
) -> Prop:
    """Rebuild a tree bottom-up with an explicit stack.

    Nodes of a type in `descend` (default: every compound node) are rebuilt
    from their rewritten children and then handed to `rewrite`; all other
    nodes go to `rewrite` unchanged.
    """
    descend = descend or (NotNode, BinaryNode)
    tasks: list[tuple[Prop, bool]] = [(node, False)]
    results: list[Prop] = []
    while tasks:
        current, expanded = tasks.pop()
        if not isinstance(current, descend):
            results.append(rewrite(current))
        elif isinstance(current, NotNode):
            if expanded:
                results.append(rewrite(NotNode(results.pop())))
            else:
                tasks.append((current, True))
                tasks.append((current.child, False))
        elif expanded:
            right = results.pop()
            left = results.pop()
            results.append(rewrite(type(current)(left, right)))
        else:
            tasks.append((current, True))
            tasks.append((current.right, False))
            tasks.append((current.left, False))
    return results[0]


_CONNECTIVES: dict[type[Prop], Callable[[bool, bool], bool]] = {
    AndNode: lambda left, right: left and right,
    OrNode: lambda left, right: left or right,
    ImplicNode: lambda left, right: not left or right,
    IffNode: lambda left, right: left == right,
}


def evaluate(node: Prop, model: Model) -> bool:
    tasks: list[tuple[Prop, bool]] = [(node, False)]
    values: list[bool] = []
    while tasks:
        current, expanded = tasks.pop()
        if isinstance(current, TrueNode):
            values.append(True)
        elif isinstance(current, FalseNode):
            values.append(False)
        elif isinstance(current, SymbolNode):
            # Closed-world assumption: anything not in the model is false.
            values.append(model.get(current.name, False))
        elif isinstance(current, NotNode):
            if expanded:
                values.append(not values.pop())
            else:
                tasks.append((current, True))
                tasks.append((current.child, False))
        elif isinstance(current, BinaryNode):
            if expanded:
                right = values.pop()
                left = values.pop()
                values.append(_CONNECTIVES[type(current)](left, right))
            else:
                tasks.append((current, True))
                tasks.append((current.right, False))
                tasks.append((current.left, False))
        else:
            raise TypeError(f"Unsupported node: {current!r}")
    return values[0]


def iterate_symbols(node: Prop) -> Iterator[SymbolNode]:
    """Symbols left to right."""
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, SymbolNode):
            yield current
        elif isinstance(current, NotNode):
            stack.append(current.child)
        elif isinstance(current, BinaryNode):
            stack.append(current.right)
            stack.append(current.left)


def symbols(node: Prop) -> set[str]:
    return {sym.name for sym in iterate_symbols(node)}
