from __future__ import annotations

from datetime import datetime
from pathlib import Path
import re

from core.operator_config import DEFAULT_CONFIG, OperatorConfig, OperatorConfigError, default_operator_config
from core.prop import (
    AndNode,
    BinaryNode,
    FalseNode,
    IffNode,
    ImplicNode,
    NotNode,
    OrNode,
    Prop,
    SymbolNode,
    TrueNode,
)


INFIX_KEYS = {
    AndNode: "AND",
    OrNode: "OR",
    ImplicNode: "IMPLIES",
    IffNode: "IFF",
}

TREE_LABELS = {
    TrueNode: "True",
    FalseNode: "False",
    NotNode: "Not",
    AndNode: "And",
    OrNode: "Or",
    ImplicNode: "Implic",
    IffNode: "Iff",
}


def natural_key(text: str) -> list[object]:
    parts: list[object] = []
    for piece in re.split(r"(\d+)", text):
        if piece.isdigit():
            parts.append(int(piece))
        else:
            parts.append(piece.lower())
    return parts


def sanitize_filename(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", name.strip())
    return cleaned.strip("_") or "output"


def create_run_output_dir(output_root: str) -> Path:
    """Create a per-run output directory under the user-selected root folder.

    Folder name format: "YYYY-MM-DD HH-mm-ss-fff" (Windows-safe; no ":")
    If the folder already exists, suffixes "_1", "_2", ... are appended.
    """
    root = Path(output_root).expanduser()
    root.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    ms = now.microsecond // 1000
    base_name = f"{now.strftime('%Y-%m-%d %H-%M-%S')}-{ms:03d}"

    candidate = root / base_name
    if not candidate.exists():
        candidate.mkdir()
        return candidate.resolve()

    suffix = 1
    while True:
        candidate = root / f"{base_name}_{suffix}"
        if not candidate.exists():
            candidate.mkdir()
            return candidate.resolve()
        suffix += 1


def _render_token(op_config: OperatorConfig, key: str) -> str:
    try:
        return op_config.canonical(key)
    except OperatorConfigError:
        # Optional kinds (NOT, TRUE, FALSE) fall back to the built-in token.
        return DEFAULT_CONFIG[key][0]


def to_infix(node: Prop, op_config: OperatorConfig | None = None) -> str:
    """Render a formula with the first configured token of each operator.

    Tokens are space-separated and compound operands parenthesized, so the
    output parses back to the same tree under the same operator config as
    long as that config defines every kind the tree uses.
    """
    op_config = op_config or default_operator_config()
    parts: list[str] = []
    # A task is either literal text or a (node, nested) pair still to render.
    tasks: list[str | tuple[Prop, bool]] = [(node, False)]
    while tasks:
        task = tasks.pop()
        if isinstance(task, str):
            parts.append(task)
            continue
        current, nested = task
        if isinstance(current, TrueNode):
            parts.append(_render_token(op_config, "TRUE"))
        elif isinstance(current, FalseNode):
            parts.append(_render_token(op_config, "FALSE"))
        elif isinstance(current, SymbolNode):
            parts.append(current.name)
        elif isinstance(current, NotNode):
            parts.append(_render_token(op_config, "NOT") + " ")
            tasks.append((current.child, True))
        elif isinstance(current, BinaryNode):
            if nested:
                parts.append(_render_token(op_config, "LPAREN"))
                tasks.append(_render_token(op_config, "RPAREN"))
            tasks.append((current.right, True))
            tasks.append(f" {_render_token(op_config, INFIX_KEYS[type(current)])} ")
            tasks.append((current.left, True))
        else:
            raise TypeError(f"Unsupported node: {current!r}")
    return "".join(parts)


def format_tree(node: Prop, depth: int = 0) -> str:
    """One node per line, children indented by a tab."""
    lines: list[str] = []
    stack = [(node, depth)]
    while stack:
        current, level = stack.pop()
        label = current.name if isinstance(current, SymbolNode) else TREE_LABELS[type(current)]
        lines.append("\t" * level + label)
        if isinstance(current, NotNode):
            stack.append((current.child, level + 1))
        elif isinstance(current, BinaryNode):
            stack.append((current.right, level + 1))
            stack.append((current.left, level + 1))
    return "\n".join(lines)


def clause_literals(clause: Prop) -> list[Prop]:
    """Leaves of an `|`-tree clause, left to right."""
    literals: list[Prop] = []
    stack = [clause]
    while stack:
        node = stack.pop()
        if isinstance(node, OrNode):
            stack.append(node.right)
            stack.append(node.left)
        else:
            literals.append(node)
    return literals


def clause_to_text(clause: Prop, op_config: OperatorConfig | None = None) -> str:
    op_config = op_config or default_operator_config()
    separator = f" {_render_token(op_config, 'OR')} "
    return separator.join(to_infix(literal, op_config) for literal in clause_literals(clause))
