from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


class OperatorConfigError(ValueError):
    pass


REQUIRED_KEYS = {"AND", "OR", "IMPLIES", "IFF", "LPAREN", "RPAREN"}
KNOWN_KEYS = REQUIRED_KEYS | {"NOT", "TRUE", "FALSE"}

# Constants are matched exactly; "true" stays an ordinary symbol name.
CONSTANT_KEYS = {"TRUE", "FALSE"}


DEFAULT_CONFIG = {
    "AND": ["&"],
    "OR": ["|"],
    "IMPLIES": ["=>"],
    "IFF": ["<=>"],
    "NOT": ["~"],
    "LPAREN": ["("],
    "RPAREN": [")"],
    "TRUE": ["True"],
    "FALSE": ["False"],
}


def _default_config_path() -> Path:
    # core/operator_config.py -> project root -> config/operators.json
    return Path(__file__).resolve().parents[1] / "config" / "operators.json"


def _is_word_operator(token: str) -> bool:
    # Purely alphabetic tokens (e.g. AND/OR) are keywords matched case-insensitively.
    return token.isalpha()


def _normalize_token(key: str, token: str) -> str:
    token = token.strip()
    if key not in CONSTANT_KEYS and _is_word_operator(token):
        return token.upper()
    return token


@dataclass(frozen=True)
class OperatorConfig:
    """Validated operator configuration.

    `mapping` contains normalized tokens (keywords uppercased, symbols and constants unchanged).
    """

    mapping: dict[str, tuple[str, ...]]
    source_path: Path | None

    def summary(self) -> dict[str, list[str]]:
        # For logging/debugging only (keep it small).
        keys = ["AND", "OR", "IMPLIES", "IFF", "NOT", "LPAREN", "RPAREN", "TRUE", "FALSE"]
        return {k: list(self.mapping.get(k, ())) for k in keys if k in self.mapping}

    def classify(self, token: str) -> str | None:
        """Return the operator kind of a whitespace-delimited token, or None for a symbol."""
        for key, tokens in self.mapping.items():
            for candidate in tokens:
                if key in CONSTANT_KEYS or not _is_word_operator(candidate):
                    if token == candidate:
                        return key
                elif token.upper() == candidate:
                    return key
        return None

    @property
    def lparen_ops(self) -> tuple[str, ...]:
        return tuple(sorted(self.mapping.get("LPAREN", ()), key=len, reverse=True))

    @property
    def rparen_ops(self) -> tuple[str, ...]:
        return tuple(sorted(self.mapping.get("RPAREN", ()), key=len, reverse=True))

    def canonical(self, key: str) -> str:
        """First configured token of `key`, used when rendering formulas."""
        tokens = self.mapping.get(key)
        if not tokens:
            raise OperatorConfigError(f"no '{key}' token configured")
        return tokens[0]


_CACHE: dict[str, OperatorConfig] = {}


def _build_config(raw: object, source_path: Path | None) -> OperatorConfig:
    if not isinstance(raw, dict):
        raise OperatorConfigError("CONFIG_LOAD_FAILED: operator config JSON must be an object/dict")

    missing = REQUIRED_KEYS.difference(raw.keys())
    if missing:
        raise OperatorConfigError(f"CONFIG_LOAD_FAILED: missing required keys: {sorted(missing)}")

    unknown = set(raw.keys()).difference(KNOWN_KEYS)
    if unknown:
        raise OperatorConfigError(f"CONFIG_LOAD_FAILED: unknown keys: {sorted(unknown)}")

    def _iter_tokens(key: str, value: object) -> Iterable[str]:
        if not isinstance(value, list):
            raise OperatorConfigError("CONFIG_LOAD_FAILED: operator values must be lists of strings")
        for item in value:
            if not isinstance(item, str):
                raise OperatorConfigError("CONFIG_LOAD_FAILED: operator values must be strings")
            token = _normalize_token(key, item)
            if not token:
                raise OperatorConfigError("CONFIG_LOAD_FAILED: operator token must not be empty")
            if any(ch.isspace() for ch in token):
                raise OperatorConfigError(f"CONFIG_LOAD_FAILED: operator token '{token}' must not contain whitespace")
            yield token

    mapping: dict[str, tuple[str, ...]] = {}
    seen: dict[str, str] = {}
    for key, value in raw.items():
        tokens = tuple(_iter_tokens(key, value))
        # Optional keys may be empty (e.g. no NOT operator), required ones may not.
        if key in REQUIRED_KEYS and not tokens:
            raise OperatorConfigError(f"CONFIG_LOAD_FAILED: '{key}' must have at least one token")
        if tokens:
            mapping[key] = tokens
            for token in tokens:
                if token in seen and seen[token] != key:
                    raise OperatorConfigError(
                        f"CONFIG_LOAD_FAILED: duplicate token '{token}' in '{key}' and '{seen[token]}'"
                    )
                seen[token] = key

    return OperatorConfig(mapping=mapping, source_path=source_path)


def default_operator_config() -> OperatorConfig:
    return _build_config(DEFAULT_CONFIG, None)


def load_operator_config(path: Path | None = None, *, log_extra: dict[str, str] | None = None) -> OperatorConfig:
    """Load and validate operator config.

    Without an explicit path, `config/operators.json` at the project root is used
    when it exists, otherwise the built-in defaults.

    Special logs:
    - CONFIG_LOAD_START / CONFIG_LOAD_OK / CONFIG_LOAD_FAILED
    """
    if path is None and not _default_config_path().exists():
        if "<builtin>" not in _CACHE:
            _CACHE["<builtin>"] = default_operator_config()
        return _CACHE["<builtin>"]

    resolved = (path or _default_config_path()).resolve()
    cache_key = str(resolved)
    if cache_key in _CACHE:
        return _CACHE[cache_key]

    if log_extra:
        logger.info("CONFIG_LOAD_START: path=%s", resolved, extra=log_extra)
    else:
        logger.info("CONFIG_LOAD_START: path=%s", resolved)

    try:
        raw = json.loads(resolved.read_text(encoding="utf-8"))
    except Exception as exc:
        if log_extra:
            logger.error("CONFIG_LOAD_FAILED: path=%s error=%s", resolved, exc, exc_info=True, extra=log_extra)
        else:
            logger.error("CONFIG_LOAD_FAILED: path=%s error=%s", resolved, exc, exc_info=True)
        raise OperatorConfigError(f"CONFIG_LOAD_FAILED: could not load operator config at {resolved}") from exc

    try:
        config = _build_config(raw, resolved)
    except OperatorConfigError as exc:
        if log_extra:
            logger.error("CONFIG_LOAD_FAILED: path=%s error=%s", resolved, exc, extra=log_extra)
        else:
            logger.error("CONFIG_LOAD_FAILED: path=%s error=%s", resolved, exc)
        raise

    _CACHE[cache_key] = config

    summary = config.summary()
    if log_extra:
        logger.info("CONFIG_LOAD_OK: path=%s summary=%s", resolved, summary, extra=log_extra)
    else:
        logger.info("CONFIG_LOAD_OK: path=%s summary=%s", resolved, summary)

    return config
