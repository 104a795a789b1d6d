# File: ddlapi/utils.py
"""
ddlapi - Utility Functions & Helpers
=====================================
Name transformations used for resource names and paths, file I/O helpers
for the CLI, and the ``Timer`` used to measure pipeline steps.

The name helpers are pure and called once per table/column/constraint, so
they are memoised with ``functools.lru_cache``.
"""

from __future__ import annotations

import functools
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]+")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)

# Irregular nouns that show up in table names
_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "axis": "axes",
    "analysis": "analyses",
    "status": "statuses",
    "address": "addresses",
    "category": "categories",
}
_IRREGULAR_SINGULARS: Dict[str, str] = {v: k for k, v in _IRREGULAR_PLURALS.items()}
_UNCOUNTABLE: FrozenSet[str] = frozenset({"news", "series", "species", "metadata", "equipment", "information"})


# ---------------------------------------------------------------------------
# Cached name transformations
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    """Lower-cased words of *name* in any casing style."""
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    return tuple(w.lower() for w in _SPLIT_WORDS_RE.findall(cleaned) if w)


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """
    Convert any identifier to kebab-case (URL path segments).

    Examples:
        >>> to_kebab_case("order_items")
        'order-items'
        >>> to_kebab_case("UserProfile")
        'user-profile'
    """
    return "-".join(_extract_words(name))


def _with_case_of(original: str, replacement: str) -> str:
    if original[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def _split_last(name: str) -> Tuple[str, str]:
    """Split ``order_item`` into ``('order_', 'item')`` so only the last word is inflected."""
    match: Optional[re.Match[str]] = re.search(r"([A-Za-z]+)$", name)
    if match is None:
        return name, ""
    return name[: match.start()], match.group(1)


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Naive English pluralisation of the last word.

    Examples:
        >>> to_plural("user")
        'users'
        >>> to_plural("order_category")
        'order_categories'
        >>> to_plural("users")
        'users'
    """
    head, word = _split_last(name)
    if not word:
        return name
    lower: str = word.lower()

    if lower in _UNCOUNTABLE or lower in _IRREGULAR_SINGULARS:
        return name
    if lower in _IRREGULAR_PLURALS:
        return head + _with_case_of(word, _IRREGULAR_PLURALS[lower])
    # Already plural-looking
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return name

    if lower.endswith(("sh", "ch", "x", "z", "ss", "us")):
        return name + "es"
    if lower.endswith("y") and len(word) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith("fe"):
        return name[:-2] + "ves"
    if lower.endswith("f") and not lower.endswith("ff"):
        return name[:-1] + "ves"
    return name + "s"


@functools.lru_cache(maxsize=None)
def to_singular(name: str) -> str:
    """
    Naive English singularisation of the last word (reverse of ``to_plural``).

    Examples:
        >>> to_singular("users")
        'user'
        >>> to_singular("order_categories")
        'order_category'
        >>> to_singular("addresses")
        'address'
    """
    head, word = _split_last(name)
    if not word:
        return name
    lower: str = word.lower()

    if lower in _UNCOUNTABLE or lower in _IRREGULAR_PLURALS:
        return name
    if lower in _IRREGULAR_SINGULARS:
        return head + _with_case_of(word, _IRREGULAR_SINGULARS[lower])

    if lower.endswith("ies") and len(word) > 3:
        return name[:-3] + "y"
    if lower.endswith("ves") and len(word) > 3:
        return name[:-3] + "f"
    if lower.endswith(("sses", "shes", "ches", "xes", "zes")):
        return name[:-2]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return name[:-1]
    return name


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def read_file(path: Path) -> str:
    """Read a UTF-8 text file (a leading BOM is dropped)."""
    return path.read_text(encoding="utf-8-sig")


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write *content* to *path*, creating parent directories.

    When *atomic* is True the content goes to a temporary file in the same
    directory first and is then moved over *path*.

    Returns the number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded: bytes = content.encode("utf-8")

    if atomic:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(encoded)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    else:
        path.write_bytes(encoded)

    logger.debug("Wrote %d bytes to %s", len(encoded), path)
    return len(encoded)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for pipeline steps.

    Usage:
        with Timer("parse") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_kebab_case",
    "to_plural",
    "to_singular",
    "read_file",
    "write_file",
    "Timer",
]

logger.debug("ddlapi.utils loaded — %d public symbols.", len(__all__))
