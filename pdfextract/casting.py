import itertools
from typing import Any

from pdfextract.utils import Matrix


def safe_int(o: Any) -> int | None:
    try:
        return int(o)
    except (TypeError, ValueError, OverflowError):
        return None


def safe_float(o: Any) -> float | None:
    try:
        return float(o)
    except (TypeError, ValueError, OverflowError):
        return None


def _safe_floats(values: tuple[Any, ...]) -> tuple[float, ...] | None:
    floats = tuple(safe_float(v) for v in values)
    if any(f is None for f in floats):
        return None
    return floats  # type: ignore[return-value]


def safe_matrix(a: Any, b: Any, c: Any, d: Any, e: Any, f: Any) -> Matrix | None:
    return _safe_floats((a, b, c, d, e, f))  # type: ignore[return-value]


def safe_matrix_list(value: Any) -> Matrix | None:
    try:
        values = list(itertools.islice(value, 6))
    except TypeError:
        return None

    if len(values) != 6:
        return None

    return safe_matrix(*values)
