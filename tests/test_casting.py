from typing import Any

import pytest

from pdfextract.casting import safe_float, safe_int, safe_matrix, safe_matrix_list
from pdfextract.utils import Matrix


@pytest.mark.parametrize(
    ("arg", "expected"),
    [
        ([1, 0, 0, 1, 0, 0], (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)),
        ([1, 2, 3, 4, 5, "6"], (1.0, 2.0, 3.0, 4.0, 5.0, 6.0)),
        ([1, 0, 0, 1, 0, None], None),
        ([1, 0, 0, 1], None),
        ([1, 0, 0, 1, 0, 0, 7], (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)),
        (None, None),
        (object(), None),
    ],
)
def test_safe_matrix_list(arg: Any, expected: Matrix | None) -> None:
    assert safe_matrix_list(arg) == expected


def test_safe_matrix() -> None:
    assert safe_matrix(1, 0, 0, 1, 10, "x") is None
    assert safe_matrix(2, 0, 0, 2, 10, 20.5) == (2.0, 0.0, 0.0, 2.0, 10.0, 20.5)


@pytest.mark.parametrize(
    ("arg", "expected"),
    [
        (0, 0.0),
        (1, 1.0),
        ("0", 0.0),
        ("1.5", 1.5),
        (None, None),
        (object(), None),
        (2**1024, None),  # Integer too large to convert to float
    ],
)
def test_safe_float(arg: Any, expected: float | None) -> None:
    assert safe_float(arg) == expected


@pytest.mark.parametrize(
    ("arg", "expected"),
    [
        (b"0000000017", 17),
        ("12", 12),
        (3.7, 3),
        (b"n", None),
        (None, None),
        (float("inf"), None),
    ],
)
def test_safe_int(arg: Any, expected: int | None) -> None:
    assert safe_int(arg) == expected
