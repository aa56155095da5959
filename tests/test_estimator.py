"""
Test: print duration estimates are exact and deterministic.
"""
import math

import pytest

from models import PrintingOptions
from services.estimator import estimate_for_options, estimate_print_duration


def test_black_and_white_scales_with_copies():
    assert estimate_print_duration(page_count=10, copies=2, is_color=False) == 10


def test_color_adds_penalty_per_page():
    # 10 * 0.5 + 10 * 0.3 = 5 + 3
    assert estimate_print_duration(page_count=10, copies=1, is_color=True) == 8


def test_unknown_page_count_defaults_to_one_page():
    # 0.5 minutes, rounded up
    assert estimate_print_duration(page_count=None, copies=1, is_color=False) == 1


def test_missing_copies_counts_as_one():
    assert estimate_print_duration(page_count=4, copies=None) == 2


@pytest.mark.parametrize("pages,copies,is_color", [
    (1, 1, False), (3, 1, True), (7, 3, True), (10, 1, True), (33, 2, False), (100, 100, True),
])
def test_matches_formula_without_float_drift(pages, copies, is_color):
    # Integer tenths of a minute: 5 per page-copy, 3 per color page
    tenths = pages * copies * 5 + (pages * 3 if is_color else 0)
    expected = -(-tenths // 10)
    assert estimate_print_duration(pages, copies, is_color) == expected
    assert expected >= math.ceil(pages * copies * 0.5)


def test_mixed_color_charges_only_listed_color_pages():
    options = PrintingOptions.from_dict({
        'color': 'mixed',
        'copies': 1,
        'page_count': 10,
        'page_colors': {'color_pages': [1, 2], 'bw_pages': [3, 4, 5, 6, 7, 8, 9, 10]},
    })
    # 5 + 2 * 0.3 = 5.6 -> 6
    assert estimate_for_options(options) == 6


def test_options_estimate_uses_color_flag():
    options = PrintingOptions.from_dict({'color': 'color', 'copies': 1, 'page_count': 10})
    assert estimate_for_options(options) == 8
