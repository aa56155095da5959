"""
Print duration estimate stored on each print job.

    minutes = ceil(pages * copies * PER_PAGE + (color ? pages * COLOR_PENALTY : 0))

Decimal arithmetic keeps the result exact: with floats 10 * 0.3 is
3.0000000000000004 and the ceiling would jump a whole minute.
"""
import math
from decimal import Decimal
from typing import Optional

from constants import COLOR_PENALTY_MINUTES, PER_PAGE_MINUTES


def estimate_print_duration(
    page_count: Optional[int] = None,
    copies: Optional[int] = 1,
    is_color: bool = False,
    color_page_count: Optional[int] = None,
) -> int:
    """
    Estimated print time in whole minutes, rounded up.

    page_count defaults to 1 when unknown. color_page_count overrides the
    number of pages charged the color penalty (mixed-color documents);
    when omitted, is_color charges every page.
    """
    pages = Decimal(page_count or 1)
    copies = Decimal(copies or 1)

    minutes = pages * copies * PER_PAGE_MINUTES
    if color_page_count is not None:
        minutes += Decimal(color_page_count) * COLOR_PENALTY_MINUTES
    elif is_color:
        minutes += pages * COLOR_PENALTY_MINUTES

    return math.ceil(minutes)


def estimate_for_options(printing_options) -> int:
    """Estimate from a PrintingOptions record."""
    color_pages = None
    if printing_options.color == "mixed":
        color_pages = printing_options.color_page_count
    return estimate_print_duration(
        page_count=printing_options.page_count,
        copies=printing_options.copies,
        is_color=printing_options.is_color,
        color_page_count=color_pages,
    )
