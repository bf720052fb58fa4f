"""Bracket table validation, lookup and the linear withholding formula."""

from collections.abc import Sequence
from decimal import Decimal

from shiftpay.core.constants import ZERO
from shiftpay.core.exceptions import MalformedTableError
from shiftpay.core.models import TaxCoefficient


def validate_table(table: Sequence[TaxCoefficient]) -> list[TaxCoefficient]:
    """
    Check that a table partitions [0, inf) and return it sorted.

    The rows must share one scale, start at 0, each row must end where the
    next one starts, and only the last row may be unbounded.

    Raises:
        MalformedTableError: the table has gaps, overlaps or no unbounded row.
    """
    if not table:
        raise MalformedTableError("bracket table is empty")

    scales = {row.scale for row in table}
    if len(scales) > 1:
        raise MalformedTableError(f"bracket table mixes scales: {sorted(scales)}")

    rows = sorted(table, key=lambda row: row.earnings_from)
    scale = rows[0].scale

    if rows[0].earnings_from != ZERO:
        raise MalformedTableError(f"{scale}: first bracket starts at {rows[0].earnings_from}, not 0")

    for current, following in zip(rows, rows[1:]):
        if current.earnings_to is None:
            raise MalformedTableError(f"{scale}: unbounded bracket at {current.earnings_from} is not the last row")
        if current.earnings_to != following.earnings_from:
            raise MalformedTableError(
                f"{scale}: bracket ending at {current.earnings_to} is followed by one "
                f"starting at {following.earnings_from}"
            )

    for row in rows:
        if row.earnings_to is not None and row.earnings_to <= row.earnings_from:
            raise MalformedTableError(f"{scale}: empty bracket [{row.earnings_from}, {row.earnings_to})")

    if rows[-1].earnings_to is not None:
        raise MalformedTableError(f"{scale}: last bracket ends at {rows[-1].earnings_to}; expected unbounded")

    return rows


def resolve(income: Decimal, table: Sequence[TaxCoefficient]) -> TaxCoefficient:
    """
    Row of a validated table that contains income.

    Negative income is looked up as zero.

    Raises:
        MalformedTableError: no row matches.
    """
    lookup = max(income, ZERO)
    for row in table:
        if row.contains(lookup):
            return row
    raise MalformedTableError(f"no bracket contains income {income}")


def withholding_for(income: Decimal, row: TaxCoefficient) -> Decimal:
    """max(0, income * A - B)."""
    return max(income * row.coefficient_a - row.coefficient_b, ZERO)


def calculate_withholding(income: Decimal, table: Sequence[TaxCoefficient]) -> Decimal:
    return withholding_for(income, resolve(income, table))
