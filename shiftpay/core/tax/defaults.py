"""
Built-in coefficient tables used when the coefficient store has none.

Weekly earnings brackets for the 2024-25 tax year. The supplementary (STSL)
fallback is empty: without stored STSL rows nothing is withheld for it and
the result is flagged as using fallback tables.
"""

from typing import Final

from shiftpay.core.constants import FALLBACK_TAX_YEAR
from shiftpay.core.models import StslScale, TaxCoefficient, TaxScale
from shiftpay.core.types import CoefficientRow


def _row(scale: TaxScale, earnings_from: str, earnings_to: str | None, a: str, b: str) -> CoefficientRow:
    return {
        "scale": scale.value,
        "earnings_from": earnings_from,
        "earnings_to": earnings_to,
        "coefficient_a": a,
        "coefficient_b": b,
    }


#: Rows per scale for FALLBACK_TAX_YEAR.
DEFAULT_TAX_COEFFICIENTS: Final[dict[TaxScale, list[CoefficientRow]]] = {
    TaxScale.SCALE_1: [
        _row(TaxScale.SCALE_1, "0", "88", "0.19", "0"),
        _row(TaxScale.SCALE_1, "88", "371", "0.2348", "12.7692"),
        _row(TaxScale.SCALE_1, "371", "515", "0.219", "6.5385"),
        _row(TaxScale.SCALE_1, "515", "721", "0.3477", "72.5385"),
        _row(TaxScale.SCALE_1, "721", "1282", "0.45", "146.0769"),
        _row(TaxScale.SCALE_1, "1282", None, "0.45", "146.0769"),
    ],
    TaxScale.SCALE_2: [
        _row(TaxScale.SCALE_2, "0", "371", "0", "0"),
        _row(TaxScale.SCALE_2, "371", "515", "0.19", "70.5385"),
        _row(TaxScale.SCALE_2, "515", "721", "0.2348", "93.4615"),
        _row(TaxScale.SCALE_2, "721", "1282", "0.219", "82.1154"),
        _row(TaxScale.SCALE_2, "1282", "2307", "0.3477", "247.1154"),
        _row(TaxScale.SCALE_2, "2307", None, "0.45", "482.6731"),
    ],
    TaxScale.SCALE_3: [
        _row(TaxScale.SCALE_3, "0", "2596", "0.3", "0"),
        _row(TaxScale.SCALE_3, "2596", "3653", "0.37", "181.7308"),
        _row(TaxScale.SCALE_3, "3653", None, "0.45", "474.0385"),
    ],
    TaxScale.SCALE_4: [
        _row(TaxScale.SCALE_4, "0", None, "0.47", "0"),
    ],
}

#: STSL rows per STSL scale for FALLBACK_TAX_YEAR.
DEFAULT_STSL_COEFFICIENTS: Final[dict[StslScale, list[CoefficientRow]]] = {
    StslScale.WITH_TFT_OR_FR: [],
    StslScale.NO_TFT: [],
}


def fallback_tax_table(scale: TaxScale) -> list[TaxCoefficient]:
    """Built-in table for a scale, empty if there is none."""
    return [TaxCoefficient(**row) for row in DEFAULT_TAX_COEFFICIENTS.get(scale, [])]


def fallback_stsl_table(scale: StslScale) -> list[TaxCoefficient]:
    return [TaxCoefficient(**row) for row in DEFAULT_STSL_COEFFICIENTS.get(scale, [])]


__all__ = [
    "DEFAULT_STSL_COEFFICIENTS",
    "DEFAULT_TAX_COEFFICIENTS",
    "FALLBACK_TAX_YEAR",
    "fallback_stsl_table",
    "fallback_tax_table",
]
