"""
Tax withholding - gross pay in, withholding, net pay and year-to-date out.

TaxWithholdingEngine does the arithmetic; the ledger and coefficient stores
are the pluggable storage around it.
"""

from .brackets import calculate_withholding, resolve, validate_table, withholding_for
from .cache import TTLCache
from .coefficient_store import (
    CachedCoefficientStore,
    CoefficientStore,
    SqlCoefficientStore,
    StaticCoefficientStore,
)
from .engine import TaxWithholdingEngine
from .ledger import InMemoryYearToDateLedger, SqlYearToDateLedger, YearToDateLedger
from .scales import medicare_rate, resolve_scale, resolve_stsl_scale
from .tax_year import format_tax_year, normalize_tax_year, parse_tax_year, tax_year_bounds, tax_year_for_date

__all__ = [
    "CachedCoefficientStore",
    "CoefficientStore",
    "InMemoryYearToDateLedger",
    "SqlCoefficientStore",
    "SqlYearToDateLedger",
    "StaticCoefficientStore",
    "TTLCache",
    "TaxWithholdingEngine",
    "YearToDateLedger",
    "calculate_withholding",
    "format_tax_year",
    "medicare_rate",
    "normalize_tax_year",
    "parse_tax_year",
    "resolve",
    "resolve_scale",
    "resolve_stsl_scale",
    "tax_year_bounds",
    "tax_year_for_date",
    "validate_table",
    "withholding_for",
]
