"""Maps tax settings to withholding scales."""

from decimal import Decimal

from shiftpay.core.constants import MEDICARE_LEVY_RATES
from shiftpay.core.models import StslScale, TaxScale, TaxSettings


def resolve_scale(settings: TaxSettings) -> TaxScale:
    """
    Withholding scale for a taxpayer.

    No TFN wins over everything, then foreign residency, then whether the
    tax-free threshold is claimed. Medicare exemptions do not select a scale;
    the levy is computed separately.
    """
    if not settings.has_tax_file_number:
        return TaxScale.SCALE_4
    if settings.is_foreign_resident:
        return TaxScale.SCALE_3
    if settings.claimed_tax_free_threshold:
        return TaxScale.SCALE_2
    return TaxScale.SCALE_1


def resolve_stsl_scale(settings: TaxSettings) -> StslScale:
    if settings.claimed_tax_free_threshold or settings.is_foreign_resident:
        return StslScale.WITH_TFT_OR_FR
    return StslScale.NO_TFT


def medicare_rate(settings: TaxSettings) -> Decimal:
    return MEDICARE_LEVY_RATES[settings.medicare_exemption.value]
