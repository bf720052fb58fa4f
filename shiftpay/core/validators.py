from fastapi import HTTPException, status

from shiftpay.core.tax.tax_year import normalize_tax_year


def validate_tax_year(tax_year: str) -> str:
    """
    Normalize a tax year query parameter to "YYYY-YY".

    Accepts "2024-25" and "2024-2025". Anything else gives HTTP 400.
    """
    try:
        return normalize_tax_year(tax_year)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid tax year: {tax_year!r}",
        )
