"""
Coefficient table stores.

The engine only needs "rows for (tax year, scale)". SqlCoefficientStore reads
them from the database, StaticCoefficientStore holds them in memory and
CachedCoefficientStore puts a TTLCache in front of either.
"""

import logging
from collections.abc import Iterable
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shiftpay.core.exceptions import CoefficientStoreError, MalformedTableError
from shiftpay.core.models import StslScale, TaxCoefficient, TaxScale
from shiftpay.core.tax.cache import TTLCache

logger = logging.getLogger(__name__)


class CoefficientStore(Protocol):
    def fetch_tax_coefficients(self, tax_year: str, scale: TaxScale) -> list[TaxCoefficient]: ...

    def fetch_stsl_coefficients(self, tax_year: str, scale: StslScale) -> list[TaxCoefficient]: ...


class SqlCoefficientStore:
    """Reads active coefficient rows from the database."""

    def __init__(self, session: Session):
        self.session = session

    def fetch_tax_coefficients(self, tax_year: str, scale: TaxScale) -> list[TaxCoefficient]:
        from shiftpay.database.database import TaxCoefficientRecord

        return self._fetch(TaxCoefficientRecord, tax_year, scale.value)

    def fetch_stsl_coefficients(self, tax_year: str, scale: StslScale) -> list[TaxCoefficient]:
        from shiftpay.database.database import StslCoefficientRecord

        return self._fetch(StslCoefficientRecord, tax_year, scale.value)

    def _fetch(self, model, tax_year: str, scale: str) -> list[TaxCoefficient]:
        try:
            records = (
                self.session.query(model)
                .filter(model.tax_year == tax_year, model.scale == scale, model.is_active.is_(True))
                .all()
            )
        except SQLAlchemyError as e:
            logger.exception("Failed to load %s for %s/%s", model.__tablename__, tax_year, scale)
            raise CoefficientStoreError(f"could not load {model.__tablename__} for {tax_year}/{scale}: {e}") from e

        try:
            rows = [
                TaxCoefficient(
                    scale=r.scale,
                    earnings_from=r.earnings_from,
                    earnings_to=r.earnings_to,
                    coefficient_a=r.coefficient_a,
                    coefficient_b=r.coefficient_b,
                )
                for r in records
            ]
        except ValidationError as e:
            raise MalformedTableError(f"invalid row in {model.__tablename__} {tax_year}/{scale}: {e}") from e

        # Bounds are stored as text, so sort numerically here
        return sorted(rows, key=lambda row: row.earnings_from)


class StaticCoefficientStore:
    """In-memory tables keyed by (tax year, scale value)."""

    def __init__(
        self,
        tax_tables: dict[tuple[str, str], Iterable[TaxCoefficient]] | None = None,
        stsl_tables: dict[tuple[str, str], Iterable[TaxCoefficient]] | None = None,
    ):
        self.tax_tables = {key: list(rows) for key, rows in (tax_tables or {}).items()}
        self.stsl_tables = {key: list(rows) for key, rows in (stsl_tables or {}).items()}

    def fetch_tax_coefficients(self, tax_year: str, scale: TaxScale) -> list[TaxCoefficient]:
        return list(self.tax_tables.get((tax_year, scale.value), []))

    def fetch_stsl_coefficients(self, tax_year: str, scale: StslScale) -> list[TaxCoefficient]:
        return list(self.stsl_tables.get((tax_year, scale.value), []))


class CachedCoefficientStore:
    """
    Read-through cache over another store.

    Only non-empty tables are cached, so a table added to the store shows
    up on the next call instead of after the TTL.
    """

    def __init__(self, store: CoefficientStore, cache: TTLCache):
        self.store = store
        self.cache = cache

    def fetch_tax_coefficients(self, tax_year: str, scale: TaxScale) -> list[TaxCoefficient]:
        return self._read_through(("tax", tax_year, scale.value), lambda: self.store.fetch_tax_coefficients(tax_year, scale))

    def fetch_stsl_coefficients(self, tax_year: str, scale: StslScale) -> list[TaxCoefficient]:
        return self._read_through(("stsl", tax_year, scale.value), lambda: self.store.fetch_stsl_coefficients(tax_year, scale))

    def invalidate_tax_year(self, tax_year: str) -> int:
        return self.cache.invalidate_tax_year(tax_year)

    def _read_through(self, key: tuple[str, str, str], load) -> list[TaxCoefficient]:
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)
        rows = load()
        if rows:
            self.cache.set(key, tuple(rows))
        return rows
