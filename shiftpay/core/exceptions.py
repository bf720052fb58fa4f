# shiftpay/core/exceptions.py
"""
Exception hierarchy for pay and tax calculations.

Every error carries the stage that failed ("pay" or "tax") and the id of the
shift or pay period being processed, so callers can report which record to
fix or re-trigger.
"""

STAGE_PAY = "pay"
STAGE_TAX = "tax"

_REFERENCE_LABELS = {
    STAGE_PAY: "shift",
    STAGE_TAX: "pay period",
}


class PayrollError(Exception):
    """Base class for all domain errors."""

    code = "PAYROLL_ERROR"

    def __init__(
        self,
        detail: str,
        *,
        stage: str | None = None,
        reference: int | str | None = None,
        reference_kind: str | None = None,
    ):
        self.detail = detail
        self.stage = stage
        self.reference = reference
        self.reference_kind = reference_kind
        super().__init__(self._format())

    def _format(self) -> str:
        if self.stage is None:
            return self.detail
        label = self.reference_kind or _REFERENCE_LABELS.get(self.stage, "record")
        if self.reference is None:
            return f"[{self.stage}] {self.detail}"
        return f"[{self.stage}] {label} {self.reference}: {self.detail}"

    def with_context(
        self,
        *,
        stage: str,
        reference: int | str | None,
        reference_kind: str | None = None,
    ) -> "PayrollError":
        """Fill in stage/reference if the raiser did not know them."""
        if self.stage is None:
            self.stage = stage
        if self.reference is None:
            self.reference = reference
            self.reference_kind = reference_kind
        self.args = (self._format(),)
        return self

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "stage": self.stage,
            "reference": self.reference,
            "reference_kind": self.reference_kind or _REFERENCE_LABELS.get(self.stage),
            "detail": self.detail,
        }


class PreconditionError(PayrollError):
    """Input that can never produce a valid result. Not retried."""

    code = "PRECONDITION_FAILED"


class MalformedTableError(PreconditionError):
    """A bracket table that does not partition [0, inf)."""

    code = "MALFORMED_TABLE"


class NotFoundError(PayrollError):
    """Unknown pay period, shift, user or rate profile."""

    code = "NOT_FOUND"


class ConcurrencyConflictError(PayrollError):
    """Ledger update still conflicting after all retries."""

    code = "CONCURRENCY_CONFLICT"


class ConfigurationDegraded(PayrollError):
    """Coefficient table unavailable; the caller falls back to built-in tables."""

    code = "CONFIGURATION_DEGRADED"


class CoefficientStoreError(ConfigurationDegraded):
    """The coefficient store could not be read."""

    code = "COEFFICIENT_STORE_ERROR"


class StorageError(Exception):
    """Raised when seed data cannot be read or parsed."""
