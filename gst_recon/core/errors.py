from typing import Optional


class ReconciliationError(Exception):
    """Base class for errors raised by the reconciliation core."""


class RecordValidationError(ReconciliationError):
    """
    A single raw record failed standardization.
    Non-fatal: the batch drops the record, counts it and carries on.
    """

    def __init__(self, reason: str, record_id: Optional[str] = None, invoice_number: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.record_id = record_id
        self.invoice_number = invoice_number


class ConfigurationError(ReconciliationError):
    """Invalid tolerance, date strategy or scope. Fatal to the run."""
