from pydantic import BaseModel, Field
from datetime import datetime, timezone

# Run-wide reconciliation summary. Amounts are kept rounded to 2 decimals.
# Pair categories (matches, mismatches, potentials) count pairs and carry both sides' subtotals.

class AmountTotals(BaseModel):
    count: int = 0
    taxable_amount: float = 0.0
    igst: float = 0.0
    cgst: float = 0.0
    sgst: float = 0.0
    total_tax: float = 0.0

class PairTotals(BaseModel):
    count: int = 0
    local: AmountTotals = Field(default_factory=AmountTotals)
    portal: AmountTotals = Field(default_factory=AmountTotals)

class ReconciliationSummary(BaseModel):
    total_local: AmountTotals = Field(default_factory=AmountTotals)
    total_portal: AmountTotals = Field(default_factory=AmountTotals)
    perfect_match: PairTotals = Field(default_factory=PairTotals)
    tolerance_match: PairTotals = Field(default_factory=PairTotals)
    amount_mismatch: PairTotals = Field(default_factory=PairTotals)
    potential_match: PairTotals = Field(default_factory=PairTotals)
    missing_in_portal: AmountTotals = Field(default_factory=AmountTotals)
    missing_in_local: AmountTotals = Field(default_factory=AmountTotals)
    reverse_charge: AmountTotals = Field(default_factory=AmountTotals)

    invalid_local_count: int = 0
    invalid_portal_count: int = 0
    excluded_by_scope_local_count: int = 0
    excluded_by_scope_portal_count: int = 0

    total_suppliers_local: int = 0
    total_suppliers_portal: int = 0
    total_suppliers: int = 0

    tolerance_amount: float = 0.0
    tolerance_tax: float = 0.0
    date_strategy: str = "month"
    scope: str = "all"
    reconciliation_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
