from typing import Optional
from gst_recon.schemas.invoice import CanonicalInvoiceRecord
from gst_recon.schemas.reconciliation import ReconciliationOptions, ReconciliationStatus
from gst_recon.schemas.report import AmountTotals, PairTotals, ReconciliationSummary

PAIR_CATEGORIES = {
    ReconciliationStatus.PERFECT_MATCH: "perfect_match",
    ReconciliationStatus.TOLERANCE_MATCH: "tolerance_match",
    ReconciliationStatus.AMOUNT_MISMATCH: "amount_mismatch",
    ReconciliationStatus.POTENTIAL_MATCH: "potential_match",
}

def _add_record(totals: AmountTotals, record: CanonicalInvoiceRecord) -> None:
    totals.count += 1
    totals.taxable_amount = round(totals.taxable_amount + record.taxable_amount, 2)
    totals.igst = round(totals.igst + record.igst, 2)
    totals.cgst = round(totals.cgst + record.cgst, 2)
    totals.sgst = round(totals.sgst + record.sgst, 2)
    totals.total_tax = round(totals.total_tax + record.total_tax, 2)

def _merge_amounts(target: AmountTotals, other: AmountTotals) -> None:
    target.count += other.count
    for field in ("taxable_amount", "igst", "cgst", "sgst", "total_tax"):
        setattr(target, field, round(getattr(target, field) + getattr(other, field), 2))

def _merge_pairs(target: PairTotals, other: PairTotals) -> None:
    target.count += other.count
    _merge_amounts(target.local, other.local)
    _merge_amounts(target.portal, other.portal)

class SummaryAggregator:
    """
    Accumulates counts and monetary subtotals per outcome category as records
    are classified. Per-supplier aggregators are merged into the run-wide one.
    DOES NOT classify anything itself.
    """

    def __init__(self):
        self._summary = ReconciliationSummary()

    def add_local(self, record: CanonicalInvoiceRecord):
        _add_record(self._summary.total_local, record)

    def add_portal(self, record: CanonicalInvoiceRecord):
        _add_record(self._summary.total_portal, record)

    def add_pair(self, status: ReconciliationStatus, local: CanonicalInvoiceRecord, portal: CanonicalInvoiceRecord):
        pair: PairTotals = getattr(self._summary, PAIR_CATEGORIES[status])
        pair.count += 1
        _add_record(pair.local, local)
        _add_record(pair.portal, portal)

    def add_missing_in_portal(self, record: CanonicalInvoiceRecord):
        _add_record(self._summary.missing_in_portal, record)

    def add_missing_in_local(self, record: CanonicalInvoiceRecord):
        _add_record(self._summary.missing_in_local, record)

    def add_reverse_charge(self, record: CanonicalInvoiceRecord):
        _add_record(self._summary.reverse_charge, record)

    def merge(self, other: "SummaryAggregator"):
        for field in ("total_local", "total_portal", "missing_in_portal", "missing_in_local", "reverse_charge"):
            _merge_amounts(getattr(self._summary, field), getattr(other._summary, field))
        for field in PAIR_CATEGORIES.values():
            _merge_pairs(getattr(self._summary, field), getattr(other._summary, field))

    @property
    def summary(self) -> ReconciliationSummary:
        return self._summary

    def build(
        self,
        options: Optional[ReconciliationOptions] = None,
        **counts: int
    ) -> ReconciliationSummary:
        """Returns a copy of the accumulated summary with run-level counters and options filled in."""
        summary = self._summary.model_copy(deep=True)
        if options is not None:
            summary.tolerance_amount = options.tolerance_amount
            summary.tolerance_tax = options.tolerance_tax
            summary.date_strategy = options.date_strategy.value
            summary.scope = options.scope.value
        for name, value in counts.items():
            setattr(summary, name, value)
        return summary
