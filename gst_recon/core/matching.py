"""
Per-supplier multi-pass matching.

Records of one supplier are addressed by their index in the group lists.
Each pass walks the unresolved local indices in group order and scans the
unresolved portal indices in group order; the first eligible pair wins.
A record leaves the worklist as soon as it is classified, so every record
lands in exactly one outcome.
"""
from typing import Iterable, List, NamedTuple, Sequence, Tuple

from gst_recon.core.normalization import check_similarity
from gst_recon.core.summary import SummaryAggregator
from gst_recon.schemas.invoice import CanonicalInvoiceRecord, DocumentType
from gst_recon.schemas.reconciliation import (
    DateStrategy,
    PotentialMatch,
    ReconciliationMatch,
    ReconciliationMismatch,
    ReconciliationOptions,
    ReconciliationScope,
    ReconciliationStatus,
    SupplierBucket,
    ToleranceDetails,
)

# Differences below this count as exact for the PERFECT grade
FLOAT_EPSILON = 0.001

SCOPE_DOCUMENT_TYPES = {
    ReconciliationScope.B2B: {DocumentType.INVOICE},
    ReconciliationScope.CDNR: {DocumentType.CREDIT_NOTE, DocumentType.DEBIT_NOTE},
}


class SupplierOutcome(NamedTuple):
    bucket: SupplierBucket
    summary: SummaryAggregator


def split_reverse_charge(
    portal_records: Iterable[CanonicalInvoiceRecord],
) -> Tuple[List[CanonicalInvoiceRecord], List[CanonicalInvoiceRecord]]:
    """Returns (matchable, reverse_charge). Reverse-charge records are never matched or reported missing."""
    matchable, reverse_charge = [], []
    for record in portal_records:
        (reverse_charge if record.reverse_charge else matchable).append(record)
    return matchable, reverse_charge


def filter_scope(
    records: Iterable[CanonicalInvoiceRecord], scope: ReconciliationScope
) -> Tuple[List[CanonicalInvoiceRecord], int]:
    """Returns the records inside the scope and how many were left out. Unset types only pass 'all'."""
    records = list(records)
    if scope == ReconciliationScope.ALL:
        return records, 0
    allowed = SCOPE_DOCUMENT_TYPES[scope]
    kept = [r for r in records if r.document_type in allowed]
    return kept, len(records) - len(kept)


def dates_match(local: CanonicalInvoiceRecord, portal: CanonicalInvoiceRecord, strategy: DateStrategy) -> bool:
    if strategy == DateStrategy.FINANCIAL_YEAR:
        left, right = local.financial_year, portal.financial_year
    elif strategy == DateStrategy.QUARTER:
        left, right = local.date_quarter, portal.date_quarter
    else:
        left, right = local.date_month_year, portal.date_month_year
    return bool(left) and left == right


def amount_differences(local: CanonicalInvoiceRecord, portal: CanonicalInvoiceRecord) -> Tuple[float, float]:
    """Signed (taxable, total tax) differences, local - portal, unrounded."""
    return local.taxable_amount - portal.taxable_amount, local.total_tax - portal.total_tax


def within_tolerance(taxable_diff: float, tax_diff: float, options: ReconciliationOptions) -> bool:
    # Compare on cents so float noise never decides a boundary case
    return (
        round(abs(taxable_diff), 2) <= options.tolerance_amount
        and round(abs(tax_diff), 2) <= options.tolerance_tax
    )


def _classify_exact(
    local: CanonicalInvoiceRecord,
    portal: CanonicalInvoiceRecord,
    options: ReconciliationOptions,
    bucket: SupplierBucket,
    summary: SummaryAggregator,
):
    taxable_diff, tax_diff = amount_differences(local, portal)

    if not within_tolerance(taxable_diff, tax_diff, options):
        bucket.amount_mismatches.append(ReconciliationMismatch(
            local_record=local,
            portal_record=portal,
            taxable_amount_difference=round(taxable_diff, 2),
            total_tax_difference=round(tax_diff, 2),
        ))
        summary.add_pair(ReconciliationStatus.AMOUNT_MISMATCH, local, portal)
        return

    is_perfect_taxable = abs(taxable_diff) < FLOAT_EPSILON
    is_perfect_tax = abs(tax_diff) < FLOAT_EPSILON
    same_date = local.date == portal.date
    status = (
        ReconciliationStatus.PERFECT_MATCH
        if is_perfect_taxable and is_perfect_tax and same_date
        else ReconciliationStatus.TOLERANCE_MATCH
    )
    match = ReconciliationMatch(
        local_record=local,
        portal_record=portal,
        status=status,
        tolerance_details=ToleranceDetails(
            taxable_amount=not is_perfect_taxable,
            tax_amount=not is_perfect_tax,
            raw_invoice_number_differs=local.invoice_number_raw != portal.invoice_number_raw,
            exact_date_differs=not same_date,
        ),
        taxable_amount_difference=round(taxable_diff, 2),
        total_tax_difference=round(tax_diff, 2),
    )
    if status == ReconciliationStatus.PERFECT_MATCH:
        bucket.perfect_matches.append(match)
    else:
        bucket.tolerance_matches.append(match)
    summary.add_pair(status, local, portal)


def match_supplier(
    supplier_key: str,
    local_records: Sequence[CanonicalInvoiceRecord],
    portal_records: Sequence[CanonicalInvoiceRecord],
    options: ReconciliationOptions,
) -> SupplierOutcome:
    """
    Classifies every record of one supplier.

    Pass 1 pairs equal normalized invoice numbers (match, tolerance match or
    amount mismatch). Pass 2 pairs leftovers whose amounts agree and whose raw
    invoice numbers are similar. Whatever is left is missing on the other side.
    Both passes only pair records whose dates agree under the date strategy.
    """
    supplier_name = next(
        (r.supplier_name for r in (*local_records, *portal_records) if r.supplier_name), None
    )
    bucket = SupplierBucket(supplier_key=supplier_key, supplier_name=supplier_name)
    summary = SummaryAggregator()
    for record in local_records:
        summary.add_local(record)
    for record in portal_records:
        summary.add_portal(record)

    open_local = list(range(len(local_records)))
    open_portal = list(range(len(portal_records)))

    # Pass 1: exact invoice number
    still_open = []
    for i in open_local:
        local = local_records[i]
        for position, j in enumerate(open_portal):
            portal = portal_records[j]
            if not dates_match(local, portal, options.date_strategy):
                continue
            if not local.invoice_number_normalized or local.invoice_number_normalized != portal.invoice_number_normalized:
                continue
            del open_portal[position]
            _classify_exact(local, portal, options, bucket, summary)
            break
        else:
            still_open.append(i)
    open_local = still_open

    # Pass 2: amounts agree, invoice numbers merely similar
    still_open = []
    for i in open_local:
        local = local_records[i]
        for position, j in enumerate(open_portal):
            portal = portal_records[j]
            if not dates_match(local, portal, options.date_strategy):
                continue
            taxable_diff, tax_diff = amount_differences(local, portal)
            if not within_tolerance(taxable_diff, tax_diff, options):
                continue
            similarity = check_similarity(local.invoice_number_raw, portal.invoice_number_raw)
            if similarity is None:
                continue
            del open_portal[position]
            bucket.potential_matches.append(PotentialMatch(
                local_record=local,
                portal_record=portal,
                similarity=similarity,
                taxable_amount_difference=round(taxable_diff, 2),
                total_tax_difference=round(tax_diff, 2),
            ))
            summary.add_pair(ReconciliationStatus.POTENTIAL_MATCH, local, portal)
            break
        else:
            still_open.append(i)
    open_local = still_open

    # Final pass: residuals
    for i in open_local:
        bucket.missing_in_portal.append(local_records[i])
        summary.add_missing_in_portal(local_records[i])
    for j in open_portal:
        bucket.missing_in_local.append(portal_records[j])
        summary.add_missing_in_local(portal_records[j])

    return SupplierOutcome(bucket=bucket, summary=summary)
