from typing import Dict, Iterable, List
from gst_recon.schemas.invoice import CanonicalInvoiceRecord

UNKNOWN_SUPPLIER = "UNKNOWN"

def supplier_key_of(record: CanonicalInvoiceRecord) -> str:
    return (record.supplier_key or "").strip().upper() or UNKNOWN_SUPPLIER

def group_by_supplier(records: Iterable[CanonicalInvoiceRecord]) -> Dict[str, List[CanonicalInvoiceRecord]]:
    """
    Partitions records by supplier key.
    Keys keep first-encounter order and each group keeps input order,
    which is the tie-break order used by the matching passes.
    """
    groups: Dict[str, List[CanonicalInvoiceRecord]] = {}
    for record in records:
        groups.setdefault(supplier_key_of(record), []).append(record)
    return groups
