import itertools
import pytest

SUPPLIER_A = "29ABCDE1234F1Z5"
SUPPLIER_B = "27AAAAA0000A1Z5"

_ids = itertools.count(1)


def _record(prefix, invoice_number, taxable_amount, igst, date, gstin, **extra):
    record = {
        "id": f"{prefix}-{next(_ids)}",
        "supplier_gstin": gstin,
        "invoice_number": invoice_number,
        "date": date,
        "taxable_amount": taxable_amount,
        "igst": igst,
        "cgst": 0,
        "sgst": 0,
    }
    record.update(extra)
    return record


@pytest.fixture
def local_record():
    """Factory for raw local purchase-register bags (B2B mode unless overridden)."""
    def make(invoice_number, taxable_amount=1000.00, igst=180.00, date="10-05-2024", gstin=SUPPLIER_A, **extra):
        extra.setdefault("mode", "B2B")
        return _record("L", invoice_number, taxable_amount, igst, date, gstin, **extra)
    return make


@pytest.fixture
def portal_record():
    """Factory for raw GSTR-2B bags (invoice type unless overridden)."""
    def make(invoice_number, taxable_amount=1000.00, igst=180.00, date="10-05-2024", gstin=SUPPLIER_A, **extra):
        extra.setdefault("document_type", "INV")
        return _record("P", invoice_number, taxable_amount, igst, date, gstin, **extra)
    return make
