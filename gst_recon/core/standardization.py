"""
Turns raw record bags from the ingestion layer into canonical invoice records.

A record that fails an essential-field check raises ``RecordValidationError``
from ``standardize``; ``standardize_batch`` collects those failures and keeps going.
"""
import logging
import math
import re
import uuid
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from gst_recon.core.errors import RecordValidationError
from gst_recon.core.normalization import (
    canonical_month_year,
    financial_year,
    normalize_invoice_number,
    parse_date,
    quarter_key,
)
from gst_recon.schemas.invoice import CanonicalInvoiceRecord, DocumentType, RawInvoiceRecord, Source
from gst_recon.schemas.reconciliation import RecordError

logger = logging.getLogger(__name__)

MIN_GSTIN_LENGTH = 10
NUMERIC_PATTERN = re.compile(r'^-?\d+(\.\d+)?$')
TRUTHY_FLAGS = {"Y", "YES", "TRUE", "1"}

PORTAL_DOCUMENT_TYPES = {
    "INV": DocumentType.INVOICE,
    "R": DocumentType.INVOICE,
    "B2B": DocumentType.INVOICE,
    "INVOICE": DocumentType.INVOICE,
    "C": DocumentType.CREDIT_NOTE,
    "CREDIT": DocumentType.CREDIT_NOTE,
    "CREDITNOTE": DocumentType.CREDIT_NOTE,
    "D": DocumentType.DEBIT_NOTE,
    "DEBIT": DocumentType.DEBIT_NOTE,
    "DEBITNOTE": DocumentType.DEBIT_NOTE,
}

# The buyer's books mirror the supplier's note: a supplier credit note is booked as a debit note.
LOCAL_CDNR_TYPES = {
    "CREDIT": DocumentType.DEBIT_NOTE,
    "DEBIT": DocumentType.CREDIT_NOTE,
}

MODE_HINT_KEYS = ("Mode", "mode", "Document Mode", "document mode", "document_mode")
TYPE_HINT_KEYS = ("Type", "type", "Document Type", "document type", "Credit/Debit", "credit/debit", "note_type")


class StandardizationResult(BaseModel):
    records: List[CanonicalInvoiceRecord] = Field(default_factory=list)
    invalid_count: int = 0
    errors: List[RecordError] = Field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_amount(value: Any) -> Optional[float]:
    """Reads a monetary value; numeric strings may use thousands separators. Invalid -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not NUMERIC_PATTERN.match(cleaned):
            return None
        number = float(cleaned)
    else:
        return None
    return number if math.isfinite(number) else None


def _parse_flag(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().upper() in TRUTHY_FLAGS


def _optional_text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


def _invoice_number_text(value: Any) -> Optional[str]:
    # Spreadsheet cells hand numeric invoice numbers over as floats: 12345.0 reads as "12345"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return _optional_text(value)


def _first_hint(keys, *bags: Optional[Mapping]) -> Optional[str]:
    for bag in bags:
        if not isinstance(bag, Mapping):
            continue
        for key in keys:
            value = bag.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip().upper()
    return None


def _portal_document_type(raw: RawInvoiceRecord) -> Optional[DocumentType]:
    tag = _optional_text(raw.document_type)
    doc_type = PORTAL_DOCUMENT_TYPES.get(tag.upper().replace(" ", "")) if tag else None
    if doc_type is None:
        logger.warning(f"Portal record ID {raw.id} has unexpected document type: {raw.document_type}")
    return doc_type


def _local_document_type(raw: RawInvoiceRecord) -> Optional[DocumentType]:
    extras = raw.model_extra or {}
    mode = _first_hint(MODE_HINT_KEYS, extras, raw.raw_data)
    note_type = _first_hint(TYPE_HINT_KEYS, extras, raw.raw_data)

    if mode == "B2B":
        return DocumentType.INVOICE
    if mode == "CDNR":
        if note_type in LOCAL_CDNR_TYPES:
            return LOCAL_CDNR_TYPES[note_type]
        logger.warning(f"Record {raw.invoice_number} has Mode='CDNR' but invalid/missing Type='{note_type}'. Document type not set.")
        return None

    tag = _optional_text(raw.document_type)
    if tag and tag.upper().replace(" ", "") in PORTAL_DOCUMENT_TYPES:
        return PORTAL_DOCUMENT_TYPES[tag.upper().replace(" ", "")]

    logger.warning(f"Local record {raw.invoice_number} missing or invalid Mode ('{mode}'). Document type not set.")
    return None


def standardize(record: Union[Mapping[str, Any], RawInvoiceRecord], source: Union[Source, str]) -> CanonicalInvoiceRecord:
    """
    Validates a raw record and builds its canonical form.

    Raises ``RecordValidationError`` when the id, supplier GSTIN, invoice number,
    date or taxable amount is missing or unusable, or when any amount is
    non-numeric or negative.
    """
    source = Source(source)
    if isinstance(record, RawInvoiceRecord):
        raw = record
    elif isinstance(record, Mapping):
        raw = RawInvoiceRecord.model_validate(dict(record))
    else:
        raise RecordValidationError("Record is not a key/value mapping")

    record_id = _optional_text(raw.id)
    invoice_number = _invoice_number_text(raw.invoice_number)

    def reject(reason: str) -> RecordValidationError:
        return RecordValidationError(reason, record_id=record_id, invoice_number=invoice_number)

    # 1. Essential fields
    if record_id is None:
        raise reject("Missing internal ID")
    gstin = _optional_text(raw.supplier_gstin)
    if gstin is None or len(gstin) < MIN_GSTIN_LENGTH:
        raise reject("Missing or invalid Supplier GSTIN")
    if invoice_number is None:
        raise reject("Missing or invalid Invoice Number")
    if _is_blank(raw.date):
        raise reject("Missing Date")
    parsed_date = parse_date(raw.date)
    if parsed_date is None:
        raise reject(f"Invalid Date format or value: {raw.date}")
    if _is_blank(raw.taxable_amount):
        raise reject("Missing Taxable Amount")
    taxable_amount = _parse_amount(raw.taxable_amount)
    if taxable_amount is None:
        raise reject(f"Invalid Taxable Amount: {raw.taxable_amount}")
    if taxable_amount < 0:
        raise reject(f"Negative Taxable Amount: {taxable_amount}")

    # 2. Tax components default to zero when absent
    taxes = {}
    for name in ("igst", "cgst", "sgst"):
        value = getattr(raw, name)
        amount = 0.0 if _is_blank(value) else _parse_amount(value)
        if amount is None:
            raise reject(f"Invalid {name.upper()} amount: {value}")
        if amount < 0:
            raise reject(f"Negative {name.upper()} amount: {amount}")
        taxes[name] = amount

    # 3. Derived fields
    igst, cgst, sgst = taxes["igst"], taxes["cgst"], taxes["sgst"]
    total_tax = round(igst if igst > 0 else cgst + sgst, 2)

    invoice_value = taxable_amount + total_tax
    if not _is_blank(raw.invoice_value):
        supplied_value = _parse_amount(raw.invoice_value)
        if supplied_value is None or supplied_value < 0:
            raise reject(f"Invalid Invoice Value: {raw.invoice_value}")
        if supplied_value > 0:
            invoice_value = supplied_value

    if source == Source.PORTAL:
        document_type = _portal_document_type(raw)
        reverse_charge = bool(_parse_flag(raw.reverse_charge))
    else:
        document_type = _local_document_type(raw)
        reverse_charge = False

    line_number = raw.original_line_number
    if isinstance(line_number, str) and line_number.strip().isdigit():
        line_number = int(line_number)
    if not isinstance(line_number, int) or isinstance(line_number, bool):
        line_number = None

    return CanonicalInvoiceRecord(
        id=record_id,
        source=source,
        supplier_key=gstin,
        supplier_name=_optional_text(raw.supplier_name),
        invoice_number_raw=invoice_number,
        invoice_number_normalized=normalize_invoice_number(invoice_number),
        date=parsed_date,
        date_month_year=canonical_month_year(parsed_date),
        financial_year=financial_year(parsed_date),
        date_quarter=quarter_key(parsed_date),
        taxable_amount=taxable_amount,
        igst=igst,
        cgst=cgst,
        sgst=sgst,
        total_tax=total_tax,
        invoice_value=invoice_value,
        document_type=document_type,
        reverse_charge=reverse_charge,
        place_of_supply=_optional_text(raw.place_of_supply),
        itc_available=_parse_flag(raw.itc_available),
        itc_reason=_optional_text(raw.itc_reason),
        original_line_number=line_number,
        raw_data=raw.raw_data,
    )


def standardize_batch(records: Iterable[Any], source: Union[Source, str]) -> StandardizationResult:
    """Standardizes every record it can; failures are logged, counted and reported, never raised."""
    source = Source(source)
    records = list(records)
    logger.info(f"Validating and standardizing {len(records)} records from source: {source.value}")

    result = StandardizationResult()
    for record in records:
        try:
            result.records.append(standardize(record, source))
        except RecordValidationError as e:
            result.invalid_count += 1
            result.errors.append(RecordError(
                source=source,
                record_id=e.record_id,
                invoice_number=e.invoice_number,
                reason=e.reason
            ))
            logger.warning(f"Record validation failed [ID: {e.record_id or 'N/A'}, Inv#: {e.invoice_number or 'N/A'}]: {e.reason}")

    logger.info(f"Validation complete. Valid records: {len(result.records)}, Invalid/Skipped records: {result.invalid_count}")
    return result


def ensure_record_ids(records: Iterable[Any]) -> List[Any]:
    """Gives every raw bag without an id a fresh UUID4, as the ingestion layer does."""
    prepared = []
    for record in records:
        if isinstance(record, Mapping) and all(_is_blank(record.get(k)) for k in ("id", "record_id", "recordId")):
            record = {**record, "id": str(uuid.uuid4())}
        prepared.append(record)
    return prepared
