from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
import datetime
from enum import Enum
from typing import Any, Optional

class Source(str, Enum):
    LOCAL = "local"
    PORTAL = "portal"

class DocumentType(str, Enum):
    INVOICE = "Invoice"
    CREDIT_NOTE = "CreditNote"
    DEBIT_NOTE = "DebitNote"

def _raw(*names: str) -> Any:
    return Field(None, validation_alias=AliasChoices(*names))

class RawInvoiceRecord(BaseModel):
    """
    A partially-populated record as handed over by the ingestion layer.
    Every field is optional and untyped; the standardizer decides what is valid.
    Both snake_case and camelCase keys are accepted.
    """
    model_config = ConfigDict(extra="allow")

    id: Any = _raw("id", "record_id", "recordId")
    source: Any = _raw("source")
    supplier_gstin: Any = _raw("supplier_gstin", "supplierGstin", "gstin", "ctin")
    supplier_name: Any = _raw("supplier_name", "supplierName", "trdnm")
    invoice_number: Any = _raw("invoice_number", "invoiceNumberRaw", "invoice_number_raw", "invoice_no", "inum")
    date: Any = _raw("date", "invoice_date", "invoiceDate", "dt")
    taxable_amount: Any = _raw("taxable_amount", "taxableAmount", "taxable_value", "txval")
    igst: Any = _raw("igst", "iamt")
    cgst: Any = _raw("cgst", "camt")
    sgst: Any = _raw("sgst", "samt")
    invoice_value: Any = _raw("invoice_value", "invoiceValue", "val")
    document_type: Any = _raw("document_type", "documentType", "typ")
    reverse_charge: Any = _raw("reverse_charge", "reverseCharge", "rev")
    place_of_supply: Any = _raw("place_of_supply", "placeOfSupply", "pos")
    itc_available: Any = _raw("itc_available", "itcAvailable", "itcavl")
    itc_reason: Any = _raw("itc_reason", "itcReason", "rsn")
    original_line_number: Any = _raw("original_line_number", "originalLineNumber")
    raw_data: Any = _raw("raw_data", "rawData")

class CanonicalInvoiceRecord(BaseModel):
    """The unit of comparison. Derived fields are always computed by the standardizer."""
    model_config = ConfigDict(frozen=True)

    id: str
    source: Source
    supplier_key: str
    supplier_name: Optional[str] = None
    invoice_number_raw: str
    invoice_number_normalized: str
    date: datetime.date
    date_month_year: str
    financial_year: str
    date_quarter: str
    taxable_amount: float = Field(ge=0)
    igst: float = Field(0.0, ge=0)
    cgst: float = Field(0.0, ge=0)
    sgst: float = Field(0.0, ge=0)
    total_tax: float = Field(0.0, ge=0)
    invoice_value: float = Field(0.0, ge=0)
    document_type: Optional[DocumentType] = None
    reverse_charge: bool = False

    # Reporting passthrough, never used for matching
    place_of_supply: Optional[str] = None
    itc_available: Optional[bool] = None
    itc_reason: Optional[str] = None
    original_line_number: Optional[int] = None
    raw_data: Optional[Any] = None

    @field_validator('supplier_key')
    @classmethod
    def normalize_supplier_key(cls, v):
        return v.strip().upper()
