from enum import Enum
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Any, Dict, List
from gst_recon.core.config import settings
from gst_recon.schemas.invoice import CanonicalInvoiceRecord, Source
from gst_recon.schemas.report import ReconciliationSummary

class ReconciliationStatus(str, Enum):
    PERFECT_MATCH = "PERFECT_MATCH"
    TOLERANCE_MATCH = "TOLERANCE_MATCH"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    POTENTIAL_MATCH = "POTENTIAL_MATCH"
    MISSING_IN_PORTAL = "MISSING_IN_PORTAL"
    MISSING_IN_LOCAL = "MISSING_IN_LOCAL"
    REVERSE_CHARGE = "REVERSE_CHARGE"

class SimilarityMethod(str, Enum):
    NUMERIC = "Numeric"
    LEVENSHTEIN = "Levenshtein"

class SimilarityResult(BaseModel):
    method: SimilarityMethod
    score: int

class DateStrategy(str, Enum):
    MONTH = "month"
    FINANCIAL_YEAR = "financialYear"
    QUARTER = "quarter"

class ReconciliationScope(str, Enum):
    ALL = "all"
    B2B = "b2b"
    CDNR = "cdnr"

class ReconciliationOptions(BaseModel):
    model_config = ConfigDict(validate_default=True)

    tolerance_amount: float = Field(
        default_factory=lambda: settings.RECON_TOLERANCE_AMOUNT, ge=0, allow_inf_nan=False,
        validation_alias=AliasChoices("tolerance_amount", "toleranceAmount"),
    )
    tolerance_tax: float = Field(
        default_factory=lambda: settings.RECON_TOLERANCE_TAX, ge=0, allow_inf_nan=False,
        validation_alias=AliasChoices("tolerance_tax", "toleranceTax"),
    )
    date_strategy: DateStrategy = Field(
        default_factory=lambda: settings.RECON_DATE_STRATEGY,
        validation_alias=AliasChoices("date_strategy", "dateStrategy", "dateMatchStrategy"),
    )
    scope: ReconciliationScope = Field(
        default_factory=lambda: settings.RECON_SCOPE,
        validation_alias=AliasChoices("scope", "reconciliationScope"),
    )

    @field_validator('date_strategy', mode='before')
    @classmethod
    def accept_strategy_aliases(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("fy", "financial_year", "financialyear"):
            return DateStrategy.FINANCIAL_YEAR
        return v

    @field_validator('scope', mode='before')
    @classmethod
    def lowercase_scope(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

class ToleranceDetails(BaseModel):
    """Which fields needed tolerance (or differ) for an accepted match."""
    taxable_amount: bool
    tax_amount: bool
    raw_invoice_number_differs: bool
    exact_date_differs: bool

class ReconciliationMatch(BaseModel):
    local_record: CanonicalInvoiceRecord
    portal_record: CanonicalInvoiceRecord
    status: ReconciliationStatus
    tolerance_details: ToleranceDetails
    taxable_amount_difference: float = 0.0
    total_tax_difference: float = 0.0

class ReconciliationMismatch(BaseModel):
    """Invoice number and date agree but amounts are outside tolerance. Differences are local - portal."""
    local_record: CanonicalInvoiceRecord
    portal_record: CanonicalInvoiceRecord
    status: ReconciliationStatus = ReconciliationStatus.AMOUNT_MISMATCH
    taxable_amount_difference: float
    total_tax_difference: float

class PotentialMatch(BaseModel):
    local_record: CanonicalInvoiceRecord
    portal_record: CanonicalInvoiceRecord
    status: ReconciliationStatus = ReconciliationStatus.POTENTIAL_MATCH
    similarity: SimilarityResult
    taxable_amount_difference: float = 0.0
    total_tax_difference: float = 0.0

class SupplierBucket(BaseModel):
    supplier_key: str
    supplier_name: Optional[str] = None
    perfect_matches: List[ReconciliationMatch] = Field(default_factory=list)
    tolerance_matches: List[ReconciliationMatch] = Field(default_factory=list)
    amount_mismatches: List[ReconciliationMismatch] = Field(default_factory=list)
    potential_matches: List[PotentialMatch] = Field(default_factory=list)
    missing_in_portal: List[CanonicalInvoiceRecord] = Field(default_factory=list)
    missing_in_local: List[CanonicalInvoiceRecord] = Field(default_factory=list)

class RecordError(BaseModel):
    source: Source
    record_id: Optional[str] = None
    invoice_number: Optional[str] = None
    reason: str

class ReconciliationResult(BaseModel):
    summary: ReconciliationSummary
    details: List[SupplierBucket] = Field(default_factory=list)
    reverse_charge: List[CanonicalInvoiceRecord] = Field(default_factory=list)
    validation_errors: List[RecordError] = Field(default_factory=list)

    @field_validator('details', mode='before')
    @classmethod
    def accept_keyed_details(cls, v: Any):
        # Reports may ship details as an object keyed by GSTIN
        if isinstance(v, dict):
            return [
                {**bucket, "supplier_key": key} if isinstance(bucket, dict) else bucket
                for key, bucket in v.items()
            ]
        return v

    def details_by_supplier(self) -> Dict[str, SupplierBucket]:
        return {bucket.supplier_key: bucket for bucket in self.details}

    def bucket_for(self, supplier_key: str) -> Optional[SupplierBucket]:
        key = supplier_key.strip().upper()
        return next((b for b in self.details if b.supplier_key == key), None)

class ReconcileRequest(BaseModel):
    """Already-parsed raw record bags from the ingestion layer."""
    local_records: List[Dict[str, Any]] = Field(default_factory=list)
    portal_records: List[Dict[str, Any]] = Field(default_factory=list)
    options: Optional[Dict[str, Any]] = None
