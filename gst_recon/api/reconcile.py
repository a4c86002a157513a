from fastapi import APIRouter, Body, HTTPException, Header
from starlette.concurrency import run_in_threadpool
from datetime import datetime
import logging
from gst_recon.core.errors import ConfigurationError
from gst_recon.core.reconciliation import reconcile
from gst_recon.core.standardization import ensure_record_ids
from gst_recon.db.memory import APP_STATE
from gst_recon.schemas.reconciliation import ReconcileRequest, ReconciliationResult, SupplierBucket

router = APIRouter()
logger = logging.getLogger(__name__)

def _latest_result(tenant_id: str) -> ReconciliationResult:
    data = APP_STATE.get(tenant_id)
    if not data or not data.get("result"):
        raise HTTPException(status_code=404, detail="No reconciliation results found for this session.")
    return data["result"]

@router.post("/reconcile", response_model=ReconciliationResult)
async def reconcile_invoices(
    request: ReconcileRequest = Body(...),
    x_tenant_id: str = Header(..., alias="X-Tenant-ID")
):
    """
    Reconciles local purchase records against portal (GSTR-2B) records.
    Records without an id get one here, the way the ingestion layer assigns them.
    """
    logger.info(f"Reconciliation STARTED for tenant: {x_tenant_id}. Local: {len(request.local_records)}, Portal: {len(request.portal_records)}")
    try:
        result = await run_in_threadpool(
            reconcile,
            ensure_record_ids(request.local_records),
            ensure_record_ids(request.portal_records),
            request.options
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # Update authoritative central store
    APP_STATE[x_tenant_id] = {
        "result": result,
        "timestamp": datetime.now().isoformat()
    }

    logger.info(f"Reconciliation COMPLETED for tenant: {x_tenant_id}. Suppliers: {result.summary.total_suppliers}, Invalid: {len(result.validation_errors)}")
    return result

@router.get("/reconcile/latest", response_model=ReconciliationResult)
async def get_latest_result(x_tenant_id: str = Header(..., alias="X-Tenant-ID")):
    return _latest_result(x_tenant_id)

@router.get("/reconcile/latest/suppliers/{supplier_key}", response_model=SupplierBucket)
async def get_supplier_bucket(supplier_key: str, x_tenant_id: str = Header(..., alias="X-Tenant-ID")):
    bucket = _latest_result(x_tenant_id).bucket_for(supplier_key)
    if bucket is None:
        raise HTTPException(status_code=404, detail=f"Supplier {supplier_key} not found in the latest reconciliation.")
    return bucket
