from typing import Dict, Any

# AUTHORITATIVE GLOBAL STORE – DO NOT DUPLICATE
# Structure: { tenant_id: { "result": ReconciliationResult, "timestamp": "" } }
# In-memory only; persistence of reconciled records lives outside this service.
APP_STATE: Dict[str, Any] = {}
