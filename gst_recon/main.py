from fastapi import FastAPI
from gst_recon.core.config import settings
from gst_recon.core.logging_config import configure_logging
from gst_recon.api import health, reconcile

configure_logging()

app = FastAPI(title=settings.PROJECT_NAME)

# Include routers
app.include_router(health.router)
app.include_router(reconcile.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
