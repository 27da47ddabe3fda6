import logging
import os
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .ledger_api import setup_ledger_routes
from .tax_tables import get_tax_table_provider

logging.basicConfig(
    level=os.getenv("HEADROOM_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("uvicorn.error")

app = FastAPI(title="HeadroomCalc", version=__version__)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("HEADROOM_CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_ledger_routes(app)


# -------------------------
# Health
# -------------------------
@app.get("/health")
def health():
    provider = get_tax_table_provider()
    return {
        "status": "ok",
        "time": time.time(),
        "version": __version__,
        "tax_table_years": provider.available_years(),
    }
