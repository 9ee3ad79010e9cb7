"""PaySettle - gateway rotation, settlement and ledger service."""

import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import ledger, payments, reconciliation, rotation, settlement
from app.core.config import settings
from app.core.database import Base, SessionLocal, engine
from app.core.exceptions import PaySettleError
from app.core.logging import setup_logging
from app.core.logging_config import LOGGING_CONFIG
from app.services.settlement.runner import SweepRunner

# Configure logging before anything else
logging.config.dictConfig(LOGGING_CONFIG)
logger = setup_logging(settings.log_level)

# Create all tables on startup
logger.info("Creating database tables...")
Base.metadata.create_all(bind=engine)
logger.info("Database tables ready")

sweep_runner = SweepRunner(SessionLocal, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.sweeper_enabled:
        sweep_runner.start()
    else:
        logger.info("Settlement sweeper disabled")
    yield
    sweep_runner.stop()


# -- OpenAPI tag metadata for Swagger grouping --
tags_metadata = [
    {
        "name": "Health",
        "description": "Service health and readiness checks.",
    },
    {
        "name": "Payments",
        "description": (
            "Record captured payments (commission and expected settlement date "
            "computed on capture), read them back, and quote payout fees."
        ),
    },
    {
        "name": "Rotation",
        "description": (
            "Count-based gateway rotation: pick the gateway for the next payment "
            "link, inspect the rotation counter, and manage enabled gateways and limits."
        ),
    },
    {
        "name": "Settlement",
        "description": (
            "Trigger the settlement sweep manually and manage the settlement policy "
            "(relative minutes or T+N with a daily cutoff)."
        ),
    },
    {
        "name": "Ledger",
        "description": (
            "Tenant-scoped double-entry journal. Posted entries are immutable; "
            "corrections are reversal or adjustment entries."
        ),
    },
    {
        "name": "Reconciliation",
        "description": (
            "Upload gateway statements, reconcile them against captured payments "
            "and work the exception queue."
        ),
    },
]


app = FastAPI(
    title="PaySettle",
    description=(
        "## Payment Settlement Core\n\n"
        "Routes payments across gateways by transaction count, computes commission "
        "and settlement timing for every captured payment, promotes due payments to "
        "settled on a schedule, and keeps a balanced double-entry ledger.\n\n"
        "### Quick Start\n"
        "```bash\n"
        "# 1. Enable gateways\n"
        "curl -X PUT /api/v1/rotation/gateways -H 'Content-Type: application/json' "
        "-d '{\"gateways\":[{\"name\":\"cashfree\",\"enabled\":true},"
        "{\"name\":\"razorpay\",\"enabled\":true,\"transactionLimit\":5}]}'\n\n"
        "# 2. Seed a tenant's chart of accounts\n"
        "curl -X POST /api/v1/ledger/tenants/merchant-1/seed\n\n"
        "# 3. Record a captured payment\n"
        "curl -X POST /api/v1/payments/capture -H 'Content-Type: application/json' "
        "-d '{\"transactionId\":\"pay_001\",\"tenantId\":\"merchant-1\",\"amount\":1000}'\n\n"
        "# 4. Settle whatever is due\n"
        "curl -X POST /api/v1/settlement/sweep\n"
        "```\n"
    ),
    version="1.0.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(PaySettleError)
async def paysettle_error_handler(request: Request, exc: PaySettleError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(rotation.router, prefix="/api/v1/rotation", tags=["Rotation"])
app.include_router(settlement.router, prefix="/api/v1/settlement", tags=["Settlement"])
app.include_router(ledger.router, prefix="/api/v1/ledger", tags=["Ledger"])
app.include_router(reconciliation.router, prefix="/api/v1/recon", tags=["Reconciliation"])

logger.info("PaySettle API ready - routes registered")


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint.

    Returns a simple JSON object confirming the service is running.
    """
    return {"status": "healthy", "service": "paysettle"}
