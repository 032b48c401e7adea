from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.database import close_app_database, init_app_database
from app.core.logging import setup_logging
from app.modules.billing_tags.errors import BillingTagReportError, QueryError
from app.modules.billing_tags.router import router as billing_tags_router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_app_database()
    try:
        yield
    finally:
        close_app_database()


app = FastAPI(title="Billing Tag Reports API", lifespan=lifespan)


@app.exception_handler(BillingTagReportError)
async def billing_tag_report_error_handler(request: Request, exc: BillingTagReportError):
    if isinstance(exc, QueryError):
        logger.error("Billing tag query failed for %s: %s", request.url.path, exc.message)
    else:
        logger.warning("Rejected %s: %s", request.url.path, exc.message)
    # The admin UI reads `success`, so report errors keep a 200 status.
    return JSONResponse(status_code=200, content={"success": False, "message": exc.message})


app.include_router(billing_tags_router)
