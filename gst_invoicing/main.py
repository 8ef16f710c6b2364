import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gst_invoicing.api.routes import health
from gst_invoicing.api.v1 import v1_router
from gst_invoicing.api.v1.envelope import error
from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import (
    InvoiceConsistencyError,
    InvoiceNumberConflictError,
    InvoiceValidationError,
    RenderResourceError,
)
from gst_invoicing.core.logging_config import setup_logging

logger = logging.getLogger("gst_invoicing")

app = FastAPI(title=settings.APP_NAME)


@app.on_event("startup")
async def startup():
    setup_logging()
    logger.info("%s started (%s)", settings.APP_NAME, settings.ENVIRONMENT)


@app.exception_handler(InvoiceValidationError)
async def invoice_validation_handler(request: Request, exc: InvoiceValidationError):
    return JSONResponse(status_code=422, content=error(str(exc)))


@app.exception_handler(InvoiceNumberConflictError)
async def invoice_conflict_handler(request: Request, exc: InvoiceNumberConflictError):
    logger.warning("Invoice number conflict on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=409,
        content=error(str(exc), errors=[{"retryable": exc.retryable}]),
    )


@app.exception_handler(RenderResourceError)
@app.exception_handler(InvoiceConsistencyError)
async def invoice_render_handler(request: Request, exc: Exception):
    logger.error("Invoice could not be rendered on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content=error("Invoice could not be generated"))


app.include_router(health.router)
app.include_router(v1_router)
