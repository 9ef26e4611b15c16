"""Corporate gifting API service entrypoint."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from services.api.app.routers.discount import router as discount_router
from services.api.app.routers.documents import router as documents_router
from services.api.app.routers.order import router as order_router
from services.api.app.routers.recipients import router as recipients_router
from services.api.app.routers.vendor_documents import router as vendor_documents_router
from services.api.app.services.token_cache import TokenCache
from services.api.app.utils.logging import configure_logging

app = FastAPI(title="Corporate Gifting API")
app.state.token_cache = TokenCache()

app.include_router(order_router)
app.include_router(discount_router)
app.include_router(recipients_router)
app.include_router(documents_router)
app.include_router(vendor_documents_router)


@app.on_event("startup")
def _startup() -> None:
    configure_logging()


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": {"errors": errors}})


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
