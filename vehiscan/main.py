from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vehiscan.context import build_context
from vehiscan.core.clock import Clock, now_ms
from vehiscan.core.config import Settings
from vehiscan.core.exceptions import (
    AccountLocked,
    AuthenticationFailed,
    DocumentNotFound,
    InvalidQRCode,
    PolicyDenied,
    RateLimitExceeded,
    StorageUnavailable,
    ValidationFailed,
)
from vehiscan.core.logging import get_security_logger
from vehiscan.routers.admin import router as admin_router
from vehiscan.routers.auth import router as auth_router
from vehiscan.routers.notifications import router as notifications_router
from vehiscan.routers.scans import router as scans_router
from vehiscan.routers.vehicles import router as vehicles_router
from vehiscan.services.storage import KeyValueStore
from vehiscan.services.vehicles import VEHICLES_COLLECTION


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PolicyDenied)
    async def policy_denied(request: Request, exc: PolicyDenied):
        body = {"detail": exc.notice.message, "notice": exc.notice.as_dict()}
        if isinstance(exc, RateLimitExceeded):
            body["retry_after_ms"] = exc.retry_after_ms
        elif isinstance(exc, AccountLocked):
            body["remaining_ms"] = exc.remaining_ms
        return JSONResponse(status_code=429, content=body)

    @app.exception_handler(AuthenticationFailed)
    async def authentication_failed(request: Request, exc: AuthenticationFailed):
        body = {"detail": str(exc)}
        if exc.notice:
            body["notice"] = exc.notice.as_dict()
        return JSONResponse(status_code=401, content=body)

    @app.exception_handler(ValidationFailed)
    async def validation_failed(request: Request, exc: ValidationFailed):
        return JSONResponse(
            status_code=422, content={"detail": "Validation Error", "errors": exc.errors}
        )

    @app.exception_handler(InvalidQRCode)
    async def invalid_qr_code(request: Request, exc: InvalidQRCode):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(DocumentNotFound)
    async def document_not_found(request: Request, exc: DocumentNotFound):
        if exc.collection == VEHICLES_COLLECTION:
            detail = "No vehicle found with this QR code."
        else:
            detail = str(exc)
        return JSONResponse(status_code=404, content={"detail": detail})

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable(request: Request, exc: StorageUnavailable):
        get_security_logger().error(f"Storage unavailable: {exc}")
        return JSONResponse(
            status_code=503, content={"detail": "Service temporarily unavailable"}
        )


def create_app(
    settings: Settings | None = None,
    clock: Clock = now_ms,
    kv_store: KeyValueStore | None = None,
) -> FastAPI:
    settings = settings or Settings()
    get_security_logger().setLevel(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME)
    app.state.context = build_context(settings, clock=clock, kv_store=kv_store)

    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(vehicles_router)
    app.include_router(scans_router)
    app.include_router(notifications_router)
    app.include_router(admin_router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": f"{settings.APP_NAME} is running"}

    return app
