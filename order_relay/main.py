"""
main.py — FastAPI Entry Point for the Order Relay

This module exposes the relay's HTTP surface. Browser clients call ``/api/*``;
each capability is mapped onto one component (catalog, admins, users, orders),
which talks to the spreadsheet backend through the signed upstream client.

Responsibilities:
    • Build the components from one immutable Settings value
    • Map every capability onto its component call
    • Flatten every failure into the ``{ok: false, error: <code>}`` envelope
    • Log every API request and keep serving after unexpected errors
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
from fastapi import Body, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .admins import AdminCoordinator, UserDirectory
from .catalog import CatalogService
from .catalog_admin import MAX_IMAGE_BYTES, CategoryAdmin
from .clients import UpstreamClient
from .config import Settings, load_settings
from .errors import InvalidRequest, RelayError, UpstreamRejected
from .logging_config import get_logger, setup_logging
from .models import AdminTargetRequest, CategoryRemoveRequest, RegisterAdminRequest, UserIdRequest
from .orders import OrderGuard

log = get_logger(__name__)


def envelope_error(code: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": code})


def create_app(settings: Optional[Settings] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Creates the relay application.

    Args:
        settings (Settings, optional): Configuration; loaded from the environment when omitted.
        transport (httpx.AsyncBaseTransport, optional): Substitute backend transport for tests.

    Returns:
        FastAPI: The configured application.
    """
    settings = settings or load_settings()
    client = UpstreamClient(settings, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"[BOOT] Order relay starting: {settings.describe()}")
        if not settings.backend_url:
            log.warning("[BOOT] Backend URL missing; backend calls will fail until it is configured.")
        if not settings.shared_secret:
            log.warning("[BOOT] Shared secret missing; the backend will reject signatures.")
        yield
        await client.aclose()
        log.info("Order relay stopped.")

    app = FastAPI(title="Order Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.client = client
    app.state.catalog = CatalogService(client, settings.catalog_actions)
    app.state.category_admin = CategoryAdmin(client)
    app.state.admins = AdminCoordinator(client)
    app.state.users = UserDirectory(client)
    app.state.orders = OrderGuard(client)

    @app.middleware("http")
    async def log_and_contain(request: Request, call_next):
        if request.url.path.startswith("/api"):
            query = f"?{request.url.query}" if request.url.query else ""
            log.info(f"[API] {request.method} {request.url.path}{query}")
        try:
            return await call_next(request)
        except Exception as e:
            log.critical(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
            return envelope_error("internal_error", 502)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        if not isinstance(exc, UpstreamRejected) and exc.status_code >= 500:
            log.error(f"{request.method} {request.url.path} failed: {exc.code} ({exc})")
        return envelope_error(exc.code, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        log.info(f"{request.method} {request.url.path} rejected: malformed request body.")
        return envelope_error("invalid_request", 400)

    register_routes(app)
    return app


def register_routes(app: FastAPI):
    """Attaches the /api routes. Components are read from ``app.state``."""

    @app.get("/api/healthz")
    async def healthz():
        return {"ok": True}

    @app.get("/api/ping-gas")
    async def ping_backend(request: Request):
        result = await request.app.state.client.get("ping")
        return {"ok": True, "upstream": result}

    @app.get("/api/categories")
    async def get_categories(request: Request):
        items = await request.app.state.catalog.fetch()
        return {"ok": True, "items": [item.model_dump() for item in items]}

    @app.post("/api/categories")
    async def remove_category(request: Request, body: CategoryRemoveRequest):
        if body.action != "remove":
            raise InvalidRequest(f"unsupported catalog action {body.action!r}")
        return await request.app.state.category_admin.remove_category(body.rowNumber)

    @app.post("/api/categories/upload")
    async def upload_category(
            request: Request,
            daibun: str = Form(""),
            chubun: str = Form(""),
            shobun: str = Form(""),
            category: str = Form(""),
            subcategory: str = Form(""),
            name: str = Form(""),
            price: str = Form(""),
            file: Optional[UploadFile] = File(None),
    ):
        # the admin form names the three levels daibun/chubun/shobun
        image, filename, content_type = b"", "", ""
        if file is not None:
            image = await file.read(MAX_IMAGE_BYTES + 1)
            filename, content_type = file.filename or "", file.content_type or ""
        return await request.app.state.category_admin.add_category(
            category or daibun, subcategory or chubun, name or shobun, price,
            image, filename=filename, content_type=content_type,
        )

    @app.get("/api/checkAdmin")
    async def check_admin(request: Request, userId: str = ""):
        return await request.app.state.admins.check_admin(userId)

    @app.post("/api/admins/is-admin")
    async def check_admin_legacy(request: Request, body: UserIdRequest):
        return await request.app.state.admins.check_admin(body.userId)

    @app.get("/api/checkFirstAdmin")
    async def check_first_admin(request: Request):
        return await request.app.state.admins.check_first_admin()

    @app.post("/api/registerFirstAdmin")
    async def register_first_admin(request: Request, body: RegisterAdminRequest):
        return await request.app.state.admins.register_first_admin(body.userId, body.displayName)

    @app.post("/api/admins/register")
    async def register_admin_legacy(request: Request, body: RegisterAdminRequest):
        return await request.app.state.admins.register_first_admin(body.userId, body.displayName)

    @app.get("/api/admins")
    async def get_admins(request: Request):
        result = await request.app.state.admins.list_admins()
        return {"ok": True, "admins": [admin.model_dump() for admin in result["admins"]]}

    @app.post("/api/admins/add")
    async def add_admin(request: Request, body: AdminTargetRequest):
        return await request.app.state.admins.add_admin(body.target)

    @app.post("/api/admins/remove")
    async def remove_admin(request: Request, body: AdminTargetRequest):
        return await request.app.state.admins.remove_admin(body.target)

    @app.get("/api/users")
    async def get_users(request: Request):
        return await request.app.state.users.list_users()

    @app.get("/api/recordUser")
    async def record_user(request: Request, userId: str = "", displayName: str = ""):
        return await request.app.state.users.record_user(userId, displayName)

    @app.post("/api/order")
    async def submit_order(request: Request, body: Any = Body(None)):
        return await request.app.state.orders.submit(body)


def main():
    """Console entry point: loads settings, configures logging and serves with uvicorn."""
    import uvicorn

    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
