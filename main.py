from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

import routers
from config import Settings, configure_logging, get_settings
from database import connect
from errors import StoreError
from identity import IdentityProvider
from middleware import install_middleware

logger = structlog.get_logger(__name__)

LOCATIONS = ("body", "query", "path", "header")


def validation_details(exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in LOCATIONS]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return details


def install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Validation failed", "details": validation_details(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", method=request.method, path=request.url.path)
        body = {"error": "Internal Server Error"}
        if not settings.is_production:
            body["message"] = str(exc)
        return JSONResponse(status_code=500, content=body)


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title="Storefront API")
    app.state.settings = settings
    app.state.db = db if db is not None else connect(settings)
    app.state.identity = IdentityProvider.from_settings(settings)

    install_middleware(app, settings)
    install_error_handlers(app, settings)
    for router in routers.ALL:
        app.include_router(router)

    @app.get("/")
    def read_root():
        return {"message": "Storefront API"}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
