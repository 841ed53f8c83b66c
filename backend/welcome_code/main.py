from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from welcome_code.api.v1 import api_router
from welcome_code.core.config import settings
from welcome_code.core.logging_config import configure_logging
from welcome_code.core.sentry import init_sentry
from welcome_code.core.startup_checks import validate_production_settings
from welcome_code.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from welcome_code.schemas.welcome import ApiMessage


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_production_settings(settings)
    yield


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    init_sentry(settings)
    tags_metadata = [
        {"name": "welcome", "description": "First-purchase welcome discount codes"},
        {"name": "health", "description": "Liveness and readiness probes"},
    ]
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        payload = ApiMessage(ok=False, message=str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(payload.model_dump()), headers=exc.headers)

    return app


app = get_application()
