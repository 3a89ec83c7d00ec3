from textwrap import dedent
import logging

import pydantic
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from wallet_api.backend import Backend, init_backend
from wallet_api.errors import (
    WalletApiError,
    handle_broad_exceptions,
    handle_pydantic_validation_errors,
    handle_wallet_api_errors,
)
from wallet_api.routers.auth import router as auth_router
from wallet_api.routers.documents import router as documents_router
from wallet_api.routers.health import router as health_router
from wallet_api.routers.users import router as users_router
from wallet_api.settings import Settings

# Set up logging
logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, backend: Backend | None = None) -> FastAPI:
    """Create a FastAPI application."""
    settings = settings or Settings()

    app = FastAPI(
        title="Wallet API",
        summary="Store personal documents under a per-user storage quota",
        version="v1",
        description=dedent(
            """\
        Documents, profile pictures and accounts for the document wallet.

        | Limit | Value |
        | --- | --- |
        | Storage per user | 50 MiB |
        | Single document | 10 MiB |
        | Profile picture | 5 MiB |
        """
        ),
        docs_url="/docs",
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    logger.info("initializing backend")
    app.state.backend = backend or init_backend(settings)

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(documents_router, prefix="/api/documents", tags=["documents"])
    app.include_router(users_router, prefix="/api", tags=["users"])

    app.add_exception_handler(
        exc_class_or_status_code=WalletApiError,
        handler=handle_wallet_api_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=RequestValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=StarletteHTTPException,
        handler=handle_http_exceptions,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


async def handle_http_exceptions(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes get a JSON 404; other framework errors keep their status."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Route not found", "path": request.url.path},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    logging.basicConfig(level=settings.log_level)
    app = create_app(settings)
    uvicorn.run(app, host="0.0.0.0", port=8000)
