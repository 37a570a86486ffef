from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..core.errors import UnsupportedDistributionError
from .api import projects
from .routes import generate, layout, upload
from .settings import get_root_path

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="listingdeck API", version=__version__, root_path=get_root_path())
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(upload.router, prefix="/api")
    app.include_router(layout.router, prefix="/api")
    app.include_router(generate.router, prefix="/api")
    app.include_router(projects.router, prefix="/api")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error.get("loc", []))
            errors.append(f"{field}: {error.get('msg', 'Validation error')}")
        return JSONResponse(
            status_code=422,
            content={"detail": "; ".join(errors) if errors else "Validation error"},
        )

    @app.exception_handler(UnsupportedDistributionError)
    async def distribution_exception_handler(request: Request, exc: UnsupportedDistributionError):
        logger.warning("Rejected %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=422,
            content={
                "detail": str(exc),
                "kind": exc.kind,
                "horizontal": exc.horizontal,
                "vertical": exc.vertical,
            },
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
