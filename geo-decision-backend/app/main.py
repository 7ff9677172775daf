# app/main.py

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.v1.api import api_router
from app.services.validation_service import SessionBusyError


def create_application() -> FastAPI:
    configure_logging(settings)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
    )

    # ---------- CORS ----------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.backend_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- ERRORS ----------
    @app.exception_handler(SessionBusyError)
    async def session_busy_handler(request: Request, exc: SessionBusyError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    # ---------- HEALTH ----------
    @app.get("/healthz", tags=["health"])
    def healthz():
        return {"status": "ok", "version": settings.VERSION}

    # ---------- ROUTERS ----------
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    return app


app = create_application()
