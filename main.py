import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from database import connect, ensure_indexes
from errors import AppError
from responses import error_envelope
from routes import ROUTERS

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ------------------------
# Error handlers
# ------------------------
def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.message, exc.errors))


def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content=error_envelope("Validation failed", errors))


def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=error_envelope(str(exc) or "Something went wrong!"))


# ------------------------
# App
# ------------------------
def create_app(db: Optional[Database] = None) -> FastAPI:
    """Build the API. Pass ``db`` to run against an existing database handle."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if app.state.db is None:
            client, app.state.db = connect()
        ensure_indexes(app.state.db)
        yield
        if client is not None:
            client.close()
            logger.info("MongoDB connection closed")

    app = FastAPI(title="Wordingo API", lifespan=lifespan)
    app.state.db = db

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    for router in ROUTERS:
        app.include_router(router, prefix=config.API_PREFIX)

    # ------------------------
    # Routes: Health
    # ------------------------
    @app.get("/")
    def read_root():
        return {"message": "Wordingo API running"}

    @app.get("/test")
    def test_database(request: Request):
        info = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            if request.app.state.db is not None:
                info["database"] = "✅ Available"
                info["connection_status"] = "Connected"
                info["collections"] = request.app.state.db.list_collection_names()
        except PyMongoError as e:
            info["database"] = f"⚠️ Error: {str(e)[:80]}"
        return info

    @app.get(f"{config.API_PREFIX}/health")
    def health():
        return {"status": "OK", "message": "Wordingo API is running!"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
