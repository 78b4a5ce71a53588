# solarcrm/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from solarcrm.config import INSECURE_JWT_SECRET, settings
from solarcrm.db import create_db_and_tables
from solarcrm.logging_config import setup_logging
from solarcrm.services.otp import OtpStore
from solarcrm.storage import uploads_dir

# Routers
from solarcrm.routers.admin import router as admin_router
from solarcrm.routers.amc import router as amc_router
from solarcrm.routers.auth import router as auth_router
from solarcrm.routers.health import router as health_router
from solarcrm.routers.leads import router as leads_router
from solarcrm.routers.posts import router as posts_router
from solarcrm.routers.staff import router as staff_router

logger = logging.getLogger("solarcrm")

app = FastAPI(title="Solar CRM API", version="0.1.0")

# one store per process; tests swap it for one with a fake clock
app.state.otp_store = OtpStore(settings.OTP_TTL_SECONDS, settings.OTP_MAX_ATTEMPTS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error shape: {"error": "..."} ----------
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
    return JSONResponse({"error": f"Invalid request: {loc} {first.get('msg', '')}".strip()}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("[api] unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal Server Error"}, status_code=500)


# ---------- Routers ----------
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(leads_router)
app.include_router(admin_router)
app.include_router(staff_router)
app.include_router(amc_router)
app.include_router(posts_router)

# certificates and post images when no bucket is configured
app.mount("/uploads", StaticFiles(directory=str(uploads_dir())), name="uploads")


# ---------- Startup ----------
@app.on_event("startup")
def on_startup():
    setup_logging()
    create_db_and_tables()
    if settings.JWT_SECRET == INSECURE_JWT_SECRET and settings.ENV != "dev":
        logger.warning("[auth] JWT_SECRET is not set; using the insecure development secret")
    logger.info("Solar CRM API ready (env=%s, bucket=%s)", settings.ENV, settings.AWS_S3_BUCKET or "-")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("solarcrm.main:app", host="0.0.0.0", port=settings.PORT)
