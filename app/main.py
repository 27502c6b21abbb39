from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.api.v1.api import api_router
from app.db.session import get_pool_status
from app.middleware.request_logging import RequestLoggingMiddleware
from app.middleware.metrics import PrometheusMiddleware, metrics_endpoint, set_app_info
from app.logging_config import setup_logging
from app.services.domain_verification import DomainVerificationError

# ── Initialize structured logging ──
setup_logging()

app = FastAPI(
    title=settings.APP_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# Set all CORS enabled origins
cors_origins = ["http://localhost:3000", "http://localhost:8000"]
if settings.BACKEND_CORS_ORIGINS:
    if isinstance(settings.BACKEND_CORS_ORIGINS, str):
        cors_origins.extend([origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()])
    else:
        cors_origins.extend([str(origin) for origin in settings.BACKEND_CORS_ORIGINS])

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware – request ID, timing, context
app.add_middleware(RequestLoggingMiddleware)

# Prometheus metrics middleware – request count, latency, in-progress
app.add_middleware(PrometheusMiddleware)


@app.exception_handler(DomainVerificationError)
async def domain_verification_error_handler(request: Request, exc: DomainVerificationError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Mount API v1
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def root():
    return {"message": "Welcome to CMMS Domain Verification API", "docs": "/docs"}

@app.get("/health")
def health_check():
    return {"status": "ok", "env": settings.APP_ENV, "db_pool": get_pool_status()}

# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
set_app_info(version="1.0.0", env=settings.APP_ENV)
