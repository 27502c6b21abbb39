from fastapi import APIRouter
from app.api.v1.endpoints import domain_verification

api_router = APIRouter()
api_router.include_router(
    domain_verification.router, prefix="/domain-verification", tags=["domain-verification"]
)
