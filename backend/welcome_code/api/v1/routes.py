from fastapi import APIRouter

from welcome_code.api.v1 import welcome

api_router = APIRouter()

api_router.include_router(welcome.router)


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@api_router.get("/health/ready", tags=["health"])
def readiness() -> dict[str, str]:
    return {"status": "ready"}
