from fastapi import APIRouter
from fastapi.responses import PlainTextResponse  # plain "ok" for health checks

router = APIRouter()  # group of routes


@router.get("/healthz", response_class=PlainTextResponse)  # tiny health check
def healthz():
    return "ok"
