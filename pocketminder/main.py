# pocketminder/main.py
from __future__ import annotations

from fastapi import FastAPI

from pocketminder.config import get_settings
from pocketminder.observability import RequestLogMiddleware, configure_logging
from pocketminder.routers.categories import router as categories_router
from pocketminder.routers.engine import router as engine_router
from pocketminder.routers.recurring import router as recurring_router
from pocketminder.routers.system import router as system_router
from pocketminder.routers.users import router as users_router

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Pocketminder", version="0.1.0")

app.add_middleware(RequestLogMiddleware)

# Routers
app.include_router(system_router)
app.include_router(users_router)
app.include_router(recurring_router)
app.include_router(engine_router)
app.include_router(categories_router)
