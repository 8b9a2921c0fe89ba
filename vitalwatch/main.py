from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vitalwatch.core.config import settings
from vitalwatch.core.logging import setup_logging
from vitalwatch.core.middleware import StructlogMiddleware
from vitalwatch.modules.monitoring import router as monitoring_router
from vitalwatch.modules.monitoring.service import monitoring_service

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    monitoring_service.prime()
    if settings.MONITORING_AUTOSTART:
        await monitoring_service.start_monitoring()
    app.state.monitoring_service = monitoring_service

    yield

    # Shutdown
    await monitoring_service.stop_monitoring()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    ## VitalWatch Monitoring API

    Real-time vital-sign monitoring and alerting engine:
    * **Vitals**: current readings, bounded history and per-metric trends
    * **Alerts**: threshold breaches with acknowledgment lifecycle
    * **Streams**: `vital_update` / `critical_event` pushes over SSE or WebSocket
    """,
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(StructlogMiddleware)

app.include_router(
    monitoring_router.router,
    prefix=f"{settings.API_V1_STR}/monitoring",
    tags=["monitoring"],
)


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
