from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from passroute.api.routes_route import router as route_router
from passroute.api.routes_segments import router as segments_router
from passroute.api.routes_status import router as status_router
from passroute.api.state import NetworkState
from passroute.logging_config import configure_logging
from passroute.settings import get_config


def create_app(network: Optional[NetworkState] = None) -> FastAPI:
    configure_logging()
    config = get_config()

    app = FastAPI(title="passroute API", version="0.1.0")
    app.state.network = network or NetworkState.from_config(config)

    @app.get("/healthz")
    def healthz() -> dict[str, int | bool]:
        return {"ok": True, "segments": len(app.state.network.reconciler.segments)}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors.allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(segments_router, tags=["segments"])
    app.include_router(status_router, tags=["status"])
    app.include_router(route_router, tags=["routing"])

    return app


app = create_app()
