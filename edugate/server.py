"""edugate API server — one POST endpoint in front of the hosted LLM.

Usage:
    uvicorn edugate.server:app --host 0.0.0.0 --port 8080
    # or
    edugate serve --port 8080

Curl:
    curl http://localhost:8080/api/ai -d '{"action":"chat","message":"What is a thesis statement?","grade":"7"}'
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from edugate.env_config import EnvConfig, get_env_config
from edugate.logging_setup import setup_logging
from edugate.models import ChatRequest, HealthResponse
from edugate.orchestrator import Services, build_services

logger = logging.getLogger("edugate.server")

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _services(request: Request) -> Services:
    return request.app.state.services


def create_app(config: EnvConfig | None = None, dotenv_path: str | None = None) -> FastAPI:
    """Factory: the returned app builds its services on start-up and closes them on shutdown.

    Reads .env first, unless an explicit EnvConfig is given.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or get_env_config(dotenv_path)
        setup_logging(level=cfg.log_level, markdown_file=cfg.log_file)
        app.state.services = await build_services(cfg)
        try:
            yield
        finally:
            await app.state.services.aclose()

    import edugate

    app = FastAPI(
        title="edugate API",
        description="Grade-aware safety proxy for a hosted LLM.",
        version=edugate.__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.options("/api/ai")
    async def ai_preflight() -> Response:
        return Response(status_code=200, headers=_CORS_HEADERS)

    @app.post("/api/ai")
    async def ai(request: Request) -> JSONResponse:
        try:
            body: Any = await request.json() if await request.body() else {}
            if not isinstance(body, dict):
                body = {}
            req = ChatRequest.model_validate(body)
            result = await _services(request).orchestrator.handle(req)
        except Exception as e:
            logger.exception(f"Handler error: {e}")
            return JSONResponse(status_code=500, content={"error": str(e) or type(e).__name__})
        return JSONResponse(status_code=200, content=result.to_json())

    @app.api_route("/api/ai", methods=["GET", "PUT", "PATCH", "DELETE", "HEAD"], include_in_schema=False)
    async def ai_wrong_method() -> JSONResponse:
        return JSONResponse(status_code=405, content={"error": "POST required"})

    @app.get("/api/health")
    @app.get("/health", include_in_schema=False)
    async def health(request: Request) -> JSONResponse:
        report = _services(request).health()
        body = HealthResponse(version=edugate.__version__, **report)
        return JSONResponse(content=body.model_dump(by_alias=True))

    return app


app = create_app()
