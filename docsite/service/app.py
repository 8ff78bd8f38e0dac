"""FastAPI application entrypoint for docsite service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..builder import BuildReport, SiteBuilder
from ..config import SiteConfig, resolve_config


class BuildRequest(BaseModel):
    path: str
    output_dir: Optional[str] = None
    offline: Optional[bool] = None


class BuildResponse(BaseModel):
    status: str
    output_dir: str
    generated: int
    failed: Dict[str, str] = {}
    links: Dict[str, int] = {}
    unresolved_links: Dict[str, List[str]] = {}


class HealthResponse(BaseModel):
    status: str


BuilderFactory = Callable[[SiteConfig], SiteBuilder]


def _default_builder(config: SiteConfig) -> SiteBuilder:
    return SiteBuilder(config)


def create_app(builder_factory: BuilderFactory = _default_builder) -> FastAPI:
    """Create the FastAPI application exposing docsite builds."""

    app = FastAPI(title="docsite", version="0.1.0")

    async def get_builder_factory() -> BuilderFactory:
        return builder_factory

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/build", response_model=BuildResponse)
    async def build_site(
        payload: BuildRequest,
        factory: BuilderFactory = Depends(get_builder_factory),
    ) -> BuildResponse:
        def _run_build() -> BuildReport:
            config = resolve_config(
                payload.path,
                output_dir=payload.output_dir,
                offline=payload.offline,
            )
            return factory(config).build()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:  # pragma: no cover
            report = _run_build()
        else:
            report = await loop.run_in_executor(None, _run_build)

        return BuildResponse(
            status="ok" if not report.failed else "partial",
            output_dir=str(report.output_dir),
            generated=len(report.generated),
            failed=dict(report.failed),
            links=dict(report.link_stats),
            unresolved_links={url: list(sources) for url, sources in report.unresolved_links.items()},
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(
        _: Any, exc: FileNotFoundError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(
        _: Any, exc: RuntimeError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app()
    uvicorn.run(app, host=host, port=port)
