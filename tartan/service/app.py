"""FastAPI application entrypoint for tartan service mode."""

from __future__ import annotations

import asyncio
import dataclasses
from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ProjectConfig, load_config
from ..orchestrator import BuildReport
from ..project import TartanProject


class BuildRequest(BaseModel):
    config_file: str
    output_dir: Optional[str] = None


class BuildResponse(BaseModel):
    status: str
    output_dir: str
    pages: int
    assets: int
    handoffs: int


class HealthResponse(BaseModel):
    status: str


ProjectFactory = Callable[[ProjectConfig], TartanProject]


def _default_project_factory() -> ProjectFactory:
    return TartanProject


def create_app(
    project_factory: Callable[[], ProjectFactory] = _default_project_factory,
) -> FastAPI:
    """Create the FastAPI application exposing tartan builds."""

    app = FastAPI(title="Tartan Service", version="1.0.0")

    async def get_project_factory() -> ProjectFactory:
        return project_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/build", response_model=BuildResponse)
    async def build_site(
        payload: BuildRequest,
        factory: ProjectFactory = Depends(get_project_factory),
    ) -> BuildResponse:
        config_path = Path(payload.config_file).expanduser().resolve()

        def _run_build() -> tuple[ProjectConfig, BuildReport]:
            config = load_config(config_path)
            if payload.output_dir:
                config = dataclasses.replace(config, output_dir=Path(payload.output_dir))
            project = factory(config)
            return config, project.build(config.base_dir)

        # Builds are synchronous and may run collaborators that start their own event loop.
        loop = asyncio.get_running_loop()
        config, report = await loop.run_in_executor(None, _run_build)
        return BuildResponse(
            status="ok",
            output_dir=str(config.output_dir),
            pages=len(report.pages),
            assets=len(report.assets),
            handoffs=len(report.handoffs),
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    try:
        import uvicorn
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install uvicorn`."
        ) from exc

    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = ["BuildRequest", "BuildResponse", "HealthResponse", "create_app", "run_service"]
