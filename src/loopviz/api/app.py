"""FastAPI application factory."""

from pathlib import Path

from fastapi import FastAPI

from loopviz.api import routes
from loopviz.core.manager import RunManager


def create_app(run_dir: Path | None = None) -> FastAPI:
    app = FastAPI(title="loopviz", version="0.1.0")
    manager = RunManager(run_dir)
    routes.configure_runs(manager)
    app.state.runs = manager
    app.include_router(routes.router)
    return app
