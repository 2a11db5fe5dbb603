"""FastAPI dependencies resolving objects created in the application lifespan."""

from __future__ import annotations

from fastapi import HTTPException, Request

from forge.pipeline.runner import PipelineRunner
from forge.store.protocols import StoreProtocol


def get_runner(request: Request) -> PipelineRunner:
    runner = getattr(request.app.state, "runner", None)
    if runner is None:
        raise HTTPException(status_code=503, detail="Pipeline runner not initialized")
    return runner


def get_store(request: Request) -> StoreProtocol:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Store not initialized")
    return store


__all__ = [
    "get_runner",
    "get_store",
]
