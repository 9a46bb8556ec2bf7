"""Shared dependency: orchestrator reference set by app.py during create_app()."""

from __future__ import annotations

from fastapi import HTTPException

_orchestrator = None


def set_orchestrator(orch):
    """Called by create_app() to inject the orchestrator (or a test double)."""
    global _orchestrator
    _orchestrator = orch


def get_orch():
    """Return the current orchestrator or raise 503 when storage is not ready."""
    if _orchestrator is None:
        raise HTTPException(503, "Orchestrator not initialized")
    return _orchestrator


def get_orch_optional():
    return _orchestrator
