from fastapi import Request

from backend.app.workflow.batch_manager import BatchOrchestrator


def get_orchestrator(request: Request) -> BatchOrchestrator:
    """Orchestrator created by create_app() for this application."""
    return request.app.state.orchestrator
