"""
API Dependencies

Accessors for the long-lived services built in the application lifespan
and stored on ``app.state.services``.
"""

from fastapi import Request

from brainboard.repositories.boards import BoardRepository
from brainboard.services.factory import ServiceContainer
from brainboard.services.insights import InsightOrchestrator


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_repository(request: Request) -> BoardRepository:
    return get_services(request).repository


def get_orchestrator(request: Request) -> InsightOrchestrator:
    return get_services(request).orchestrator
