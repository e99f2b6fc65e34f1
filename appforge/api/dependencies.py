"""FastAPI dependencies resolving the services assembled at startup."""
from fastapi import Request

from appforge.services.container import ServiceContainer
from appforge.services.orchestrator import GenerationOrchestrator
from appforge.utils.rate_limiter import RateLimiter


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    return get_services(request).orchestrator


def get_rate_limiter(request: Request) -> RateLimiter:
    return get_services(request).rate_limiter
