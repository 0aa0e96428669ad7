"""
Request-scoped access to the service built by the entry point.
"""

from fastapi import Request

from ..service import PairingService


def get_service(request: Request) -> PairingService:
    return request.app.state.service
