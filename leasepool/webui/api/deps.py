"""Request-scoped access to the pool engine"""

from fastapi import Request

from leasepool.core.pool import LeasePoolEngine


def get_pool(request: Request) -> LeasePoolEngine:
    """FastAPI dependency returning the engine installed on app.state"""
    return request.app.state.engine
