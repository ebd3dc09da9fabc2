"""FastAPI dependencies for the realtime layer.

Learn: The registry and dispatcher are built in create_app() and hung
off app.state. Handlers ask for them via Depends(), which also lets
tests reach the exact instances a request used.
"""

from fastapi import Request

from droneflow.realtime.dispatcher import BroadcastDispatcher
from droneflow.realtime.registry import ConnectionRegistry


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_dispatcher(request: Request) -> BroadcastDispatcher:
    return request.app.state.dispatcher
