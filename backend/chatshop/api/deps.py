"""FastAPI dependencies."""
from fastapi import Request

from chatshop.agent.runtime import Runtime, get_runtime


def get_runtime_dep(request: Request) -> Runtime:
    """Runtime attached by the app lifespan; falls back to the process singleton."""
    runtime = getattr(request.app.state, "runtime", None)
    return runtime or get_runtime()
