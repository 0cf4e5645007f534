"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, Request

from ledger_engine.engine import LedgerEngine


def get_engine(request: Request) -> LedgerEngine:
    """The engine built by the application factory."""
    return request.app.state.engine


def get_actor_id(
    x_actor_id: Annotated[str | None, Header(max_length=100)] = None
) -> str | None:
    """Authenticated actor for audit attribution, passed in by the gateway."""
    if x_actor_id is None or not x_actor_id.strip():
        return None
    return x_actor_id.strip()


# Type aliases for cleaner dependency injection
Engine = Annotated[LedgerEngine, Depends(get_engine)]
ActorId = Annotated[str | None, Depends(get_actor_id)]
