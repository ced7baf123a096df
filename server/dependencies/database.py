from typing import Iterator

from fastapi import Request
from sqlalchemy.orm import Session


def get_session(request: Request) -> Iterator[Session]:
    """Yield a session of the application database for one request."""
    yield from request.app.state.database.get_db()
