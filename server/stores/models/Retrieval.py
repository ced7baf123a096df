from typing import Any

from pydantic import BaseModel


class RetrievedChunk(BaseModel):
    id: str
    document_id: str
    workspace_id: str
    file_path: str
    content: str
    distance: float


class StoreFilter:
    """Backend specific restriction of the searchable embeddings.

    Attributes:
        clause (Any): The backend's query restriction (a SQLAlchemy expression for sqlite).
        workspaces (list[str]): The workspaces the restriction admits.
    """

    def __init__(self, clause: Any, workspaces: list[str]):
        self.clause = clause
        self.workspaces = workspaces

    def __repr__(self) -> str:
        return f"StoreFilter(workspaces={self.workspaces!r})"
