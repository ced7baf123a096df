from typing import Literal

from pydantic import BaseModel

Access = Literal["read", "write"]


class WorkspacePermission(BaseModel):
    workspace: str
    access: list[Access]


def readable_workspaces(permissions: list[WorkspacePermission]) -> list[str]:
    """Return the distinct workspaces granting read access, in grant order."""
    return list(dict.fromkeys(p.workspace for p in permissions if "read" in p.access))


def can_write(permissions: list[WorkspacePermission], workspace: str) -> bool:
    return any(p.workspace == workspace and "write" in p.access for p in permissions)
