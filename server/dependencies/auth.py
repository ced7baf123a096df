"""Request authentication against the configured permission grants.

Three strategies resolve a request to the workspace permissions it holds:
- api key: ``x-api-key`` header
- bearer token: ``Authorization: Bearer <token>``
- OpenWebUI: bearer token plus ``X-OpenWebUI-User-Email``, both listed in the same grant
"""

from typing import Callable, Mapping

from fastapi import HTTPException, Request

from server.models.permissions import WorkspacePermission
from shared.models.config import PermissionConfig
from shared.models.exceptions import AuthenticationFailed

OWUI_EMAIL_HEADER = "x-openwebui-user-email"

Strategy = Callable[[list[PermissionConfig], Mapping[str, str]], list[WorkspacePermission]]


##########################################
################ MATCHING ################
##########################################

def match(permissions: list[PermissionConfig], key: str, email: str | None = None) -> list[WorkspacePermission]:
    """Resolve the workspace permissions of an API key, optionally restricted to a user.

    Args:
        permissions (list[PermissionConfig]): The configured grants.
        key (str): API key or bearer token.
        email (str | None): If given, only grants listing this user match.

    Returns:
        list[WorkspacePermission]: "name:rw" grants read and write, anything else read only.
    """
    resolved: list[WorkspacePermission] = []
    for grant in permissions:
        if key not in grant.api_keys:
            continue
        if email is not None and email not in grant.users:
            continue
        for workspace in grant.workspaces:
            name, _, access = workspace.partition(":")
            resolved.append(
                WorkspacePermission(workspace=name, access=["read", "write"] if access == "rw" else ["read"])
            )
    return resolved


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationFailed("Missing Authorization header.")
    if not authorization.startswith("Bearer "):
        raise AuthenticationFailed("Invalid Authorization header format.")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthenticationFailed("Missing bearer token.")
    return token


def _require(permissions: list[WorkspacePermission]) -> list[WorkspacePermission]:
    if not permissions:
        raise AuthenticationFailed("No matching permissions.")
    return permissions


##########################################
############### STRATEGIES ###############
##########################################

def by_api_key(grants: list[PermissionConfig], headers: Mapping[str, str]) -> list[WorkspacePermission]:
    key = headers.get("x-api-key")
    if not key:
        raise AuthenticationFailed("Missing x-api-key header.")
    return _require(match(grants, key))


def by_bearer_token(grants: list[PermissionConfig], headers: Mapping[str, str]) -> list[WorkspacePermission]:
    token = extract_bearer_token(headers.get("authorization"))
    return _require(match(grants, token))


def by_owui(grants: list[PermissionConfig], headers: Mapping[str, str]) -> list[WorkspacePermission]:
    email = headers.get(OWUI_EMAIL_HEADER)
    if not email:
        raise AuthenticationFailed("Missing X-OpenWebUI-User-Email header.")
    token = extract_bearer_token(headers.get("authorization"))
    return _require(match(grants, token, email))


def authenticate(request: Request, strategies: list[Strategy]) -> list[WorkspacePermission]:
    """Try each strategy in order and return the permissions of the first that succeeds.

    Raises:
        HTTPException: 401 if no strategy succeeds.
    """
    logging = request.app.state.logging
    grants = request.app.state.config.permissions
    reasons = []
    for strategy in strategies:
        try:
            permissions = strategy(grants, request.headers)
        except AuthenticationFailed as e:
            reasons.append(f"{strategy.__name__}: {e}")
            continue
        logging.debug("Request authenticated %s with %d workspace permission(s).", strategy.__name__, len(permissions))
        return permissions

    logging.warning("Authentication failed for %s %s (%s)", request.method, request.url.path, "; ".join(reasons))
    raise HTTPException(status_code=401, detail="Invalid or missing credentials")


##########################################
############### DEPENDENCIES #############
##########################################

async def verify_document_access(request: Request) -> list[WorkspacePermission]:
    """Document endpoints accept an API key or a bearer token."""
    return authenticate(request, [by_api_key, by_bearer_token])


async def verify_chat_access(request: Request) -> list[WorkspacePermission]:
    """Chat endpoints accept a bearer token or an API key.

    Requests carrying X-OpenWebUI-User-Email are only accepted by the OpenWebUI strategy.
    """
    if request.headers.get(OWUI_EMAIL_HEADER):
        return authenticate(request, [by_owui])
    return authenticate(request, [by_bearer_token, by_api_key])
