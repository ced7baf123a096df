"""Tests for permission matching and the authentication strategies."""

import pytest

from server.dependencies.auth import by_api_key, by_bearer_token, by_owui, extract_bearer_token, match
from server.models.permissions import WorkspacePermission, can_write, readable_workspaces
from shared.models.exceptions import AuthenticationFailed


class TestMatch:
    def test_rw_grants_read_and_write(self, api_config):
        permissions = match(api_config.permissions, "key-eng")

        assert permissions == [
            WorkspacePermission(workspace="eng", access=["read", "write"]),
            WorkspacePermission(workspace="docs", access=["read"]),
        ]

    def test_unknown_key(self, api_config):
        assert match(api_config.permissions, "key-unknown") == []

    def test_email_restricts_grants(self, api_config):
        """Grants without the user are skipped when an email is given."""
        assert len(match(api_config.permissions, "key-eng", "alice@example.com")) == 2
        assert match(api_config.permissions, "key-eng", "bob@example.com") == []
        assert match(api_config.permissions, "key-sales", "alice@example.com") == []

    def test_readable_and_writable(self, api_config):
        permissions = match(api_config.permissions, "key-eng")

        assert readable_workspaces(permissions) == ["eng", "docs"]
        assert can_write(permissions, "eng")
        assert not can_write(permissions, "docs")
        assert not can_write(permissions, "sales")


class TestStrategies:
    def test_api_key(self, api_config):
        permissions = by_api_key(api_config.permissions, {"x-api-key": "key-sales"})
        assert [p.workspace for p in permissions] == ["sales"]

    def test_api_key_missing(self, api_config):
        with pytest.raises(AuthenticationFailed):
            by_api_key(api_config.permissions, {})

    def test_bearer_token(self, api_config):
        permissions = by_bearer_token(api_config.permissions, {"authorization": "Bearer key-eng"})
        assert [p.workspace for p in permissions] == ["eng", "docs"]

    def test_bearer_token_without_match(self, api_config):
        with pytest.raises(AuthenticationFailed):
            by_bearer_token(api_config.permissions, {"authorization": "Bearer nope"})

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Bearer    "])
    def test_malformed_authorization(self, header):
        with pytest.raises(AuthenticationFailed):
            extract_bearer_token(header)

    def test_owui(self, api_config):
        headers = {"authorization": "Bearer key-eng", "x-openwebui-user-email": "alice@example.com"}
        assert len(by_owui(api_config.permissions, headers)) == 2

    def test_owui_unknown_user(self, api_config):
        headers = {"authorization": "Bearer key-eng", "x-openwebui-user-email": "mallory@example.com"}
        with pytest.raises(AuthenticationFailed):
            by_owui(api_config.permissions, headers)
