from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData, RequestFiles
from pydantic import BaseModel

from shared.helper.HelperConfig import HelperConfig
from shared.models.exceptions import ConfigInvalid


class ClientInterface(ABC):
    """Base class of all HTTP backed provider clients (llm, embed, storage, weather).

    A client is configured by the ``opts`` block of its provider entry and owns one
    ``httpx.AsyncClient`` between ``boot()`` and ``close()``.
    """

    def __init__(self, helper_config: HelperConfig, opts: BaseModel | None = None):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._opts = opts
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=60.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Checks that every option listed by _get_required_config() is present.

        Raises:
            ConfigInvalid: Lists each missing option by its config path.
        """
        missing = [
            f"{self.get_client_type()}.{self.get_engine_name()}.opts.{key}: required"
            for key in self._get_required_config()
            if not self.get_config_val(key)
        ]
        if missing:
            raise ConfigInvalid(missing)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """Lowercase client kind, e.g. "embed"."""
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """Lowercase provider name, e.g. "ollama"."""
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[str]:
        """
        Names of the options which must be set for this provider.

        Returns:
            list[str]: Option names, e.g. ["model", "api_key"].
        """
        pass

    def get_config_val(self, key: str, default: Any = None) -> Any:
        """
        Reads one option from the provider's opts block.

        Args:
            key (str): The option name (e.g. "base_url")
            default (Any): Returned when the option is missing or empty
        """
        if self._opts is None:
            return default
        val = getattr(self._opts, key, None)
        return default if val in (None, "") else val

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers carrying the provider credentials, empty when none are configured."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """Provider base URL, e.g. "http://localhost:11434"."""
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """Path probed by do_healthcheck(), e.g. "/api/tags"."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Sends a GET to the provider's healthcheck endpoint and returns the raw response."""
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        files: RequestFiles | None = None,
        json: dict | list | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Sends a request to the provider with its auth headers applied.

        Only one body is sent, picked in the order content, data, files, json.
        Headers from additional_headers win over the auth headers.

        Args:
            method: HTTP verb.
            content: Raw body, the caller sets its Content-Type.
            data: Form body.
            files: Multipart upload.
            json: JSON body.
            params: Query string.
            endpoint: Path below the base URL, the leading slash is optional.
            additional_headers: Extra request headers.
            raise_on_error: Raise when the status is 300 or above.

        Returns:
            httpx.Response: The unparsed response.

        Raises:
            Exception: If boot() was not called, or on a failed status with raise_on_error.
        """
        if self._client is None:
            raise Exception("HTTP client not initialised. Call boot() before making requests.")

        path = endpoint.strip().lstrip("/")
        url = self._get_base_url().rstrip("/") + (f"/{path}" if path else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        body: dict = {}
        for name, value in (("content", content), ("data", data), ("files", files), ("json", json)):
            if value is not None:
                body[name] = value
                break

        response = await self._client.request(
            method, url, headers=headers, params=params, timeout=self.timeout, **body
        )

        if raise_on_error and response.status_code >= 300:
            self.logging.error("Request to %s failed with status %d: %s", url, response.status_code, response.text[:500])
            raise Exception(f"Request to {url} failed with status {response.status_code}")

        return response
