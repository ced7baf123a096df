"""Central configuration helper for the sufle services.

Process level settings (paths, log level, timeouts) come from environment
variables. Application settings come from a YAML file which is validated
against a pydantic schema after environment overrides have been applied.
"""

import logging
import os
from pathlib import Path
from typing import Any, Mapping, TypeVar

import yaml
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from shared.models.exceptions import ConfigInvalid

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class HelperConfig:
    """Central configuration helper. Reads environment variables and YAML config files."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    ##########################################
    ############## ENVIRONMENT ###############
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (str | None): Fallback value if the variable is not set.

        Returns:
            str: The resolved value.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        val = os.getenv(key) or None  # empty string → None
        if val is None and default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return val.strip() if val is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (float | int | None): Fallback value if the variable is not set.

        Returns:
            float | int: The resolved numeric value.

        Raises:
            ValueError: If the variable is not set and no default is provided,
                or if the value cannot be parsed as a number.
        """
        key = key.upper()
        raw = os.getenv(key) or None
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        try:
            return int(raw) if "." not in raw else float(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean environment variable ("true", "1" and "yes" are truthy).

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        raw = os.getenv(key) or None
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_config_path(self) -> str:
        return self.get_string_val("CONFIG_PATH", default="sufle.yml")

    def get_db_path(self) -> str:
        return self.get_string_val("DB_PATH", default="./db/db.sqlite")

    def get_logger(self) -> logging.Logger:
        """Return the application logger."""
        return self._logger

    ##########################################
    ############## YAML CONFIG ###############
    ##########################################

    def open(self, path: str | None) -> str:
        """Read a configuration file.

        Args:
            path (str | None): Path to the YAML file.

        Returns:
            str: The raw file content.

        Raises:
            ConfigInvalid: If no file name is given or the file does not exist.
        """
        if not path:
            raise ConfigInvalid(["config: file name not specified"])
        file = Path(path)
        if not file.is_file():
            raise ConfigInvalid([f"config: file '{path}' not found"])
        return file.read_text(encoding="utf-8")

    @staticmethod
    def apply_env_overrides(data: Any, environ: Mapping[str, str] | None = None, prefix: str = "") -> Any:
        """Overlay environment variables onto parsed YAML data by dotted path.

        A variable named ``RAG__EMBEDDINGS__OPTS__API_KEY`` maps to the path
        ``rag.embeddings.opts.api_key``. Numeric segments index lists. Only
        paths which already exist in ``data`` are replaced.

        Args:
            data (Any): The parsed YAML document. Modified in place.
            environ (Mapping[str, str] | None): Variables to apply, defaults to ``os.environ``.
            prefix (str): Only variables starting with this prefix are considered; it is stripped before matching.

        Returns:
            Any: The same ``data`` object.
        """
        environ = os.environ if environ is None else environ
        for key, value in environ.items():
            if not key.startswith(prefix):
                continue
            path = key[len(prefix):].lower().replace("__", ".").split(".")
            parent = _resolve_parent(data, path)
            if parent is None:
                continue
            container, last = parent
            container[last] = value
        return data

    def raw(self, path: str | None, schema: type[SchemaT]) -> dict:
        """Load, override and validate a config file, returning snake_case data."""
        return self.parse(path, schema).model_dump()

    def parse(self, path: str | None, schema: type[SchemaT]) -> SchemaT:
        """Load, override and validate a config file.

        Args:
            path (str | None): Path to the YAML file.
            schema (type[SchemaT]): The pydantic model describing the file.

        Returns:
            SchemaT: The validated, immutable configuration.

        Raises:
            ConfigInvalid: If the file is missing, is not valid YAML or violates the schema.
        """
        content = self.open(path)
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigInvalid([f"config: invalid YAML ({e})"])

        data = self.apply_env_overrides(data)
        try:
            config = schema.model_validate(data)
        except ValidationError as e:
            violations = [
                "%s: %s" % (".".join(str(loc) for loc in error["loc"]) or "config", error["msg"])
                for error in e.errors()
            ]
            raise ConfigInvalid(violations)

        self._logger.debug("Loaded %s from '%s'", schema.__name__, path)
        return config

    def parse_camel(self, path: str | None, schema: type[SchemaT]) -> dict:
        """Same as parse(), with every key converted to camelCase."""
        return keys_to_camel_case(self.raw(path, schema))


def keys_to_camel_case(value: Any) -> Any:
    """Recursively convert all dict keys from snake_case to camelCase."""
    if isinstance(value, list):
        return [keys_to_camel_case(item) for item in value]
    if isinstance(value, dict):
        return {to_camel(str(key)): keys_to_camel_case(item) for key, item in value.items()}
    return value


def _resolve_parent(data: Any, path: list[str]) -> tuple[Any, Any] | None:
    """Walk ``path`` and return (container, key) of its last segment if the full path exists."""
    node = data
    for index, segment in enumerate(path):
        if isinstance(node, dict):
            if segment not in node:
                return None
            key: Any = segment
        elif isinstance(node, list):
            if not segment.isdigit() or int(segment) >= len(node):
                return None
            key = int(segment)
        else:
            return None
        if index == len(path) - 1:
            return node, key
        node = node[key]
    return None
