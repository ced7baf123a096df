from typing import Literal

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ChatProvider = Literal["google", "openai", "ollama"]
EmbeddingsProvider = Literal["google", "openai", "ollama"]
StorageProvider = Literal["local", "rclone"]
VectorStoreProvider = Literal["libsql"]
ToolName = Literal["weather"]
McpTransport = Literal["streamable_http", "sse"]


class FrozenModel(BaseModel):
    """Base for all configuration sections. Loaded once, never mutated."""

    model_config = ConfigDict(frozen=True)


##########################################
################ SHARED ##################
##########################################

class ChatOpts(FrozenModel):
    model: str
    api_key: str = ""
    base_url: str | None = None
    temperature: float = Field(default=0.0, ge=0, le=1)


class ChatConfig(FrozenModel):
    provider: ChatProvider
    opts: ChatOpts


class EmbeddingsOpts(FrozenModel):
    model: str
    api_key: str = ""
    base_url: str | None = None


class EmbeddingsConfig(FrozenModel):
    provider: EmbeddingsProvider
    opts: EmbeddingsOpts


##########################################
################## API ###################
##########################################

class LimitsConfig(FrozenModel):
    max_messages: int = Field(default=64, gt=0)
    max_message_length: int = Field(default=20000, gt=0)
    max_tokens: int = Field(default=32000, gt=0)


class OutputModelConfig(FrozenModel):
    """
    One model exposed through /v1/models.

    Attributes:
        id (str): The model id clients send in chat requests.
        owned_by (str): Reported owner of the model.
        chat (ChatConfig): The chat provider answering for this model.
        limits (LimitsConfig): Conversation limits enforced before any provider call.
        max_iterations (int): Maximum number of tool-calling rounds per request.
    """

    id: str = Field(min_length=1, max_length=128)
    owned_by: str = "sufle"
    chat: ChatConfig
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    max_iterations: int = Field(default=5, ge=1)


class RetrieverOpts(FrozenModel):
    k: int = Field(default=4, ge=1)


class RetrieverConfig(FrozenModel):
    opts: RetrieverOpts = Field(default_factory=RetrieverOpts)


class VectorStoreConfig(FrozenModel):
    provider: VectorStoreProvider = "libsql"


class RagConfig(FrozenModel):
    embeddings: EmbeddingsConfig
    retriever: RetrieverConfig = Field(default_factory=RetrieverConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)


class ToolOpts(FrozenModel):
    api_key: str = ""
    base_url: str | None = None


class ToolConfig(FrozenModel):
    name: ToolName
    opts: ToolOpts = Field(default_factory=ToolOpts)


class McpServerConfig(FrozenModel):
    name: str
    url: str
    transport: McpTransport = "streamable_http"
    headers: dict[str, str] = Field(default_factory=dict)


class PermissionConfig(FrozenModel):
    """
    A permission grant.

    Workspaces are given as "name" (read only) or "name:rw" (read and write).
    """

    users: list[str] = Field(default_factory=list)
    api_keys: list[str] = Field(min_length=1)
    workspaces: list[str] = Field(default_factory=list)


class ApiConfig(FrozenModel):
    output_models: list[OutputModelConfig] = Field(min_length=1)
    rag: RagConfig
    tools: list[ToolConfig] = Field(default_factory=list)
    mcp_servers: list[McpServerConfig] = Field(default_factory=list)
    permissions: list[PermissionConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_model_ids(self) -> "ApiConfig":
        ids = [model.id for model in self.output_models]
        if len(ids) != len(set(ids)):
            raise ValueError("output model ids must be unique")
        return self


##########################################
################ INDEXER #################
##########################################

class BackendConfig(FrozenModel):
    api_key: str
    base_url: str


class ScheduleConfig(FrozenModel):
    index: str = "*/5 * * * *"
    vectorize: str = "*/10 * * * *"
    reduce: str = "0 * * * *"

    @field_validator("index", "vectorize", "reduce")
    @classmethod
    def _valid_crontab(cls, value: str) -> str:
        # raises ValueError on malformed expressions
        CronTrigger.from_crontab(value)
        return value


class StorageOpts(FrozenModel):
    url: str | None = None
    username: str | None = None
    password: str | None = None


class StorageConfig(FrozenModel):
    provider: StorageProvider
    opts: StorageOpts = Field(default_factory=StorageOpts)

    @model_validator(mode="after")
    def _rclone_needs_url(self) -> "StorageConfig":
        if self.provider == "rclone" and not self.opts.url:
            raise ValueError("rclone storage requires opts.url")
        return self


class WorkspaceConfig(FrozenModel):
    id: str = Field(min_length=1)
    remote: str | None = None
    dirs: list[str] = Field(min_length=1)


class IndexerOpts(FrozenModel):
    concurrency: int = Field(default=5, ge=1)
    batch_size: int = Field(default=8, ge=1)
    max_token_size: int = Field(default=1200, ge=1)


class IndexerConfig(FrozenModel):
    backend: BackendConfig
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    embeddings: EmbeddingsConfig
    storage: StorageConfig
    workspaces: list[WorkspaceConfig] = Field(min_length=1)
    indexer: IndexerOpts = Field(default_factory=IndexerOpts)

    @model_validator(mode="after")
    def _rclone_workspaces_need_remote(self) -> "IndexerConfig":
        if self.storage.provider == "rclone":
            missing = [workspace.id for workspace in self.workspaces if not workspace.remote]
            if missing:
                raise ValueError("rclone storage requires a remote for workspaces: %s" % ", ".join(missing))
        return self


##########################################
################## WEB ###################
##########################################

class WebApiConfig(FrozenModel):
    base_url: str = ""
    api_key: str = ""
    model: str = Field(default="sufle", max_length=128)


class WebUiConfig(FrozenModel):
    title: str = "Sufle Chat"
    welcome_message: str = "How can I help you today?"


class WebConfig(FrozenModel):
    api: WebApiConfig = Field(default_factory=WebApiConfig)
    ui: WebUiConfig = Field(default_factory=WebUiConfig)
