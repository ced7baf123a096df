"""Wire models of the document management endpoints.

Shared by the API server (request/response validation) and the indexer's
backend client (response parsing). JSON keys are camelCase.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MD5_PATTERN = r"^[a-fA-F0-9]{32}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class DocumentCreate(CamelModel):
    workspace_id: str = Field(min_length=1)
    file_remote: str = ""
    file_path: str = Field(min_length=1)


class DocumentUpdate(CamelModel):
    file_md5_hash: str = Field(pattern=MD5_PATTERN)


class DocumentId(CamelModel):
    id: str


class DocumentHash(CamelModel):
    id: str
    file_md5_hash: str


class DocumentOut(CamelModel):
    id: str
    workspace_id: str
    file_path: str
    file_remote: str
    file_md5_hash: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    last_checked_at: datetime | None = None


class EmbeddingCreate(CamelModel):
    embedding: list[float] = Field(min_length=1)
    chunk_text: str
    metadata: dict | None = None


class EmbeddingOut(CamelModel):
    id: str
    document_id: str
    created_at: datetime


class EmbeddingsDeleted(CamelModel):
    message: str
    deleted_count: int
