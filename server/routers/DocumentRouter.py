"""Document management endpoints used by the indexer.

Documents are only visible in workspaces the caller may read. Changing a
document or its embeddings requires write access to its workspace.
"""

import json
from datetime import timedelta
from urllib.parse import unquote

import sqlite_vec
from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from server.db.models import Document, Embedding
from server.dependencies.auth import verify_document_access
from server.dependencies.database import get_session
from server.models.permissions import WorkspacePermission, can_write, readable_workspaces
from shared.db.columns import utcnow
from shared.models.document import (
    MD5_PATTERN,
    DocumentCreate,
    DocumentHash,
    DocumentId,
    DocumentOut,
    DocumentUpdate,
    EmbeddingCreate,
    EmbeddingOut,
    EmbeddingsDeleted,
)

router = APIRouter(tags=["documents"])

# a document is not returned again by GET /documents within this interval
RECHECK_INTERVAL = timedelta(minutes=1)


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Document not found"})


def _forbidden(workspace_id: str) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": f"No write access to workspace '{workspace_id}'"})


def _find_readable(db: Session, id: str, permissions: list[WorkspacePermission]) -> Document | None:
    return db.scalars(
        select(Document).where(Document.id == id, Document.workspace_id.in_(readable_workspaces(permissions)))
    ).first()


##########################################
################ DOCUMENTS ###############
##########################################

@router.get("/document", response_model=DocumentId)
def get_document(
    request: Request,
    x_id: str | None = Header(default=None),
    x_file_path: str | None = Header(default=None),
    x_file_hash: str | None = Header(default=None, pattern=MD5_PATTERN),
    x_workspace_id: str | None = Header(default=None),
    permissions: list[WorkspacePermission] = Depends(verify_document_access),
    db: Session = Depends(get_session),
):
    """Look up a document by any combination of id, path, hash and workspace.

    Path and workspace headers are URI encoded.
    """
    if x_id is None and x_file_path is None and x_file_hash is None and x_workspace_id is None:
        return JSONResponse(status_code=400, content={"error": "Required fields missing"})

    query = select(Document).where(Document.workspace_id.in_(readable_workspaces(permissions)))
    if x_id is not None:
        query = query.where(Document.id == x_id)
    if x_file_hash is not None:
        query = query.where(Document.file_md5_hash == x_file_hash)
    if x_file_path is not None:
        query = query.where(Document.file_path == unquote(x_file_path))
    if x_workspace_id is not None:
        query = query.where(Document.workspace_id == unquote(x_workspace_id))

    document = db.scalars(query).first()
    if document is None:
        return _not_found()
    return document


@router.post("/documents", status_code=201, response_model=DocumentOut)
def create_document(
    request: Request,
    body: DocumentCreate,
    permissions: list[WorkspacePermission] = Depends(verify_document_access),
    db: Session = Depends(get_session),
):
    """Create a document. An existing document with the same workspace and path yields 409 and its id."""
    if not can_write(permissions, body.workspace_id):
        return _forbidden(body.workspace_id)

    existing = db.scalars(
        select(Document).where(Document.workspace_id == body.workspace_id, Document.file_path == body.file_path)
    ).first()
    if existing is not None:
        return JSONResponse(
            status_code=409,
            content={"error": "Document with this path already exists", "id": existing.id},
        )

    document = Document(workspace_id=body.workspace_id, file_remote=body.file_remote, file_path=body.file_path)
    db.add(document)
    db.commit()
    request.app.state.logging.debug("Created document %s for '%s' in workspace '%s'.", document.id, body.file_path, body.workspace_id)
    return document


@router.put("/documents/{id}", response_model=DocumentHash)
def update_document(
    id: str,
    body: DocumentUpdate,
    permissions: list[WorkspacePermission] = Depends(verify_document_access),
    db: Session = Depends(get_session),
):
    """Record the hash of the last fully embedded version of a document."""
    document = _find_readable(db, id, permissions)
    if document is None:
        return _not_found()
    if not can_write(permissions, document.workspace_id):
        return _forbidden(document.workspace_id)

    document.file_md5_hash = body.file_md5_hash
    db.commit()
    return document


@router.get("/documents", response_model=list[DocumentOut])
def find_documents(
    request: Request,
    limit: int = Query(default=10, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    x_mark_last_checked_at: bool = Header(default=False),
    x_omit_last_checked: bool = Header(default=False),
    x_omit_last_updated: bool = Header(default=False),
    permissions: list[WorkspacePermission] = Depends(verify_document_access),
    db: Session = Depends(get_session),
):
    """
    List documents, least recently updated and checked first.

    Args:
        limit (int): Page size.
        offset (int): Page offset.
        x_mark_last_checked_at (bool): Set the last checked time of the returned documents to now.
        x_omit_last_checked (bool): Skip documents checked during the last minute.
        x_omit_last_updated (bool): Skip documents updated during the last minute.
    """
    threshold = utcnow() - RECHECK_INTERVAL
    query = select(Document).where(Document.workspace_id.in_(readable_workspaces(permissions)))
    if x_omit_last_checked:
        query = query.where(or_(Document.last_checked_at.is_(None), Document.last_checked_at < threshold))
    if x_omit_last_updated:
        query = query.where(or_(Document.updated_at.is_(None), Document.updated_at < threshold))
    query = query.order_by(
        Document.updated_at.asc(),
        Document.last_checked_at.asc(),
        Document.created_at.asc(),
    ).limit(limit).offset(offset)

    documents = list(db.scalars(query).all())
    request.app.state.logging.info("Loaded %d records.", len(documents))

    if x_mark_last_checked_at and documents:
        now = utcnow()
        for document in documents:
            document.last_checked_at = now
        db.commit()
    return documents


@router.delete("/documents/{id}", status_code=204)
def delete_document(
    request: Request,
    id: str,
    permissions: list[WorkspacePermission] = Depends(verify_document_access),
    db: Session = Depends(get_session),
):
    """Delete a document. Its embeddings are removed by cascade."""
    document = _find_readable(db, id, permissions)
    if document is None:
        return _not_found()
    if not can_write(permissions, document.workspace_id):
        return _forbidden(document.workspace_id)

    db.delete(document)
    db.commit()
    request.app.state.logging.info("Deleted document %s ('%s').", id, document.file_path)
    return Response(status_code=204)


##########################################
############### EMBEDDINGS ###############
##########################################

@router.post("/documents/{id}/embeddings", status_code=201, response_model=EmbeddingOut)
def add_embedding(
    id: str,
    body: EmbeddingCreate,
    permissions: list[WorkspacePermission] = Depends(verify_document_access),
    db: Session = Depends(get_session),
):
    """Store one chunk and its vector. Bumps the document's update time."""
    document = _find_readable(db, id, permissions)
    if document is None:
        return _not_found()
    if not can_write(permissions, document.workspace_id):
        return _forbidden(document.workspace_id)

    embedding = Embedding(
        document_id=id,
        content=body.chunk_text,
        metadata_json=json.dumps(body.metadata) if body.metadata is not None else None,
        embedding=sqlite_vec.serialize_float32(body.embedding),
    )
    db.add(embedding)
    document.updated_at = utcnow()
    db.commit()
    return embedding


@router.delete("/documents/{id}/embeddings", response_model=EmbeddingsDeleted)
def delete_embeddings(
    id: str,
    from_chunk: int | None = Query(default=None, ge=0, alias="fromChunk"),
    permissions: list[WorkspacePermission] = Depends(verify_document_access),
    db: Session = Depends(get_session),
):
    """Delete the embeddings of a document, only those from chunk index fromChunk on if given."""
    document = _find_readable(db, id, permissions)
    if document is None:
        return _not_found()
    if not can_write(permissions, document.workspace_id):
        return _forbidden(document.workspace_id)

    statement = delete(Embedding).where(Embedding.document_id == id)
    if from_chunk is not None:
        statement = statement.where(func.json_extract(Embedding.metadata_json, "$.chunk") >= from_chunk)
    result = db.execute(statement.execution_options(synchronize_session=False))
    db.commit()
    return EmbeddingsDeleted(message=f"Deleted {result.rowcount} embeddings", deleted_count=result.rowcount)
