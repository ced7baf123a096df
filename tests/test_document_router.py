"""Tests for the document management endpoints used by the indexer."""

from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from server.api_server import create_app
from server.db.models import Document, Embedding

ENG = {"x-api-key": "key-eng"}
SALES = {"x-api-key": "key-sales"}
HASH = "0cc175b9c0f1b6a831c399e269772661"


@pytest.fixture
def client(api_config, api_database, logger):
    app = create_app()
    app.state.logging = logger
    app.state.config = api_config
    app.state.database = api_database
    return TestClient(app)


def create(client, file_path: str, workspace_id: str = "eng", headers=ENG):
    return client.post(
        "/documents",
        json={"workspaceId": workspace_id, "fileRemote": "", "filePath": file_path},
        headers=headers,
    )


def embedding_count(database, document_id: str) -> int:
    with database.session() as session:
        return session.scalar(select(func.count()).select_from(Embedding).where(Embedding.document_id == document_id))


class TestCreate:
    def test_create(self, client):
        response = create(client, "/data/eng/a.md")

        assert response.status_code == 201
        data = response.json()
        assert data["workspaceId"] == "eng"
        assert data["filePath"] == "/data/eng/a.md"
        assert data["fileMd5Hash"] is None
        assert data["updatedAt"] is None
        assert len(data["id"]) == 32

    def test_duplicate_path(self, client):
        first = create(client, "/data/eng/a.md").json()
        response = create(client, "/data/eng/a.md")

        assert response.status_code == 409
        assert response.json() == {"error": "Document with this path already exists", "id": first["id"]}

    def test_same_path_in_other_workspace(self, client, api_database):
        """Paths are unique per workspace."""
        with api_database.session() as session:
            session.add(Document(workspace_id="sales", file_path="/shared/a.md"))
            session.commit()

        response = create(client, "/shared/a.md")

        assert response.status_code == 201

    def test_missing_field(self, client):
        response = client.post("/documents", json={"workspaceId": "eng"}, headers=ENG)

        assert response.status_code == 400
        assert "body.filePath: Field required" in response.json()["details"]

    def test_read_only_workspace(self, client):
        assert create(client, "/data/docs/a.md", workspace_id="docs").status_code == 403
        assert create(client, "/data/sales/a.md", workspace_id="sales", headers=SALES).status_code == 403

    def test_missing_credentials(self, client):
        assert create(client, "/data/eng/a.md", headers={}).status_code == 401

    def test_bearer_token(self, client):
        response = create(client, "/data/eng/b.md", headers={"Authorization": "Bearer key-eng"})
        assert response.status_code == 201


class TestLookup:
    def test_by_path_and_workspace(self, client):
        id = create(client, "/data/eng/my file.md").json()["id"]

        response = client.get(
            "/document",
            headers={**ENG, "x-file-path": quote("/data/eng/my file.md", safe=""), "x-workspace-id": "eng"},
        )

        assert response.status_code == 200
        assert response.json() == {"id": id}

    def test_by_hash(self, client):
        id = create(client, "/data/eng/a.md").json()["id"]
        client.put(f"/documents/{id}", json={"fileMd5Hash": HASH}, headers=ENG)

        response = client.get("/document", headers={**ENG, "x-file-hash": HASH})

        assert response.json() == {"id": id}

    def test_required_fields(self, client):
        response = client.get("/document", headers=ENG)

        assert response.status_code == 400
        assert response.json() == {"error": "Required fields missing"}

    def test_not_found(self, client):
        response = client.get("/document", headers={**ENG, "x-file-path": "nope"})

        assert response.status_code == 404
        assert response.json() == {"error": "Document not found"}

    def test_other_workspace_is_invisible(self, client):
        id = create(client, "/data/eng/a.md").json()["id"]
        assert client.get("/document", headers={**SALES, "x-id": id}).status_code == 404

    def test_invalid_hash(self, client):
        response = client.get("/document", headers={**ENG, "x-file-hash": "xyz"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request"
        assert any(detail.startswith("header.x-file-hash") for detail in body["details"])


class TestUpdateAndDelete:
    def test_update_hash(self, client):
        id = create(client, "/data/eng/a.md").json()["id"]

        response = client.put(f"/documents/{id}", json={"fileMd5Hash": HASH}, headers=ENG)

        assert response.status_code == 200
        assert response.json() == {"id": id, "fileMd5Hash": HASH}

    def test_update_invalid_hash(self, client):
        id = create(client, "/data/eng/a.md").json()["id"]
        assert client.put(f"/documents/{id}", json={"fileMd5Hash": "abc"}, headers=ENG).status_code == 400

    def test_update_unknown(self, client):
        assert client.put("/documents/nope", json={"fileMd5Hash": HASH}, headers=ENG).status_code == 404

    def test_delete_cascades_to_embeddings(self, client, api_database):
        id = create(client, "/data/eng/a.md").json()["id"]
        client.post(f"/documents/{id}/embeddings", json={"embedding": [0.1, 0.2], "chunkText": "a"}, headers=ENG)

        response = client.delete(f"/documents/{id}", headers=ENG)

        assert response.status_code == 204
        assert embedding_count(api_database, id) == 0
        assert client.delete(f"/documents/{id}", headers=ENG).status_code == 404

    def test_delete_needs_write_access(self, client, api_database):
        with api_database.session() as session:
            document = Document(workspace_id="docs", file_path="/data/docs/a.md")
            session.add(document)
            session.commit()
            id = document.id

        assert client.delete(f"/documents/{id}", headers=ENG).status_code == 403
        assert client.delete(f"/documents/{id}", headers=SALES).status_code == 404


class TestFind:
    def test_paging(self, client):
        ids = [create(client, f"/data/eng/{name}.md").json()["id"] for name in ("a", "b", "c")]

        first = client.get("/documents", params={"limit": 2}, headers=ENG).json()
        second = client.get("/documents", params={"limit": 2, "offset": 2}, headers=ENG).json()

        assert len(first) == 2
        assert len(second) == 1
        assert sorted(d["id"] for d in first + second) == sorted(ids)

    def test_limit_bounds(self, client):
        assert client.get("/documents", params={"limit": 0}, headers=ENG).status_code == 400
        assert client.get("/documents", params={"limit": 1001}, headers=ENG).status_code == 400

    def test_only_readable_workspaces(self, client):
        create(client, "/data/eng/a.md")
        assert client.get("/documents", headers=SALES).json() == []

    def test_mark_and_omit_last_checked(self, client):
        create(client, "/data/eng/a.md")
        create(client, "/data/eng/b.md")

        marked = client.get("/documents", params={"limit": 1}, headers={**ENG, "x-mark-last-checked-at": "true"}).json()
        rest = client.get("/documents", headers={**ENG, "x-omit-last-checked": "true"}).json()

        assert marked[0]["lastCheckedAt"] is not None
        assert marked[0]["id"] not in [d["id"] for d in rest]
        assert len(rest) == 1

    def test_omit_last_updated(self, client):
        updated = create(client, "/data/eng/a.md").json()["id"]
        untouched = create(client, "/data/eng/b.md").json()["id"]
        client.post(f"/documents/{updated}/embeddings", json={"embedding": [0.1], "chunkText": "a"}, headers=ENG)

        response = client.get("/documents", headers={**ENG, "x-omit-last-updated": "true"}).json()

        assert [d["id"] for d in response] == [untouched]


class TestEmbeddings:
    def test_add(self, client, api_database):
        id = create(client, "/data/eng/a.md").json()["id"]

        response = client.post(
            f"/documents/{id}/embeddings",
            json={"embedding": [0.1, 0.2, 0.3], "chunkText": "hello", "metadata": {"page": 1}},
            headers=ENG,
        )

        assert response.status_code == 201
        assert response.json()["documentId"] == id
        assert embedding_count(api_database, id) == 1
        document = client.get("/documents", headers=ENG).json()[0]
        assert document["updatedAt"] is not None

    def test_add_requires_vector(self, client):
        id = create(client, "/data/eng/a.md").json()["id"]
        response = client.post(f"/documents/{id}/embeddings", json={"embedding": [], "chunkText": "x"}, headers=ENG)
        assert response.status_code == 400

    def test_delete_all(self, client, api_database):
        id = create(client, "/data/eng/a.md").json()["id"]
        for text in ("a", "b"):
            client.post(f"/documents/{id}/embeddings", json={"embedding": [0.1], "chunkText": text}, headers=ENG)

        response = client.delete(f"/documents/{id}/embeddings", headers=ENG)

        assert response.status_code == 200
        assert response.json() == {"message": "Deleted 2 embeddings", "deletedCount": 2}
        assert embedding_count(api_database, id) == 0

    def test_delete_from_chunk(self, client, api_database):
        id = create(client, "/data/eng/a.md").json()["id"]
        for index in range(4):
            client.post(
                f"/documents/{id}/embeddings",
                json={"embedding": [0.1], "chunkText": f"chunk {index}", "metadata": {"chunk": index}},
                headers=ENG,
            )

        response = client.delete(f"/documents/{id}/embeddings", params={"fromChunk": 2}, headers=ENG)

        assert response.json()["deletedCount"] == 2
        with api_database.session() as session:
            kept = session.scalars(select(Embedding.content).where(Embedding.document_id == id)).all()
        assert sorted(kept) == ["chunk 0", "chunk 1"]

    def test_unknown_document(self, client):
        response = client.post("/documents/nope/embeddings", json={"embedding": [0.1], "chunkText": "x"}, headers=ENG)
        assert response.status_code == 404
