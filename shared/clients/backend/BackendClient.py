from urllib.parse import quote

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import BackendConfig
from shared.models.document import DocumentOut


class BackendClient(ClientInterface):
    """Client of the API server's document management endpoints, used by the indexer."""

    def __init__(self, helper_config: HelperConfig, opts: BackendConfig):
        super().__init__(helper_config=helper_config, opts=opts)
        self._base_url = self.get_config_val("base_url")
        self._api_key = self.get_config_val("api_key")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "backend"

    def _get_engine_name(self) -> str:
        return "Sufle"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[str]:
        return ["base_url", "api_key"]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"x-api-key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/"

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    async def do_get_document(
        self,
        file_path: str | None = None,
        workspace_id: str | None = None,
        file_hash: str | None = None,
        id: str | None = None,
    ) -> str | None:
        """
        Look up a document id by any combination of path, workspace, hash and id.

        Returns:
            str | None: The document id, None if no document matches.
        """
        headers = {}
        if id is not None:
            headers["x-id"] = id
        if file_path is not None:
            headers["x-file-path"] = quote(file_path, safe="")
        if file_hash is not None:
            headers["x-file-hash"] = file_hash
        if workspace_id is not None:
            headers["x-workspace-id"] = quote(workspace_id, safe="")

        response = await self.do_request(method="GET", endpoint="/document", additional_headers=headers)
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise Exception("Document lookup failed with status %d." % response.status_code)
        return response.json()["id"]

    async def do_create_document(self, workspace_id: str, file_remote: str, file_path: str) -> tuple[str, bool]:
        """
        Create a document.

        Returns:
            tuple[str, bool]: The document id and whether it was newly created.
                An existing document (409) returns its id and False.
        """
        response = await self.do_request(
            method="POST",
            endpoint="/documents",
            json={"workspaceId": workspace_id, "fileRemote": file_remote, "filePath": file_path},
        )
        if response.status_code == 409:
            return response.json()["id"], False
        if response.status_code != 201:
            raise Exception("Document creation failed with status %d: %s" % (response.status_code, response.text[:200]))
        return response.json()["id"], True

    async def do_update_document(self, id: str, file_md5_hash: str) -> None:
        await self.do_request(
            method="PUT",
            endpoint=f"/documents/{id}",
            json={"fileMd5Hash": file_md5_hash},
            raise_on_error=True,
        )

    async def do_find_documents(
        self,
        mark_last_checked_at: bool = False,
        omit_last_checked: bool = False,
        omit_last_updated: bool = False,
        limit: int = 10,
        offset: int = 0,
    ) -> list[DocumentOut]:
        """
        Fetch one page of documents, ordered by update and check time.

        Args:
            mark_last_checked_at (bool): Set last checked time of returned documents to now.
            omit_last_checked (bool): Skip documents checked during the last minute.
            omit_last_updated (bool): Skip documents updated during the last minute.
            limit (int): Page size.
            offset (int): Page offset.
        """
        headers = {}
        if mark_last_checked_at:
            headers["x-mark-last-checked-at"] = "true"
        if omit_last_checked:
            headers["x-omit-last-checked"] = "true"
        if omit_last_updated:
            headers["x-omit-last-updated"] = "true"
        response = await self.do_request(
            method="GET",
            endpoint="/documents",
            params={"limit": limit, "offset": offset},
            additional_headers=headers,
            raise_on_error=True,
        )
        return [DocumentOut.model_validate(item) for item in response.json()]

    async def do_delete_document(self, id: str) -> bool:
        """Delete a document and, by cascade, its embeddings. Returns False if it did not exist."""
        response = await self.do_request(method="DELETE", endpoint=f"/documents/{id}")
        if response.status_code == 404:
            return False
        if response.status_code != 204:
            raise Exception("Document deletion failed with status %d." % response.status_code)
        return True

    ##########################################
    ############### EMBEDDINGS ###############
    ##########################################

    async def do_add_embedding(self, id: str, embedding: list[float], chunk_text: str, chunk_index: int | None = None) -> None:
        body: dict = {"embedding": embedding, "chunkText": chunk_text}
        if chunk_index is not None:
            body["metadata"] = {"chunk": chunk_index}
        await self.do_request(
            method="POST",
            endpoint=f"/documents/{id}/embeddings",
            json=body,
            raise_on_error=True,
        )

    async def do_delete_embeddings(self, id: str, from_chunk: int | None = None) -> int:
        """
        Delete the embeddings of a document.

        Args:
            id (str): The document id
            from_chunk (int | None): Only delete embeddings whose chunk index is at least this value
        """
        params = {"fromChunk": from_chunk} if from_chunk is not None else None
        response = await self.do_request(
            method="DELETE",
            endpoint=f"/documents/{id}/embeddings",
            params=params,
            raise_on_error=True,
        )
        return int(response.json().get("deletedCount", 0))
