import asyncio
import base64
import posixpath

from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.clients.storage.models.HashedFile import HashedFile
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import StorageOpts


class StorageClientRclone(StorageClientInterface):
    """Files behind an rclone remote control server (``rclone rcd --rc-serve``).

    File identifiers are paths relative to the root of the workspace remote.
    """

    def __init__(self, helper_config: HelperConfig, opts: StorageOpts):
        super().__init__(helper_config=helper_config, opts=opts)
        self._base_url = self.get_config_val("url")
        self._username = self.get_config_val("username", default="")
        self._password = self.get_config_val("password", default="")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Rclone"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[str]:
        return ["url"]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if not self._username:
            return {}
        token = base64.b64encode(f"{self._username}:{self._password}".encode()).decode()
        return {"Authorization": f"Basic {token}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/rc/noop"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self):
        # rc endpoints only accept POST
        return await self.do_request(method="POST", endpoint=self._get_endpoint_healthcheck(), json={})

    async def _do_list_items(self, dir: str, remote: str | None, recurse: bool) -> list[dict]:
        body: dict = {"remote": dir, "opt": {"recurse": recurse}}
        if remote:
            body["fs"] = f"{remote}:"
        response = await self.do_request(method="POST", endpoint="/operations/list", json=body, raise_on_error=True)
        return response.json().get("list") or []

    async def do_list(self, dir: str, allowed_extensions: list[str], remote: str | None = None) -> list[str]:
        try:
            items = await self._do_list_items(dir, remote, recurse=True)
        except Exception as e:
            self.logging.warning("Error reading directory %s: %s", dir, e)
            return []
        # listed paths are relative to the remote root
        return [
            item["Path"]
            for item in items
            if not item.get("IsDir") and self.has_allowed_extension(item["Path"], allowed_extensions)
        ]

    async def do_hash(self, files: list[str], remote: str | None = None) -> list[HashedFile]:
        return await asyncio.gather(*[self._hash_file(file, remote) for file in files])

    async def _hash_file(self, file: str, remote: str | None) -> HashedFile:
        try:
            response = await self.do_request(
                method="POST",
                endpoint="/operations/hashsum",
                json={"fs": f"{remote}:{file}" if remote else file, "hashType": "MD5", "download": True},
                raise_on_error=True,
            )
            # hashsum lines look like "<hash>  <name>"
            hashsum = response.json()["hashsum"][0]
            return HashedFile(file=file, hash=hashsum.split()[0])
        except Exception as e:
            self.logging.warning("Error hashing file %s: %s", file, e)
            return HashedFile(file=file, hash=None, error=str(e))

    async def do_open(self, file: str, expected_hash: str, remote: str | None = None) -> bytes:
        response = await self.do_request(method="GET", endpoint=f"/[{remote}:]/{file.lstrip('/')}", raise_on_error=True)
        return self.verify_content(file, response.content, expected_hash)

    async def do_exists(self, file: str, remote: str | None = None) -> bool:
        items = await self._do_list_items(posixpath.dirname(file), remote, recurse=False)
        return any(item["Path"] == file for item in items if not item.get("IsDir"))
