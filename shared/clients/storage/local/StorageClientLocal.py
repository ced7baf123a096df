import asyncio
import hashlib
from pathlib import Path

from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.clients.storage.models.HashedFile import HashedFile


class StorageClientLocal(StorageClientInterface):
    """Files on the local filesystem. File identifiers are absolute paths."""

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Local"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[str]:
        return []

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return ""

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        # no HTTP backend
        return None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_list(self, dir: str, allowed_extensions: list[str], remote: str | None = None) -> list[str]:
        root = Path(dir)
        if not root.is_dir():
            self.logging.warning("Error reading directory %s: not a directory.", dir)
            return []
        try:
            return await asyncio.to_thread(self._walk, root, allowed_extensions)
        except OSError as e:
            self.logging.warning("Error reading directory %s: %s", dir, e)
            return []

    def _walk(self, root: Path, allowed_extensions: list[str]) -> list[str]:
        return sorted(
            str(path.resolve())
            for path in root.rglob("*")
            if path.is_file() and self.has_allowed_extension(path.name, allowed_extensions)
        )

    async def do_hash(self, files: list[str], remote: str | None = None) -> list[HashedFile]:
        return await asyncio.gather(*[asyncio.to_thread(self._hash_file, file) for file in files])

    def _hash_file(self, file: str) -> HashedFile:
        try:
            digest = hashlib.md5()
            with open(file, "rb") as handle:
                for block in iter(lambda: handle.read(1024 * 1024), b""):
                    digest.update(block)
            return HashedFile(file=file, hash=digest.hexdigest())
        except OSError as e:
            self.logging.warning("Error hashing file %s: %s", file, e)
            return HashedFile(file=file, hash=None, error=str(e))

    async def do_open(self, file: str, expected_hash: str, remote: str | None = None) -> bytes:
        content = await asyncio.to_thread(Path(file).read_bytes)
        return self.verify_content(file, content, expected_hash)

    async def do_exists(self, file: str, remote: str | None = None) -> bool:
        return Path(file).is_file()
