import hashlib
import posixpath
from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.storage.models.HashedFile import HashedFile
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import StorageOpts
from shared.models.exceptions import FileChangedError


class StorageClientInterface(ClientInterface):
    """Access to the files of the configured workspaces.

    Every engine offers the same four operations so the indexing jobs never
    need to know which storage is active. ``remote`` is the workspace's
    remote name and is ignored by engines without remotes.
    """

    def __init__(self, helper_config: HelperConfig, opts: StorageOpts):
        super().__init__(helper_config=helper_config, opts=opts)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "storage"

    ##########################################
    ################ HELPER ##################
    ##########################################

    @staticmethod
    def has_allowed_extension(file: str, allowed_extensions: list[str]) -> bool:
        """Check the file suffix (without dot, case-insensitive) against an allow-list."""
        extension = posixpath.splitext(file.replace("\\", "/"))[1].lstrip(".").lower()
        return extension in {ext.lower() for ext in allowed_extensions}

    def verify_content(self, file: str, content: bytes, expected_hash: str) -> bytes:
        """Return ``content`` if its MD5 matches ``expected_hash``.

        Raises:
            FileChangedError: If the content changed since it was hashed.
        """
        actual_hash = hashlib.md5(content).hexdigest()
        if actual_hash != expected_hash:
            raise FileChangedError(file=file, expected_hash=expected_hash, actual_hash=actual_hash)
        return content

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_list(self, dir: str, allowed_extensions: list[str], remote: str | None = None) -> list[str]:
        """
        Recursively list all files below a directory with an allowed extension.

        Args:
            dir (str): The directory to list.
            allowed_extensions (list[str]): Extensions without dot, e.g. ["pdf", "md"].
            remote (str | None): The workspace remote.

        Returns:
            list[str]: File identifiers, empty if the directory could not be listed.
        """
        pass

    @abstractmethod
    async def do_hash(self, files: list[str], remote: str | None = None) -> list[HashedFile]:
        """
        Compute the content MD5 of every file.

        Returns:
            list[HashedFile]: One entry per file, failures carry hash None and the error.
        """
        pass

    @abstractmethod
    async def do_open(self, file: str, expected_hash: str, remote: str | None = None) -> bytes:
        """
        Read a file, verifying it still has the expected hash.

        Returns:
            bytes: The raw file content.

        Raises:
            FileChangedError: If the live hash differs from ``expected_hash``.
        """
        pass

    @abstractmethod
    async def do_exists(self, file: str, remote: str | None = None) -> bool:
        pass
