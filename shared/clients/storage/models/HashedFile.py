from pydantic import BaseModel


class HashedFile(BaseModel):
    """
    Result of hashing one file.

    Attributes:
        file (str): The file identifier as returned by list.
        hash (str | None): Hex MD5 of the content, None if hashing failed.
        error (str | None): Why hashing failed.
    """

    file: str
    hash: str | None = None
    error: str | None = None
