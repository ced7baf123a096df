"""Local state of the indexer: one version row per (document, content hash)."""

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint, delete, literal_column, select
from sqlalchemy.orm import declarative_base

from shared.db.Database import Database
from shared.db.columns import new_id, utcnow

Base = declarative_base()


class Version(Base):
    __tablename__ = "versions"
    __table_args__ = (UniqueConstraint("document_remote_id", "file_md5_hash", name="uq_versions_document_hash"),)

    id = Column(String(32), primary_key=True, default=new_id)
    # id of the document on the API server
    document_remote_id = Column(String(32), nullable=False, index=True)
    file_path = Column(Text, nullable=False)
    file_md5_hash = Column(String(32), nullable=False)
    total_chunks = Column(Integer, nullable=False, default=0)
    completed_chunks = Column(Integer, nullable=False, default=0)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class VersionRepository:
    """Persistence of document versions and their vectorization progress."""

    def __init__(self, database: Database):
        self._database = database

    def has(self, document_id: str, file_md5_hash: str) -> bool:
        with self._database.session() as session:
            found = session.scalar(
                select(Version.id).where(
                    Version.document_remote_id == document_id,
                    Version.file_md5_hash == file_md5_hash,
                )
            )
            return found is not None

    def create(self, document_id: str, file_md5_hash: str, file_path: str) -> Version:
        with self._database.session() as session:
            version = Version(document_remote_id=document_id, file_md5_hash=file_md5_hash, file_path=file_path)
            session.add(version)
            session.commit()
            return version

    def latest(self, document_id: str) -> Version | None:
        """Return the most recently created version of a document."""
        with self._database.session() as session:
            return session.scalars(
                select(Version)
                .where(Version.document_remote_id == document_id)
                .order_by(Version.created_at.desc(), literal_column("rowid").desc())
                .limit(1)
            ).first()

    def update_progress(self, document_id: str, file_md5_hash: str, total_chunks: int, completed_chunks: int) -> bool:
        """
        Persist the vectorization progress of a version.

        A version is processed once all of its chunks are completed.

        Returns:
            bool: False if the version does not exist.
        """
        with self._database.session() as session:
            version = session.scalars(
                select(Version).where(
                    Version.document_remote_id == document_id,
                    Version.file_md5_hash == file_md5_hash,
                )
            ).first()
            if version is None:
                return False
            version.total_chunks = total_chunks
            version.completed_chunks = completed_chunks
            if completed_chunks >= total_chunks:
                version.processed_at = utcnow()
            session.commit()
            return True

    def delete_for_document(self, document_id: str) -> int:
        with self._database.session() as session:
            result = session.execute(delete(Version).where(Version.document_remote_id == document_id))
            session.commit()
            return result.rowcount
