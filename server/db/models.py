"""SQLAlchemy ORM models of the API database."""

from sqlalchemy import Column, DateTime, ForeignKey, LargeBinary, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from shared.db.columns import new_id, utcnow

Base = declarative_base()


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("workspace_id", "file_path", name="uq_documents_workspace_path"),)

    id = Column(String(32), primary_key=True, default=new_id)
    workspace_id = Column(String(255), nullable=False, index=True)
    file_path = Column(Text, nullable=False)
    file_remote = Column(String(255), nullable=False, default="")
    # hash of the last fully embedded version
    file_md5_hash = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True)
    last_checked_at = Column(DateTime, nullable=True)

    embeddings = relationship("Embedding", back_populates="document", cascade="all, delete-orphan", passive_deletes=True)


class Embedding(Base):
    __tablename__ = "embeddings"

    id = Column(String(32), primary_key=True, default=new_id)
    document_id = Column(String(32), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    metadata_json = Column("metadata", Text, nullable=True)
    # little-endian float32 vector
    embedding = Column(LargeBinary, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    document = relationship("Document", back_populates="embeddings")
