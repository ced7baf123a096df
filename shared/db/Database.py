"""SQLite database handle shared by the API server and the indexer.

The API database additionally loads the sqlite-vec extension on every
connection so that vector distance functions are available in SQL.
"""

from pathlib import Path
from typing import Iterator

import sqlite_vec
from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from shared.helper.HelperConfig import HelperConfig


class Database:
    def __init__(
        self,
        helper_config: HelperConfig,
        metadata: MetaData,
        load_vector_extension: bool = False,
        path: str | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.path = path or helper_config.get_db_path()
        self._metadata = metadata
        self._load_vector_extension = load_vector_extension
        self._apply_migrations = helper_config.get_bool_val("DB_MIGRATIONS_APPLY", default=True)

        self.engine = create_engine(
            f"sqlite:///{self.path}",
            connect_args={"check_same_thread": False},
        )
        event.listen(self.engine, "connect", self._on_connect)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine)

    def _on_connect(self, dbapi_connection, connection_record) -> None:
        if self._load_vector_extension:
            dbapi_connection.enable_load_extension(True)
            sqlite_vec.load(dbapi_connection)
            dbapi_connection.enable_load_extension(False)
        # sqlite ignores ON DELETE CASCADE unless enabled per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    def boot(self) -> None:
        """Create the database directory and, if DB_MIGRATIONS_APPLY is set, all tables."""
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        if self._apply_migrations:
            self._metadata.create_all(bind=self.engine)
            self.logging.info("Database schema applied at '%s'.", self.path)

    def close(self) -> None:
        self.engine.dispose()

    ##########################################
    ################ SESSIONS ################
    ##########################################

    def session(self) -> Session:
        return self.SessionLocal()

    def get_db(self) -> Iterator[Session]:
        """Yield a session and close it afterwards. Used as a FastAPI dependency."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()
