"""
Database session management. The session managers are the GroupStore: every
service call receives one of their sessions as its unit of work.
"""

from sqlalchemy import Engine, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine


def enable_sqlite_foreign_keys(engine: Engine):
    """
    SQLite ignores ON DELETE CASCADE unless foreign keys are switched on for
    every connection.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _register_tables():
    # Importing the table modules registers them on SQLModel.metadata.
    from studygroup.database.meta import ALL_TABLES

    return ALL_TABLES


class SyncSessionManager:
    """
    A manager for synchronous sessions, used for schema set-up from the CLI:

    manager = SyncSessionManager(conn_url)
    manager.create_all()
    """

    connection_url: str
    engine: Engine
    session: sessionmaker

    def __init__(self, connection_url: str, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_engine(self.connection_url, echo=echo)
        enable_sqlite_foreign_keys(self.engine)
        self.session = sessionmaker(self.engine)

    def create_all(self):
        """
        Create the group, member, meeting and attendee tables if they do not
        exist yet.
        """
        _register_tables()
        with self.engine.begin() as conn:
            SQLModel.metadata.create_all(conn)

    def drop_all(self):
        """
        Drop every table. WARNING: this deletes all groups, meetings and
        attendance records; only tests should call it.
        """
        _register_tables()
        with self.engine.begin() as conn:
            SQLModel.metadata.drop_all(conn)


class AsyncSessionManager:
    """
    A manager for asynchronous sessions. Expected usage of this class to interact:

    manager = AsyncSessionManager(conn_url)

    async with manager.session() as conn:
        async with conn.begin():
            group = await groups_service.read_by_id(group_id, conn=conn, log=log)
    """

    connection_url: str
    engine: AsyncEngine
    session: async_sessionmaker

    def __init__(self, connection_url: str, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_async_engine(self.connection_url, echo=echo)
        enable_sqlite_foreign_keys(self.engine.sync_engine)
        self.session = async_sessionmaker(self.engine)

    async def create_all(self):
        """
        Create the group, member, meeting and attendee tables if they do not
        exist yet.
        """
        _register_tables()
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def drop_all(self):
        """
        Drop every table. WARNING: this deletes all groups, meetings and
        attendance records; only tests should call it.
        """
        _register_tables()
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.drop_all)

    async def dispose(self):
        await self.engine.dispose()
