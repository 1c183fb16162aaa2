"""
FastAPI app
"""

from importlib.metadata import version

from fastapi import FastAPI

from .dependencies import DATABASE_MANAGER, SETTINGS, logger
from .errors import add_exception_handlers
from .groups import group_app
from .meetings import meeting_app

settings = SETTINGS()


async def lifespan(app: FastAPI):
    app.settings = settings

    if settings.create_tables:
        await DATABASE_MANAGER.create_all()
        await logger().ainfo("app.tables_created", database_type=settings.database_type)

    yield

    await DATABASE_MANAGER.dispose()


app = FastAPI(
    lifespan=lifespan,
    title="Study Group API",
    summary="API endpoints for creating study groups, managing their members, and scheduling group meetings.",
    version=version("studygroup"),
)

app = add_exception_handlers(app)

app.include_router(group_app, prefix="/groups")
app.include_router(meeting_app, prefix="/meetings")
