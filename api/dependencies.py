"""FastAPI dependencies for caller identity, ownership and job publishing."""

from fastapi import Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models import Project

from .events import JobPublisher


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
) -> str:
    """Get the caller's subject id from the X-User-ID header.

    The header is set by the authentication gateway in front of the API.
    Raises 401 if it is missing.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id


async def get_owned_project(
    project_id: str,
    user_id: str,
    db: AsyncSession,
    detail: str = "Project not found.",
) -> Project:
    """Load a project owned by the caller.

    Missing and foreign projects raise the same 404.
    """
    query = select(Project).where(Project.id == project_id, Project.user_id == user_id)
    result = await db.execute(query)
    project = result.scalar_one_or_none()
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return project


def get_job_publisher(request: Request) -> JobPublisher:
    """Job publisher bound to the app's Redis client."""
    return JobPublisher(request.app.state.redis)
