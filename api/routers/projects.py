"""Projects router.

Every operation is scoped to the caller's own projects; missing and foreign
resources are indistinguishable (404).
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from shared.models import Fragment, Message, MessageRole, MessageType, Project

from ..database import get_async_session
from ..dependencies import get_current_user_id, get_job_publisher, get_owned_project
from ..events import JobPublisher
from ..naming import generate_project_title
from ..schemas import (
    FragmentFilesUpdate,
    FragmentRead,
    ProjectCreate,
    ProjectDeleted,
    ProjectRead,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> Project:
    """Get one of the caller's projects."""
    return await get_owned_project(project_id, user_id, db)


@router.get("/", response_model=list[ProjectRead])
async def list_projects(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> list[Project]:
    """List the caller's projects, most recently updated first."""
    query = (
        select(Project)
        .where(Project.user_id == user_id)
        .order_by(Project.updated_at.desc(), Project.created_at.desc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("/", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
    publisher: JobPublisher = Depends(get_job_publisher),
) -> Project:
    """Create a project with its first user message and start the agent."""
    project = Project(
        user_id=user_id,
        name=generate_project_title(project_in.value),
        messages=[
            Message(
                content=project_in.value,
                role=MessageRole.USER.value,
                type=MessageType.RESULT.value,
            )
        ],
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)

    logger.info("project_created", project_id=project.id, name=project.name)

    await publisher.send_code_agent_run(value=project_in.value, project_id=project.id)
    return project


@router.patch("/fragments/{fragment_id}/files", response_model=FragmentRead)
async def update_fragment_files(
    fragment_id: str,
    update_in: FragmentFilesUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
    publisher: JobPublisher = Depends(get_job_publisher),
) -> Fragment:
    """Overwrite a fragment's files and push them into the live sandbox."""
    query = (
        select(Fragment)
        .join(Message, Fragment.message_id == Message.id)
        .join(Project, Message.project_id == Project.id)
        .where(Fragment.id == fragment_id, Project.user_id == user_id)
    )
    result = await db.execute(query)
    fragment = result.scalar_one_or_none()
    if fragment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Fragment not found or access denied.",
        )

    fragment.files = dict(update_in.files)
    await db.commit()
    await db.refresh(fragment)

    logger.info("fragment_files_updated", fragment_id=fragment.id, file_count=len(fragment.files))

    await publisher.send_sandbox_update(sandbox_url=fragment.sandbox_url, files=update_in.files)
    return fragment


@router.delete("/{project_id}", response_model=ProjectDeleted)
async def delete_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> ProjectDeleted:
    """Delete a project together with its messages and fragments."""
    project = await get_owned_project(
        project_id, user_id, db, detail="Project not found or access denied."
    )
    await db.delete(project)
    await db.commit()

    logger.info("project_deleted", project_id=project_id)
    return ProjectDeleted(success=True)
