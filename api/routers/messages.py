"""Messages router."""

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
import structlog

from shared.models import Message, MessageRole, MessageType

from ..database import get_async_session
from ..dependencies import get_current_user_id, get_job_publisher, get_owned_project
from ..events import JobPublisher
from ..schemas import MessageCreate, MessageRead

logger = structlog.get_logger()

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/", response_model=list[MessageRead])
async def list_messages(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> list[Message]:
    """List a project's messages in chronological order with their fragments."""
    await get_owned_project(project_id, user_id, db)

    query = (
        select(Message)
        .where(Message.project_id == project_id)
        .options(selectinload(Message.fragment))
        .order_by(Message.created_at.asc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("/", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def create_message(
    message_in: MessageCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
    publisher: JobPublisher = Depends(get_job_publisher),
) -> MessageRead:
    """Add a follow-up request to a project and start the agent."""
    project = await get_owned_project(message_in.project_id, user_id, db)

    message = Message(
        project_id=project.id,
        content=message_in.value,
        role=MessageRole.USER.value,
        type=MessageType.RESULT.value,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    logger.info("message_created", project_id=project.id, message_id=message.id)

    await publisher.send_code_agent_run(value=message_in.value, project_id=project.id)
    return MessageRead.model_validate({**message.to_dict(), "fragment": None})
