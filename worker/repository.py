"""Persistence used by the worker jobs."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from shared.models import Fragment, Message, MessageRole, MessageType

logger = structlog.get_logger()


class MessageRepository:
    """Reads project history and stores assistant messages."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def get_recent_messages(self, project_id: str, limit: int = 5) -> list[Message]:
        """Most recent messages of a project, oldest first."""
        if limit <= 0:
            return []
        async with self.session_maker() as session:
            result = await session.execute(
                select(Message)
                .where(Message.project_id == project_id)
                .order_by(Message.created_at.desc())
                .limit(limit)
            )
            messages = list(result.scalars().all())
        messages.reverse()
        return messages

    async def save_error(self, project_id: str, content: str) -> Message:
        """Store an ASSISTANT/ERROR message without a fragment."""
        async with self.session_maker() as session:
            message = Message(
                project_id=project_id,
                content=content,
                role=MessageRole.ASSISTANT.value,
                type=MessageType.ERROR.value,
            )
            session.add(message)
            await session.commit()

        logger.info("error_message_saved", project_id=project_id, message_id=message.id)
        return message

    async def save_result(
        self,
        project_id: str,
        content: str,
        sandbox_url: str,
        title: str,
        files: dict[str, str],
    ) -> Message:
        """Store an ASSISTANT/RESULT message and its fragment in one transaction."""
        async with self.session_maker() as session:
            message = Message(
                project_id=project_id,
                content=content,
                role=MessageRole.ASSISTANT.value,
                type=MessageType.RESULT.value,
                fragment=Fragment(sandbox_url=sandbox_url, title=title, files=dict(files)),
            )
            session.add(message)
            await session.commit()

        logger.info(
            "result_message_saved",
            project_id=project_id,
            message_id=message.id,
            file_count=len(files),
        )
        return message
