"""Career assistant conversations."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from assist.llm import LLMClient, Message
from forge import models
from forge.pipelines.tailoring import generate_user_resume_data

logger = logging.getLogger(__name__)

# Older messages are dropped from the prompt, not from storage
MAX_HISTORY_MESSAGES = 20
TITLE_LENGTH = 60

SYSTEM_PROMPT = """You are a career assistant helping the user improve their resume, prepare job applications and plan their career.
Base every statement about the user on the profile below; if something is not in it, ask instead of guessing.

USER PROFILE:
{profile}"""


class ConversationNotFoundError(Exception):
    """Raised when a conversation does not exist or belongs to another user."""
    pass


@dataclass
class ChatReply:
    conversation: models.Conversation
    user_message: models.ChatMessage
    assistant_message: models.ChatMessage


async def list_conversations(session: AsyncSession, user_id: int) -> list[models.Conversation]:
    result = await session.execute(
        select(models.Conversation)
        .where(models.Conversation.user_id == user_id)
        .order_by(models.Conversation.created_at.desc(), models.Conversation.id.desc())
    )
    return list(result.scalars().all())


async def get_conversation(session: AsyncSession, user_id: int, conversation_id: int) -> models.Conversation:
    result = await session.execute(
        select(models.Conversation)
        .options(selectinload(models.Conversation.messages))
        .where(models.Conversation.id == conversation_id, models.Conversation.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    conversation = result.scalar_one_or_none()
    if conversation is None:
        raise ConversationNotFoundError("Conversation not found or access denied")
    return conversation


async def delete_conversation(session: AsyncSession, user_id: int, conversation_id: int) -> None:
    conversation = await get_conversation(session, user_id, conversation_id)
    await session.delete(conversation)
    await session.commit()


def build_chat_messages(profile: str, history: list[models.ChatMessage], content: str) -> list[Message]:
    messages: list[Message] = [("system", SYSTEM_PROMPT.format(profile=profile or "No profile data yet."))]
    for message in history[-MAX_HISTORY_MESSAGES:]:
        messages.append(("ai" if message.role == "assistant" else "human", message.content))
    messages.append(("human", content))
    return messages


async def send_message(
    session: AsyncSession,
    user_id: int,
    content: str,
    conversation_id: int | None = None,
    *,
    llm: LLMClient | None = None,
) -> ChatReply:
    """Answer a user message, starting a conversation when none is given.

    Nothing is stored when the model fails.

    Raises:
        ConversationNotFoundError: If ``conversation_id`` is not the user's
        LLMError: If the model call fails
    """
    content = content.strip()
    if conversation_id is not None:
        conversation = await get_conversation(session, user_id, conversation_id)
        history = list(conversation.messages)
    else:
        conversation = models.Conversation(user_id=user_id, title=content[:TITLE_LENGTH] or None, messages=[])
        history = []

    profile = await generate_user_resume_data(session, user_id)
    llm = llm or LLMClient()
    answer = await llm.complete(build_chat_messages(profile, history, content))

    user_message = models.ChatMessage(role="user", content=content)
    assistant_message = models.ChatMessage(role="assistant", content=answer)
    conversation.messages.extend([user_message, assistant_message])
    session.add(conversation)
    await session.commit()

    logger.info(f"Answered message in conversation {conversation.id} for user {user_id}")
    return ChatReply(conversation=conversation, user_message=user_message, assistant_message=assistant_message)
