from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient

from .. import models
from ..db import get_session
from ..deps import get_current_user, get_llm
from ..pipelines import chat
from ..schemas import ChatMessageOut, ChatReplyResponse, ChatRequest, ConversationDetailOut, ConversationOut

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("", response_model=ChatReplyResponse)
async def send_message(
    request: ChatRequest,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    """Send a message to the career assistant"""
    reply = await chat.send_message(
        session, current_user.id, request.content, request.conversation_id, llm=llm
    )
    return ChatReplyResponse(
        conversation_id=reply.conversation.id,
        user_message=ChatMessageOut.model_validate(reply.user_message),
        assistant_message=ChatMessageOut.model_validate(reply.assistant_message),
    )


@router.get("/conversations", response_model=list[ConversationOut])
async def list_conversations(
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await chat.list_conversations(session, current_user.id)


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailOut)
async def get_conversation(
    conversation_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await chat.get_conversation(session, current_user.id, conversation_id)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    await chat.delete_conversation(session, current_user.id, conversation_id)
