"""
Chat persistence shared by the REST views and the WebSocket relay.
"""
from typing import Optional
import logging

import bleach
from django.conf import settings
from django.contrib.auth import get_user_model

from portal.models import ChatMessage, Doctor

User = get_user_model()
logger = logging.getLogger(__name__)


def clean_message(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def resolve_sender(actor, owner: User, doctor: Optional[Doctor]) -> str:
    """Work out who is speaking in a conversation owned by ``owner``.

    ``actor`` is the authenticated account behind the request or connection
    (``None`` for anonymous relay clients that have bound to ``owner``).
    Raises ``PermissionError`` when the actor may not speak for ``owner``.
    """
    actor_id = getattr(actor, 'pk', None)
    if actor_id is None or actor_id == owner.pk:
        return ChatMessage.Sender.USER
    if doctor is not None and doctor.user_id == actor_id:
        return ChatMessage.Sender.DOCTOR
    raise PermissionError('cannot post into another user\'s conversation')


def post_message(
    owner: User,
    content: str,
    *,
    doctor: Optional[Doctor] = None,
    sender: str = ChatMessage.Sender.USER,
    message_type: str = ChatMessage.MessageType.TEXT,
) -> ChatMessage:
    content = clean_message(content)
    if not content:
        raise ValueError('empty_message')
    if len(content) > settings.CHAT_MESSAGE_MAX_LENGTH:
        raise ValueError('message_too_long')
    msg = ChatMessage.objects.record(
        user=owner, doctor=doctor, message=content, sender=sender, message_type=message_type,
    )
    logger.debug("stored chat message %s sender=%s user=%s doctor=%s", msg.id, sender, owner.pk, getattr(doctor, 'pk', None))
    return msg


def record_ai_reply(owner: User, text: str, analysis: Optional[dict] = None) -> ChatMessage:
    return ChatMessage.objects.record(
        user=owner, message=text, sender=ChatMessage.Sender.AI, metadata=analysis,
    )


def recent_ai_history(owner_id, *, exclude_id=None, limit: Optional[int] = None) -> list[dict]:
    """Last ``limit`` assistant-conversation turns as OpenAI chat messages, oldest first."""
    limit = settings.AI_HISTORY_LIMIT if limit is None else limit
    if limit <= 0:
        return []
    qs = ChatMessage.objects.ai_conversation(owner_id)
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    msgs = list(qs.order_by('-created_at')[:limit])
    return [
        {'role': 'assistant' if m.is_from_ai else 'user', 'content': m.message}
        for m in reversed(msgs)
    ]


def list_messages(owner: User, doctor_id=None):
    return ChatMessage.objects.for_conversation(owner.pk, doctor_id).order_by('-created_at')
