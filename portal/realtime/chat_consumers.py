"""
Chat relay: the WebSocket endpoint behind the portal's chat and emergency UI.

Each inbound text frame is a JSON envelope discriminated by ``type``:

* ``chat_message`` stores the line, broadcasts it and, for assistant
  conversations (no ``doctorId``), asks the AI collaborator for a reply that
  is stored and broadcast in turn.
* ``emergency`` stores an :class:`~portal.models.EmergencyLog` and raises an
  ``emergency_alert``.

Failures never leave the frame that caused them: the sender alone gets an
``{"type": "error", "code", "message"}`` event.  Codes are 4xxx for client
errors and 5xxx for server-side ones.

Fan-out goes through channel-layer groups; which groups an event reaches is
controlled by ``RELAY_BROADCAST_SCOPE`` (see :func:`conversation_rooms`).
"""
import json
import logging
from collections import deque
from typing import Optional
import uuid

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from django.core.serializers.json import DjangoJSONEncoder

from portal.models import Doctor
from portal.realtime.registry import Connection, registry
from portal.serializers.chat import ChatEnvelopeSerializer, ChatMessageSerializer
from portal.serializers.emergency import EmergencyEnvelopeSerializer, EmergencyLogSerializer
from portal.services import ai, chat
from portal.services.emergencies import record_emergency

logger = logging.getLogger(__name__)

SCOPE_ROOM = 'room'
SCOPE_GLOBAL = 'global'

GLOBAL_ROOM = 'relay.all'
RESPONDERS_ROOM = 'relay.responders'

CLOSE_UNAUTHENTICATED = 4401


class RelayError(Exception):
    """A frame was rejected; reported to the sender as an ``error`` event."""

    def __init__(self, code: int, message: str, errors: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.errors = errors


def user_room(user_id) -> str:
    return f"chat.user.{user_id}"


def doctor_room(doctor_id) -> str:
    return f"chat.doctor.{doctor_id}"


def global_scope() -> bool:
    return settings.RELAY_BROADCAST_SCOPE == SCOPE_GLOBAL


def conversation_rooms(owner_id, doctor_id=None) -> list[str]:
    """Groups that see a conversation between ``owner_id`` and the assistant or a doctor."""
    if global_scope():
        return [GLOBAL_ROOM]
    rooms = [user_room(owner_id)]
    if doctor_id:
        rooms.append(doctor_room(doctor_id))
    return rooms


def emergency_rooms(user_id=None) -> list[str]:
    if global_scope():
        return [GLOBAL_ROOM]
    rooms = [RESPONDERS_ROOM]
    if user_id:
        rooms.append(user_room(user_id))
    return rooms


async def _ws_error(ws, code: int, message: str, *, errors: Optional[dict] = None):
    payload = {"type": "error", "code": code, "message": message}
    if errors:
        payload["errors"] = errors
    await ws.send(json.dumps(payload, cls=DjangoJSONEncoder))


@database_sync_to_async
def _doctor_id_for(user) -> Optional[str]:
    doctor_id = Doctor.objects.filter(user_id=user.pk).values_list('id', flat=True).first()
    return str(doctor_id) if doctor_id else None


@database_sync_to_async
def _validate(serializer_class, data: dict, context: Optional[dict] = None):
    s = serializer_class(data=data, context=context or {})
    if not s.is_valid():
        raise RelayError(4003, "invalid_envelope", errors=s.errors)
    return s.validated_data


@database_sync_to_async
def _store_message(owner, text, *, doctor, sender, message_type):
    try:
        msg = chat.post_message(owner, text, doctor=doctor, sender=sender, message_type=message_type)
    except ValueError as e:
        if str(e) == 'empty_message':
            raise RelayError(4004, "empty_message") from e
        raise RelayError(4003, "invalid_envelope", errors={'message': [str(e)]}) from e
    return msg, ChatMessageSerializer(msg).data


@database_sync_to_async
def _history_for(owner_id, exclude_id):
    return chat.recent_ai_history(owner_id, exclude_id=exclude_id)


@database_sync_to_async
def _store_ai_reply(owner, text, analysis):
    msg = chat.record_ai_reply(owner, text, analysis)
    return ChatMessageSerializer(msg).data


@database_sync_to_async
def _store_emergency(validated, actor):
    emergency = record_emergency(validated, actor=actor)
    return emergency, EmergencyLogSerializer(emergency).data


class ChatRelayConsumer(AsyncWebsocketConsumer):
    conn_id = None
    actor = None

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if settings.RELAY_REQUIRE_AUTH and not user.is_authenticated:
            logger.info("relay: rejected anonymous connection")
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        self.actor = user if user.is_authenticated else None
        self._recent_events = deque(maxlen=64)
        conn = registry.add(Connection(channel_name=self.channel_name, authenticated=self.actor is not None))
        self.conn_id = conn.conn_id

        if global_scope():
            await self._join(GLOBAL_ROOM)
        if self.actor is not None:
            doctor_id = await _doctor_id_for(self.actor)
            registry.bind(self.conn_id, str(self.actor.pk), doctor_id=doctor_id)
            await self._join(user_room(self.actor.pk))
            if doctor_id:
                await self._join(doctor_room(doctor_id))
            if self.actor.is_responder:
                await self._join(RESPONDERS_ROOM)

        await self.accept()
        logger.info(
            "relay: connected %s user=%s (%d open)",
            self.conn_id, getattr(self.actor, 'pk', None), registry.count(),
        )

    async def disconnect(self, close_code):
        if self.conn_id is None:
            return
        for room in registry.remove(self.conn_id):
            await self.channel_layer.group_discard(room, self.channel_name)
        logger.info("relay: disconnected %s code=%s (%d open)", self.conn_id, close_code, registry.count())

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return

        try:
            data = json.loads(text_data)
        except ValueError:
            logger.info("relay: invalid JSON from %s", self.conn_id)
            await self.report(4000, "invalid_json")
            return

        try:
            if not isinstance(data, dict):
                raise RelayError(4001, "invalid_payload")
            kind = data.get("type")
            if kind == "chat_message":
                await self.handle_chat_message(data)
            elif kind == "emergency":
                await self.handle_emergency(data)
            else:
                raise RelayError(4002, "unsupported_type")
        except RelayError as e:
            logger.info("relay: rejected frame from %s: %s (%s)", self.conn_id, e.message, e.code)
            await self.report(e.code, e.message, errors=e.errors)
        except Exception:
            logger.exception("relay: failed to handle frame from %s", self.conn_id)
            await self.report(5000, "server_error")

    async def handle_chat_message(self, data: dict):
        envelope = await _validate(ChatEnvelopeSerializer, data)
        owner = envelope["userId"]
        doctor = envelope.get("doctorId")

        if self.actor is None:
            self._check_claim(str(owner.pk))
        try:
            sender = chat.resolve_sender(self.actor, owner, doctor)
        except PermissionError as e:
            raise RelayError(4007, "forbidden") from e

        msg, msg_data = await _store_message(
            owner, envelope["message"], doctor=doctor, sender=sender,
            message_type=envelope.get("messageType") or "text",
        )
        # a rejected frame leaves the connection unbound
        if self.actor is None:
            await self._claim(str(owner.pk))
        await self.broadcast(conversation_rooms(owner.pk, getattr(doctor, 'pk', None)), {
            "type": "chat_message", "data": msg_data,
        })

        if doctor is not None:
            return

        history = envelope.get("conversationHistory")
        if history is None:
            history = await _history_for(owner.pk, msg.id)
        else:
            history = [dict(item) for item in history]

        outcome = await ai.complete_chat(msg.message, history)
        if outcome.status == ai.AIOutcome.STATUS_TIMEOUT:
            raise RelayError(5040, "ai_timeout")
        if not outcome.ok:
            raise RelayError(5020, "ai_unavailable")

        reply = outcome.response
        analysis = reply.analysis.as_dict() if reply.analysis else None
        reply_data = await _store_ai_reply(owner, reply.message, analysis)
        await self.broadcast(conversation_rooms(owner.pk), {
            "type": "ai_response",
            "data": reply_data,
            "analysis": analysis,
            "followupQuestions": reply.followup_questions,
        })

    async def handle_emergency(self, data: dict):
        conn = registry.get(self.conn_id)
        envelope = await _validate(EmergencyEnvelopeSerializer, data, {"user_id": conn.user_id if conn else None})
        validated = envelope["emergencyData"]

        subject = validated.get("user")
        if subject is not None:
            if self.actor is None:
                self._check_claim(str(subject.pk))
            elif subject.pk != self.actor.pk and not self.actor.is_responder:
                raise RelayError(4007, "forbidden")

        emergency, emergency_data = await _store_emergency(validated, self.actor)
        if subject is not None and self.actor is None:
            await self._claim(str(subject.pk))
        # the reporter always sees its own alert, even with no user attached
        await self.broadcast(emergency_rooms(emergency.user_id), {
            "type": "emergency_alert", "data": emergency_data,
        }, include_self=True)

    async def broadcast(self, rooms: list[str], payload: dict, include_self: bool = False):
        event = {"type": "relay.event", "event_id": uuid.uuid4().hex, "payload": payload}
        for room in rooms:
            await self.channel_layer.group_send(room, event)
        if include_self:
            await self.channel_layer.send(self.channel_name, event)

    async def report(self, code: int, message: str, errors: Optional[dict] = None):
        """Queue an ``error`` event for this connection only.

        Going through the connection's own channel keeps it behind any
        broadcast the failing frame already produced.
        """
        await self.channel_layer.send(self.channel_name, {
            "type": "relay.error",
            "code": code,
            "message": message,
            "errors": json.loads(json.dumps(errors)) if errors else None,
        })

    async def relay_error(self, event):
        await _ws_error(self, event["code"], event["message"], errors=event.get("errors"))

    # group_send handler: {"type": "relay.event", "event_id": ..., "payload": {...}}
    async def relay_event(self, event):
        # a connection in several target rooms gets each event once
        event_id = event.get("event_id")
        if event_id in self._recent_events:
            return
        self._recent_events.append(event_id)
        await self.send(text_data=json.dumps(event.get("payload", {}), cls=DjangoJSONEncoder))

    async def _join(self, room: str):
        if registry.join(self.conn_id, room):
            await self.channel_layer.group_add(room, self.channel_name)

    def _check_claim(self, user_id: str):
        """Reject a frame for another user than the one this connection is bound to."""
        conn = registry.get(self.conn_id)
        if conn is None:
            raise RelayError(5000, "server_error")
        if conn.user_id is not None and conn.user_id != user_id:
            raise RelayError(4007, "forbidden")
        return conn

    async def _claim(self, user_id: str):
        """Bind an anonymous connection to the first user it speaks for."""
        conn = self._check_claim(user_id)
        if conn.user_id is None:
            registry.bind(self.conn_id, user_id)
            await self._join(user_room(user_id))
            logger.info("relay: %s bound to user %s", self.conn_id, user_id)
