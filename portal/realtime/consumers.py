import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)

UPDATES_GROUP = "updates"


class UpdatesConsumer(AsyncWebsocketConsumer):
    """Push channel for dashboards: tells clients when cached stats were recomputed."""
    GROUP = UPDATES_GROUP

    async def connect(self):
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # read-only feed
        logger.debug("updates: ignoring inbound frame from %s", self.channel_name)

    async def broadcast_refresh(self, event):
        # event: {"type": "broadcast.refresh", "ts": "...", "keys": [...], "stats": {...}}
        await self.send(json.dumps(event, cls=DjangoJSONEncoder))
