import json
import logging
import uuid
from urllib.parse import parse_qs

from channels.generic.websocket import AsyncWebsocketConsumer

from .notifications import group_for_branch

logger = logging.getLogger(__name__)


class WebOrderConsumer(AsyncWebsocketConsumer):
    """POS terminals listen here for newly placed web and QR orders"""

    async def connect(self):
        query = parse_qs(self.scope.get('query_string', b'').decode())
        branch_id = (query.get('branchId') or query.get('branch_id') or [None])[0]
        if branch_id in ('', 'null', 'undefined', 'all'):
            branch_id = None

        self.group_name = None
        if branch_id:
            try:
                branch_id = uuid.UUID(branch_id)
            except ValueError:
                logger.warning(f"WebSocket client refused, invalid branchId {branch_id!r}")
                await self.close(code=4400)
                return

        self.group_name = group_for_branch(branch_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"WebSocket client joined {self.group_name}")

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # Clients only listen; answer pings so they can keep the socket alive
        if text_data == 'ping':
            await self.send(text_data='pong')

    async def web_order_created(self, event):
        await self.send(text_data=json.dumps(event['payload'], default=str))
