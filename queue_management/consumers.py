import json

from channels.generic.websocket import AsyncWebsocketConsumer

from queue_management.events import queue_group


class QueueConsumer(AsyncWebsocketConsumer):  # Streams queue events to display screens and clients
    async def connect(self):  # Connect
        self.queue_id = self.scope["url_route"]["kwargs"]["queue_id"]
        self.room_group_name = queue_group(self.queue_id)

        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        await self.accept()
        await self.send(
            text_data=json.dumps(
                {"type": "connection_established", "queue_id": self.queue_id}
            )
        )

    async def disconnect(self, close_code):  # Disconnect
        if hasattr(self, "room_group_name"):
            await self.channel_layer.group_discard(
                self.room_group_name, self.channel_name
            )

    async def queue_event(self, event):  # Forward a broadcast event
        await self.send(
            text_data=json.dumps(
                {
                    "type": "queue_event",
                    "event": event["event"],
                    "data": event["data"],
                    "timestamp": event["timestamp"],
                }
            )
        )
