import logging

from asgiref.sync import async_to_sync
from celery import shared_task
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def broadcast_event(groups, message):  # Push an event to websocket subscribers
    layer = get_channel_layer()
    if layer is None:
        logger.warning(f"No channel layer configured, dropping {message.get('event')}")
        return 0

    sent = 0
    for group in groups:
        try:
            async_to_sync(layer.group_send)(group, {"type": "queue.event", **message})
            sent += 1
        except Exception as e:
            logger.warning(f"Failed to broadcast {message.get('event')} to {group}: {e}")
    return sent
