import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)

GROUP = "updates"


def broadcast_refresh(entity: str, obj_id, status: str) -> None:
    """Tell open dashboards that ``entity`` changed so they re-fetch it."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {
        "type": "broadcast.refresh",
        "entity": entity,
        "id": obj_id,
        "status": status,
        "ts": timezone.now().isoformat(),
    }
    try:
        async_to_sync(channel_layer.group_send)(GROUP, payload)
    except Exception:
        # best effort; the write that triggered it already committed
        logger.warning("refresh broadcast failed for %s %s", entity, obj_id, exc_info=True)
