from django.core.management.base import BaseCommand
from django.utils import timezone
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

from portal.realtime.consumers import UPDATES_GROUP
from portal.services.dashboard import STATS_CACHE_KEY, dashboard_stats


class Command(BaseCommand):
    help = "Recompute the dashboard stats cache; broadcast a WebSocket refresh event."

    def handle(self, *args, **options):
        now = timezone.now()
        stats = dashboard_stats(refresh=True)
        keys_refreshed = [STATS_CACHE_KEY]

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            event = {
                "type": "broadcast.refresh",
                "version": int(now.timestamp()),
                "ts": now.isoformat(),
                "keys": keys_refreshed,
                "stats": stats,
            }
            async_to_sync(channel_layer.group_send)(UPDATES_GROUP, event)

        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(keys_refreshed)} keys at {now}"))
