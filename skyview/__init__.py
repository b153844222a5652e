"""Weather dashboard backend: cached NWS snapshots and a daily forecast digest."""

from .cache import SnapshotCache, bucket_key
from .errors import UpstreamFetchError
from .models import SnapshotResult, WeatherSnapshot
from .retry import call_with_retry
from .storage import SubscriberStore

__all__ = [
    "SnapshotCache",
    "SnapshotResult",
    "SubscriberStore",
    "UpstreamFetchError",
    "WeatherSnapshot",
    "bucket_key",
    "call_with_retry",
]
