import logging
from dataclasses import dataclass
from limits import parse, storage, strategies

logger = logging.getLogger(__name__)

DEFAULT_TOURS_LIMIT = '5 per minute'


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int


class ActorRateLimiter:
    """Per-actor fixed-window quota for tour mutations.

    Counters live in a ``limits`` storage backend, so pointing
    RATELIMIT_STORAGE_URI at redis:// shares them across instances;
    memory:// keeps them in this process only.
    """

    def __init__(self, limit=DEFAULT_TOURS_LIMIT, storage_uri='memory://', namespace='tours', enabled=True):
        self.item = parse(limit)
        self.namespace = namespace
        self.enabled = enabled
        self.storage = storage.storage_from_string(storage_uri)
        self.strategy = strategies.FixedWindowRateLimiter(self.storage)

    def check(self, actor_id):
        """Consume one hit for the actor and report the window state"""
        key = str(actor_id)
        if not self.enabled:
            return RateLimitResult(True, self.item.amount, self.item.amount, 0)

        allowed = self.strategy.hit(self.item, self.namespace, key)
        stats = self.strategy.get_window_stats(self.item, self.namespace, key)
        if not allowed:
            logger.warning(f"Tour rate limit exceeded for actor {key}")
        return RateLimitResult(
            allowed=allowed,
            limit=self.item.amount,
            remaining=max(stats.remaining, 0),
            reset_at=int(stats.reset_time),
        )

    def reset(self):
        self.storage.reset()
