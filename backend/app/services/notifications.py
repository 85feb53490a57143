"""Change notification bus.

After a mutation commits, ``notify(category)`` tells every open view of that
category to refetch. Each category also carries a monotonic version so views
that poll ``GET /api/changes`` converge without a live subscription.
"""
import logging
import threading
from collections import defaultdict
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[str], None]


class ChangeNotificationBus:
    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._versions: dict[str, int] = defaultdict(int)

    def subscribe(self, category: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``category``; returns an unsubscribe callable."""
        with self._lock:
            self._handlers[category].append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(category, [])
                if handler in handlers:
                    handlers.remove(handler)

        return _unsubscribe

    def publish(self, category: str) -> int:
        """Bump the category version and call its subscribers.

        A subscriber that raises is logged and skipped; the mutation it reports
        has already committed.
        """
        with self._lock:
            self._versions[category] += 1
            version = self._versions[category]
            handlers = list(self._handlers.get(category, []))

        logger.info("Change on '%s' (version %d, %d subscribers)", category, version, len(handlers))
        for handler in handlers:
            try:
                handler(category)
            except Exception:
                logger.exception("Subscriber %r failed for category '%s'", handler, category)
        return version

    notify = publish

    def versions(self, categories: Optional[Iterable[str]] = None) -> dict[str, int]:
        with self._lock:
            if categories is None:
                return dict(self._versions)
            return {category: self._versions.get(category, 0) for category in categories}

    def reset(self) -> None:
        with self._lock:
            self._handlers.clear()
            self._versions.clear()


bus = ChangeNotificationBus()
