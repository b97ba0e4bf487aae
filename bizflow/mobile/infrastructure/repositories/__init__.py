from .in_memory import (
    InMemoryEntityStore,
    InMemoryNotificationService,
    InMemorySessionRegistry,
    InMemorySyncStateRepository,
    InMemoryUserDirectory,
)

__all__ = [
    "InMemoryEntityStore",
    "InMemoryNotificationService",
    "InMemorySessionRegistry",
    "InMemorySyncStateRepository",
    "InMemoryUserDirectory",
]
