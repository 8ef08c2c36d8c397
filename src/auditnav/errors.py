"""Exception types raised by the navigation core and content providers."""


class AuditNavError(Exception):
    """Base class for all auditnav errors."""


class NavigationError(AuditNavError):
    """A navigation request that cannot be honoured from the current position."""


class EntryNotFound(NavigationError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"History entry not found: {entry_id}")
        self.entry_id = entry_id


class AtRoot(NavigationError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Entry {entry_id} has no parent")
        self.entry_id = entry_id


class NoForwardHistory(NavigationError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Entry {entry_id} has no children")
        self.entry_id = entry_id


class ChildIndexOutOfBounds(NavigationError):
    def __init__(self, entry_id: str, index: int, count: int) -> None:
        super().__init__(
            f"Branch index {index} out of range for entry {entry_id} ({count} branches)"
        )
        self.entry_id = entry_id
        self.index = index
        self.count = count


class NoFocusedChild(NavigationError):
    def __init__(self) -> None:
        super().__init__("No focused child to descend into")


class FetchError(AuditNavError):
    """A provider request failed."""

    kind = "fetch"

    def __init__(self, topic_id: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {self.kind} for {topic_id}: {reason}")
        self.topic_id = topic_id
        self.reason = reason


class ContentFetchFailed(FetchError):
    kind = "content"


class MetadataFetchFailed(FetchError):
    kind = "metadata"
