"""
Bucket: an insertion-ordered registry of cancellable entries.

Every value added to a bucket receives a unique, auto-incrementing handle.
The bucket behaves like a FIFO queue while still allowing any entry to be
looked up or removed by its handle in O(1).
"""

from collections import OrderedDict
from itertools import count
from typing import Generic, Optional, Tuple

from .types import T


class Bucket(Generic[T]):
    """
    FIFO queue with O(1) removal by handle.

    Handles are never reused for the lifetime of the bucket, so a stale
    handle can only ever miss.
    """

    def __init__(self):
        self.bucket: "OrderedDict[int, T]" = OrderedDict()
        self._ids = count(1)

    def enqueue(self, item: T) -> int:
        """Add an item to the end of the bucket and return its handle."""
        handle = next(self._ids)
        self.bucket[handle] = item
        return handle

    def dequeue(self) -> Optional[T]:
        """Remove and return the earliest item, or None if the bucket is empty."""
        if not self.bucket:
            return None
        _, item = self.bucket.popitem(last=False)
        return item

    def peek(self) -> Optional[Tuple[int, T]]:
        """Return the earliest (handle, item) pair without removing it."""
        for entry in self.bucket.items():
            return entry
        return None

    def delete(self, handle: int) -> bool:
        """
        Remove an item by handle.

        Returns:
            True if an item was removed, False for unknown handles
        """
        if handle not in self.bucket:
            return False
        del self.bucket[handle]
        return True

    def clear(self) -> None:
        self.bucket.clear()

    @property
    def is_empty(self) -> bool:
        return not self.bucket

    @property
    def length(self) -> int:
        return len(self.bucket)

    def __len__(self) -> int:
        return len(self.bucket)

    def __repr__(self) -> str:
        return f"<Bucket length={self.length}>"
