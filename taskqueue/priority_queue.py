"""
Bucket-based priority queue.

The queue holds a fixed number of buckets, one per priority level. Level 0
is the highest priority and is always drained before level 1, and so on:

    queue = PriorityQueue(3)        # [[], [], []]
    queue.enqueue(task_a, 0)        # [[a], [], []]
    queue.enqueue(task_b, 2)        # [[a], [], [b]]
    queue.dequeue()                 # -> a, [[], [], [b]]
    queue.dequeue()                 # -> b, [[], [], []]

Ordering is strict: as long as level 0 keeps receiving work, lower levels
are never served.
"""

from typing import Generic, Iterator, List, Optional, Tuple

from .bucket import Bucket
from .types import OutOfRangeError, T


class PriorityQueue(Generic[T]):
    """
    A bucket queue supporting a fixed number of priority levels.

    Attributes:
        max: Highest valid bucket index
        buckets: One Bucket per priority level
    """

    def __init__(self, buckets: int):
        self.max = buckets - 1
        self.buckets: List[Bucket[T]] = [Bucket() for _ in range(buckets)]

    def enqueue(self, item: T, priority: int = 0) -> int:
        """
        Add an item at the given priority and return its handle.

        Raises:
            OutOfRangeError: If the priority has no bucket
        """
        self._guard(priority)
        return self.buckets[priority].enqueue(item)

    def dequeue(self) -> Optional[T]:
        """Remove and return the first item of the highest non-empty level."""
        for bucket in self:
            if bucket.length:
                return bucket.dequeue()
        return None

    def peek(self) -> Optional[Tuple[int, T]]:
        for bucket in self:
            if bucket.length:
                return bucket.peek()
        return None

    def get_bucket(self, priority: int = 0) -> Bucket[T]:
        """
        Return the bucket for one priority level.

        The queue keeps ownership of the bucket; callers use it to execute
        a single level.
        """
        self._guard(priority)
        return self.buckets[priority]

    def delete(self, handle: int, priority: int) -> bool:
        """Remove an item using its handle and priority."""
        return self.get_bucket(priority).delete(handle)

    def clear(self) -> None:
        for bucket in self:
            bucket.clear()

    @property
    def is_empty(self) -> bool:
        return all(bucket.is_empty for bucket in self)

    @property
    def length(self) -> int:
        return sum(bucket.length for bucket in self)

    def __len__(self) -> int:
        return self.length

    def __iter__(self) -> Iterator[Bucket[T]]:
        return iter(self.buckets)

    def _guard(self, priority: int) -> None:
        if not 0 <= priority <= self.max:
            raise OutOfRangeError()
