"""
Unit tests for the bucket and priority queue.

Run with: pytest tests/test_queues.py
"""

import pytest

from taskqueue.bucket import Bucket
from taskqueue.priority_queue import PriorityQueue
from taskqueue.types import OutOfRangeError


class TestBucket:
    """Test the handle registry."""

    def test_enqueue_returns_unique_handles(self):
        """Every enqueue mints a new handle."""
        bucket = Bucket()
        handles = [bucket.enqueue(i) for i in range(5)]

        assert len(set(handles)) == 5
        assert bucket.length == 5

    def test_dequeue_is_fifo(self):
        """Items come out in insertion order."""
        bucket = Bucket()
        for item in ["a", "b", "c"]:
            bucket.enqueue(item)

        assert bucket.dequeue() == "a"
        assert bucket.dequeue() == "b"
        assert bucket.dequeue() == "c"
        assert bucket.dequeue() is None

    def test_peek_does_not_remove(self):
        bucket = Bucket()
        handle = bucket.enqueue("a")
        bucket.enqueue("b")

        assert bucket.peek() == (handle, "a")
        assert bucket.length == 2

    def test_peek_empty(self):
        assert Bucket().peek() is None

    def test_delete_by_handle(self):
        """Deleting keeps the order of the remaining items."""
        bucket = Bucket()
        bucket.enqueue("a")
        middle = bucket.enqueue("b")
        bucket.enqueue("c")

        assert bucket.delete(middle) is True
        assert bucket.dequeue() == "a"
        assert bucket.dequeue() == "c"

    def test_delete_unknown_handle(self):
        """Deleting a missing handle is a no-op."""
        bucket = Bucket()
        handle = bucket.enqueue("a")

        assert bucket.delete(handle) is True
        assert bucket.delete(handle) is False
        assert bucket.delete(12345) is False

    def test_delete_falsy_value(self):
        """Stored values may be falsy."""
        bucket = Bucket()
        handle = bucket.enqueue(None)

        assert bucket.delete(handle) is True
        assert bucket.is_empty

    def test_handles_are_not_reused(self):
        bucket = Bucket()
        first = bucket.enqueue("a")
        bucket.dequeue()
        second = bucket.enqueue("b")

        assert first != second

    def test_clear(self):
        bucket = Bucket()
        bucket.enqueue("a")
        bucket.enqueue("b")
        bucket.clear()

        assert bucket.is_empty
        assert len(bucket) == 0


class TestPriorityQueue:
    """Test the bucket queue."""

    def test_initializes_a_bucket_per_level(self):
        queue = PriorityQueue(3)

        assert queue.max == 2
        assert len(queue.buckets) == 3
        assert all(isinstance(bucket, Bucket) for bucket in queue.buckets)
        assert queue.is_empty

    def test_dequeue_highest_level_first(self):
        """Level 0 drains before level 1, level 1 before level 2."""
        queue = PriorityQueue(3)
        queue.enqueue("low", 2)
        queue.enqueue("high", 0)
        queue.enqueue("medium", 1)

        assert queue.dequeue() == "high"
        assert queue.dequeue() == "medium"
        assert queue.dequeue() == "low"
        assert queue.dequeue() is None

    def test_fifo_within_level(self):
        queue = PriorityQueue(2)
        queue.enqueue("first", 1)
        queue.enqueue("second", 1)

        assert queue.dequeue() == "first"
        assert queue.dequeue() == "second"

    def test_default_level_is_highest(self):
        queue = PriorityQueue(2)
        queue.enqueue("low", 1)
        queue.enqueue("default")

        assert queue.dequeue() == "default"

    def test_peek(self):
        queue = PriorityQueue(3)
        queue.enqueue("low", 2)
        handle = queue.enqueue("medium", 1)

        assert queue.peek() == (handle, "medium")
        assert queue.length == 2

    def test_length_across_levels(self):
        queue = PriorityQueue(3)
        queue.enqueue("a", 0)
        queue.enqueue("b", 2)
        queue.enqueue("c", 2)

        assert queue.length == 3
        assert len(queue) == 3
        assert not queue.is_empty

    def test_delete(self):
        queue = PriorityQueue(2)
        handle = queue.enqueue("a", 1)

        assert queue.delete(handle, 1) is True
        assert queue.delete(handle, 1) is False
        assert queue.is_empty

    def test_get_bucket(self):
        queue = PriorityQueue(2)
        queue.enqueue("a", 1)

        bucket = queue.get_bucket(1)

        assert bucket is queue.buckets[1]
        assert bucket.dequeue() == "a"
        assert queue.is_empty

    def test_clear(self):
        queue = PriorityQueue(3)
        for level in range(3):
            queue.enqueue(level, level)
        queue.clear()

        assert queue.length == 0
        assert all(bucket.is_empty for bucket in queue)

    def test_out_of_range(self):
        """Addressing a missing level raises and leaves the queue untouched."""
        queue = PriorityQueue(1)

        with pytest.raises(OutOfRangeError, match="Out of Range Error"):
            queue.enqueue("a", 1)
        with pytest.raises(OutOfRangeError):
            queue.get_bucket(1)
        with pytest.raises(OutOfRangeError):
            queue.delete(1, 5)

        assert queue.is_empty

    def test_negative_level_rejected(self):
        queue = PriorityQueue(2)

        with pytest.raises(OutOfRangeError):
            queue.enqueue("a", -1)

    def test_out_of_range_is_index_error(self):
        with pytest.raises(IndexError):
            PriorityQueue(1).get_bucket(3)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
