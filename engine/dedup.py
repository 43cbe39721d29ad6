import threading


class InProgressSet:
    """Video ids currently owned by a worker or awaiting acknowledgement.

    ``add`` is the only gate. A caller that gets ``True`` back (already
    present) must skip the id and must not call ``remove``; the first caller
    owns the slot until it releases it exactly once.
    """

    def __init__(self):
        self._ids = set()
        self._lock = threading.Lock()

    def add(self, video_id):
        """Insert ``video_id``; return True when it was already present."""
        with self._lock:
            if video_id in self._ids:
                return True
            self._ids.add(video_id)
            return False

    def remove(self, video_id):
        with self._lock:
            self._ids.discard(video_id)

    def remove_many(self, video_ids):
        with self._lock:
            self._ids.difference_update(video_ids)

    def snapshot(self):
        with self._lock:
            return frozenset(self._ids)

    def __contains__(self, video_id):
        with self._lock:
            return video_id in self._ids

    def __len__(self):
        with self._lock:
            return len(self._ids)
