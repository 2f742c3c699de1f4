"""Slot conflict detection.

A slot is the (property, scheduled_at) pair. Two tours clash only when their
timestamps are exactly equal; durations and overlapping windows are not
considered.
"""


class ConflictDetector:
    def __init__(self, store):
        self.store = store

    def has_conflict(self, property_id, candidate_time, exclude_tour_id=None):
        """True if another active tour already holds this exact slot"""
        if not property_id or candidate_time is None:
            return False
        return bool(self.store.find_active_at(property_id, candidate_time, exclude_tour_id))
