"""Optimistic tour status updates for client applications.

Each tour is held as a confirmed record plus an optional tentative one.
Applying an action renders the tentative record at once, then either
promotes it when the server accepts or drops it when the server refuses.
Nothing is mutated in place: every change rebuilds the tuple of tours.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Set, Tuple
from tourbook.client.tours_client import TourUpdateFailed

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = 'Unable to update tour right now.'

SUCCESS_LABELS = {
    'confirmed': 'Tour confirmed.',
    'completed': 'Tour marked completed.',
    'cancelled': 'Tour cancelled.',
    'rescheduled': 'Tour rescheduled.',
}
DEFAULT_SUCCESS_LABEL = 'Status updated.'


@dataclass(frozen=True)
class TourRecord:
    id: str
    status: str
    scheduled_at: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class ClientTour:
    confirmed: TourRecord
    tentative: Optional[TourRecord] = None

    @property
    def id(self):
        return self.confirmed.id

    @property
    def current(self):
        """The record to render: tentative while a change is in flight"""
        return self.tentative or self.confirmed

    @property
    def is_tentative(self):
        return self.tentative is not None


@dataclass
class LiveRegion:
    """Polite status region read out by screen readers"""
    politeness: str = 'polite'
    message: Optional[str] = None
    tone: Optional[str] = None
    history: list = field(default_factory=list)

    def announce(self, message, tone='success'):
        self.message = message
        self.tone = tone
        self.history.append((tone, message))


class TourReconciler:
    """Keeps a rendered list of tours in step with server-confirmed state"""

    def __init__(self, tours, client, announcer=None, on_change: Optional[Callable] = None):
        self._tours: Tuple[ClientTour, ...] = tuple(
            t if isinstance(t, ClientTour) else ClientTour(confirmed=t) for t in tours
        )
        self.client = client
        self.announcer = announcer or LiveRegion()
        self.on_change = on_change
        self.pending_ids: Set[str] = set()

    @property
    def tours(self):
        return self._tours

    @property
    def announcements(self):
        return self.announcer

    def rendered(self):
        return tuple(t.current for t in self._tours)

    def find(self, tour_id):
        for tour in self._tours:
            if tour.id == tour_id:
                return tour
        return None

    def is_pending(self, tour_id):
        return tour_id in self.pending_ids

    def replace_tours(self, tours):
        """Take a fresh server listing, e.g. after revalidation"""
        self._set(tuple(ClientTour(confirmed=t) for t in tours))

    def apply(self, tour_id, status, **extra):
        """Optimistically move a tour to ``status`` and confirm with the server.

        Returns True when the server accepted the change. Returns False
        without calling the server when another change on this tour is still
        in flight or the tour is unknown. Changes on different tours may be
        in flight at the same time.
        """
        if tour_id in self.pending_ids:
            logger.debug(f"Ignoring action on tour {tour_id}: update already pending")
            return False

        target = self.find(tour_id)
        if target is None:
            return False

        prior = target
        self.pending_ids.add(tour_id)
        self._swap(tour_id, replace(prior, tentative=replace(prior.confirmed, status=status)))

        try:
            self.client.update_status(tour_id, status, **extra)
        except TourUpdateFailed as e:
            logger.error(f"Failed to update tour {tour_id}: {e.message}")
            self._swap(tour_id, prior)
            self.announcer.announce(FAILURE_MESSAGE, tone='error')
            return False
        except Exception:
            logger.exception(f"Unexpected error updating tour {tour_id}")
            self._swap(tour_id, prior)
            self.announcer.announce(FAILURE_MESSAGE, tone='error')
            return False
        finally:
            self.pending_ids.discard(tour_id)

        self._swap(tour_id, ClientTour(confirmed=replace(prior.confirmed, status=status)))
        self.announcer.announce(SUCCESS_LABELS.get(status, DEFAULT_SUCCESS_LABEL))
        return True

    def _swap(self, tour_id, entry):
        self._set(tuple(entry if t.id == tour_id else t for t in self._tours))

    def _set(self, tours):
        self._tours = tours
        if self.on_change:
            self.on_change(self.rendered())
