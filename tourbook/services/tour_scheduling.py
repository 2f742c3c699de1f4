"""Tour scheduling: request, approve, decline, reschedule and status updates.

Every operation runs all of its checks first and then issues exactly one
insert or update, so a rejected call never leaves a partial write behind.
Notifications go out after the write and can never fail the operation.
"""
import logging
import uuid
from datetime import datetime
from flask import current_app
from tourbook.services import tour_status
from tourbook.services.notifications import NotificationTrigger
from tourbook.services.rate_limit import ActorRateLimiter
from tourbook.services.tour_conflicts import ConflictDetector
from tourbook.services.tour_status import (
    LANDLORD, TENANT, REQUESTED, CONFIRMED, RESCHEDULED, COMPLETED, CANCELLED,
    TOUR_STATUSES,
)
from tourbook.services.tour_store import TourStore, StoreError
from tourbook.utils.errors import (
    ValidationError, Unauthenticated, Forbidden, NotFound, InvalidState,
    SlotConflict, RateLimited, PersistenceError,
)
from tourbook.utils.sanitizers import sanitize_note
from tourbook.utils.timeutils import utcnow, to_naive_utc
from tourbook.utils.validators import (
    parse_tour_datetime, parse_iso_timestamp, validate_note, validate_timezone,
)

logger = logging.getLogger(__name__)


class TourSchedulingService:

    def __init__(self, store, rate_limiter, notifier, clock=utcnow, reschedule_checks_conflicts=False):
        self.store = store
        self.rate_limiter = rate_limiter
        self.notifier = notifier
        self.clock = clock
        self.conflicts = ConflictDetector(store)
        # Landlord reschedules skip the slot check unless this is on
        self.reschedule_checks_conflicts = reschedule_checks_conflicts

    # Guards

    def _require_actor(self, actor_id):
        if actor_id is None or str(actor_id).strip() == '':
            raise Unauthenticated()
        return str(actor_id)

    def _load_tour(self, tour_id):
        tour = self.store.get(tour_id)
        if tour is None:
            raise NotFound('Tour not found')
        return tour

    def _authorize(self, tour, actor_id, landlord_only=False):
        role = tour.role_of(actor_id)
        if role is None or (landlord_only and role != LANDLORD):
            raise Forbidden('Not authorized')
        return role

    def _enforce_rate_limit(self, actor_id):
        result = self.rate_limiter.check(actor_id)
        if not result.allowed:
            raise RateLimited(result.limit, result.remaining, result.reset_at)
        return result

    def _notify(self, user_id, reason):
        try:
            self.notifier.notify(user_id, reason)
        except Exception:
            logger.exception(f"Notification '{reason}' for {user_id} failed")

    def _resolve_slot(self, date, time, tz_name):
        if not date or not time:
            raise ValidationError('Choose a preferred date and time.')
        scheduled_at = parse_tour_datetime(date, time, tz_name)
        if scheduled_at is None:
            raise ValidationError('Enter a valid date and time for your tour request.')
        tour_status.require_future_slot(scheduled_at, self.clock())
        return scheduled_at

    # Tenant request

    def request_tour(self, actor_id, property_id, landlord_id, date, time, notes=None, timezone=None):
        """Create a tour in 'requested' status and return its id"""
        actor_id = self._require_actor(actor_id)

        property_id = str(property_id or '').strip()
        landlord_id = str(landlord_id or '').strip()
        if not property_id or not landlord_id:
            raise ValidationError('Missing property information. Refresh and try again.')

        tz_name = timezone or 'UTC'
        if not validate_timezone(tz_name):
            raise ValidationError('Unknown timezone')
        scheduled_at = self._resolve_slot(date, time, tz_name)

        if actor_id == landlord_id:
            raise Forbidden('You already manage this property.')

        listing = self.store.get_property(property_id)
        if listing is None:
            raise NotFound('Property not found')
        if not listing.is_owned_by(landlord_id):
            raise ValidationError('Invalid landlord ID for this property')

        self._enforce_rate_limit(actor_id)

        values = {
            'id': str(uuid.uuid4()),
            'property_id': str(property_id),
            'landlord_id': str(landlord_id),
            'tenant_id': actor_id,
            'scheduled_at': scheduled_at,
            'timezone': tz_name,
            'status': REQUESTED,
        }
        note = sanitize_note(notes)
        if note is not None:
            values['notes'] = note

        self._insert_with_fallbacks(values)

        logger.info(f"Tour {values['id']} requested by {actor_id} for property {property_id}")
        self._notify(landlord_id, 'tour_requested')
        return values['id']

    def _attempt_insert(self, values, privileged=False):
        try:
            self.store.insert(values, privileged=privileged)
            return None
        except StoreError as e:
            return e

    def _insert_with_fallbacks(self, values):
        error = self._attempt_insert(values)

        # Older schemas may lack optional columns such as notes
        if error is not None and error.missing_column and error.missing_column in values:
            logger.warning(f"Column '{error.missing_column}' missing on tours; retrying insert without it")
            values = {k: v for k, v in values.items() if k != error.missing_column}
            error = self._attempt_insert(values)

        if error is not None and error.permission_denied:
            logger.warning("Tour insert denied by storage policy; retrying with service credentials")
            error = self._attempt_insert(values, privileged=True)
            if error is not None and error.unavailable:
                logger.error(f"Tour insert fallback unavailable: {error}")
                raise PersistenceError('Server is not fully configured for tour requests.')

        if error is not None:
            logger.error(
                f"Failed to request tour for property {values.get('property_id')} "
                f"by {values.get('tenant_id')}: {error}"
            )
            raise PersistenceError('Unable to submit tour request. Please try again.')

    # Landlord decisions

    def approve_tour(self, actor_id, tour_id, notes=None):
        return self._decide(actor_id, tour_id, CONFIRMED, notes, 'tour_confirmed')

    def decline_tour(self, actor_id, tour_id, notes=None):
        return self._decide(actor_id, tour_id, CANCELLED, notes, 'tour_declined')

    def _decide(self, actor_id, tour_id, new_status, notes, reason):
        actor_id = self._require_actor(actor_id)
        tour = self._load_tour(tour_id)
        self._authorize(tour, actor_id, landlord_only=True)

        if tour.status != REQUESTED:
            raise InvalidState('Tour request already processed')
        if not validate_note(notes):
            raise ValidationError('Notes must be 500 characters or fewer')

        self._enforce_rate_limit(actor_id)

        values = {'status': new_status, 'updated_at': self.clock()}
        note = sanitize_note(notes)
        if note is not None:
            values['notes'] = note
        if new_status == CANCELLED:
            values['cancelled_by'] = actor_id

        self._write(tour, values)
        logger.info(f"Tour {tour.id} {new_status} by landlord {actor_id}")
        self._notify(tour.tenant_id, reason)
        return tour.id

    def reschedule_tour(self, actor_id, tour_id, date, time, notes=None, timezone=None):
        actor_id = self._require_actor(actor_id)
        tour = self._load_tour(tour_id)
        self._authorize(tour, actor_id, landlord_only=True)

        tz_name = timezone or tour.timezone or 'UTC'
        if not validate_timezone(tz_name):
            raise ValidationError('Unknown timezone')
        scheduled_at = self._resolve_slot(date, time, tz_name)

        if not tour_status.is_allowed(LANDLORD, tour.status, RESCHEDULED):
            raise InvalidState(f'A {tour.status} tour cannot be rescheduled')
        if not validate_note(notes):
            raise ValidationError('Notes must be 500 characters or fewer')

        if self.reschedule_checks_conflicts and self.conflicts.has_conflict(tour.property_id, scheduled_at, tour.id):
            raise SlotConflict()

        self._enforce_rate_limit(actor_id)

        values = {
            'status': RESCHEDULED,
            'scheduled_at': scheduled_at,
            'timezone': tz_name,
            'updated_at': self.clock(),
        }
        note = sanitize_note(notes)
        if note is not None:
            values['notes'] = note

        if self.reschedule_checks_conflicts:
            self._write_slot(tour, scheduled_at, values)
        else:
            self._write(tour, values)

        logger.info(f"Tour {tour.id} rescheduled to {scheduled_at.isoformat()} by {actor_id}")
        self._notify(tour.tenant_id, 'tour_rescheduled')
        return tour.id

    # General entry point

    def update_tour_status(self, actor_id, tour_id, new_status, scheduled_at=None, timezone=None,
                           notes=None, cancelled_reason=None):
        actor_id = self._require_actor(actor_id)

        if new_status not in TOUR_STATUSES:
            raise ValidationError('Invalid status')
        if not validate_note(notes) or not validate_note(cancelled_reason):
            raise ValidationError('Notes must be 500 characters or fewer')
        if timezone is not None and not validate_timezone(timezone):
            raise ValidationError('Unknown timezone')

        new_slot = None
        if scheduled_at is not None:
            if isinstance(scheduled_at, str):
                new_slot = parse_iso_timestamp(scheduled_at)
            elif isinstance(scheduled_at, datetime):
                new_slot = to_naive_utc(scheduled_at)
            if new_slot is None:
                raise ValidationError('Invalid date format')

        tour = self._load_tour(tour_id)
        role = self._authorize(tour, actor_id)

        tour_status.require_future_slot(new_slot, self.clock(), required=(new_status == RESCHEDULED))
        if new_slot is not None and new_status != RESCHEDULED:
            raise ValidationError('A new tour time can only be set when rescheduling')
        tour_status.check_transition(role, tour.status, new_status)

        if new_slot is not None and self.conflicts.has_conflict(tour.property_id, new_slot, tour.id):
            raise SlotConflict()

        self._enforce_rate_limit(actor_id)

        previous_status = tour.status
        recipient_id = tour.other_party(actor_id)

        now = self.clock()
        values = {'status': new_status, 'updated_at': now}
        if new_status == COMPLETED:
            values['completed_at'] = now
        if new_slot is not None:
            values['scheduled_at'] = new_slot
            values['timezone'] = timezone or tour.timezone
        if notes is not None:
            values['notes'] = sanitize_note(notes)
        if new_status == CANCELLED:
            values['cancelled_by'] = actor_id
            if cancelled_reason:
                values['cancelled_reason'] = sanitize_note(cancelled_reason)

        if new_slot is not None:
            self._write_slot(tour, new_slot, values)
        else:
            self._write(tour, values)

        logger.info(f"Tour {tour_id} moved {previous_status} -> {new_status} by {role} {actor_id}")
        self._notify(recipient_id, 'tour_updated')
        return str(tour_id)

    # Reads

    def get_tour(self, actor_id, tour_id):
        actor_id = self._require_actor(actor_id)
        tour = self._load_tour(tour_id)
        self._authorize(tour, actor_id)
        return tour

    def list_tours(self, actor_id, role=TENANT, status=None, upcoming=False, limit=None):
        actor_id = self._require_actor(actor_id)
        if role not in (LANDLORD, TENANT):
            raise ValidationError('Role must be landlord or tenant')
        if status and status not in TOUR_STATUSES:
            raise ValidationError('Invalid status')
        return self.store.filter(
            actor_id,
            role,
            status=status,
            scheduled_after=self.clock() if upcoming else None,
            limit=limit,
        )

    # Writes

    def _write(self, tour, values):
        tour_id = tour.id
        try:
            written = self.store.update(tour_id, values)
        except StoreError as e:
            logger.error(f"Failed to update tour {tour_id}: {e}")
            raise PersistenceError('Failed to update tour')
        if not written:
            logger.error(f"Update of tour {tour_id} matched no rows")
            raise PersistenceError('Failed to update tour')

    def _write_slot(self, tour, scheduled_at, values):
        tour_id = tour.id
        try:
            written = self.store.update_if_slot_free(tour_id, tour.property_id, scheduled_at, values)
        except StoreError as e:
            logger.error(f"Failed to update tour {tour_id}: {e}")
            raise PersistenceError('Failed to update tour')
        if not written:
            # Lost the race: another request took the slot after our check
            logger.warning(f"Slot {scheduled_at.isoformat()} on property {tour.property_id} taken during update of {tour_id}")
            raise SlotConflict()


def build_scheduling_service(app=None):
    """Wire the service from application config"""
    app = app or current_app
    config = app.config

    rate_limiter = app.extensions.get('tourbook_rate_limiter')
    if rate_limiter is None:
        rate_limiter = ActorRateLimiter(
            limit=config.get('TOURS_RATE_LIMIT', '5 per minute'),
            storage_uri=config.get('RATELIMIT_STORAGE_URI', 'memory://'),
            enabled=config.get('TOURS_RATE_LIMIT_ENABLED', True),
        )
        app.extensions['tourbook_rate_limiter'] = rate_limiter

    notifier = NotificationTrigger(
        url=config.get('NOTIFICATIONS_URL'),
        timeout=config.get('NOTIFICATIONS_TIMEOUT', 5),
    )

    return TourSchedulingService(
        store=TourStore(service_url=config.get('SERVICE_DATABASE_URL')),
        rate_limiter=rate_limiter,
        notifier=notifier,
        clock=app.extensions.get('tourbook_clock', utcnow),
        reschedule_checks_conflicts=config.get('TOURS_RESCHEDULE_CHECKS_CONFLICTS', False),
    )
