"""Tour status state machine.

Landlords run the whole lifecycle (approve, decline, reschedule, complete).
Tenants can only withdraw, from any active state. ``completed`` and
``cancelled`` have no outgoing edges for anyone.
"""
from tourbook.utils.errors import InvalidTransition, ValidationError

REQUESTED = 'requested'
CONFIRMED = 'confirmed'
RESCHEDULED = 'rescheduled'
COMPLETED = 'completed'
CANCELLED = 'cancelled'

TOUR_STATUSES = (REQUESTED, CONFIRMED, RESCHEDULED, COMPLETED, CANCELLED)
ACTIVE_STATUSES = frozenset([REQUESTED, CONFIRMED, RESCHEDULED])
TERMINAL_STATUSES = frozenset([COMPLETED, CANCELLED])

LANDLORD = 'landlord'
TENANT = 'tenant'
ROLES = (LANDLORD, TENANT)

TRANSITIONS = {
    LANDLORD: {
        REQUESTED: frozenset([CONFIRMED, CANCELLED, RESCHEDULED]),
        CONFIRMED: frozenset([COMPLETED, CANCELLED, RESCHEDULED]),
        RESCHEDULED: frozenset([CONFIRMED, CANCELLED]),
        COMPLETED: frozenset(),
        CANCELLED: frozenset(),
    },
    TENANT: {
        REQUESTED: frozenset([CANCELLED]),
        CONFIRMED: frozenset([CANCELLED]),
        RESCHEDULED: frozenset([CANCELLED]),
        COMPLETED: frozenset(),
        CANCELLED: frozenset(),
    },
}

TOUR_STATUS_META = {
    REQUESTED: {'label': 'Requested', 'description': 'Waiting for landlord response'},
    CONFIRMED: {'label': 'Confirmed', 'description': 'Locked in with the landlord'},
    RESCHEDULED: {'label': 'Rescheduled', 'description': 'Awaiting confirmation for new time'},
    COMPLETED: {'label': 'Completed', 'description': 'Tour took place'},
    CANCELLED: {'label': 'Cancelled', 'description': 'Tour was cancelled'},
}

# One-click actions; rescheduling needs a new time so it is offered separately
ACTION_COPY = {
    CONFIRMED: {'label': 'Confirm tour', 'tone': 'primary'},
    COMPLETED: {'label': 'Mark completed', 'tone': 'primary'},
    CANCELLED: {'label': 'Cancel tour', 'tone': 'danger'},
}

ACTION_ORDER = (CONFIRMED, COMPLETED, CANCELLED)


def is_allowed(actor_role, current_status, requested_status):
    edges = TRANSITIONS.get(actor_role, {}).get(current_status)
    if not edges:
        return False
    return requested_status in edges


def allowed_targets(actor_role, current_status):
    return TRANSITIONS.get(actor_role, {}).get(current_status, frozenset())


def check_transition(actor_role, current_status, requested_status):
    """Raise InvalidTransition unless the role may take that edge"""
    if not is_allowed(actor_role, current_status, requested_status):
        raise InvalidTransition(current_status, requested_status)


def require_future_slot(scheduled_at, now, required=False):
    """A new slot must be strictly after ``now``.

    Runs ahead of the role/status table so a bad time is reported as a
    validation failure whatever the transition.
    """
    if scheduled_at is None:
        if required:
            raise ValidationError('A new tour time is required to reschedule')
        return
    if scheduled_at <= now:
        raise ValidationError('Tour date must be in the future')


def is_terminal(status):
    return status in TERMINAL_STATUSES


def actions_for(actor_role, current_status):
    targets = allowed_targets(actor_role, current_status)
    return [
        dict(status=status, **ACTION_COPY[status])
        for status in ACTION_ORDER
        if status in targets
    ]
