"""Tour scheduling error taxonomy.

Every check in the scheduling service raises one of these before any write
happens. The app factory turns them into ``{'message': ..., 'error': ...}``
JSON responses with the matching status code.
"""


class TourError(Exception):
    status_code = 400
    code = 'tour_error'
    default_message = 'Unable to process tour request.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'message': self.message, 'error': self.code}


class ValidationError(TourError):
    code = 'validation_error'
    default_message = 'Invalid tour details.'


class Unauthenticated(TourError):
    status_code = 401
    code = 'unauthenticated'
    default_message = 'Authentication required'


class Forbidden(TourError):
    status_code = 403
    code = 'forbidden'
    default_message = 'Not authorized'


class NotFound(TourError):
    status_code = 404
    code = 'not_found'
    default_message = 'Tour not found'


class InvalidState(TourError):
    code = 'invalid_state'
    default_message = 'Tour request already processed'


class InvalidTransition(TourError):
    code = 'invalid_transition'

    def __init__(self, current_status, requested_status, message=None):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            message or f'Cannot change tour status from {current_status} to {requested_status}'
        )


class SlotConflict(TourError):
    status_code = 409
    code = 'slot_conflict'
    default_message = 'This time slot is already booked. Please choose another time.'


class RateLimited(TourError):
    status_code = 429
    code = 'rate_limited'
    default_message = 'Too many requests. Please try again later.'

    def __init__(self, limit, remaining, reset_at, message=None):
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        super().__init__(message)

    def to_dict(self):
        data = super().to_dict()
        data.update({'limit': self.limit, 'remaining': self.remaining, 'reset': self.reset_at})
        return data

    def headers(self):
        return {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(self.reset_at),
        }


class PersistenceError(TourError):
    status_code = 500
    code = 'persistence_error'
    default_message = 'Unable to save tour right now. Please try again.'
