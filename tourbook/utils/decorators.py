from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from tourbook.utils.errors import Unauthenticated


def actor_required(fn):
    """Decorator to resolve the signed-in user as the acting party.

    Missing credentials raise Unauthenticated so the response uses the tour
    error format; malformed tokens are still rejected by Flask-JWT-Extended.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request(optional=True)
        identity = get_jwt_identity()

        if identity is None or str(identity).strip() == '':
            raise Unauthenticated('Authentication required')

        g.actor_id = str(identity)
        return fn(*args, **kwargs)
    return wrapper
