import logging
from flask import Blueprint, Response, request, jsonify, g
from tourbook import db
from tourbook.services.tour_calendar import event_for_tour, generate_ics
from tourbook.services.tour_scheduling import build_scheduling_service
from tourbook.utils.decorators import actor_required
from tourbook.utils.errors import TourError

logger = logging.getLogger(__name__)

tours_bp = Blueprint('tours', __name__)

TOUR_PAGES = ['/dashboard', '/dashboard/tours', '/tours']


def _payload():
    return request.get_json(silent=True) or {}


def _failure(message):
    db.session.rollback()
    return jsonify({'message': message, 'error': 'internal_error'}), 500


@tours_bp.route('/', methods=['GET'], strict_slashes=False)
@actor_required
def list_tours():
    """Get the current user's tours as landlord or tenant"""
    try:
        service = build_scheduling_service()
        role = request.args.get('role', 'tenant').strip()
        status = request.args.get('status', '').strip() or None
        upcoming = request.args.get('upcoming', 'false').lower() in ('1', 'true', 'yes')
        limit = request.args.get('limit', type=int)

        if status == 'all':
            status = None

        tours = service.list_tours(g.actor_id, role=role, status=status, upcoming=upcoming, limit=limit)

        return jsonify({
            'tours': [t.to_dict(viewer_id=g.actor_id, include_property=True) for t in tours]
        }), 200

    except TourError:
        raise
    except Exception:
        logger.exception("Failed to fetch tours")
        return _failure('Failed to fetch tours')


@tours_bp.route('/', methods=['POST'], strict_slashes=False)
@actor_required
def request_tour():
    """Request a property tour (tenant)"""
    try:
        service = build_scheduling_service()
        data = _payload()

        property_id = data.get('propertyId')
        property_slug = data.get('propertySlug')

        tour_id = service.request_tour(
            g.actor_id,
            property_id=property_id,
            landlord_id=data.get('landlordId'),
            date=data.get('date'),
            time=data.get('time'),
            notes=data.get('notes'),
            timezone=data.get('timezone'),
        )
        tour = service.get_tour(g.actor_id, tour_id)

        return jsonify({
            'message': 'Tour requested successfully',
            'tour': tour.to_dict(viewer_id=g.actor_id, include_property=True),
            'revalidate': TOUR_PAGES + [f"/property/{property_slug or property_id}"],
        }), 201

    except TourError:
        raise
    except Exception:
        logger.exception("Unexpected error requesting tour")
        return _failure('Unable to submit tour request. Please try again.')


@tours_bp.route('/<tour_id>', methods=['GET'])
@actor_required
def get_tour(tour_id):
    """Get a single tour (landlord or tenant on the tour)"""
    try:
        service = build_scheduling_service()
        tour = service.get_tour(g.actor_id, tour_id)
        return jsonify({
            'tour': tour.to_dict(viewer_id=g.actor_id, include_property=True)
        }), 200

    except TourError:
        raise
    except Exception:
        logger.exception(f"Failed to fetch tour {tour_id}")
        return _failure('Failed to fetch tour')


@tours_bp.route('/<tour_id>/calendar.ics', methods=['GET'])
@actor_required
def tour_calendar(tour_id):
    """Download a tour as an iCalendar event (landlord or tenant on the tour)"""
    try:
        service = build_scheduling_service()
        tour = service.get_tour(g.actor_id, tour_id)
        duration = request.args.get('duration', type=int)
        if duration is not None and not 1 <= duration <= 24 * 60:
            return jsonify({'message': 'Duration must be between 1 and 1440 minutes',
                            'error': 'validation_error'}), 400

        body = generate_ics(event_for_tour(tour, duration=duration), stamp=service.clock())

        return Response(
            body,
            mimetype='text/calendar',
            headers={'Content-Disposition': f'attachment; filename=tour-{tour.id}.ics'},
        )

    except TourError:
        raise
    except Exception:
        logger.exception(f"Failed to export tour {tour_id} to calendar")
        return _failure('Failed to export tour')


@tours_bp.route('/<tour_id>/approve', methods=['POST'])
@actor_required
def approve_tour(tour_id):
    """Approve a requested tour (landlord only)"""
    try:
        service = build_scheduling_service()
        service.approve_tour(g.actor_id, tour_id, notes=_payload().get('notes'))
        return jsonify({'message': 'Tour request approved', 'success': True}), 200

    except TourError:
        raise
    except Exception:
        logger.exception(f"Failed to approve tour {tour_id}")
        return _failure('Failed to approve tour')


@tours_bp.route('/<tour_id>/decline', methods=['POST'])
@actor_required
def decline_tour(tour_id):
    """Decline a requested tour (landlord only)"""
    try:
        service = build_scheduling_service()
        service.decline_tour(g.actor_id, tour_id, notes=_payload().get('notes'))
        return jsonify({'message': 'Tour request declined', 'success': True}), 200

    except TourError:
        raise
    except Exception:
        logger.exception(f"Failed to decline tour {tour_id}")
        return _failure('Failed to decline tour')


@tours_bp.route('/<tour_id>/reschedule', methods=['POST'])
@actor_required
def reschedule_tour(tour_id):
    """Move a tour to a new time (landlord only)"""
    try:
        service = build_scheduling_service()
        data = _payload()
        service.reschedule_tour(
            g.actor_id,
            tour_id,
            date=data.get('date'),
            time=data.get('time'),
            notes=data.get('notes'),
            timezone=data.get('timezone'),
        )
        return jsonify({'message': 'Tour rescheduled', 'success': True}), 200

    except TourError:
        raise
    except Exception:
        logger.exception(f"Failed to reschedule tour {tour_id}")
        return _failure('Failed to reschedule tour')


@tours_bp.route('/update', methods=['POST'])
@actor_required
def update_tour_status():
    """Change a tour's status (landlord or tenant)"""
    try:
        service = build_scheduling_service()
        data = _payload()

        tour_id = data.get('tourId')
        if not tour_id:
            return jsonify({'message': 'Invalid request payload', 'error': 'validation_error',
                            'details': {'tourId': ['Tour ID is required']}}), 400

        service.update_tour_status(
            g.actor_id,
            tour_id,
            data.get('status'),
            scheduled_at=data.get('scheduledAt'),
            timezone=data.get('timezone'),
            notes=data.get('notes'),
            cancelled_reason=data.get('cancelledReason'),
        )
        return jsonify({'success': True, 'revalidate': TOUR_PAGES}), 200

    except TourError:
        raise
    except Exception:
        logger.exception("Unexpected error updating tour status")
        return _failure('Failed to update tour')
