from datetime import datetime
import pytest
from flask_jwt_extended import create_access_token
from tourbook import create_app, db
from tourbook.models import Property, Tour
from tourbook.services.rate_limit import ActorRateLimiter
from tourbook.services.tour_scheduling import TourSchedulingService
from tourbook.services.tour_store import TourStore

NOW = datetime(2025, 2, 1, 12, 0, 0)
SLOT = datetime(2025, 3, 1, 14, 0, 0)

LANDLORD_ID = 'L1'
TENANT_ID = 'T-tenant'
OTHER_TENANT_ID = 'T-other'
STRANGER_ID = 'stranger'
PROPERTY_ID = 'P1'


class RecordingNotifier:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def notify(self, user_id, reason):
        self.calls.append((str(user_id), reason))
        if self.fail:
            raise RuntimeError('notification endpoint down')
        return True


@pytest.fixture
def app():
    app = create_app('testing')
    app.extensions['tourbook_clock'] = lambda: NOW
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def listing(app):
    prop = Property(id=PROPERTY_ID, landlord_id=LANDLORD_ID, title='Garden flat', slug='garden-flat', city='Nairobi')
    db.session.add(prop)
    db.session.commit()
    return prop


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(app, listing, notifier):
    return TourSchedulingService(
        store=TourStore(),
        rate_limiter=ActorRateLimiter('1000 per minute'),
        notifier=notifier,
        clock=lambda: NOW,
    )


@pytest.fixture
def make_tour(app, listing):
    def _make(status='requested', scheduled_at=SLOT, tenant_id=TENANT_ID, tour_id=None, timezone='UTC'):
        extra = {'id': tour_id} if tour_id else {}
        tour = Tour(
            **extra,
            property_id=PROPERTY_ID,
            landlord_id=LANDLORD_ID,
            tenant_id=tenant_id,
            status=status,
            scheduled_at=scheduled_at,
            timezone=timezone,
        )
        db.session.add(tour)
        db.session.commit()
        return tour.id
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user_id):
        token = create_access_token(identity=str(user_id))
        return {'Authorization': f'Bearer {token}'}
    return _headers
