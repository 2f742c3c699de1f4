from tourbook import db
from tourbook.models import Tour
from tests.conftest import (
    SLOT, LANDLORD_ID, TENANT_ID, OTHER_TENANT_ID, STRANGER_ID, PROPERTY_ID,
)


def _request_body(**overrides):
    body = {
        'propertyId': PROPERTY_ID,
        'landlordId': LANDLORD_ID,
        'propertySlug': 'garden-flat',
        'date': '2025-03-01',
        'time': '14:00',
        'notes': 'Is parking available?',
    }
    body.update(overrides)
    return body


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_request_tour_created(client, listing, auth_headers):
    response = client.post('/api/tours/', json=_request_body(), headers=auth_headers(TENANT_ID))

    assert response.status_code == 201
    data = response.get_json()
    tour = data['tour']
    assert tour['status'] == 'requested'
    assert tour['scheduled_at'] == '2025-03-01T14:00:00Z'
    assert tour['viewer_role'] == 'tenant'
    assert [a['status'] for a in tour['available_actions']] == ['cancelled']
    assert tour['property']['slug'] == 'garden-flat'
    assert '/property/garden-flat' in data['revalidate']
    assert Tour.query.count() == 1


def test_request_tour_requires_login(client, listing):
    response = client.post('/api/tours/', json=_request_body())

    assert response.status_code == 401
    assert response.get_json()['error'] == 'unauthenticated'
    assert Tour.query.count() == 0


def test_landlord_cannot_request_own_listing(client, listing, auth_headers):
    response = client.post('/api/tours/', json=_request_body(), headers=auth_headers(LANDLORD_ID))

    assert response.status_code == 403
    assert response.get_json()['message'] == 'You already manage this property.'
    assert Tour.query.count() == 0


def test_request_tour_validation_message(client, listing, auth_headers):
    response = client.post('/api/tours/', json=_request_body(date=''), headers=auth_headers(TENANT_ID))

    assert response.status_code == 400
    assert response.get_json() == {
        'message': 'Choose a preferred date and time.',
        'error': 'validation_error',
    }


def test_request_tour_rate_limited(app, client, listing, auth_headers):
    app.config['TOURS_RATE_LIMIT'] = '1 per minute'
    headers = auth_headers(TENANT_ID)

    first = client.post('/api/tours/', json=_request_body(), headers=headers)
    second = client.post('/api/tours/', json=_request_body(time='15:00'), headers=headers)

    assert first.status_code == 201
    assert second.status_code == 429
    body = second.get_json()
    assert body['error'] == 'rate_limited'
    assert body['limit'] == 1
    assert body['remaining'] == 0
    assert second.headers['X-RateLimit-Limit'] == '1'
    assert second.headers['X-RateLimit-Remaining'] == '0'
    assert 'X-RateLimit-Reset' in second.headers
    assert Tour.query.count() == 1


def test_get_tour_hidden_from_strangers(client, make_tour, auth_headers):
    tour_id = make_tour()

    assert client.get(f'/api/tours/{tour_id}', headers=auth_headers(TENANT_ID)).status_code == 200
    assert client.get(f'/api/tours/{tour_id}', headers=auth_headers(STRANGER_ID)).status_code == 403
    assert client.get('/api/tours/missing', headers=auth_headers(TENANT_ID)).status_code == 404


def test_list_tours_for_landlord(client, make_tour, auth_headers):
    make_tour()
    make_tour(tenant_id=OTHER_TENANT_ID, status='cancelled')

    response = client.get('/api/tours/?role=landlord&status=all', headers=auth_headers(LANDLORD_ID))
    assert response.status_code == 200
    assert len(response.get_json()['tours']) == 2

    response = client.get('/api/tours/?role=landlord&status=requested', headers=auth_headers(LANDLORD_ID))
    tours = response.get_json()['tours']
    assert len(tours) == 1
    assert tours[0]['viewer_role'] == 'landlord'


def test_approve_then_approve_again(client, make_tour, auth_headers):
    tour_id = make_tour()
    headers = auth_headers(LANDLORD_ID)

    first = client.post(f'/api/tours/{tour_id}/approve', json={}, headers=headers)
    second = client.post(f'/api/tours/{tour_id}/approve', json={}, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.get_json()['error'] == 'invalid_state'
    db.session.expire_all()
    assert db.session.get(Tour, tour_id).status == 'confirmed'


def test_tenant_cannot_approve(client, make_tour, auth_headers):
    tour_id = make_tour()

    response = client.post(f'/api/tours/{tour_id}/approve', json={}, headers=auth_headers(TENANT_ID))
    assert response.status_code == 403


def test_decline_and_reschedule_routes(client, make_tour, auth_headers):
    declined = make_tour()
    moved = make_tour(tenant_id=OTHER_TENANT_ID, status='confirmed')
    headers = auth_headers(LANDLORD_ID)

    response = client.post(f'/api/tours/{declined}/decline', json={'notes': 'Already let'}, headers=headers)
    assert response.status_code == 200

    response = client.post(
        f'/api/tours/{moved}/reschedule', json={'date': '2025-03-04', 'time': '09:15'}, headers=headers,
    )
    assert response.status_code == 200

    db.session.expire_all()
    assert db.session.get(Tour, declined).status == 'cancelled'
    tour = db.session.get(Tour, moved)
    assert tour.status == 'rescheduled'
    assert tour.scheduled_at.isoformat() == '2025-03-04T09:15:00'


def test_update_requires_tour_id(client, auth_headers):
    response = client.post('/api/tours/update', json={'status': 'cancelled'}, headers=auth_headers(TENANT_ID))

    assert response.status_code == 400
    assert 'tourId' in response.get_json()['details']


def test_update_status_success_and_invalid_transition(client, make_tour, auth_headers):
    tour_id = make_tour(status='confirmed')
    headers = auth_headers(TENANT_ID)

    response = client.post('/api/tours/update', json={
        'tourId': tour_id, 'status': 'cancelled', 'cancelledReason': 'Plans changed',
    }, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['success'] is True

    response = client.post('/api/tours/update', json={'tourId': tour_id, 'status': 'confirmed'}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Cannot change tour status from cancelled to confirmed'


def test_update_reschedule_conflict(client, make_tour, auth_headers):
    make_tour(tenant_id=OTHER_TENANT_ID, status='confirmed')
    tour_id = make_tour(status='confirmed', scheduled_at=SLOT.replace(day=2))

    response = client.post('/api/tours/update', json={
        'tourId': tour_id, 'status': 'rescheduled', 'scheduledAt': '2025-03-01T14:00:00Z',
    }, headers=auth_headers(LANDLORD_ID))

    assert response.status_code == 409
    assert response.get_json()['error'] == 'slot_conflict'
    db.session.expire_all()
    assert db.session.get(Tour, tour_id).scheduled_at == SLOT.replace(day=2)


def test_update_rejects_non_string_time(client, make_tour, auth_headers):
    tour_id = make_tour(status='confirmed')

    response = client.post('/api/tours/update', json={
        'tourId': tour_id, 'status': 'rescheduled', 'scheduledAt': 1740837600,
    }, headers=auth_headers(LANDLORD_ID))

    assert response.status_code == 400
    assert response.get_json() == {'message': 'Invalid date format', 'error': 'validation_error'}
    db.session.expire_all()
    tour = db.session.get(Tour, tour_id)
    assert tour.status == 'confirmed'
    assert tour.scheduled_at == SLOT
