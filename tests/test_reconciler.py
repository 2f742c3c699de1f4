import pytest
import requests
from tourbook.client.reconciler import (
    TourReconciler, TourRecord, ClientTour, LiveRegion, FAILURE_MESSAGE,
)
from tourbook.client.tours_client import TourApiClient, TourUpdateFailed, extract_error_message


class StubClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self.during_call = None

    def update_status(self, tour_id, status, **extra):
        self.calls.append((tour_id, status, extra))
        if self.during_call:
            self.during_call()
        if self.error:
            raise self.error
        return True


def _tours():
    return [
        TourRecord(id='t1', status='requested', scheduled_at='2025-03-01T14:00:00Z'),
        TourRecord(id='t2', status='confirmed', scheduled_at='2025-03-02T10:00:00Z'),
    ]


def test_success_promotes_tentative_state():
    client = StubClient()
    renders = []
    reconciler = TourReconciler(_tours(), client, on_change=renders.append)

    assert reconciler.apply('t1', 'confirmed') is True

    assert client.calls == [('t1', 'confirmed', {})]
    # First render shows the tentative change, the last one the confirmed state
    assert renders[0][0].status == 'confirmed'
    assert reconciler.find('t1') == ClientTour(confirmed=TourRecord('t1', 'confirmed', '2025-03-01T14:00:00Z'))
    assert not reconciler.find('t1').is_tentative
    assert reconciler.announcements.message == 'Tour confirmed.'
    assert reconciler.announcer.tone == 'success'
    assert reconciler.pending_ids == set()


def test_failure_restores_prior_record():
    client = StubClient(error=TourUpdateFailed('Cannot change tour status from cancelled to confirmed', 400))
    renders = []
    reconciler = TourReconciler(_tours(), client, on_change=renders.append)
    before = reconciler.tours

    assert reconciler.apply('t2', 'completed') is False

    assert renders[0][1].status == 'completed'
    assert reconciler.tours == before
    assert reconciler.rendered()[1].status == 'confirmed'
    assert reconciler.announcer.message == FAILURE_MESSAGE
    assert reconciler.announcer.tone == 'error'
    assert reconciler.pending_ids == set()


def test_unexpected_client_error_also_rolls_back():
    reconciler = TourReconciler(_tours(), StubClient(error=RuntimeError('boom')))

    assert reconciler.apply('t1', 'cancelled') is False
    assert reconciler.rendered()[0].status == 'requested'
    assert reconciler.announcer.tone == 'error'


def test_second_action_ignored_while_pending():
    client = StubClient()
    reconciler = TourReconciler(_tours(), client)
    nested = []

    def click_again():
        assert reconciler.is_pending('t1')
        nested.append(reconciler.apply('t1', 'cancelled'))

    client.during_call = click_again

    assert reconciler.apply('t1', 'confirmed') is True
    assert nested == [False]
    assert [call[1] for call in client.calls] == ['confirmed']
    assert reconciler.rendered()[0].status == 'confirmed'


def test_actions_on_different_tours_keep_their_own_guard():
    client = StubClient()
    reconciler = TourReconciler(_tours(), client)
    seen = []

    def act_on_other_tour():
        client.during_call = None
        seen.append(reconciler.apply('t2', 'cancelled'))
        # t2 finished while t1 is still in flight
        seen.append(reconciler.is_pending('t1'))
        seen.append(reconciler.apply('t1', 'cancelled'))

    client.during_call = act_on_other_tour

    assert reconciler.apply('t1', 'confirmed') is True
    assert seen == [True, True, False]
    assert [call[:2] for call in client.calls] == [('t1', 'confirmed'), ('t2', 'cancelled')]
    assert [t.status for t in reconciler.rendered()] == ['confirmed', 'cancelled']
    assert reconciler.pending_ids == set()


def test_other_tours_untouched():
    reconciler = TourReconciler(_tours(), StubClient())
    t2_before = reconciler.find('t2')

    reconciler.apply('t1', 'cancelled')

    assert reconciler.find('t2') is t2_before


def test_unknown_tour_is_ignored():
    client = StubClient()
    reconciler = TourReconciler(_tours(), client)

    assert reconciler.apply('missing', 'confirmed') is False
    assert client.calls == []


def test_replace_tours_resets_state():
    reconciler = TourReconciler(_tours(), StubClient())
    reconciler.replace_tours([TourRecord(id='t3', status='requested')])

    assert [t.id for t in reconciler.rendered()] == ['t3']


def test_live_region_keeps_history():
    region = LiveRegion()
    region.announce('Tour confirmed.')
    region.announce(FAILURE_MESSAGE, tone='error')

    assert region.politeness == 'polite'
    assert region.history == [('success', 'Tour confirmed.'), ('error', FAILURE_MESSAGE)]


@pytest.mark.parametrize('payload,expected', [
    ({'message': 'Not authorized', 'error': 'forbidden'}, 'Not authorized'),
    ({'error': 'Tour not found'}, 'Tour not found'),
    ('plain text', 'plain text'),
    ({}, None),
    (None, None),
    ({'message': 42}, None),
])
def test_extract_error_message(payload, expected):
    assert extract_error_message(payload) == expected


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError('no json')
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.error:
            raise self.error
        return self.response


def test_api_client_posts_update():
    session = FakeSession(FakeResponse(200, {'success': True}))
    client = TourApiClient('https://api.example.com/', token='abc', session=session)

    assert client.update_status('t1', 'rescheduled', scheduledAt='2025-03-04T09:00:00Z', notes=None)

    url, body, _ = session.posts[0]
    assert url == 'https://api.example.com/api/tours/update'
    assert body == {'tourId': 't1', 'status': 'rescheduled', 'scheduledAt': '2025-03-04T09:00:00Z'}
    assert session.headers['Authorization'] == 'Bearer abc'


def test_api_client_raises_server_message():
    session = FakeSession(FakeResponse(409, {'message': 'This time slot is already booked. Please choose another time.'}))
    client = TourApiClient('https://api.example.com', session=session)

    with pytest.raises(TourUpdateFailed) as exc:
        client.update_status('t1', 'rescheduled')
    assert exc.value.status_code == 409
    assert 'already booked' in exc.value.message


def test_api_client_wraps_transport_errors():
    client = TourApiClient('https://api.example.com', session=FakeSession(error=requests.ConnectionError('down')))

    with pytest.raises(TourUpdateFailed):
        client.update_status('t1', 'cancelled')
