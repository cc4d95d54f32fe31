"""
HTTP API tests for /api/shifts.

Identity comes from the gateway headers unless the body names it.
"""

from tillshift.extensions import db
from tillshift.models import CashMovement, Shift

from conftest import operator_headers


def _open(client, opening=100000, **headers):
    return client.post('/api/shifts/open', json={'opening_cash_cents': opening}, headers=operator_headers(**headers))


def test_open_shift_from_headers(client, db_session, audit_sink):
    response = _open(client)

    assert response.status_code == 201
    shift = response.get_json()['shift']
    assert shift['status'] == 'OPEN'
    assert shift['operator_id'] == 'u-1'
    assert shift['location_id'] == 'store-1'
    assert shift['opening_cash_cents'] == 100000
    assert shift['opened_at'].endswith('Z')
    assert len(audit_sink.of('Shift', 'CREATE')) == 1


def test_open_shift_body_overrides_headers(client, db_session):
    response = client.post('/api/shifts/open', json={
        'operator_id': 'u-7',
        'location_id': 'store-9',
        'opening_cash_cents': 0,
        'notes': 'Relief cashier',
    }, headers=operator_headers())

    assert response.status_code == 201
    shift = response.get_json()['shift']
    assert (shift['operator_id'], shift['location_id']) == ('u-7', 'store-9')
    assert shift['opening_notes'] == 'Relief cashier'


def test_open_shift_twice_returns_409(client, db_session):
    first = _open(client)
    second = _open(client)

    assert second.status_code == 409
    body = second.get_json()
    assert body['kind'] == 'CONFLICT'
    assert body['error'] == 'You already have an active shift'
    assert body['session_id'] == first.get_json()['shift']['id']


def test_open_shift_validation_errors(client, db_session):
    negative = _open(client, opening=-100)
    assert negative.status_code == 400
    assert negative.get_json()['field'] == 'opening_cash_cents'

    decimal = _open(client, opening=12.34)
    assert decimal.status_code == 400

    anonymous = client.post('/api/shifts/open', json={'opening_cash_cents': 0})
    assert anonymous.status_code == 400
    assert anonymous.get_json()['field'] == 'operator_id'

    not_json = client.post('/api/shifts/open', data='opening=1', headers=operator_headers())
    assert not_json.status_code == 400
    assert not_json.get_json()['kind'] == 'INVALID_ARGUMENT'

    assert db_session.query(Shift).count() == 0


def test_current_shift(client, db_session):
    empty = client.get('/api/shifts/current', headers=operator_headers())
    assert empty.status_code == 200
    assert empty.get_json()['shift'] is None

    opened = _open(client).get_json()['shift']

    current = client.get('/api/shifts/current', headers=operator_headers())
    assert current.get_json()['shift']['id'] == opened['id']

    by_query = client.get('/api/shifts/current?operator_id=u-1&location_id=store-1')
    assert by_query.get_json()['shift']['id'] == opened['id']

    missing_identity = client.get('/api/shifts/current')
    assert missing_identity.status_code == 400


def test_full_shift_lifecycle(client, db_session, order_source):
    shift_id = _open(client).get_json()['shift']['id']
    order_source.record_sale(shift_id, 'CASH', 30000)
    order_source.record_sale(shift_id, 'CARD', 12000)

    for movement_type, amount in [('CASH_IN', 5000), ('CASH_OUT', 2000), ('CASH_DROP', 10000)]:
        response = client.post(f'/api/shifts/{shift_id}/movements', json={
            'movement_type': movement_type,
            'amount_cents': amount,
            'reason': 'test',
        }, headers=operator_headers())
        assert response.status_code == 201
        assert response.get_json()['movement']['performed_by'] == 'u-1'

    summary = client.get(f'/api/shifts/{shift_id}/summary').get_json()['summary']
    assert summary['expected_cash_cents'] == 123000
    assert summary['sales_by_mode']['CARD'] == 12000
    assert summary['status'] == 'OPEN'

    closed = client.post(f'/api/shifts/{shift_id}/close', json={
        'closing_cash_cents': 125000,
        'denomination_breakdown': {'10000': 12, '5000': 1},
    }, headers=operator_headers())
    assert closed.status_code == 200
    body = closed.get_json()
    assert body['shift']['status'] == 'CLOSED'
    assert body['shift']['variance_cents'] == 2000
    assert body['shift']['closed_by'] == 'u-1'
    assert body['summary']['status'] == 'CLOSED'

    detail = client.get(f'/api/shifts/{shift_id}').get_json()
    assert detail['shift']['closing_cash_cents'] == 125000
    assert [m['movement_type'] for m in detail['movements']] == ['CASH_IN', 'CASH_OUT', 'CASH_DROP']

    again = client.post(f'/api/shifts/{shift_id}/close', json={'closing_cash_cents': 1}, headers=operator_headers())
    assert again.status_code == 409
    assert again.get_json()['kind'] == 'INVALID_STATE'

    late = client.post(f'/api/shifts/{shift_id}/movements', json={
        'movement_type': 'CASH_IN',
        'amount_cents': 100,
    }, headers=operator_headers())
    assert late.status_code == 409

    listed = client.get(f'/api/shifts/{shift_id}/movements').get_json()['movements']
    assert len(listed) == 3


def test_close_large_shortage_goes_to_review_queue(client, db_session):
    shift_id = _open(client).get_json()['shift']['id']

    closed = client.post(f'/api/shifts/{shift_id}/close', json={'closing_cash_cents': 50000}, headers=operator_headers())

    assert closed.get_json()['shift']['status'] == 'REVIEW'
    assert closed.get_json()['shift']['variance_cents'] == -50000

    queue = client.get('/api/shifts/review-queue?location_id=store-1').get_json()['shifts']
    assert [s['id'] for s in queue] == [shift_id]


def test_close_requires_count(client, db_session):
    shift_id = _open(client).get_json()['shift']['id']

    response = client.post(f'/api/shifts/{shift_id}/close', json={'notes': 'forgot'}, headers=operator_headers())

    assert response.status_code == 400
    assert response.get_json()['field'] == 'closing_cash_cents'


def test_close_with_order_service_down_returns_503(client, db_session, order_source):
    shift_id = _open(client).get_json()['shift']['id']
    order_source.unavailable = True

    response = client.post(f'/api/shifts/{shift_id}/close', json={'closing_cash_cents': 100000}, headers=operator_headers())

    assert response.status_code == 503
    body = response.get_json()
    assert body['kind'] == 'DEPENDENCY_UNAVAILABLE'
    assert body['retryable'] is True

    db.session.expire_all()
    assert db.session.get(Shift, shift_id).status == 'OPEN'

    summary = client.get(f'/api/shifts/{shift_id}/summary')
    assert summary.status_code == 503


def test_movement_validation(client, db_session):
    shift_id = _open(client).get_json()['shift']['id']

    zero = client.post(f'/api/shifts/{shift_id}/movements', json={
        'movement_type': 'CASH_IN', 'amount_cents': 0,
    }, headers=operator_headers())
    assert zero.status_code == 400

    bad_type = client.post(f'/api/shifts/{shift_id}/movements', json={
        'movement_type': 'TIP', 'amount_cents': 100,
    }, headers=operator_headers())
    assert bad_type.status_code == 400
    assert bad_type.get_json()['field'] == 'movement_type'

    assert db_session.query(CashMovement).count() == 0


def test_unknown_shift_returns_404(client, db_session):
    assert client.get('/api/shifts/999').status_code == 404
    assert client.get('/api/shifts/999/movements').status_code == 404
    assert client.get('/api/shifts/999/summary').status_code == 404
    assert client.post('/api/shifts/999/close', json={'closing_cash_cents': 0}).status_code == 404
    assert client.post('/api/shifts/999/movements', json={
        'movement_type': 'CASH_IN', 'amount_cents': 100, 'performed_by': 'u-1',
    }).status_code == 404


def test_list_shifts_filters(client, db_session):
    _open(client, operator_id='u-1', location_id='store-1')
    _open(client, operator_id='u-2', location_id='store-1')
    _open(client, operator_id='u-3', location_id='store-2')

    all_shifts = client.get('/api/shifts').get_json()['shifts']
    assert len(all_shifts) == 3

    store_1 = client.get('/api/shifts/?location_id=store-1').get_json()['shifts']
    assert {s['operator_id'] for s in store_1} == {'u-1', 'u-2'}

    limited = client.get('/api/shifts?limit=1').get_json()['shifts']
    assert len(limited) == 1

    bad_status = client.get('/api/shifts?status=LOST')
    assert bad_status.status_code == 400

    bad_date = client.get('/api/shifts?start_date=yesterday')
    assert bad_date.status_code == 400
    assert bad_date.get_json()['field'] == 'start_date'

    future = client.get('/api/shifts?start_date=2999-01-01T00:00:00Z').get_json()['shifts']
    assert future == []


def test_health(client, db_session):
    response = client.get('/health')

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'healthy'
    assert body['checks']['database']['status'] == 'healthy'
    assert body['checks']['collaborators']['details']['order_source'] == 'InMemoryOrderSource'


def test_cors_header_for_local_ui(client, db_session):
    response = client.get('/health', headers={'Origin': 'http://localhost:5173'})
    assert response.headers['Access-Control-Allow-Origin'] == 'http://localhost:5173'

    foreign = client.get('/health', headers={'Origin': 'http://evil.example'})
    assert 'Access-Control-Allow-Origin' not in foreign.headers
