import pytest

from chalicelib.constants import constants
from chalicelib.constants.status_codes import http200, http201, http400, http403, http404, http500
from chalicelib.event_flyers import EventFlyer
from chalicelib.utils.boto_clients import s3_client
from test.utils.request_utils import make_multipart_request, make_request, response_body

FLYER_FILE = ('open-mic.png', b'\x89PNG open mic night', 'image/png')


def upload_test_flyer(chalice_gateway, admin_token, **fields):
    response = make_multipart_request(chalice_gateway, endpoint='/events/flyers', token=admin_token,
                                      fields={'title': 'Open mic night', 'flyer': FLYER_FILE, **fields})
    assert response['statusCode'] == http201, response['body']
    return response_body(response)['data']


def stored_flyer_images():
    contents = s3_client().list_objects_v2(Bucket=constants.files_bucket(), Prefix='event_flyers/').get('Contents', [])
    return [item['Key'] for item in contents]


@pytest.mark.local_db_test
def test_upload_flyer(chalice_gateway, admin):
    admin_id, admin_token = admin
    flyer = upload_test_flyer(chalice_gateway, admin_token, description='Bring a song', location='Back room',
                              event_date='2026-12-01T18:00:00Z', priority='5')

    assert flyer['title'] == 'Open mic night'
    assert flyer['priority'] == 5
    assert flyer['is_active'] is True
    assert flyer['created_by'] == admin_id
    assert flyer['event_date'].startswith('2026-12-01T18:00:00')
    assert flyer['flyer_image'].startswith(f"event_flyers/{flyer['id']}/")
    assert flyer['flyer_image'].endswith('.png')
    stored = s3_client().get_object(Bucket=constants.files_bucket(), Key=flyer['flyer_image'])
    assert stored['Body'].read() == FLYER_FILE[1]

    public = make_request(chalice_gateway, endpoint=f"/events/flyers/{flyer['id']}")
    assert public['statusCode'] == http200
    assert response_body(public)['data']['title'] == 'Open mic night'


@pytest.mark.local_db_test
def test_upload_flyer_requires_admin(chalice_gateway, customer):
    _, token = customer
    response = make_multipart_request(chalice_gateway, endpoint='/events/flyers', token=token,
                                      fields={'title': 'Open mic night', 'flyer': FLYER_FILE})

    assert response['statusCode'] == http403
    assert stored_flyer_images() == []


@pytest.mark.local_db_test
@pytest.mark.parametrize('fields, field', [
    ({'title': 'Open mic night'}, 'flyer'),
    ({'flyer': FLYER_FILE}, 'title'),
    ({'title': 'Open mic night', 'flyer': ('notes.txt', b'hello', 'text/plain')}, 'flyer'),
    ({'title': 'x' * 101, 'flyer': FLYER_FILE}, 'title'),
    ({'title': 'Open mic night', 'priority': '11', 'flyer': FLYER_FILE}, 'priority'),
    ({'title': 'Open mic night', 'is_active': 'maybe', 'flyer': FLYER_FILE}, 'is_active'),
    ({'title': 'Open mic night', 'event_date': 'next friday', 'flyer': FLYER_FILE}, 'event_date'),
])
def test_upload_flyer_validation(chalice_gateway, admin, fields, field):
    _, admin_token = admin
    response = make_multipart_request(chalice_gateway, endpoint='/events/flyers', fields=fields, token=admin_token)

    assert response['statusCode'] == http400
    assert response_body(response)['field'] == field
    assert stored_flyer_images() == []


@pytest.mark.local_db_test
def test_failed_flyer_save_removes_image(chalice_gateway, admin, monkeypatch):
    _, admin_token = admin

    def failing_create(self, unique=True):
        raise RuntimeError('table unavailable')

    monkeypatch.setattr(EventFlyer, '_create_db_record', failing_create)
    response = make_multipart_request(chalice_gateway, endpoint='/events/flyers', token=admin_token,
                                      fields={'title': 'Open mic night', 'flyer': FLYER_FILE})

    assert response['statusCode'] == http500
    assert stored_flyer_images() == []


@pytest.mark.local_db_test
def test_public_list_shows_active_flyers_by_priority(chalice_gateway, admin):
    _, admin_token = admin
    upload_test_flyer(chalice_gateway, admin_token, title='Latte art class', priority='2')
    upload_test_flyer(chalice_gateway, admin_token, title='Jazz brunch', priority='8')
    hidden = upload_test_flyer(chalice_gateway, admin_token, title='Staff party', is_active='false')

    body = response_body(make_request(chalice_gateway, endpoint='/events/flyers'))
    assert body['count'] == 2
    assert [flyer['title'] for flyer in body['data']] == ['Jazz brunch', 'Latte art class']

    assert make_request(chalice_gateway, endpoint=f"/events/flyers/{hidden['id']}")['statusCode'] == http404
    assert make_request(chalice_gateway, endpoint='/events/flyers/missing')['statusCode'] == http404


@pytest.mark.local_db_test
def test_update_flyer_fields(chalice_gateway, admin):
    admin_id, admin_token = admin
    flyer = upload_test_flyer(chalice_gateway, admin_token)

    response = make_request(chalice_gateway, endpoint=f"/events/flyers/{flyer['id']}", method='PUT',
                            token=admin_token, json_body={'title': 'Open mic finale', 'priority': 3})

    assert response['statusCode'] == http200, response['body']
    updated = response_body(response)['data']
    assert updated['title'] == 'Open mic finale'
    assert updated['priority'] == 3
    assert updated['updated_by'] == admin_id
    assert updated['flyer_image'] == flyer['flyer_image']
    assert stored_flyer_images() == [flyer['flyer_image']]


@pytest.mark.local_db_test
def test_update_flyer_replaces_image(chalice_gateway, admin):
    _, admin_token = admin
    flyer = upload_test_flyer(chalice_gateway, admin_token)

    response = make_multipart_request(chalice_gateway, endpoint=f"/events/flyers/{flyer['id']}", method='PUT',
                                      token=admin_token,
                                      fields={'flyer': ('poster.jpg', b'jpeg poster', 'image/jpeg')})

    assert response['statusCode'] == http200, response['body']
    new_image = response_body(response)['data']['flyer_image']
    assert new_image != flyer['flyer_image']
    assert new_image.endswith('.jpg')
    assert stored_flyer_images() == [new_image]


@pytest.mark.local_db_test
def test_rejected_flyer_update_keeps_old_image(chalice_gateway, admin):
    _, admin_token = admin
    flyer = upload_test_flyer(chalice_gateway, admin_token)

    response = make_multipart_request(chalice_gateway, endpoint=f"/events/flyers/{flyer['id']}", method='PUT',
                                      token=admin_token,
                                      fields={'priority': '42', 'flyer': ('poster.jpg', b'jpeg poster', 'image/jpeg')})

    assert response['statusCode'] == http400
    assert response_body(response)['field'] == 'priority'
    assert stored_flyer_images() == [flyer['flyer_image']]


@pytest.mark.local_db_test
def test_delete_flyer(chalice_gateway, admin, customer):
    _, token = customer
    _, admin_token = admin
    flyer = upload_test_flyer(chalice_gateway, admin_token)
    endpoint = f"/events/flyers/{flyer['id']}"

    assert make_request(chalice_gateway, endpoint=endpoint, method='DELETE', token=token)['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=endpoint, method='DELETE', token=admin_token)
    assert response['statusCode'] == http200
    assert response_body(response)['message'] == 'Event flyer deleted'
    assert stored_flyer_images() == []
    assert make_request(chalice_gateway, endpoint=endpoint, method='DELETE', token=admin_token)['statusCode'] == http404
