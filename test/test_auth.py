import pytest

from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200, http201, http400, http401, http409
from chalicelib.utils import db
from test.utils.request_utils import make_request, response_body

new_user = {
    'first_name': 'Ada',
    'last_name': 'Lovelace',
    'email': 'Ada@Example.com',
    'password': 'engine42',
    'phone': '+15551234567'
}


@pytest.mark.local_db_test
def test_register_creates_customer(chalice_gateway):
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST', json_body=new_user)

    body = response_body(response)
    assert response['statusCode'] == http201, response['body']
    assert body['data']['token']
    user = body['data']['user']
    assert user['email'] == 'ada@example.com'
    assert user['role'] == 'customer'

    db_record = db.get_db_item(keys_structure.users_pk, keys_structure.users_sk.format(user_id=user['id']))
    assert db_record['password_hash'] != new_user['password']

    me = make_request(chalice_gateway, endpoint='/auth/me', token=body['data']['token'])
    assert me['statusCode'] == http200
    assert 'password_hash' not in response_body(me)['data']
    assert response_body(me)['data']['phone'] == '+15551234567'


@pytest.mark.local_db_test
def test_register_ignores_requested_role(chalice_gateway):
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST',
                            json_body={**new_user, 'role': 'admin'})

    assert response['statusCode'] == http201
    assert response_body(response)['data']['user']['role'] == 'customer'


@pytest.mark.local_db_test
def test_register_duplicate_email(chalice_gateway):
    make_request(chalice_gateway, endpoint='/auth/register', method='POST', json_body=new_user)
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST',
                            json_body={**new_user, 'email': 'ada@example.com'})

    assert response['statusCode'] == http409
    assert response_body(response)['message'] == 'Email already registered'


@pytest.mark.local_db_test
@pytest.mark.parametrize('field, value', [
    ('email', 'not-an-email'),
    ('phone', '555-CALL-NOW'),
    ('password', '123'),
])
def test_register_validation(chalice_gateway, field, value):
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST',
                            json_body={**new_user, field: value})

    body = response_body(response)
    assert response['statusCode'] == http400
    assert body['field'] == field
    assert body['error_type'] == 'validation'


@pytest.mark.local_db_test
def test_register_missing_field(chalice_gateway):
    payload = {key: value for key, value in new_user.items() if key != 'last_name'}
    response = make_request(chalice_gateway, endpoint='/auth/register', method='POST', json_body=payload)

    assert response['statusCode'] == http400
    assert response_body(response)['message'] == "Field 'last_name' is required"


@pytest.mark.local_db_test
def test_login(chalice_gateway, worker):
    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': 'WORKER@cafe.example.com', 'password': 'secret123'})

    body = response_body(response)
    assert response['statusCode'] == http200, response['body']
    assert body['data']['user']['role'] == 'worker'

    me = response_body(make_request(chalice_gateway, endpoint='/auth/me', token=body['data']['token']))
    assert me['data']['last_login'] is not None


@pytest.mark.local_db_test
def test_login_wrong_password(chalice_gateway, customer):
    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': 'customer@cafe.example.com', 'password': 'wrong-one'})

    assert response['statusCode'] == http401
    assert response_body(response)['error'] == 'InvalidCredentials'


@pytest.mark.local_db_test
def test_login_unknown_email(chalice_gateway):
    response = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                            json_body={'email': 'nobody@cafe.example.com', 'password': 'secret123'})

    assert response['statusCode'] == http401


@pytest.mark.local_db_test
def test_update_profile(chalice_gateway, customer):
    _, token = customer
    response = make_request(chalice_gateway, endpoint='/auth/profile', method='PUT', token=token,
                            json_body={'first_name': 'Grace', 'phone': '+15550001111', 'role': 'admin'})

    data = response_body(response)['data']
    assert response['statusCode'] == http200, response['body']
    assert data['first_name'] == 'Grace'
    assert data['phone'] == '+15550001111'
    assert data['role'] == 'customer'


@pytest.mark.local_db_test
def test_change_password(chalice_gateway, customer):
    _, token = customer
    wrong = make_request(chalice_gateway, endpoint='/auth/password', method='PUT', token=token,
                         json_body={'current_password': 'nope', 'new_password': 'brand-new'})
    assert wrong['statusCode'] == http401

    response = make_request(chalice_gateway, endpoint='/auth/password', method='PUT', token=token,
                            json_body={'current_password': 'secret123', 'new_password': 'brand-new'})
    assert response['statusCode'] == http200, response['body']

    old_login = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                             json_body={'email': 'customer@cafe.example.com', 'password': 'secret123'})
    new_login = make_request(chalice_gateway, endpoint='/auth/login', method='POST',
                             json_body={'email': 'customer@cafe.example.com', 'password': 'brand-new'})
    assert old_login['statusCode'] == http401
    assert new_login['statusCode'] == http200
