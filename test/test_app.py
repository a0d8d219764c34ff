from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app import app
from chalicelib.constants import constants
from chalicelib.constants.status_codes import http400, http401, http403, http404, http500
from chalicelib.utils import auth as utils_auth
from chalicelib.utils.logger import logger
from test.utils.request_utils import make_request, response_body


def test_missing_jwt_secret_fails_loudly(monkeypatch):
    monkeypatch.delenv('JWT_SECRET')
    with pytest.raises(KeyError):
        utils_auth.issue_token('some-user', 'customer')
    with pytest.raises(KeyError):
        utils_auth.decode_token('a.b.c')


def test_logger_is_named_after_the_app():
    assert app.app_name == constants.APP_NAME
    assert logger.name == f'{constants.APP_NAME}.chalicelib'
    assert logger.propagate is False


def test_allowed_roles_rejects_unknown_role():
    with pytest.raises(ValueError):
        utils_auth.allowed_roles('admin', 'chef')


def test_allowed_roles_requires_a_role():
    with pytest.raises(ValueError):
        utils_auth.allowed_roles()


def test_allowed_roles_builds_frozen_set():
    roles = utils_auth.allowed_roles('admin', 'worker')
    assert roles == frozenset({utils_auth.Role.ADMIN, utils_auth.Role.WORKER})


@pytest.mark.local_db_test
def test_protected_route_without_token(chalice_gateway):
    response = make_request(chalice_gateway, endpoint='/cart', method='GET')

    body = response_body(response)
    assert response['statusCode'] == http401
    assert body['success'] is False
    assert body['message'] == 'not authorized, no token'
    assert body['error'] == 'MissingToken'
    assert body['error_type'] == 'authentication'


@pytest.mark.local_db_test
def test_protected_route_with_bad_signature(chalice_gateway, customer):
    user_id, _ = customer
    forged = jwt.encode({'sub': user_id, 'exp': datetime.now(timezone.utc) + timedelta(days=1)},
                        'another-secret', algorithm='HS256')
    response = make_request(chalice_gateway, endpoint='/cart', method='GET', token=forged)

    body = response_body(response)
    assert response['statusCode'] == http401
    assert body['message'] == 'not authorized, token failed'
    assert body['error'] == 'InvalidToken'


@pytest.mark.local_db_test
def test_protected_route_with_expired_token(chalice_gateway, customer):
    user_id, _ = customer
    expired = jwt.encode({'sub': user_id, 'exp': datetime.now(timezone.utc) - timedelta(minutes=1)},
                         constants.jwt_secret(), algorithm='HS256')
    response = make_request(chalice_gateway, endpoint='/cart', method='GET', token=expired)

    assert response['statusCode'] == http401
    assert response_body(response)['error'] == 'InvalidToken'


@pytest.mark.local_db_test
def test_token_for_unknown_user(chalice_gateway):
    token = utils_auth.issue_token('no-such-user', 'customer')
    response = make_request(chalice_gateway, endpoint='/cart', method='GET', token=token)

    body = response_body(response)
    assert response['statusCode'] == http401
    assert body['message'] == 'user not found'
    assert body['error'] == 'UnknownSubject'


@pytest.mark.local_db_test
def test_role_gated_route_rejects_customer(chalice_gateway, customer):
    _, token = customer
    response = make_request(chalice_gateway, endpoint='/admin/stats', method='GET', token=token)

    body = response_body(response)
    assert response['statusCode'] == http403
    assert body['error'] == 'RoleNotAuthorized'
    assert "'customer'" in body['message']
    assert 'required role: admin' in body['message']


@pytest.mark.local_db_test
def test_role_comes_from_stored_user_not_token(chalice_gateway, customer):
    user_id, _ = customer
    token = utils_auth.issue_token(user_id, 'admin')
    response = make_request(chalice_gateway, endpoint='/admin/stats', method='GET', token=token)

    assert response['statusCode'] == http403


@pytest.mark.local_db_test
def test_invalid_json_body(chalice_gateway, customer):
    _, token = customer
    response = make_request(chalice_gateway, endpoint='/cart', method='POST', body=b'{not json', token=token)

    body = response_body(response)
    assert response['statusCode'] == http400
    assert body['error_type'] == 'validation'
    assert body['field'] == 'body'


@pytest.mark.local_db_test
def test_missing_resource(chalice_gateway):
    response = make_request(chalice_gateway, endpoint='/menu/does-not-exist', method='GET')

    body = response_body(response)
    assert response['statusCode'] == http404
    assert body['message'] == 'Menu item not found'
    assert body['error_type'] == 'not_found'


@pytest.mark.local_db_test
def test_unexpected_error_is_generic_500(chalice_gateway, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError('table exploded: secret detail')

    monkeypatch.setattr('chalicelib.menu_items.list_menu_items', broken)
    response = make_request(chalice_gateway, endpoint='/menu', method='GET')

    body = response_body(response)
    assert response['statusCode'] == http500
    assert body['message'] == 'Internal server error'
    assert 'secret detail' not in response['body']
    assert body['error_id']
