import pytest

from chalicelib.constants.status_codes import http200, http201, http400, http403, http404
from test.utils.request_utils import make_request, response_body


def create_test_payment_method(chalice_gateway, admin_token, **overrides):
    payment_method = {
        'type': 'digital_wallet',
        'vendor': 'Venmo',
        'account_name': 'Cafe LLC',
        'account_alias': '@cafe',
        'instructions': 'Add your order id to the note',
        **overrides
    }
    response = make_request(chalice_gateway, endpoint='/payment-methods/admin', method='POST',
                            json_body=payment_method, token=admin_token)
    assert response['statusCode'] == http201, response['body']
    return response_body(response)['data']


@pytest.mark.local_db_test
def test_public_list_shows_active_methods_in_order(chalice_gateway, admin):
    _, admin_token = admin
    create_test_payment_method(chalice_gateway, admin_token, vendor='Zelle', display_order=2)
    create_test_payment_method(chalice_gateway, admin_token, display_order=1)
    create_test_payment_method(chalice_gateway, admin_token, vendor='Cash App', is_active=False)

    public = response_body(make_request(chalice_gateway, endpoint='/payment-methods'))
    assert [method['vendor'] for method in public['data']] == ['Venmo', 'Zelle']
    assert 'date_created' not in public['data'][0]

    everything = response_body(make_request(chalice_gateway, endpoint='/payment-methods/admin', token=admin_token))
    assert everything['count'] == 3


@pytest.mark.local_db_test
@pytest.mark.parametrize('overrides, field', [
    ({'type': 'barter'}, 'type'),
    ({'display_order': 'first'}, 'display_order'),
])
def test_create_payment_method_validation(chalice_gateway, admin, overrides, field):
    _, admin_token = admin
    response = make_request(chalice_gateway, endpoint='/payment-methods/admin', method='POST', token=admin_token,
                            json_body={'type': 'cash', 'vendor': 'Till', 'account_name': 'Front desk', **overrides})

    assert response['statusCode'] == http400
    assert response_body(response)['field'] == field


@pytest.mark.local_db_test
def test_update_and_delete_payment_method(chalice_gateway, customer, admin):
    _, token = customer
    _, admin_token = admin
    method = create_test_payment_method(chalice_gateway, admin_token)
    endpoint = f"/payment-methods/admin/{method['id']}"

    forbidden = make_request(chalice_gateway, endpoint=endpoint, method='PUT', token=token,
                             json_body={'is_active': False})
    assert forbidden['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=endpoint, method='PUT', token=admin_token,
                            json_body={'is_active': False, 'display_order': 7})
    assert response['statusCode'] == http200, response['body']
    assert response_body(response)['data']['display_order'] == 7
    assert response_body(make_request(chalice_gateway, endpoint='/payment-methods'))['data'] == []

    assert make_request(chalice_gateway, endpoint=endpoint, method='DELETE',
                        token=admin_token)['statusCode'] == http200
    assert make_request(chalice_gateway, endpoint=endpoint, method='DELETE',
                        token=admin_token)['statusCode'] == http404
