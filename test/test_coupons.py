from decimal import Decimal

import pytest

from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200, http400, http403, http404, http409
from chalicelib.coupons import Coupon
from chalicelib.utils import db, exceptions
from test.utils.factories import add_test_item_to_cart, create_test_coupon, create_test_menu_item
from test.utils.request_utils import make_request, response_body


def validate(chalice_gateway, token, code, order_amount=None):
    body = {'code': code}
    if order_amount is not None:
        body['order_amount'] = order_amount
    return make_request(chalice_gateway, endpoint='/coupons/validate', method='POST', json_body=body, token=token)


@pytest.mark.local_db_test
def test_create_coupon(chalice_gateway, admin):
    admin_id, admin_token = admin
    coupon = create_test_coupon(chalice_gateway, admin_token, usage_limit=5, description='Ten off')

    assert coupon['code'] == 'SAVE10'
    assert coupon['usage_count'] == 0
    assert coupon['usage_limit'] == 5
    assert coupon['is_active'] is True
    assert coupon['created_by'] == admin_id


@pytest.mark.local_db_test
def test_create_coupon_duplicate_code(chalice_gateway, admin):
    _, admin_token = admin
    create_test_coupon(chalice_gateway, admin_token)
    response = make_request(chalice_gateway, endpoint='/coupons', method='POST', token=admin_token,
                            json_body={'code': 'Save10', 'discount_type': 'fixed', 'discount_value': 5})

    assert response['statusCode'] == http409
    assert response_body(response)['message'] == 'Coupon code already exists'


@pytest.mark.local_db_test
@pytest.mark.parametrize('overrides, field', [
    ({'discount_type': 'bogo'}, 'discount_type'),
    ({'discount_value': 0}, 'discount_value'),
    ({'discount_value': 150}, 'discount_value'),
    ({'active_from': '2030-02-01T00:00:00Z', 'active_until': '2030-01-01T00:00:00Z'}, 'active_until'),
    ({'active_from': 'next tuesday'}, 'active_from'),
])
def test_create_coupon_validation(chalice_gateway, admin, overrides, field):
    _, admin_token = admin
    payload = {'code': 'bad', 'discount_type': 'percentage', 'discount_value': 10, **overrides}
    response = make_request(chalice_gateway, endpoint='/coupons', method='POST', json_body=payload,
                            token=admin_token)

    assert response['statusCode'] == http400, response['body']
    assert response_body(response)['field'] == field


@pytest.mark.local_db_test
def test_coupon_admin_routes_require_admin(chalice_gateway, customer):
    _, token = customer
    response = make_request(chalice_gateway, endpoint='/coupons', method='POST', token=token,
                            json_body={'code': 'free', 'discount_type': 'percentage', 'discount_value': 100})

    assert response['statusCode'] == http403


@pytest.mark.local_db_test
def test_validate_percentage_coupon(chalice_gateway, customer, admin):
    _, token = customer
    _, admin_token = admin
    create_test_coupon(chalice_gateway, admin_token)

    response = validate(chalice_gateway, token, 'save10', '20.00')

    assert response['statusCode'] == http200, response['body']
    data = response_body(response)['data']
    assert data['discount_amount'] == 2.0
    assert data['final_amount'] == 18.0


@pytest.mark.local_db_test
def test_fixed_discount_is_capped_at_subtotal(chalice_gateway, customer, admin):
    _, token = customer
    _, admin_token = admin
    create_test_coupon(chalice_gateway, admin_token, code='five', discount_type='fixed', discount_value=5)

    data = response_body(validate(chalice_gateway, token, 'FIVE', '3.00'))['data']

    assert data['discount_amount'] == 3.0
    assert data['final_amount'] == 0.0


@pytest.mark.local_db_test
def test_validate_uses_cart_total(chalice_gateway, customer, admin):
    _, token = customer
    _, admin_token = admin
    latte = create_test_menu_item(chalice_gateway, admin_token, price='5.00')
    add_test_item_to_cart(chalice_gateway, token, latte['id'], quantity=2)
    create_test_coupon(chalice_gateway, admin_token, discount_value=15)

    data = response_body(validate(chalice_gateway, token, 'save10'))['data']

    assert data['order_amount'] == 10.0
    assert data['discount_amount'] == 1.5


@pytest.mark.local_db_test
@pytest.mark.parametrize('overrides, error, message', [
    ({'active_until': '2020-01-01T00:00:00Z'}, 'CouponExpired', 'Coupon has expired'),
    ({'active_from': '2099-01-01T00:00:00Z'}, 'CouponExpired', 'Coupon has expired'),
    ({'minimum_order_amount': '25.00'}, 'MinimumOrderNotMet', 'Minimum order amount is $25.00'),
])
def test_validate_rejections(chalice_gateway, customer, admin, overrides, error, message):
    _, token = customer
    _, admin_token = admin
    create_test_coupon(chalice_gateway, admin_token, **overrides)

    response = validate(chalice_gateway, token, 'save10', '20.00')

    assert response['statusCode'] == http409
    assert response_body(response)['error'] == error
    assert response_body(response)['message'] == message


@pytest.mark.local_db_test
def test_validate_unknown_or_inactive(chalice_gateway, customer, admin):
    _, token = customer
    _, admin_token = admin
    create_test_coupon(chalice_gateway, admin_token, is_active=False)

    for code in ('save10', 'nope'):
        response = validate(chalice_gateway, token, code, '20.00')
        assert response['statusCode'] == http404
        assert response_body(response)['message'] == 'Invalid coupon code'


@pytest.mark.local_db_test
def test_apply_is_idempotent_per_order(admin):
    Coupon(id_='SAVE10', created_by=admin[0], discount_type='percentage', discount_value=10)._create_db_record()
    coupon = Coupon.init_by_code('save10')

    assert coupon.apply('order-1', Decimal('20.00')) == Decimal('2.00')
    assert coupon.apply('order-1', Decimal('20.00')) == Decimal('2.00')

    assert Coupon.init_by_code('SAVE10').usage_count == 1
    redemptions = db.query_partition(keys_structure.coupon_redemptions_pk.format(code='SAVE10'))
    assert [record['order_id'] for record in redemptions] == ['order-1']


@pytest.mark.local_db_test
def test_usage_limit(admin):
    Coupon(id_='ONCE', created_by=admin[0], discount_type='fixed', discount_value=1, usage_limit=1) \
        ._create_db_record()
    first, stale = Coupon.init_by_code('once'), Coupon.init_by_code('once')

    first.apply('order-1', Decimal('10.00'))
    with pytest.raises(exceptions.UsageExceeded):
        stale.apply('order-2', Decimal('10.00'))
    with pytest.raises(exceptions.UsageExceeded):
        Coupon.init_by_code('once').apply('order-3', Decimal('10.00'))

    assert Coupon.init_by_code('once').usage_count == 1
    redemptions = db.query_partition(keys_structure.coupon_redemptions_pk.format(code='ONCE'))
    assert [record['order_id'] for record in redemptions] == ['order-1']


@pytest.mark.local_db_test
def test_release_frees_the_redemption(admin):
    Coupon(id_='ONCE', created_by=admin[0], discount_type='fixed', discount_value=1, usage_limit=1) \
        ._create_db_record()
    coupon = Coupon.init_by_code('once')
    coupon.apply('order-1', Decimal('10.00'))

    coupon.release('order-1')
    coupon.release('order-1')

    assert Coupon.init_by_code('once').usage_count == 0
    assert db.query_partition(keys_structure.coupon_redemptions_pk.format(code='ONCE')) == []
    assert Coupon.init_by_code('once').apply('order-2', Decimal('10.00')) == Decimal('1.00')


@pytest.mark.local_db_test
def test_release_after_coupon_was_deleted(admin):
    Coupon(id_='GONE', created_by=admin[0], discount_type='fixed', discount_value=1)._create_db_record()
    coupon = Coupon.init_by_code('gone')
    coupon.apply('order-1', Decimal('10.00'))
    Coupon.init_by_code('gone')._delete_db_record()

    coupon.release('order-1')

    with pytest.raises(exceptions.CouponNotFound):
        Coupon.init_by_code('gone')
    assert db.query_partition(keys_structure.coupon_redemptions_pk.format(code='GONE')) == []


@pytest.mark.local_db_test
def test_active_coupons_list(chalice_gateway, admin):
    _, admin_token = admin
    create_test_coupon(chalice_gateway, admin_token)
    create_test_coupon(chalice_gateway, admin_token, code='old', active_until='2020-01-01T00:00:00Z')
    create_test_coupon(chalice_gateway, admin_token, code='off', is_active=False)

    response = make_request(chalice_gateway, endpoint='/coupons/active')

    assert response['statusCode'] == http200
    assert [coupon['code'] for coupon in response_body(response)['data']] == ['SAVE10']

    everything = response_body(make_request(chalice_gateway, endpoint='/coupons', token=admin_token))
    assert everything['count'] == 3


@pytest.mark.local_db_test
def test_update_and_delete_coupon(chalice_gateway, admin):
    _, admin_token = admin
    create_test_coupon(chalice_gateway, admin_token)

    renamed = make_request(chalice_gateway, endpoint='/coupons/save10', method='PUT', token=admin_token,
                           json_body={'code': 'SAVE20'})
    assert renamed['statusCode'] == http400

    response = make_request(chalice_gateway, endpoint='/coupons/save10', method='PUT', token=admin_token,
                            json_body={'discount_value': 20, 'is_active': False})
    assert response['statusCode'] == http200, response['body']
    data = response_body(response)['data']
    assert data['discount_value'] == 20.0
    assert data['is_active'] is False

    response = make_request(chalice_gateway, endpoint='/coupons/save10', method='DELETE', token=admin_token)
    assert response['statusCode'] == http200
    response = make_request(chalice_gateway, endpoint='/coupons/save10', token=admin_token)
    assert response['statusCode'] == http404
