"""
Coupon evaluator.

``Coupon.validate`` checks a code against an order subtotal and returns the discount.
``Coupon.apply`` redeems it for one order: a redemption record keyed by the order id
makes repeated calls for the same order count once, and the usage counter is
incremented server side under a ``usage_count < usage_limit`` condition.
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import CENTS
from chalicelib.constants.status_codes import http201
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import RequestContext
from chalicelib.utils.logger import logger

DISCOUNT_TYPES = ('percentage', 'fixed')
UPDATABLE_FIELDS = ('discount_type', 'discount_value', 'minimum_order_amount', 'active_from', 'active_until',
                    'usage_limit', 'is_active', 'description')


def normalize_code(code) -> str:
    if not isinstance(code, str) or not code.strip():
        raise exceptions.ValidationError("Field 'code' is required", field='code')
    return code.strip().upper()


class Coupon(EntityBase):
    pk = keys_structure.coupons_pk
    sk = keys_structure.coupons_sk

    not_found_exception = exceptions.CouponNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str) and len(x) > 0,
        'usage_count': lambda x: isinstance(x, int) and x >= 0,
        'created_by': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'discount_type': lambda x: x in DISCOUNT_TYPES,
        'discount_value': lambda x: isinstance(x, Decimal) and x > 0,
        'minimum_order_amount': lambda x: isinstance(x, Decimal) and x >= 0,
        'is_active': lambda x: isinstance(x, bool),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'active_from': lambda x: isinstance(x, str),
        'active_until': lambda x: isinstance(x, str),
        'usage_limit': lambda x: isinstance(x, int) and x >= 1,
        'description': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.discount_type: str = kwargs.get('discount_type')
        self.discount_value: Decimal = utils_data.to_money(kwargs['discount_value'], 'discount_value') \
            if kwargs.get('discount_value') is not None else None
        self.minimum_order_amount: Decimal = utils_data.to_money(kwargs.get('minimum_order_amount') or 0,
                                                                 'minimum_order_amount')
        self.active_from: Optional[str] = self._iso(kwargs.get('active_from'), 'active_from')
        self.active_until: Optional[str] = self._iso(kwargs.get('active_until'), 'active_until')
        self.usage_limit: Optional[int] = utils_data.to_int(kwargs['usage_limit'], 'usage_limit') \
            if kwargs.get('usage_limit') is not None else None
        self.usage_count: int = int(kwargs.get('usage_count') or 0)
        self.is_active: bool = kwargs.get('is_active', True)
        self.description: Optional[str] = kwargs.get('description')
        self.created_by: str = kwargs.get('created_by')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'coupon'

    @staticmethod
    def _iso(value, field) -> Optional[str]:
        if value is None:
            return None
        return utils_data.to_datetime(value, field).isoformat(timespec='seconds')

    @property
    def code(self) -> str:
        return self.id_

    @classmethod
    def init_by_code(cls, code: str):
        c = cls(normalize_code(code))
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_request_create(cls, context: RequestContext):
        body = context.body
        utils_data.require_fields(body, 'code', 'discount_type', 'discount_value')
        fields = {key: body[key] for key in UPDATABLE_FIELDS if key in body}
        coupon = cls(id_=normalize_code(body['code']), created_by=context.identity.user_id, **fields)
        coupon._check_discount_value()
        return coupon

    def _check_discount_value(self):
        if self.discount_type == 'percentage' and self.discount_value is not None \
                and self.discount_value > Decimal(100):
            raise exceptions.ValidationError('Percentage discount cannot exceed 100', field='discount_value')
        if self.active_from and self.active_until and self.active_from > self.active_until:
            raise exceptions.ValidationError('active_until must be after active_from', field='active_until')

    def discount_amount(self, subtotal: Decimal) -> Decimal:
        if self.discount_type == 'percentage':
            amount = subtotal * self.discount_value / Decimal(100)
        else:
            amount = self.discount_value
        return min(amount, subtotal).quantize(CENTS, rounding=ROUND_HALF_UP)

    def is_within_window(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        if self.active_from and now < utils_data.to_datetime(self.active_from, 'active_from'):
            return False
        if self.active_until and now > utils_data.to_datetime(self.active_until, 'active_until'):
            return False
        return True

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def validate(self, subtotal: Decimal) -> Decimal:
        if not self.is_active:
            raise exceptions.CouponNotFound()
        if not self.is_within_window():
            raise exceptions.CouponExpired()
        if self.is_exhausted:
            raise exceptions.UsageExceeded()
        if subtotal < self.minimum_order_amount:
            raise exceptions.MinimumOrderNotMet(f'Minimum order amount is ${self.minimum_order_amount}')
        return self.discount_amount(subtotal)

    def _redemption_key(self, order_id: str) -> Dict:
        return {
            'partkey': keys_structure.coupon_redemptions_pk.format(code=self.code),
            'sortkey': keys_structure.coupon_redemptions_sk.format(order_id=order_id)
        }

    def _find_redemption(self, order_id: str) -> Optional[Dict]:
        try:
            return utils_db.get_db_item(**self._redemption_key(order_id))
        except exceptions.RecordNotFound:
            return None

    def apply(self, order_id: str, subtotal: Decimal) -> Decimal:
        redemption = self._find_redemption(order_id)
        if redemption is not None:
            logger.info(f'apply ::: coupon {self.code} already redeemed for order {order_id}')
            return Decimal(redemption['discount'])

        discount = self.validate(subtotal)
        try:
            utils_db.put_db_record(
                {**self._redemption_key(order_id), 'record_type': 'coupon_redemption', 'code': self.code,
                 'order_id': order_id, 'discount': discount, 'date_created': now_iso()},
                condition_expression=Attr('partkey').not_exists()
            )
        except ClientError as error:
            if utils_db.is_condition_failed(error):
                return Decimal(self._find_redemption(order_id)['discount'])
            raise

        condition = Attr('is_active').eq(True)
        if self.usage_limit is not None:
            condition = condition & Attr('usage_count').lt(self.usage_limit)
        pk, sk = self._get_pk_sk()
        try:
            record = utils_db.increment_attribute(
                key={'partkey': pk, 'sortkey': sk},
                attribute='usage_count',
                amount=1,
                set_values={'date_updated': now_iso()},
                condition_expression=condition
            )
        except ClientError as error:
            utils_db.delete_db_record(self._redemption_key(order_id))
            if utils_db.is_condition_failed(error):
                logger.warning(f'apply ::: coupon {self.code} exhausted while redeeming order {order_id}')
                raise exceptions.UsageExceeded()
            raise
        self.usage_count = int(record['usage_count'])
        logger.info(f'apply ::: coupon {self.code} redeemed for order {order_id}, usage_count={self.usage_count}')
        return discount

    def release(self, order_id: str):
        """ Undoes ``apply`` for an order that was never saved """
        if utils_db.delete_db_record(self._redemption_key(order_id)) is None:
            return self
        pk, sk = self._get_pk_sk()
        try:
            record = utils_db.increment_attribute(
                key={'partkey': pk, 'sortkey': sk},
                attribute='usage_count',
                amount=-1,
                set_values={'date_updated': now_iso()},
                condition_expression=Attr('usage_count').gt(0)
            )
        except ClientError as error:
            if utils_db.is_condition_failed(error):
                logger.warning(f'release ::: coupon {self.code} is gone, redemption for {order_id} dropped')
                return self
            raise
        self.usage_count = int(record['usage_count'])
        logger.info(f'release ::: coupon {self.code} released for order {order_id}, usage_count={self.usage_count}')
        return self

    def validation_result(self, subtotal: Decimal, discount: Decimal) -> Dict:
        return {
            'code': self.code,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'discount_amount': discount,
            'order_amount': subtotal,
            'final_amount': subtotal - discount
        }

    @utils_app.log_start_finish
    def endpoint_get_coupon(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_create_coupon(self) -> Response:
        try:
            self._create_db_record()
        except exceptions.AlreadyExists:
            raise exceptions.AlreadyExists('Coupon code already exists')
        return utils_app.success_response(self._to_ui(), message='Coupon created successfully', status_code=http201)

    @utils_app.log_start_finish
    def endpoint_update_coupon(self, body: Dict) -> Response:
        if 'code' in body and normalize_code(body['code']) != self.code:
            raise exceptions.ValidationError('Coupon code cannot be changed', field='code')
        if body.get('discount_value') is not None:
            self.discount_value = utils_data.to_money(body['discount_value'], 'discount_value')
        if body.get('minimum_order_amount') is not None:
            self.minimum_order_amount = utils_data.to_money(body['minimum_order_amount'], 'minimum_order_amount')
        if body.get('usage_limit') is not None:
            self.usage_limit = utils_data.to_int(body['usage_limit'], 'usage_limit')
        for field in ('active_from', 'active_until'):
            if body.get(field) is not None:
                setattr(self, field, self._iso(body[field], field))
        for field in ('discount_type', 'is_active', 'description'):
            if field in body:
                setattr(self, field, body[field])
        self._check_discount_value()
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Coupon updated successfully')

    @utils_app.log_start_finish
    def endpoint_delete_coupon(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(None, message='Coupon deleted successfully')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(code=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'code': self.id_,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'minimum_order_amount': self.minimum_order_amount,
            'active_from': self.active_from,
            'active_until': self.active_until,
            'usage_limit': self.usage_limit,
            'usage_count': self.usage_count,
            'is_active': self.is_active,
            'description': self.description,
            'created_by': self.created_by,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


def validate_coupon(code: str, subtotal: Decimal) -> Tuple[Coupon, Decimal]:
    coupon = Coupon.init_by_code(code)
    return coupon, coupon.validate(subtotal)


def list_coupons() -> List[Coupon]:
    records = utils_db.query_partition(keys_structure.coupons_pk)
    return sorted((Coupon(**record) for record in records), key=lambda c: c.date_created, reverse=True)


@utils_app.log_start_finish
def endpoint_list_coupons(context: RequestContext) -> Response:
    coupons = [coupon._to_ui() for coupon in list_coupons()]
    return utils_app.success_response(coupons, count=len(coupons))


@utils_app.log_start_finish
def endpoint_list_active_coupons(context: RequestContext) -> Response:
    coupons = [coupon for coupon in list_coupons()
               if coupon.is_active and coupon.is_within_window() and not coupon.is_exhausted]
    data = [{'code': c.code, 'discount_type': c.discount_type, 'discount_value': c.discount_value,
             'minimum_order_amount': c.minimum_order_amount, 'active_until': c.active_until,
             'description': c.description} for c in coupons]
    return utils_app.success_response(data, count=len(data))


@utils_app.log_start_finish
def endpoint_validate_coupon(context: RequestContext, cart_total: Optional[Decimal] = None) -> Response:
    body = context.body
    if not body.get('code'):
        raise exceptions.ValidationError('Coupon code is required', field='code')
    if body.get('order_amount') is not None:
        subtotal = utils_data.to_money(body['order_amount'], 'order_amount')
    elif cart_total is not None:
        subtotal = cart_total
    else:
        raise exceptions.ValidationError("Field 'order_amount' is required", field='order_amount')
    coupon, discount = validate_coupon(body['code'], subtotal)
    return utils_app.success_response(coupon.validation_result(subtotal, discount), message='Coupon is valid')
