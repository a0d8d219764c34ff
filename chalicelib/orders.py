"""
Order lifecycle.

Delivery status and payment status are two independent state machines. Every
transition is written with a condition on the status value that was read, so two
concurrent requests cannot both move the order away from the same state.
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import constants, keys_structure
from chalicelib.constants.constants import CENTS
from chalicelib.coupons import Coupon
from chalicelib.utils import app as utils_app, \
    auth as utils_auth, \
    data as utils_data, \
    db as utils_db, \
    email_templates, \
    exceptions, \
    notifications as utils_notifications, \
    s3 as utils_s3
from chalicelib.utils.auth import Identity, RequestContext, Role
from chalicelib.utils.logger import logger

STATUS_TRANSITIONS = {
    'pending': ('confirmed', 'cancelled'),
    'confirmed': ('preparing',),
    'preparing': ('ready',),
    'ready': ('delivered',),
    'delivered': (),
    'cancelled': ()
}

PAYMENT_TRANSITIONS = {
    'pending': ('paid', 'failed'),
    'failed': ('paid',),
    'paid': ()
}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def new_order_id() -> str:
    """ Order ids sort by creation time """
    return f"{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}-{uuid4().hex[:8]}"


def calculate_totals(subtotal: Decimal, discount: Decimal, order_type: str) -> Dict[str, Decimal]:
    """ Discount is taken off before tax; the delivery fee is not taxed """
    taxable = subtotal - discount
    tax = (taxable * constants.tax_rate()).quantize(CENTS, rounding=ROUND_HALF_UP)
    delivery_fee = constants.delivery_fee() if order_type == 'delivery' else Decimal('0')
    return {
        'subtotal': subtotal.quantize(CENTS),
        'discount': discount.quantize(CENTS),
        'tax': tax,
        'delivery_fee': delivery_fee.quantize(CENTS),
        'total_amount': (taxable + tax + delivery_fee).quantize(CENTS)
    }


def read_payment_receipt(receipt) -> bytes:
    if receipt.mimetype not in constants.RECEIPT_CONTENT_TYPES:
        raise exceptions.ValidationError('Only image files and PDFs are allowed', field='paymentReceipt')
    body = receipt.read()
    if len(body) > constants.MAX_RECEIPT_SIZE:
        raise exceptions.ValidationError('Receipt file is too large', field='paymentReceipt')
    return body


def upload_payment_receipt(receipt, user_id: str, body: Optional[bytes] = None) -> str:
    if body is None:
        body = read_payment_receipt(receipt)
    file_path = utils_s3.build_file_path('receipts', user_id, receipt.filename)
    return utils_s3.upload_file_to_s3(body, file_path, receipt.mimetype)


class Order(EntityBase):
    pk = keys_structure.orders_pk
    sk = keys_structure.orders_sk

    not_found_exception = exceptions.OrderNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
        'user_orders_key': lambda x: isinstance(x, str),
        'items': lambda x: isinstance(x, list) and len(x) > 0,
        'subtotal': lambda x: isinstance(x, Decimal) and x >= 0,
        'order_type': lambda x: x in constants.ORDER_TYPES,
        'payment_method': lambda x: x in constants.PAYMENT_METHODS,
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'status': lambda x: x in STATUS_TRANSITIONS,
        'payment_status': lambda x: x in PAYMENT_TRANSITIONS,
        'discount': lambda x: isinstance(x, Decimal) and x >= 0,
        'tax': lambda x: isinstance(x, Decimal) and x >= 0,
        'delivery_fee': lambda x: isinstance(x, Decimal) and x >= 0,
        'total_amount': lambda x: isinstance(x, Decimal) and x >= 0,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'user_email': lambda x: isinstance(x, str),
        'coupon_code': lambda x: isinstance(x, str),
        'delivery_address': lambda x: isinstance(x, str) and len(x.strip()) > 0,
        'pickup_time': lambda x: isinstance(x, str),
        'notes': lambda x: isinstance(x, str),
        'payment_receipt': lambda x: isinstance(x, str),
        'status_history': lambda x: isinstance(x, list),
        'updated_by': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.user_id: str = kwargs.get('user_id')
        self.user_email: Optional[str] = kwargs.get('user_email')
        self.items: List[Dict] = kwargs.get('items') or []
        self.subtotal: Decimal = kwargs.get('subtotal')
        self.discount: Decimal = kwargs.get('discount', Decimal('0.00'))
        self.coupon_code: Optional[str] = kwargs.get('coupon_code')
        self.tax: Decimal = kwargs.get('tax')
        self.delivery_fee: Decimal = kwargs.get('delivery_fee')
        self.total_amount: Decimal = kwargs.get('total_amount')
        self.order_type: str = kwargs.get('order_type')
        self.delivery_address: Optional[str] = kwargs.get('delivery_address')
        self.pickup_time: Optional[str] = kwargs.get('pickup_time')
        self.notes: Optional[str] = kwargs.get('notes')
        self.status: str = kwargs.get('status', 'pending')
        self.payment_status: str = kwargs.get('payment_status', 'pending')
        self.payment_method: str = kwargs.get('payment_method')
        self.payment_receipt: Optional[str] = kwargs.get('payment_receipt')
        self.status_history: List[Dict] = kwargs.get('status_history') or []
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.updated_by: Optional[str] = kwargs.get('updated_by')
        self.record_type = 'order'

    @classmethod
    def init_by_id(cls, order_id: str):
        c = cls(order_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_for_identity(cls, order_id: str, identity: Identity):
        """ Loads an order the caller owns, or any order for staff """
        order = cls.init_by_id(order_id)
        utils_auth.require_owner_or_staff(identity, order.user_id, 'Not authorized to access this order')
        return order

    def create(self):
        self._create_db_record()
        logger.info(f'create ::: order {self.id_} for user {self.user_id} total={self.total_amount}')
        return self

    def _key(self) -> Dict:
        pk, sk = self._get_pk_sk()
        return {'partkey': pk, 'sortkey': sk}

    def _transition(self, attribute: str, new_value: str, graph: Dict, changed_by: str,
                    extra_values: Optional[Dict] = None):
        if new_value not in graph:
            raise exceptions.ValidationError(f"Field '{attribute}' must be one of: {', '.join(graph)}",
                                             field=attribute)
        current = getattr(self, attribute)
        if new_value not in graph.get(current, ()):
            raise exceptions.InvalidTransition(f"Cannot change order {attribute} from '{current}' to '{new_value}'")
        now = now_iso()
        history_entry = {'field': attribute, 'from': current, 'to': new_value, 'changed_by': changed_by,
                         'date': now}
        try:
            record = utils_db.conditional_update(
                key=self._key(),
                set_values={attribute: new_value, 'date_updated': now, 'updated_by': changed_by,
                            **(extra_values or {})},
                condition_expression=Attr(attribute).eq(current),
                append_values={'status_history': [history_entry]}
            )
        except ClientError as error:
            if utils_db.is_condition_failed(error):
                logger.warning(f'_transition ::: order {self.id_} {attribute} changed concurrently, '
                               f'expected {current}')
                raise exceptions.InvalidTransition(f'Order {attribute} is no longer {current}')
            raise
        logger.info(f'_transition ::: order {self.id_} {attribute} {current} -> {new_value} by {changed_by}')
        self.__init__(**record)
        return self

    def update_status(self, new_status: str, identity: Identity):
        return self._transition('status', new_status, STATUS_TRANSITIONS, identity.user_id)

    def update_payment_status(self, new_status: str, identity: Identity, receipt: Optional[str] = None):
        extra = {'payment_receipt': receipt} if receipt else None
        return self._transition('payment_status', new_status, PAYMENT_TRANSITIONS, identity.user_id, extra)

    def cancel(self, identity: Identity):
        if identity.user_id != self.user_id and identity.role != Role.ADMIN:
            raise exceptions.AccessDenied('Not authorized to cancel this order')
        if self.status != 'pending':
            raise exceptions.InvalidTransition('Order can only be cancelled while pending')
        return self._transition('status', 'cancelled', STATUS_TRANSITIONS, identity.user_id)

    def apply_coupon(self, code: str, identity: Identity):
        if self.status != 'pending':
            raise exceptions.InvalidTransition('Coupons can only be applied to pending orders')
        coupon = Coupon.init_by_code(code)
        if self.coupon_code == coupon.code:
            return self
        if self.coupon_code:
            raise exceptions.AlreadyExists('Order already has a coupon applied')
        discount = coupon.apply(self.id_, self.subtotal)
        totals = calculate_totals(self.subtotal, discount, self.order_type)
        try:
            record = utils_db.conditional_update(
                key=self._key(),
                set_values={'coupon_code': coupon.code, 'discount': totals['discount'], 'tax': totals['tax'],
                            'total_amount': totals['total_amount'], 'date_updated': now_iso(),
                            'updated_by': identity.user_id},
                condition_expression=Attr('status').eq('pending') & Attr('coupon_code').not_exists()
            )
        except ClientError as error:
            if not utils_db.is_condition_failed(error):
                coupon.release(self.id_)
                raise
            self.__init__(**self._get_db_item())
            if self.coupon_code == coupon.code:
                # a concurrent request applied the same coupon and owns the redemption
                return self
            coupon.release(self.id_)
            raise exceptions.InvalidTransition('Order changed while applying the coupon')
        self.__init__(**record)
        return self

    @utils_app.log_start_finish
    def endpoint_get_order(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_update_status(self, context: RequestContext) -> Response:
        utils_data.require_fields(context.body, 'status')
        self.update_status(context.body['status'], context.identity)
        return utils_app.success_response(self._to_ui(), message=f'Order status updated to {self.status}')

    @utils_app.log_start_finish
    def endpoint_update_payment(self, context: RequestContext) -> Response:
        if utils_data.is_multipart(context.request):
            form, files = utils_data.parse_multipart_request_data(context.request)
            body = form
            receipt_file = files.get('paymentReceipt')
            receipt_body = read_payment_receipt(receipt_file) if receipt_file is not None else None
        else:
            body = context.body
            receipt_file, receipt_body = None, None
        utils_data.require_fields(body, 'payment_status')
        if receipt_file is None:
            self.update_payment_status(body['payment_status'], context.identity, body.get('payment_receipt'))
        else:
            receipt = upload_payment_receipt(receipt_file, self.user_id, receipt_body)
            try:
                self.update_payment_status(body['payment_status'], context.identity, receipt)
            except Exception:
                utils_s3.delete_file_from_s3(receipt)
                raise
        return utils_app.success_response(self._to_ui(),
                                          message=f'Payment status updated to {self.payment_status}')

    @utils_app.log_start_finish
    def endpoint_cancel_order(self, context: RequestContext) -> Response:
        self.cancel(context.identity)
        return utils_app.success_response(self._to_ui(), message='Order cancelled')

    @utils_app.log_start_finish
    def endpoint_apply_coupon(self, context: RequestContext, code: str) -> Response:
        self.apply_coupon(code, context.identity)
        return utils_app.success_response(self._to_ui(), message='Coupon applied')

    @utils_app.log_start_finish
    def endpoint_delete_order(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(None, message='Order deleted')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(order_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'user_id': self.user_id,
            'user_orders_key': keys_structure.user_orders_pk.format(user_id=self.user_id),
            'user_email': self.user_email,
            'items': self.items,
            'subtotal': self.subtotal,
            'discount': self.discount,
            'coupon_code': self.coupon_code,
            'tax': self.tax,
            'delivery_fee': self.delivery_fee,
            'total_amount': self.total_amount,
            'order_type': self.order_type,
            'delivery_address': self.delivery_address,
            'pickup_time': self.pickup_time,
            'notes': self.notes,
            'status': self.status,
            'payment_status': self.payment_status,
            'payment_method': self.payment_method,
            'payment_receipt': self.payment_receipt,
            'status_history': self.status_history,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'updated_by': self.updated_by
        }


def _page_size(value) -> int:
    if value is None:
        return DEFAULT_PAGE_SIZE
    size = utils_data.to_int(value, 'page_size')
    if not 1 <= size <= MAX_PAGE_SIZE:
        raise exceptions.ValidationError(f'page_size must be between 1 and {MAX_PAGE_SIZE}', field='page_size')
    return size


def get_orders_paginated(status: Optional[str], limit: int, start_key: Optional[str]):
    if start_key:
        start_key = {'partkey': Order.pk, 'sortkey': Order.sk.format(order_id=start_key)}
    filter_expression = Attr('status').eq(status) if status else None
    records, last_key = utils_db.query_items_paginated(
        key_condition_expression=Key('partkey').eq(Order.pk),
        filter_expression=filter_expression,
        limit=limit,
        start_key=start_key,
        scan_forward=False
    )
    return records, last_key['sortkey'] if last_key else None


def get_user_orders(user_id: str) -> List[Order]:
    records = utils_db.query_items_paged(
        Key('user_orders_key').eq(keys_structure.user_orders_pk.format(user_id=user_id)),
        index_name=keys_structure.user_orders_index
    )
    return sorted((Order(**record) for record in records), key=lambda o: o.id_, reverse=True)


@utils_app.log_start_finish
def endpoint_get_orders(context: RequestContext) -> Response:
    params = context.query_params
    status = params.get('status')
    if status:
        utils_data.validate_choice(status, list(STATUS_TRANSITIONS), 'status')
    records, last_key = get_orders_paginated(status, _page_size(params.get('page_size')), params.get('start_key'))
    orders = [Order(**record)._to_ui() for record in records]
    return utils_app.success_response(orders, count=len(orders), last_evaluated_key=last_key)


@utils_app.log_start_finish
def endpoint_get_my_orders(context: RequestContext) -> Response:
    orders = [order._to_ui() for order in get_user_orders(context.identity.user_id)]
    return utils_app.success_response(orders, count=len(orders))


@utils_app.log_start_finish
def db_trigger_order_record(record_old: Dict, record_new: Dict, event_id: str, event_name: str):
    logger.info(f'db_trigger_order_record ::: order={record_new.get("id_")}, {event_id=}, {event_name=}')
    if event_name.lower() == 'insert':
        subject = f'New order has been created, order ID - {record_new.get("id_")}'
        email_body = email_templates.get_new_order_notification_message(record_new)
        utils_notifications.send_email_ses([record_new.get('user_email'), constants.all_orders_email()],
                                           constants.ORDER_EMAIL_FROM, subject, email_body)
    elif event_name.lower() == 'modify' and record_old.get('status') != record_new.get('status'):
        subject = f'Your order {record_new.get("id_")} is {record_new.get("status")}'
        email_body = email_templates.get_order_status_message(record_new)
        utils_notifications.send_email_ses([record_new.get('user_email')],
                                           constants.ORDER_EMAIL_FROM, subject, email_body)
