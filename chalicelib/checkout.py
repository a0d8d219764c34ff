import json
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from chalice import Response

from chalicelib.base_class_entity import now_iso
from chalicelib.carts import Cart
from chalicelib.constants import constants
from chalicelib.constants.status_codes import http201
from chalicelib.coupons import Coupon
from chalicelib.orders import Order, calculate_totals, new_order_id, read_payment_receipt, upload_payment_receipt
from chalicelib.utils import app as utils_app, data as utils_data, exceptions, s3 as utils_s3
from chalicelib.utils.auth import Identity, RequestContext
from chalicelib.utils.logger import logger

TEXT_FIELDS = ('delivery_address', 'pickup_time', 'notes', 'coupon_code', 'payment_receipt')


def parse_checkout_request(context: RequestContext) -> Tuple[Dict, Optional[object]]:
    """
    Checkout accepts a JSON body, or multipart/form-data with the order fields
    in an ``orderData`` JSON field and an optional ``paymentReceipt`` file.
    """
    if not utils_data.is_multipart(context.request):
        return context.body, None
    form, files = utils_data.parse_multipart_request_data(context.request)
    if 'orderData' in form:
        try:
            details = json.loads(form['orderData'])
        except ValueError:
            raise exceptions.ValidationError("Field 'orderData' is not valid JSON", field='orderData')
        if not isinstance(details, dict):
            raise exceptions.ValidationError("Field 'orderData' must be a JSON object", field='orderData')
    else:
        details = form
    return utils_data.fix_values_from_ui(details), files.get('paymentReceipt')


class Checkout:

    def __init__(self, identity: Identity, cart: Cart):
        self.identity: Identity = identity
        self.cart: Cart = cart
        self.order: Optional[Order] = None

    @classmethod
    def init_by_context(cls, context: RequestContext):
        return cls(context.identity, Cart.init_by_user_id(context.identity.user_id))

    @staticmethod
    def _validate_details(details: Dict, has_receipt_file: bool):
        utils_data.require_fields(details, 'order_type', 'payment_method')
        for field in TEXT_FIELDS:
            if details.get(field) is not None and not isinstance(details[field], str):
                raise exceptions.ValidationError(f"Field '{field}' must be a string", field=field)
        utils_data.validate_choice(details['order_type'], constants.ORDER_TYPES, 'order_type')
        utils_data.validate_choice(details['payment_method'], constants.PAYMENT_METHODS, 'payment_method')
        if details['order_type'] == 'delivery':
            address = details.get('delivery_address')
            if not isinstance(address, str) or not address.strip():
                raise exceptions.ValidationError('Delivery address is required for delivery orders',
                                                 field='delivery_address')
        if details['payment_method'] == 'receipt_upload' and not (has_receipt_file or details.get('payment_receipt')):
            raise exceptions.ValidationError('Payment receipt is required for receipt uploads',
                                             field='paymentReceipt')

    def snapshot_items(self) -> List[Dict]:
        """ Freezes name and unit price of every cart line; any unorderable item blocks checkout """
        items = []
        for line in self.cart.lines:
            menu_item = self.cart.menu_items.get(line['menu_item_id'])
            if menu_item is None or not menu_item.is_orderable:
                name = menu_item.name if menu_item else line['menu_item_id']
                logger.warning(f'snapshot_items ::: menu item {line["menu_item_id"]} is not available')
                raise exceptions.ItemUnavailable(f"Menu item '{name}' is no longer available",
                                                 menu_item_id=line['menu_item_id'])
            items.append({
                'menu_item_id': line['menu_item_id'],
                'name': menu_item.name,
                'quantity': line['quantity'],
                'price': menu_item.unit_price(line['selected_size'], line['selected_milk'], line['add_cold_foam']),
                'selected_size': line['selected_size'],
                'selected_milk': line['selected_milk'],
                'add_cold_foam': line['add_cold_foam'],
                'special_instructions': line['special_instructions']
            })
        return [{key: value for key, value in item.items() if value is not None} for item in items]

    def place_order(self, details: Dict, receipt_file=None) -> Order:
        """
        Everything that can reject the request runs before the coupon is redeemed and the
        receipt is stored; a failed save releases the coupon and removes the receipt.
        """
        if self.cart.is_empty:
            raise exceptions.ValidationError('Cart is empty', field='cart')
        self._validate_details(details, receipt_file is not None)
        receipt_body = read_payment_receipt(receipt_file) if receipt_file is not None else None
        items = self.snapshot_items()
        subtotal = sum((item['price'] * item['quantity'] for item in items), Decimal('0.00'))

        order_type = details['order_type']
        self.order = Order(
            id_=new_order_id(),
            user_id=self.identity.user_id,
            user_email=self.identity.email,
            items=items,
            order_type=order_type,
            delivery_address=details.get('delivery_address') if order_type == 'delivery' else None,
            pickup_time=details.get('pickup_time'),
            notes=details.get('notes'),
            status='pending',
            payment_status='pending',
            payment_method=details['payment_method'],
            payment_receipt=details.get('payment_receipt'),
            status_history=[{'field': 'status', 'to': 'pending', 'changed_by': self.identity.user_id,
                             'date': now_iso()}],
            **calculate_totals(subtotal, Decimal('0.00'), order_type)
        )
        self.order._validate_new_record()

        coupon = None
        if details.get('coupon_code'):
            coupon = Coupon.init_by_code(details['coupon_code'])
            discount = coupon.apply(self.order.id_, subtotal)
            self.order.coupon_code = coupon.code
            for field, value in calculate_totals(subtotal, discount, order_type).items():
                setattr(self.order, field, value)

        uploaded_receipt = None
        try:
            if receipt_file is not None:
                uploaded_receipt = upload_payment_receipt(receipt_file, self.identity.user_id, receipt_body)
                self.order.payment_receipt = uploaded_receipt
            self.order.create()
        except Exception:
            logger.warning(f'place_order ::: order {self.order.id_} was not saved, undoing coupon and receipt')
            if coupon is not None:
                coupon.release(self.order.id_)
            if uploaded_receipt is not None:
                utils_s3.delete_file_from_s3(uploaded_receipt)
            raise
        self.cart.clear()
        return self.order

    @utils_app.log_start_finish
    def endpoint_checkout(self, context: RequestContext) -> Response:
        details, receipt_file = parse_checkout_request(context)
        order = self.place_order(details, receipt_file)
        return utils_app.success_response(order._to_ui(), message='Order placed successfully', status_code=http201)
