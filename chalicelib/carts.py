from decimal import Decimal
from typing import Dict, List, Optional
from uuid import NAMESPACE_URL, uuid5

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from chalice import Response

from chalicelib.base_class_entity import now_iso
from chalicelib.constants import keys_structure
from chalicelib.menu_items import MenuItem
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import RequestContext
from chalicelib.utils.logger import logger


def make_line_id(menu_item_id: str, selected_size: Optional[str] = None, selected_milk: Optional[str] = None,
                 add_cold_foam: bool = False) -> str:
    """
    One cart line per distinct (menu item, options).
    A line without options is keyed by the menu item id itself.
    """
    if not (selected_size or selected_milk or add_cold_foam):
        return menu_item_id
    return str(uuid5(NAMESPACE_URL, f'{menu_item_id}|{selected_size or ""}|{selected_milk or ""}|{int(add_cold_foam)}'))


class Cart:
    pk = keys_structure.carts_pk
    sk = keys_structure.carts_sk

    def __init__(self, user_id: str):
        self.user_id: str = user_id
        self.lines: List[Dict] = []
        self.menu_items: Dict[str, MenuItem] = {}

    @classmethod
    def init_by_user_id(cls, user_id: str):
        c = cls(user_id)
        c._fill_lines()
        return c

    @classmethod
    def init_by_context(cls, context: RequestContext):
        return cls.init_by_user_id(context.identity.user_id)

    def _partkey(self) -> str:
        return self.pk.format(user_id=self.user_id)

    def _line_key(self, line_id: str) -> Dict:
        return {'partkey': self._partkey(), 'sortkey': self.sk.format(line_id=line_id)}

    def _fill_lines(self):
        records = utils_db.query_partition(self._partkey())
        self.lines = [{
            'id': record['sortkey'],
            'menu_item_id': record['menu_item_id'],
            'quantity': int(record['quantity']),
            'selected_size': record.get('selected_size'),
            'selected_milk': record.get('selected_milk'),
            'add_cold_foam': bool(record.get('add_cold_foam', False)),
            'special_instructions': record.get('special_instructions')
        } for record in records]
        self.menu_items = MenuItem.find_many(line['menu_item_id'] for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def count(self) -> int:
        return sum(line['quantity'] for line in self.lines)

    def line_menu_item(self, line: Dict) -> Optional[MenuItem]:
        menu_item = self.menu_items.get(line['menu_item_id'])
        if menu_item is None or menu_item.archived:
            return None
        return menu_item

    def priced_lines(self) -> List[Dict]:
        """ Lines priced at the current catalog price; vanished items are flagged instead """
        result = []
        for line in self.lines:
            menu_item = self.line_menu_item(line)
            if menu_item is None:
                result.append({**line, 'name': None, 'unit_price': None, 'line_total': None, 'unavailable': True})
                continue
            unit_price = menu_item.unit_price(line['selected_size'], line['selected_milk'], line['add_cold_foam'])
            result.append({
                **line,
                'name': menu_item.name,
                'image': menu_item.image,
                'unit_price': unit_price,
                'line_total': unit_price * line['quantity'],
                'unavailable': not menu_item.available
            })
        return result

    @property
    def total(self) -> Decimal:
        return sum((line['line_total'] for line in self.priced_lines() if line['line_total'] is not None),
                   Decimal('0.00'))

    def add_item(self, menu_item_id: str, quantity=1, selected_size: Optional[str] = None,
                 selected_milk: Optional[str] = None, add_cold_foam: bool = False,
                 special_instructions: Optional[str] = None):
        quantity = utils_data.to_int(quantity, 'quantity')
        if quantity < 1:
            raise exceptions.ValidationError('Quantity must be at least 1', field='quantity')
        if not isinstance(add_cold_foam, bool):
            raise exceptions.ValidationError("Field 'add_cold_foam' must be a boolean", field='add_cold_foam')
        menu_item = MenuItem.init_active_by_id(menu_item_id)
        menu_item.validate_options(selected_size, selected_milk, add_cold_foam)

        line_id = make_line_id(menu_item_id, selected_size, selected_milk, add_cold_foam)
        set_values = {
            'record_type': 'cart_item',
            'menu_item_id': menu_item_id,
            'selected_size': selected_size,
            'selected_milk': selected_milk,
            'add_cold_foam': add_cold_foam,
            'special_instructions': special_instructions,
            'date_updated': now_iso()
        }
        record = utils_db.increment_attribute(
            key=self._line_key(line_id),
            attribute='quantity',
            amount=quantity,
            set_values={key: value for key, value in set_values.items() if value is not None}
        )
        logger.info(f"add_item ::: user {self.user_id} line {line_id} quantity is now {record['quantity']}")
        self._fill_lines()
        return self

    def update_item(self, line_id: str, quantity):
        quantity = utils_data.to_int(quantity, 'quantity')
        if quantity < 1:
            return self.remove_item(line_id)
        try:
            utils_db.conditional_update(
                key=self._line_key(line_id),
                set_values={'quantity': quantity, 'date_updated': now_iso()},
                condition_expression=Attr('partkey').exists()
            )
        except ClientError as error:
            if utils_db.is_condition_failed(error):
                raise exceptions.CartItemNotFound()
            raise
        self._fill_lines()
        return self

    def remove_item(self, line_id: str):
        # removing a line that is not in the cart is a no-op
        utils_db.delete_db_record(self._line_key(line_id))
        self._fill_lines()
        return self

    def clear(self):
        utils_db.delete_partition(self._partkey())
        self.lines = []
        self.menu_items = {}
        return self

    def to_ui(self) -> Dict:
        lines = self.priced_lines()
        return {
            'user_id': self.user_id,
            'items': lines,
            'count': self.count,
            'total': sum((line['line_total'] for line in lines if line['line_total'] is not None),
                         Decimal('0.00'))
        }

    @utils_app.log_start_finish
    def endpoint_get_cart(self) -> Response:
        return utils_app.success_response(self.to_ui())

    @utils_app.log_start_finish
    def endpoint_add_item(self, body: Dict) -> Response:
        utils_data.require_fields(body, 'menu_item_id')
        self.add_item(
            menu_item_id=body['menu_item_id'],
            quantity=body.get('quantity', 1),
            selected_size=body.get('selected_size'),
            selected_milk=body.get('selected_milk'),
            add_cold_foam=body.get('add_cold_foam', False),
            special_instructions=body.get('special_instructions')
        )
        return utils_app.success_response(self.to_ui(), message='Item added to cart')

    @utils_app.log_start_finish
    def endpoint_update_item(self, line_id: str, body: Dict) -> Response:
        utils_data.require_fields(body, 'quantity')
        self.update_item(line_id, body['quantity'])
        return utils_app.success_response(self.to_ui())

    @utils_app.log_start_finish
    def endpoint_remove_item(self, line_id: str) -> Response:
        self.remove_item(line_id)
        return utils_app.success_response(self.to_ui(), message='Item removed from cart')

    @utils_app.log_start_finish
    def endpoint_clear_cart(self) -> Response:
        self.clear()
        return utils_app.success_response(self.to_ui(), message='Cart was successfully cleared')
