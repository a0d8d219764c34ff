from typing import Dict, List, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http201
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import RequestContext

PAYMENT_METHOD_TYPES = ('digital_wallet', 'credit_card', 'bank_transfer', 'cash', 'other')
UPDATABLE_FIELDS = ('type', 'vendor', 'account_name', 'account_number', 'account_alias', 'description',
                    'instructions', 'is_active', 'display_order')


class PaymentMethod(EntityBase):
    pk = keys_structure.payment_methods_pk
    sk = keys_structure.payment_methods_sk

    not_found_exception = exceptions.PaymentMethodNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'type': lambda x: x in PAYMENT_METHOD_TYPES,
        'vendor': lambda x: isinstance(x, str) and len(x.strip()) > 0,
        'account_name': lambda x: isinstance(x, str) and len(x.strip()) > 0,
        'is_active': lambda x: isinstance(x, bool),
        'display_order': lambda x: isinstance(x, int),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'account_number': lambda x: isinstance(x, str),
        'account_alias': lambda x: isinstance(x, str),
        'description': lambda x: isinstance(x, str),
        'instructions': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.type: str = kwargs.get('type')
        self.vendor: str = kwargs.get('vendor')
        self.account_name: str = kwargs.get('account_name')
        self.account_number: str = kwargs.get('account_number')
        self.account_alias: str = kwargs.get('account_alias')
        self.description: str = kwargs.get('description')
        self.instructions: str = kwargs.get('instructions')
        self.is_active: bool = kwargs.get('is_active', True)
        self.display_order: int = utils_data.to_int(kwargs.get('display_order') or 0, 'display_order')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'payment_method'

    @classmethod
    def init_by_id(cls, payment_method_id: str):
        c = cls(payment_method_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_request_create(cls, body: Dict):
        utils_data.require_fields(body, 'type', 'vendor', 'account_name')
        return cls(id_=str(uuid4()), **{key: body[key] for key in UPDATABLE_FIELDS if key in body})

    def public_view(self) -> Dict:
        item = self._to_ui()
        for field in ('date_created', 'date_updated'):
            item.pop(field, None)
        return item

    @utils_app.log_start_finish
    def endpoint_create_payment_method(self) -> Response:
        self._create_db_record()
        return utils_app.success_response(self._to_ui(), message='Payment method created', status_code=http201)

    @utils_app.log_start_finish
    def endpoint_update_payment_method(self, body: Dict) -> Response:
        for field in UPDATABLE_FIELDS:
            if field in body:
                value = body[field]
                setattr(self, field, utils_data.to_int(value, field) if field == 'display_order' else value)
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Payment method updated')

    @utils_app.log_start_finish
    def endpoint_delete_payment_method(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(None, message='Payment method deleted')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(payment_method_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'type': self.type,
            'vendor': self.vendor,
            'account_name': self.account_name,
            'account_number': self.account_number,
            'account_alias': self.account_alias,
            'description': self.description,
            'instructions': self.instructions,
            'is_active': self.is_active,
            'display_order': self.display_order,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


def list_payment_methods(active_only: bool) -> List[PaymentMethod]:
    filter_expression = Attr('is_active').eq(True) if active_only else None
    records = utils_db.query_partition(keys_structure.payment_methods_pk, filter_expression=filter_expression)
    return sorted((PaymentMethod(**record) for record in records), key=lambda m: (m.display_order, m.vendor))


@utils_app.log_start_finish
def endpoint_list_active_payment_methods(context: RequestContext) -> Response:
    methods = [method.public_view() for method in list_payment_methods(active_only=True)]
    return utils_app.success_response(methods, count=len(methods))


@utils_app.log_start_finish
def endpoint_list_all_payment_methods(context: RequestContext) -> Response:
    methods = [method._to_ui() for method in list_payment_methods(active_only=False)]
    return utils_app.success_response(methods, count=len(methods))
