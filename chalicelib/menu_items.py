from decimal import Decimal
from typing import List, Dict, Tuple, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import constants, keys_structure
from chalicelib.constants.status_codes import http201
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions, s3 as utils_s3
from chalicelib.utils.auth import RequestContext
from chalicelib.utils.logger import logger

UPDATABLE_FIELDS = ('name', 'category', 'description', 'price', 'sizes', 'available', 'dietary',
                    'alt_milk_options', 'cold_foam_available', 'image')

IMAGE_CONTENT_TYPES = ('image/jpeg', 'image/png', 'image/gif', 'image/webp')


def normalize_sizes(sizes) -> List[Dict]:
    if sizes is None:
        return []
    if not isinstance(sizes, list):
        raise exceptions.ValidationError("Field 'sizes' must be a list", field='sizes')
    normalized = []
    for size in sizes:
        if not isinstance(size, dict) or not isinstance(size.get('size'), str) or size.get('price') is None:
            raise exceptions.ValidationError("Each size needs 'size' and 'price'", field='sizes')
        normalized.append({'size': size['size'], 'price': utils_data.to_money(size['price'], 'sizes')})
    return normalized


class MenuItem(EntityBase):
    pk = keys_structure.menu_items_pk
    sk = keys_structure.menu_items_sk

    not_found_exception = exceptions.MenuItemNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'created_by': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': lambda x: isinstance(x, str) and len(x.strip()) > 0,
        'category': lambda x: isinstance(x, str) and len(x.strip()) > 0,
        'price': lambda x: isinstance(x, Decimal) and x >= 0,
        'sizes': lambda x: isinstance(x, list) and all(size['price'] >= 0 for size in x),
        'available': lambda x: isinstance(x, bool),
        'dietary': lambda x: isinstance(x, list) and set(x) <= set(constants.DIETARY_TAGS),
        'alt_milk_options': lambda x: isinstance(x, list) and set(x) <= set(constants.ALT_MILK_OPTIONS),
        'cold_foam_available': lambda x: isinstance(x, bool),
        'date_updated': lambda x: isinstance(x, str),
        'updated_by': lambda x: isinstance(x, str),
        'archived': lambda x: isinstance(x, bool)
    }

    optional_fields_validation = {
        'description': lambda x: isinstance(x, str),
        'image': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.name: str = kwargs.get('name')
        self.category: str = kwargs.get('category')
        self.description: Optional[str] = kwargs.get('description')
        self.price: Decimal = utils_data.to_money(kwargs['price'], 'price') \
            if kwargs.get('price') is not None else None
        self.sizes: List[Dict] = normalize_sizes(kwargs.get('sizes'))
        self.available: bool = kwargs.get('available', True)
        self.dietary: List[str] = kwargs.get('dietary') or []
        self.alt_milk_options: List[str] = kwargs.get('alt_milk_options') or []
        self.cold_foam_available: bool = kwargs.get('cold_foam_available', False)
        self.image: Optional[str] = kwargs.get('image')
        self.created_by: str = kwargs.get('created_by')
        self.updated_by: str = kwargs.get('updated_by') or self.created_by
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.archived: bool = kwargs.get('archived', False)
        self.record_type = 'menu_item'

    @classmethod
    def init_by_id(cls, menu_item_id: str):
        logger.info(f"init_by_id ::: {menu_item_id=}")
        c = cls(menu_item_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_active_by_id(cls, menu_item_id: str):
        """ Archived items are hidden from customers and behave as missing """
        menu_item = cls.init_by_id(menu_item_id)
        if menu_item.archived:
            raise exceptions.MenuItemNotFound()
        return menu_item

    @classmethod
    def init_request_create(cls, context: RequestContext):
        body = context.body
        utils_data.require_fields(body, 'name', 'category', 'price')
        fields = {key: body[key] for key in UPDATABLE_FIELDS if key in body}
        return cls(id_=str(uuid4()), created_by=context.identity.user_id, **fields)

    @classmethod
    def find_many(cls, menu_item_ids) -> Dict[str, 'MenuItem']:
        """ Loads each referenced item once; missing ids are absent from the result """
        found = {}
        for menu_item_id in set(menu_item_ids):
            try:
                found[menu_item_id] = cls.init_by_id(menu_item_id)
            except exceptions.MenuItemNotFound:
                logger.warning(f'find_many ::: menu item {menu_item_id} does not exist')
        return found

    @property
    def is_orderable(self) -> bool:
        return self.available and not self.archived

    def unit_price(self, selected_size: Optional[str] = None, selected_milk: Optional[str] = None,
                   add_cold_foam: bool = False) -> Decimal:
        price = self.price
        for size in self.sizes:
            if selected_size and size['size'] == selected_size:
                price = size['price']
                break
        if selected_milk:
            price += constants.alt_milk_price()
        if add_cold_foam:
            price += constants.cold_foam_price()
        return price.quantize(constants.CENTS)

    def validate_options(self, selected_size=None, selected_milk=None, add_cold_foam=False):
        if selected_size and selected_size not in [size['size'] for size in self.sizes]:
            raise exceptions.ValidationError(f"Size '{selected_size}' is not offered for {self.name}",
                                             field='selected_size')
        if selected_milk and selected_milk not in self.alt_milk_options:
            raise exceptions.ValidationError(f"Milk '{selected_milk}' is not offered for {self.name}",
                                             field='selected_milk')
        if add_cold_foam and not self.cold_foam_available:
            raise exceptions.ValidationError(f'Cold foam is not offered for {self.name}', field='add_cold_foam')

    @utils_app.log_start_finish
    def endpoint_get_menu_item(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_create_menu_item(self) -> Response:
        self._create_db_record()
        return utils_app.success_response(self._to_ui(), message='Menu item successfully created',
                                          status_code=http201)

    @utils_app.log_start_finish
    def endpoint_update_menu_item(self, context: RequestContext) -> Response:
        body = context.body
        for key in UPDATABLE_FIELDS:
            if key not in body:
                continue
            if key == 'price':
                self.price = utils_data.to_money(body['price'], 'price')
            elif key == 'sizes':
                self.sizes = normalize_sizes(body['sizes'])
            else:
                setattr(self, key, body[key])
        self.updated_by = context.identity.user_id
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Menu item was successfully updated')

    @utils_app.log_start_finish
    def endpoint_archive_menu_item(self, context: RequestContext) -> Response:
        self.archived = True
        self.updated_by = context.identity.user_id
        self._update_db_record()
        return utils_app.success_response(None, message='Menu item was archived')

    @utils_app.log_start_finish
    def endpoint_upload_image(self, context: RequestContext) -> Response:
        _, files = utils_data.parse_multipart_request_data(context.request)
        image = files.get('image')
        if image is None:
            raise exceptions.ValidationError("Field 'image' is required", field='image')
        if image.mimetype not in IMAGE_CONTENT_TYPES:
            raise exceptions.ValidationError('Only image files are allowed', field='image')
        file_path = utils_s3.build_file_path('menu_images', self.id_, image.filename)
        self.image = utils_s3.upload_file_to_s3(image.read(), file_path, image.mimetype)
        self.updated_by = context.identity.user_id
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Image uploaded')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(menu_item_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'price': self.price,
            'sizes': self.sizes,
            'available': self.available,
            'dietary': self.dietary,
            'alt_milk_options': self.alt_milk_options,
            'cold_foam_available': self.cold_foam_available,
            'image': self.image,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'created_by': self.created_by,
            'updated_by': self.updated_by,
            'archived': self.archived
        }


def _parse_bool(value: Optional[str], field: str) -> Optional[bool]:
    if value is None:
        return None
    if value.lower() in ('true', '1'):
        return True
    if value.lower() in ('false', '0'):
        return False
    raise exceptions.ValidationError(f"Field '{field}' must be true or false", field=field)


def list_menu_items(category: Optional[str] = None, available: Optional[bool] = None) -> List[MenuItem]:
    filter_expression = Attr('archived').eq(False)
    if category:
        filter_expression = filter_expression & Attr('category').eq(category)
    if available is not None:
        filter_expression = filter_expression & Attr('available').eq(available)
    records = utils_db.query_partition(keys_structure.menu_items_pk, filter_expression=filter_expression)
    menu_items = [MenuItem(**record) for record in records]
    return sorted(menu_items, key=lambda item: (item.category, item.name))


@utils_app.log_start_finish
def endpoint_get_menu_items(context: RequestContext) -> Response:
    params = context.query_params
    menu_items = list_menu_items(category=params.get('category'),
                                 available=_parse_bool(params.get('available'), 'available'))
    logger.info(f"endpoint_get_menu_items ::: returning {len(menu_items)} menu items")
    return utils_app.success_response([item._to_ui() for item in menu_items], count=len(menu_items))


@utils_app.log_start_finish
def endpoint_get_menu_items_by_category(context: RequestContext, category: str) -> Response:
    menu_items = list_menu_items(category=category)
    return utils_app.success_response([item._to_ui() for item in menu_items], count=len(menu_items))
