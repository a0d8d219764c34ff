from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http201
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions, s3 as utils_s3
from chalicelib.utils.auth import RequestContext
from chalicelib.utils.logger import logger

FLYER_CONTENT_TYPES = ('image/jpeg', 'image/png', 'image/gif', 'image/webp')
MAX_FLYER_SIZE = 5 * 1024 * 1024
TEXT_FIELDS = ('title', 'description', 'location')


def read_flyer_image(flyer) -> bytes:
    if flyer.mimetype not in FLYER_CONTENT_TYPES:
        raise exceptions.ValidationError('Only image files are allowed', field='flyer')
    body = flyer.read()
    if len(body) > MAX_FLYER_SIZE:
        raise exceptions.ValidationError('Flyer image is too large', field='flyer')
    return body


def parse_flyer_request(context: RequestContext) -> Tuple[Dict, Optional[object]]:
    """ Form fields and the optional ``flyer`` file, or a plain JSON body """
    if not utils_data.is_multipart(context.request):
        return context.body, None
    form, files = utils_data.parse_multipart_request_data(context.request)
    return form, files.get('flyer')


def _to_bool(value, field: str) -> bool:
    # form fields arrive as strings
    if isinstance(value, bool):
        return value
    if value in ('true', 'false'):
        return value == 'true'
    raise exceptions.ValidationError(f"Field '{field}' must be true or false", field=field)


class EventFlyer(EntityBase):
    pk = keys_structure.event_flyers_pk
    sk = keys_structure.event_flyers_sk

    not_found_exception = exceptions.EventFlyerNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'created_by': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'title': lambda x: isinstance(x, str) and 0 < len(x.strip()) <= 100,
        'flyer_image': lambda x: isinstance(x, str),
        'is_active': lambda x: isinstance(x, bool),
        'priority': lambda x: isinstance(x, int) and 0 <= x <= 10,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'description': lambda x: isinstance(x, str) and len(x) <= 500,
        'location': lambda x: isinstance(x, str) and len(x) <= 200,
        'event_date': lambda x: isinstance(x, str),
        'updated_by': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.title: str = kwargs.get('title')
        self.description: Optional[str] = kwargs.get('description')
        self.flyer_image: str = kwargs.get('flyer_image')
        self.event_date: Optional[str] = kwargs.get('event_date')
        self.location: Optional[str] = kwargs.get('location')
        self.is_active: bool = kwargs.get('is_active', True)
        self.priority: int = utils_data.to_int(kwargs.get('priority') or 0, 'priority')
        self.created_by: str = kwargs.get('created_by')
        self.updated_by: Optional[str] = kwargs.get('updated_by')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'event_flyer'

    @classmethod
    def init_by_id(cls, flyer_id: str):
        c = cls(flyer_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_active_by_id(cls, flyer_id: str):
        flyer = cls.init_by_id(flyer_id)
        if not flyer.is_active:
            raise exceptions.EventFlyerNotFound()
        return flyer

    def _set_fields(self, body: Dict):
        for field in TEXT_FIELDS:
            if field in body:
                value = body[field]
                setattr(self, field, value.strip() if isinstance(value, str) else value)
        if body.get('event_date'):
            self.event_date = utils_data.to_datetime(body['event_date'], 'event_date').isoformat(timespec='seconds')
        if body.get('priority') not in (None, ''):
            self.priority = utils_data.to_int(body['priority'], 'priority')
        if 'is_active' in body:
            self.is_active = _to_bool(body['is_active'], 'is_active')

    def _new_image_path(self, flyer) -> str:
        return utils_s3.build_file_path('event_flyers', self.id_, flyer.filename)

    @utils_app.log_start_finish
    def endpoint_get_flyer(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_update_flyer(self, context: RequestContext) -> Response:
        body, flyer = parse_flyer_request(context)
        self._set_fields(body)
        self.updated_by = context.identity.user_id
        old_image, new_image = self.flyer_image, None
        if flyer is not None:
            image_body = read_flyer_image(flyer)
            new_image = self._new_image_path(flyer)
            self.flyer_image = new_image
        self._get_validated_update_dict()

        if new_image is not None:
            utils_s3.upload_file_to_s3(image_body, new_image, flyer.mimetype)
        try:
            record = self._update_db_record()
        except Exception:
            if new_image is not None:
                utils_s3.delete_file_from_s3(new_image)
            raise
        if new_image is not None:
            utils_s3.delete_file_from_s3(old_image)
        self.__init__(**record)
        return utils_app.success_response(self._to_ui(), message='Event flyer updated')

    @utils_app.log_start_finish
    def endpoint_delete_flyer(self) -> Response:
        self._delete_db_record()
        utils_s3.delete_file_from_s3(self.flyer_image)
        return utils_app.success_response(None, message='Event flyer deleted')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(flyer_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'title': self.title,
            'description': self.description,
            'flyer_image': self.flyer_image,
            'event_date': self.event_date,
            'location': self.location,
            'is_active': self.is_active,
            'priority': self.priority,
            'created_by': self.created_by,
            'updated_by': self.updated_by,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


@utils_app.log_start_finish
def endpoint_upload_flyer(context: RequestContext) -> Response:
    body, flyer = parse_flyer_request(context)
    if flyer is None:
        raise exceptions.ValidationError('Please upload a flyer image', field='flyer')
    utils_data.require_fields(body, 'title')
    image_body = read_flyer_image(flyer)

    event_flyer = EventFlyer(id_=str(uuid4()), created_by=context.identity.user_id)
    event_flyer._set_fields(body)
    event_flyer.flyer_image = event_flyer._new_image_path(flyer)
    event_flyer._validate_new_record()

    utils_s3.upload_file_to_s3(image_body, event_flyer.flyer_image, flyer.mimetype)
    try:
        event_flyer._create_db_record()
    except Exception:
        utils_s3.delete_file_from_s3(event_flyer.flyer_image)
        raise
    logger.info(f'endpoint_upload_flyer ::: flyer {event_flyer.id_} uploaded by {event_flyer.created_by}')
    return utils_app.success_response(event_flyer._to_ui(), message='Event flyer uploaded', status_code=http201)


def list_active_flyers() -> List[EventFlyer]:
    records = utils_db.query_partition(keys_structure.event_flyers_pk, filter_expression=Attr('is_active').eq(True))
    return sorted((EventFlyer(**record) for record in records), key=lambda f: (f.priority, f.date_created),
                  reverse=True)


@utils_app.log_start_finish
def endpoint_list_flyers(context: RequestContext) -> Response:
    flyers = [flyer._to_ui() for flyer in list_active_flyers()]
    return utils_app.success_response(flyers, count=len(flyers))
