from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http201
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import Identity, RequestContext, Role
from chalicelib.utils.logger import logger

EVENT_TYPES = ('baby_shower', 'general_party', 'bridal_party', 'business_event', 'community_event', 'other')
SERVICE_TYPES = ('catered', 'vended')
VENUE_TYPES = ('indoor', 'outdoor_with_power', 'outdoor_no_power')
EVENT_STATUSES = ('pending', 'confirmed', 'processing', 'completed', 'cancelled')
PUBLIC_STATUSES = ('confirmed', 'completed')

REQUIRED_FIELDS = ('first_name', 'last_name', 'email', 'phone', 'event_type', 'service_type', 'venue_type',
                   'guest_count', 'estimated_budget', 'event_date', 'start_time', 'end_time', 'location')
OPTIONAL_FIELDS = ('event_type_other', 'drink_selection', 'alt_milk_needed', 'cold_foam_needed', 'food_selection',
                   'dietary_restrictions', 'special_requests', 'setup_requirements', 'hear_about_us')


def _is_str(x) -> bool:
    return isinstance(x, str) and len(x.strip()) > 0


class Event(EntityBase):
    pk = keys_structure.events_pk
    sk = keys_structure.events_sk

    not_found_exception = exceptions.EventNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'created_by': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'first_name': _is_str,
        'last_name': _is_str,
        'email': _is_str,
        'phone': _is_str,
        'event_type': lambda x: x in EVENT_TYPES,
        'service_type': lambda x: x in SERVICE_TYPES,
        'venue_type': lambda x: x in VENUE_TYPES,
        'guest_count': _is_str,
        'estimated_budget': _is_str,
        'event_date': _is_str,
        'start_time': _is_str,
        'end_time': _is_str,
        'location': _is_str,
        'status': lambda x: x in EVENT_STATUSES,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'event_type_other': lambda x: isinstance(x, str),
        'drink_selection': lambda x: isinstance(x, list),
        'alt_milk_needed': lambda x: isinstance(x, list) and set(x) <= {'oat', 'almond'},
        'cold_foam_needed': lambda x: x in ('yes', 'no'),
        'food_selection': lambda x: isinstance(x, list),
        'dietary_restrictions': lambda x: isinstance(x, str),
        'special_requests': lambda x: isinstance(x, str),
        'setup_requirements': lambda x: isinstance(x, str),
        'hear_about_us': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        for field in REQUIRED_FIELDS + OPTIONAL_FIELDS:
            value = kwargs.get(field)
            # guest count and budget are free text ranges ("50-100", "$500+")
            if field in ('guest_count', 'estimated_budget') and value is not None:
                value = str(value)
            setattr(self, field, value)
        self.status: str = kwargs.get('status', 'pending')
        self.created_by: str = kwargs.get('created_by')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'event'

    @classmethod
    def init_by_id(cls, event_id: str):
        c = cls(event_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_for_identity(cls, event_id: str, identity: Identity):
        event = cls.init_by_id(event_id)
        if identity.role != Role.ADMIN and event.created_by != identity.user_id:
            raise exceptions.AccessDenied('Not authorized to access this event')
        return event

    @classmethod
    def init_request_create(cls, context: RequestContext):
        body = context.body
        utils_data.require_fields(body, *REQUIRED_FIELDS)
        fields = {key: body[key] for key in REQUIRED_FIELDS + OPTIONAL_FIELDS if key in body}
        fields['email'] = utils_data.validate_email(body['email'])
        utils_data.to_datetime(body['event_date'], 'event_date')
        return cls(id_=str(uuid4()), created_by=context.identity.user_id, **fields)

    def public_view(self) -> Dict:
        return {
            'id': self.id_,
            'event_type': self.event_type,
            'event_date': self.event_date,
            'location': self.location,
            'guest_count': self.guest_count,
            'status': self.status,
            'first_name': self.first_name,
            'date_created': self.date_created
        }

    @utils_app.log_start_finish
    def endpoint_get_event(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_create_event(self) -> Response:
        self._create_db_record()
        logger.info(f'endpoint_create_event ::: event {self.id_} requested by {self.created_by}')
        return utils_app.success_response(self._to_ui(), message='Event request submitted', status_code=http201)

    @utils_app.log_start_finish
    def endpoint_update_event(self, context: RequestContext) -> Response:
        if context.identity.role != Role.ADMIN and self.status != 'pending':
            raise exceptions.InvalidTransition('Only pending event requests can be changed')
        body = context.body
        if 'email' in body:
            body['email'] = utils_data.validate_email(body['email'])
        if 'event_date' in body:
            utils_data.to_datetime(body['event_date'], 'event_date')
        for field in REQUIRED_FIELDS + OPTIONAL_FIELDS:
            if field in body:
                setattr(self, field, str(body[field]) if field in ('guest_count', 'estimated_budget')
                        else body[field])
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Event updated')

    @utils_app.log_start_finish
    def endpoint_update_status(self, body: Dict) -> Response:
        utils_data.require_fields(body, 'status')
        self.status = utils_data.validate_choice(body['status'], EVENT_STATUSES, 'status')
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message=f'Event status updated to {self.status}')

    @utils_app.log_start_finish
    def endpoint_delete_event(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(None, message='Event deleted')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(event_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            **{field: getattr(self, field) for field in REQUIRED_FIELDS + OPTIONAL_FIELDS},
            'status': self.status,
            'created_by': self.created_by,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


def list_events(status: Optional[str] = None, created_by: Optional[str] = None) -> List[Event]:
    filter_expression = None
    if status:
        filter_expression = Attr('status').eq(status)
    if created_by:
        by_user = Attr('created_by').eq(created_by)
        filter_expression = by_user if filter_expression is None else filter_expression & by_user
    records = utils_db.query_partition(keys_structure.events_pk, filter_expression=filter_expression)
    return sorted((Event(**record) for record in records), key=lambda e: e.date_created, reverse=True)


@utils_app.log_start_finish
def endpoint_list_events(context: RequestContext) -> Response:
    status = context.query_params.get('status')
    if status:
        utils_data.validate_choice(status, EVENT_STATUSES, 'status')
    events = [event._to_ui() for event in list_events(status=status)]
    return utils_app.success_response(events, count=len(events))


@utils_app.log_start_finish
def endpoint_list_my_events(context: RequestContext) -> Response:
    events = [event._to_ui() for event in list_events(created_by=context.identity.user_id)]
    return utils_app.success_response(events, count=len(events))


@utils_app.log_start_finish
def endpoint_list_public_events(context: RequestContext) -> Response:
    events = [event.public_view() for event in list_events() if event.status in PUBLIC_STATUSES]
    events.sort(key=lambda e: e['event_date'], reverse=True)
    return utils_app.success_response(events, count=len(events))
