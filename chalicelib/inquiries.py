from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http201
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import RequestContext
from chalicelib.utils.logger import logger

INQUIRY_STATUSES = ('pending', 'read', 'replied', 'archived')
CONTACT_FIELDS = ('name', 'email', 'subject', 'message')


def _is_text(x) -> bool:
    return isinstance(x, str) and len(x.strip()) > 0


class Inquiry(EntityBase):
    """ A message sent through the public contact form """
    pk = keys_structure.inquiries_pk
    sk = keys_structure.inquiries_sk

    not_found_exception = exceptions.InquiryNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'name': _is_text,
        'email': _is_text,
        'subject': _is_text,
        'message': _is_text,
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'status': lambda x: x in INQUIRY_STATUSES,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'notes': lambda x: isinstance(x, str),
        'updated_by': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.name: str = kwargs.get('name')
        self.email: str = kwargs.get('email')
        self.subject: str = kwargs.get('subject')
        self.message: str = kwargs.get('message')
        self.status: str = kwargs.get('status', 'pending')
        self.notes: Optional[str] = kwargs.get('notes')
        self.updated_by: Optional[str] = kwargs.get('updated_by')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'inquiry'

    @classmethod
    def init_by_id(cls, inquiry_id: str):
        c = cls(inquiry_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_request_create(cls, body: Dict):
        utils_data.require_fields(body, *CONTACT_FIELDS)
        fields = {key: body[key] for key in CONTACT_FIELDS}
        fields['email'] = utils_data.validate_email(body['email'])
        return cls(id_=str(uuid4()), **fields)

    @utils_app.log_start_finish
    def endpoint_submit_inquiry(self) -> Response:
        self._create_db_record()
        logger.info(f'endpoint_submit_inquiry ::: inquiry {self.id_} received')
        return utils_app.success_response(self._to_ui(), message='Message sent successfully', status_code=http201)

    @utils_app.log_start_finish
    def endpoint_get_inquiry(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_update_inquiry(self, context: RequestContext) -> Response:
        body = context.body
        if 'status' in body:
            self.status = utils_data.validate_choice(body['status'], INQUIRY_STATUSES, 'status')
        if 'notes' in body:
            self.notes = body['notes']
        self.updated_by = context.identity.user_id
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Inquiry updated successfully')

    @utils_app.log_start_finish
    def endpoint_delete_inquiry(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(None, message='Inquiry deleted successfully')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(inquiry_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'name': self.name,
            'email': self.email,
            'subject': self.subject,
            'message': self.message,
            'status': self.status,
            'notes': self.notes,
            'updated_by': self.updated_by,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


def list_inquiries() -> List[Inquiry]:
    records = utils_db.query_partition(keys_structure.inquiries_pk)
    return sorted((Inquiry(**record) for record in records), key=lambda i: i.date_created, reverse=True)


@utils_app.log_start_finish
def endpoint_list_inquiries(context: RequestContext) -> Response:
    inquiries = [inquiry._to_ui() for inquiry in list_inquiries()]
    return utils_app.success_response(inquiries, count=len(inquiries))
