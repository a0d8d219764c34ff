from typing import Dict, List, Tuple

from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import RequestContext

SECTIONS = ('hero', 'features', 'menuHighlights', 'gallery', 'catering', 'testimonials', 'newsletter', 'footer')
CONTENT_FIELDS = ('title', 'subtitle', 'description', 'button_text', 'button_link', 'items', 'settings')


class HomePageContent(EntityBase):
    pk = keys_structure.home_content_pk
    sk = keys_structure.home_content_sk

    not_found_exception = exceptions.ContentNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: x in SECTIONS
    }

    required_mutable_fields_validation = {
        'items': lambda x: isinstance(x, list) and all(isinstance(item, dict) for item in x),
        'settings': lambda x: isinstance(x, dict),
        'updated_by': lambda x: isinstance(x, str),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'title': lambda x: isinstance(x, str),
        'subtitle': lambda x: isinstance(x, str),
        'description': lambda x: isinstance(x, str),
        'button_text': lambda x: isinstance(x, str),
        'button_link': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.title: str = kwargs.get('title')
        self.subtitle: str = kwargs.get('subtitle')
        self.description: str = kwargs.get('description')
        self.button_text: str = kwargs.get('button_text')
        self.button_link: str = kwargs.get('button_link')
        self.items: List[Dict] = kwargs.get('items') or []
        self.settings: Dict = kwargs.get('settings') or {}
        self.updated_by: str = kwargs.get('updated_by')
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'home_content'

    @property
    def section(self) -> str:
        return self.id_

    @classmethod
    def init_by_section(cls, section: str):
        c = cls(section)
        c.__init__(**c._get_db_item())
        return c

    @utils_app.log_start_finish
    def endpoint_get_content(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_delete_content(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(None, message=f'Content for section {self.section} deleted')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(section=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'section': self.id_,
            'title': self.title,
            'subtitle': self.subtitle,
            'description': self.description,
            'button_text': self.button_text,
            'button_link': self.button_link,
            'items': self.items,
            'settings': self.settings,
            'updated_by': self.updated_by,
            'date_updated': self.date_updated
        }


@utils_app.log_start_finish
def endpoint_upsert_content(context: RequestContext) -> Response:
    body = context.body
    utils_data.require_fields(body, 'section')
    section = utils_data.validate_choice(body['section'], SECTIONS, 'section')
    content = HomePageContent(
        id_=section,
        updated_by=context.identity.user_id,
        **{field: body[field] for field in CONTENT_FIELDS if field in body}
    )
    content._create_db_record(unique=False)
    return utils_app.success_response(content._to_ui(), message=f'Content for section {section} saved')


@utils_app.log_start_finish
def endpoint_list_content(context: RequestContext) -> Response:
    records = utils_db.query_partition(keys_structure.home_content_pk)
    content = {record['sortkey']: HomePageContent(**record)._to_ui() for record in records}
    return utils_app.success_response(content)
