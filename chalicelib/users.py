from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http201
from chalicelib.utils import app as utils_app, auth as utils_auth, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import RequestContext, Role
from chalicelib.utils.logger import logger

PROFILE_FIELDS = ('first_name', 'last_name', 'phone')


class User(EntityBase):
    pk = keys_structure.users_pk
    sk = keys_structure.users_sk

    not_found_exception = exceptions.UserNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'email': lambda x: isinstance(x, str),
        'password_hash': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'role': lambda x: x in {role.value for role in Role},
        'first_name': lambda x: isinstance(x, str) and len(x) > 0,
        'last_name': lambda x: isinstance(x, str) and len(x) > 0,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'phone': lambda x: isinstance(x, str),
        'last_login': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.email: str = kwargs.get('email')
        self.password_hash: str = kwargs.get('password_hash')
        self.role: str = kwargs.get('role')
        self.first_name: str = kwargs.get('first_name')
        self.last_name: str = kwargs.get('last_name')
        self.phone: Optional[str] = kwargs.get('phone')
        self.last_login: Optional[str] = kwargs.get('last_login')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'user'

    @classmethod
    def init_by_id(cls, id_):
        c = cls(id_)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_by_db_record(cls, record: Dict):
        return cls(**record)

    @classmethod
    def find_by_email(cls, email: str):
        records = utils_db.query_partition(cls.pk, filter_expression=Attr('email').eq(email))
        return cls.init_by_db_record(records[0]) if records else None

    @classmethod
    def init_new(cls, body: Dict, role: str = Role.CUSTOMER.value):
        utils_data.require_fields(body, 'first_name', 'last_name', 'email', 'password')
        email = utils_data.validate_email(body['email'])
        password = utils_data.validate_password(body['password'])
        phone = utils_data.validate_phone(body['phone']) if body.get('phone') else None
        utils_data.validate_choice(role, [r.value for r in Role], 'role')
        return cls(
            id_=str(uuid4()),
            email=email,
            password_hash=utils_auth.hash_password(password),
            role=role,
            first_name=body['first_name'],
            last_name=body['last_name'],
            phone=phone
        )

    def create(self):
        if User.find_by_email(self.email) is not None:
            raise exceptions.AlreadyExists('Email already registered')
        self._create_db_record()
        logger.info(f'create ::: user {self.id_} with role {self.role} created')
        return self

    def check_password(self, password: str) -> bool:
        return utils_auth.password_matches(self.password_hash, password)

    def touch_last_login(self):
        self.last_login = now_iso()
        self._update_db_record()

    def public_profile(self) -> Dict:
        return {'id': self.id_, 'first_name': self.first_name, 'last_name': self.last_name,
                'email': self.email, 'role': self.role}

    @utils_app.log_start_finish
    def endpoint_get_user(self) -> Response:
        return utils_app.success_response(self._to_ui())

    @utils_app.log_start_finish
    def endpoint_update_profile(self, body: Dict) -> Response:
        if body.get('phone'):
            utils_data.validate_phone(body['phone'])
        for field in PROFILE_FIELDS:
            if field in body:
                setattr(self, field, body[field])
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Profile updated successfully')

    @utils_app.log_start_finish
    def endpoint_change_password(self, body: Dict) -> Response:
        utils_data.require_fields(body, 'current_password', 'new_password')
        if not self.check_password(body['current_password']):
            raise exceptions.InvalidCredentials('Current password is incorrect')
        new_password = utils_data.validate_password(body['new_password'])
        pk, sk = self._get_pk_sk()
        utils_db.update_db_record(
            key={'partkey': pk, 'sortkey': sk},
            update_body={'password_hash': utils_auth.hash_password(new_password), 'date_updated': now_iso()},
            allowed_attrs_to_update=['password_hash', 'date_updated'],
            allowed_attrs_to_delete=[]
        )
        return utils_app.success_response(None, message='Password updated successfully')

    @utils_app.log_start_finish
    def endpoint_admin_update(self, body: Dict) -> Response:
        if 'role' in body:
            utils_data.validate_choice(body['role'], [r.value for r in Role], 'role')
            self.role = body['role']
        if body.get('phone'):
            utils_data.validate_phone(body['phone'])
        for field in PROFILE_FIELDS:
            if field in body:
                setattr(self, field, body[field])
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='User was successfully updated')

    @utils_app.log_start_finish
    def endpoint_delete_user(self, context: RequestContext) -> Response:
        if context.identity.user_id == self.id_:
            raise exceptions.ValidationError('Admins cannot delete their own account', field='id')
        self._delete_db_record()
        utils_db.delete_partition(keys_structure.carts_pk.format(user_id=self.id_))
        return utils_app.success_response(None, message='User was deleted successfully')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(user_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'email': self.email,
            'password_hash': self.password_hash,
            'role': self.role,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'last_login': self.last_login,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


@utils_app.log_start_finish
def endpoint_list_users(context: RequestContext) -> Response:
    role = context.query_params.get('role')
    filter_expression = Attr('role').eq(role) if role else None
    records: List[Dict] = utils_db.query_partition(keys_structure.users_pk, filter_expression=filter_expression)
    users = [User.init_by_db_record(record)._to_ui() for record in records]
    return utils_app.success_response(users, count=len(users))


@utils_app.log_start_finish
def endpoint_create_user(context: RequestContext) -> Response:
    role = context.body.get('role', Role.CUSTOMER.value)
    user = User.init_new(context.body, role=role).create()
    logger.info(f'endpoint_create_user ::: {context.identity.user_id} created user {user.id_} ({role})')
    return utils_app.success_response(user._to_ui(), status_code=http201)
