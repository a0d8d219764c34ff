"""
Authorization gate.

Every protected route builds a ``RequestContext`` with ``authenticate`` before any
business logic runs; role-gated routes then call ``authorize`` with the identity the
gate resolved. The identity is an explicit, immutable value passed down the call
chain instead of attributes set on the chalice request.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional
from uuid import uuid4

import jwt
from chalice.app import Request
from werkzeug.security import check_password_hash, generate_password_hash

from chalicelib.constants import constants, keys_structure
from chalicelib.utils import db as utils_db, exceptions
from chalicelib.utils.logger import logger, log_request

BEARER_PREFIX = 'Bearer '


class Role(str, Enum):
    CUSTOMER = 'customer'
    WORKER = 'worker'
    ADMIN = 'admin'


STAFF_ROLES = frozenset({Role.ADMIN, Role.WORKER})


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role
    email: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass
class RequestContext:
    request: Request
    request_id: str
    identity: Optional[Identity] = None
    body: Dict = field(default_factory=dict)

    @property
    def query_params(self) -> Dict:
        return self.request.query_params or {}


def allowed_roles(*roles) -> FrozenSet[Role]:
    """
    Builds the set of roles a route accepts. Called when routes are declared,
    so an unknown role name fails at import time instead of on a request.
    """
    if not roles:
        raise ValueError('At least one role must be allowed')
    try:
        return frozenset(Role(role) for role in roles)
    except ValueError as error:
        raise ValueError(f'Unknown role in route configuration: {error}') from error


def start_request(request: Request) -> RequestContext:
    lambda_context = getattr(request, 'lambda_context', None)
    aws_request_id = getattr(lambda_context, 'aws_request_id', None) or str(uuid4())
    request_id = aws_request_id.split('-')[-1]
    logger.current_request_id = request_id
    log_request(request)
    return RequestContext(request=request, request_id=request_id)


def issue_token(user_id: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        'sub': user_id,
        'role': role,
        'iat': now,
        'exp': now + timedelta(days=constants.jwt_expires_days())
    }
    return jwt.encode(payload, constants.jwt_secret(), algorithm=constants.JWT_ALGORITHM)


def get_bearer_token(request: Request) -> str:
    header = request.headers.get('authorization') or ''
    if not header.startswith(BEARER_PREFIX) or not header[len(BEARER_PREFIX):].strip():
        raise exceptions.MissingToken()
    return header[len(BEARER_PREFIX):].strip()


def decode_token(token: str) -> Dict:
    try:
        return jwt.decode(token, constants.jwt_secret(), algorithms=[constants.JWT_ALGORITHM],
                          options={'require': ['sub', 'exp']})
    except jwt.InvalidTokenError as error:
        logger.warning(f'decode_token ::: token rejected, reason={error.__class__.__name__}: {error}')
        raise exceptions.InvalidToken()


def load_identity(user_id: str) -> Identity:
    try:
        user_record = utils_db.get_db_item(
            partkey=keys_structure.users_pk,
            sortkey=keys_structure.users_sk.format(user_id=user_id)
        )
    except exceptions.RecordNotFound:
        logger.warning(f'load_identity ::: token subject {user_id=} has no user record')
        raise exceptions.UnknownSubject()
    return Identity(user_id=user_id, role=Role(user_record['role']), email=user_record.get('email'))


def authenticate(request: Request) -> RequestContext:
    context = start_request(request)
    claims = decode_token(get_bearer_token(request))
    context.identity = load_identity(claims['sub'])
    logger.info(f'authenticate ::: SUCCESS, user_id={context.identity.user_id}, role={context.identity.role.value}')
    return context


def authorize(identity: Identity, roles: FrozenSet[Role]) -> Identity:
    if identity.role not in roles:
        required = ', '.join(sorted(role.value for role in roles))
        logger.warning(f'authorize ::: role {identity.role.value} rejected, required one of {required}')
        raise exceptions.RoleNotAuthorized(
            f"User role '{identity.role.value}' is not authorized to access this route, required role: {required}"
        )
    return identity


def require_owner_or_staff(identity: Identity, owner_id: Optional[str], message: str) -> None:
    if identity.is_staff or identity.user_id == owner_id:
        return
    raise exceptions.AccessDenied(message)


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def password_matches(password_hash: Optional[str], password: str) -> bool:
    return bool(password_hash) and check_password_hash(password_hash, password)
