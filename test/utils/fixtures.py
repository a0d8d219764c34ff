import os

os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_SECURITY_TOKEN', 'testing')
os.environ.setdefault('AWS_SESSION_TOKEN', 'testing')
os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'
os.environ['AWS_REGION'] = 'us-east-1'
os.environ.pop('MAIN_BOTO_REGION', None)
os.environ['ENDPOINT_URL'] = ''
os.environ['GEN_TABLE_NAME'] = 'cafe-ordering-gen-test'
os.environ['FILES_BUCKET_NAME'] = 'cafe-ordering-files-test'
os.environ['JWT_SECRET'] = 'test-secret'
os.environ['ORDER_EMAIL_FROM'] = 'orders@cafe.example.com'
os.environ['ALL_ORDERS_EMAIL'] = 'kitchen@cafe.example.com'

import boto3
import pytest
from chalice.config import Config
from chalice.local import LocalGateway
from moto import mock_aws

from app import app
from chalicelib.constants import constants, keys_structure
from chalicelib.users import User
from chalicelib.utils import auth as utils_auth, db
from chalicelib.utils.logger import logger


def create_gen_table():
    boto3.resource('dynamodb').create_table(
        TableName=constants.gen_table_name(),
        KeySchema=[
            {'AttributeName': 'partkey', 'KeyType': 'HASH'},
            {'AttributeName': 'sortkey', 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'partkey', 'AttributeType': 'S'},
            {'AttributeName': 'sortkey', 'AttributeType': 'S'},
            {'AttributeName': 'user_orders_key', 'AttributeType': 'S'}
        ],
        GlobalSecondaryIndexes=[{
            'IndexName': keys_structure.user_orders_index,
            'KeySchema': [
                {'AttributeName': 'user_orders_key', 'KeyType': 'HASH'},
                {'AttributeName': 'sortkey', 'KeyType': 'RANGE'}
            ],
            'Projection': {'ProjectionType': 'ALL'}
        }],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def aws():
    with mock_aws():
        create_gen_table()
        boto3.client('s3').create_bucket(Bucket=constants.files_bucket())
        boto3.client('ses', region_name='us-east-1').verify_email_identity(EmailAddress=constants.ORDER_EMAIL_FROM)
        db.reset_gen_table()
        logger.info('aws ::: mocked table, bucket and ses identity are ready')
        yield
        db.reset_gen_table()


@pytest.fixture
def chalice_gateway(aws) -> LocalGateway:
    yield LocalGateway(app, Config.create(chalice_stage='test'))


def create_test_user(role: str = 'customer', email: str = None, password: str = 'secret123'):
    """ Creates a user straight in the table and returns (user_id, token) """
    user = User.init_new({
        'first_name': role.capitalize(),
        'last_name': 'Tester',
        'email': email or f'{role}@cafe.example.com',
        'password': password
    }, role=role).create()
    return user.id_, utils_auth.issue_token(user.id_, user.role)


@pytest.fixture
def customer(aws):
    return create_test_user('customer')


@pytest.fixture
def other_customer(aws):
    return create_test_user('customer', email='other.customer@cafe.example.com')


@pytest.fixture
def worker(aws):
    return create_test_user('worker')


@pytest.fixture
def admin(aws):
    return create_test_user('admin')
