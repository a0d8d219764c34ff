import os
import boto3

from botocore.config import Config


def main_boto_region() -> str:
    return os.environ.get('MAIN_BOTO_REGION') or os.environ.get('AWS_DEFAULT_REGION', 'eu-central-1')


def aws_config_ddb() -> Config:
    return Config(retries={'max_attempts': 30}, region_name=os.environ.get('AWS_REGION', main_boto_region()))


# Clients are built on demand so that region/endpoint settings are read at call time.

def ses_client():
    # SES is available only in us-east-1 region, so region_name is hardcoded.
    return boto3.client('ses', config=Config(retries={'max_attempts': 30}, region_name='us-east-1'))


def s3_client():
    return boto3.client('s3', region_name=main_boto_region())
