import tempfile
from uuid import uuid4

from chalicelib.constants.constants import files_bucket
from chalicelib.utils.boto_clients import s3_client
from chalicelib.utils.logger import logger


def upload_file_to_s3(body: bytes, file_path: str, content_type: str) -> str:
    with tempfile.TemporaryFile() as tf:
        tf.write(body)
        tf.seek(0)
        s3_client().upload_fileobj(tf, files_bucket(), file_path, ExtraArgs={'ContentType': content_type})
    logger.info(f'upload_file_to_s3:: SUCCESS, file_path:{file_path} ')
    return file_path


def build_file_path(folder: str, owner_id: str, file_name: str) -> str:
    extension = file_name.rsplit('.', 1)[-1].lower() if '.' in (file_name or '') else 'bin'
    return f'{folder}/{owner_id}/{uuid4()}.{extension}'


def delete_file_from_s3(file_path: str) -> None:
    s3_client().delete_object(Bucket=files_bucket(), Key=file_path)
    logger.info(f'delete_file_from_s3:: SUCCESS, file_path:{file_path} ')
