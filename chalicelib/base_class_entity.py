from datetime import datetime, timezone
from typing import Tuple, Dict, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils import db as utils_db, exceptions
from chalicelib.utils.data import substitute_keys
from chalicelib.utils.logger import logger


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class EntityBase:
    pk = None
    sk = None

    not_found_exception = exceptions.RecordNotFound

    required_immutable_fields_validation = {}
    required_mutable_fields_validation = {}
    optional_fields_validation = {}

    def __init__(self, id_):
        self.id_: str = id_
        self.record_type: str = ''
        self.db_record: Dict = {}
        self.updated_by: Optional[str] = None

    def _get_pk_sk(self) -> Tuple[str, str]:
        """
        Should be re-implemented in each child class
        :return:
        partkey, sortkey of db item for child
        """
        return self.pk, self.sk

    def _get_db_item(self) -> Dict:
        try:
            return utils_db.get_db_item(*self._get_pk_sk())
        except exceptions.RecordNotFound:
            raise self.not_found_exception()

    def _to_dict(self) -> Dict:
        """
        Should be re-implemented in each child class
        :return:
        dict of item's attributes
        """
        return {
            'id_': self.id_,
            'record_type': self.record_type
        }

    def _init_db_record(self) -> None:
        """
        New DB record initialization
        :return:
        None
        """
        pk, sk = self._get_pk_sk()
        self.db_record = {
            'partkey': pk,
            'sortkey': sk,
            'record_type': self.record_type,
            **{key: value for key, value in self._to_dict().items() if value is not None}
        }

    @staticmethod
    def raise_validation_error(key):
        message = f'Validation error occurred while validating field={key}'
        logger.error(f"raise_validation_error ::: {message}")
        raise exceptions.ValidationError(message, field=key.rstrip('_'))

    def _validate_mandatory_fields(self):
        """
        Validates mandatory fields if all fields have correct type to put to db
        Raise ValidationError in case if a field is not valid
        """
        for key, validator_func in {
            **self.required_immutable_fields_validation,
            **self.required_mutable_fields_validation
        }.items():
            if validator_func(self.db_record.get(key)) is False:
                self.raise_validation_error(key)

    def _validate_optional_fields(self):
        """
        Validates optional fields if all fields have correct type to put to db
        Raise ValidationError in case if a field is not valid
        """
        for key, validator_func in self.optional_fields_validation.items():
            if self.db_record.get(key) is not None and validator_func(self.db_record.get(key)) is False:
                self.raise_validation_error(key)

    def _get_validated_update_dict(self) -> Dict:
        """
        Validates fields for update
        Raises ValidationError for a present field with a wrong value
        :return:
        Clean dict for update (fields that are not updatable or not set are excluded)
        """
        update_dict = self._to_dict()
        clean_dict = {}
        validation_dict = {**self.required_mutable_fields_validation, **self.optional_fields_validation}
        for key, value in update_dict.items():
            if key not in validation_dict or value is None:
                continue
            if validation_dict[key](value) is not True:
                self.raise_validation_error(key)
            clean_dict[key] = value
        return clean_dict

    def _validate_new_record(self) -> None:
        """ Builds the record and runs the create checks without writing it """
        self._init_db_record()
        self._validate_mandatory_fields()
        self._validate_optional_fields()

    def _create_db_record(self, unique: bool = True) -> None:
        """
        Creates entity db record
        unique=True refuses to overwrite an existing record with the same key
        """
        self._validate_new_record()
        condition = Attr('partkey').not_exists() if unique else None
        try:
            utils_db.put_db_record(self.db_record, condition_expression=condition)
        except ClientError as error:
            if utils_db.is_condition_failed(error):
                raise exceptions.AlreadyExists(f'{self.record_type} {self.id_} already exists')
            raise
        logger.info(f"_create_db_record ::: {self.record_type=} {self.id_=} {self.db_record.get('partkey')=} "
                    f"{self.db_record.get('sortkey')=} successfully created")

    def _update_fields_whitelist(self) -> List:
        return [*self.required_mutable_fields_validation.keys(), *self.optional_fields_validation.keys()]

    def _update_db_record(self) -> Dict:
        """
        Updates entity db record, the record must exist
        :return:
        the stored record after the update
        """
        pk, sk = self._get_pk_sk()
        self.date_updated = now_iso()
        update_dict = self._get_validated_update_dict()
        try:
            record = utils_db.update_db_record(
                key={'partkey': pk, 'sortkey': sk},
                update_body=update_dict,
                allowed_attrs_to_update=self._update_fields_whitelist(),
                allowed_attrs_to_delete=[],
                condition_expression=Attr('partkey').exists()
            )
        except ClientError as error:
            if utils_db.is_condition_failed(error):
                raise self.not_found_exception()
            raise
        logger.info(f"_update_db_record ::: {self.record_type=} "
                    f"{self.id_=} {pk=} {sk=} successfully updated")
        return record

    def _delete_db_record(self) -> None:
        pk, sk = self._get_pk_sk()
        try:
            utils_db.get_gen_table().delete_item(
                Key={'partkey': pk, 'sortkey': sk},
                ConditionExpression=Attr('partkey').exists()
            )
        except ClientError as error:
            if utils_db.is_condition_failed(error):
                raise self.not_found_exception()
            raise
        logger.info(f"_delete_db_record ::: {self.record_type=} {self.id_=} successfully deleted")

    def _to_ui(self) -> Dict:
        item = self._to_dict()
        substitute_keys(dict_to_process=item, base_keys=from_db)
        return item
