import logging

import ulid

from dynamodb_clone.errors import BACKEND_ERRORS, CloneError

logger = logging.getLogger(__name__)

SCHEMA_OBJECT = 'schema.json'


def new_shard_id() -> str:
    """Globally unique, time-ordered shard identifier (ULID)."""
    return str(ulid.new())


def shard_key(table_name, shard_id):
    return f"{table_name}/{shard_id}.json"


def schema_key(table_name):
    return f"{table_name}/{SCHEMA_OBJECT}"


class S3ShardStore:
    """Immutable shard objects under <table>/<shard id>.json in one bucket."""

    def __init__(self, s3_client, bucket):
        self.s3 = s3_client
        self.bucket = bucket

    def _put(self, key, body: bytes):
        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=body)
        except BACKEND_ERRORS as e:
            raise CloneError.from_backend_error(e, f"unable to upload {key} to {self.bucket}") from e
        logger.info(f"successfully uploaded {key} to {self.bucket}")

    def _get(self, key) -> bytes:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
            body = response['Body']
            try:
                return body.read()
            finally:
                body.close()
        except BACKEND_ERRORS as e:
            raise CloneError.from_backend_error(e, f"unable to download s3://{self.bucket}/{key}") from e

    def put(self, table_name, shard_id, body: bytes):
        self._put(shard_key(table_name, shard_id), body)

    def get(self, table_name, shard_id) -> bytes:
        return self._get(shard_key(table_name, shard_id))

    def put_schema(self, table_name, body: bytes):
        self._put(schema_key(table_name), body)

    def get_schema(self, table_name) -> bytes:
        return self._get(schema_key(table_name))
