import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import EndpointConnectionError

from conftest import client_error
from dynamodb_clone.errors import CloneError, ErrorKind
from dynamodb_clone.shard_store import S3ShardStore, new_shard_id, shard_key


def test_shard_ids_are_unique_and_sortable():
    ids = [new_shard_id() for _ in range(50)]
    assert len(set(ids)) == 50
    assert all(len(i) == 26 for i in ids)
    # ULIDs sort by creation time at millisecond granularity
    assert ids[0][:10] <= ids[-1][:10]


def test_key_layout():
    assert shard_key('users', '01HZX') == 'users/01HZX.json'


class TestS3ShardStore:

    def test_put_uploads_under_table_prefix(self):
        s3 = MagicMock()
        S3ShardStore(s3, 'staging').put('users', '01HZX', b'{}\n')
        s3.put_object.assert_called_once_with(Bucket='staging', Key='users/01HZX.json', Body=b'{}\n')

    def test_get_reads_and_closes_body(self):
        body = MagicMock()
        body.read.return_value = b'data'
        s3 = MagicMock()
        s3.get_object.return_value = {'Body': body}

        assert S3ShardStore(s3, 'staging').get('users', '01HZX') == b'data'
        s3.get_object.assert_called_once_with(Bucket='staging', Key='users/01HZX.json')
        body.close.assert_called_once()

    def test_schema_object(self):
        s3 = MagicMock()
        s3.get_object.return_value = {'Body': io.BytesIO(b'{"Table": {}}')}
        store = S3ShardStore(s3, 'staging')

        store.put_schema('users', b'{}')
        s3.put_object.assert_called_once_with(Bucket='staging', Key='users/schema.json', Body=b'{}')
        assert store.get_schema('users') == b'{"Table": {}}'

    @pytest.mark.parametrize('operation', ['put', 'get'])
    def test_s3_failures_are_fatal(self, operation):
        s3 = MagicMock()
        s3.put_object.side_effect = client_error('AccessDenied', 'PutObject')
        s3.get_object.side_effect = client_error('AccessDenied', 'GetObject')
        store = S3ShardStore(s3, 'staging')

        with pytest.raises(CloneError) as excinfo:
            if operation == 'put':
                store.put('users', 'x', b'')
            else:
                store.get('users', 'x')
        assert excinfo.value.kind is ErrorKind.BACKEND
        assert excinfo.value.code == 'AccessDenied'

    def test_transport_failure_is_fatal(self):
        s3 = MagicMock()
        s3.get_object.side_effect = EndpointConnectionError(endpoint_url='https://s3.amazonaws.com')

        with pytest.raises(CloneError) as excinfo:
            S3ShardStore(s3, 'staging').get('users', 'x')
        assert excinfo.value.kind is ErrorKind.BACKEND
        assert excinfo.value.code == 'EndpointConnectionError'
