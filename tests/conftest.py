"""
Shared fakes for the clone tests.

FakeDynamoDB implements just enough of the low-level client (segmented scan
with Limit/ExclusiveStartKey, BatchWriteItem with UnprocessedItems, and the
table metadata calls) to drive the engines without AWS. FakeClock replaces
the monotonic clock so time budgets are deterministic.
"""

import io
import zlib
from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from dynamodb_clone.deadline import Deadline
from dynamodb_clone.logs import JobLogger
from dynamodb_clone.shard_store import S3ShardStore


def client_error(code, operation='Scan', message='boom'):
    return ClientError({'Error': {'Code': code, 'Message': message}}, operation)


def throttle(operation='Scan'):
    return client_error('ProvisionedThroughputExceededException', operation, 'slow down')


def make_item(n):
    return {'pk': {'S': f"item-{n:04d}"}, 'n': {'N': str(n)}, 'tags': {'SS': ['a', f"t{n % 3}"]}}


class FakeClock:

    def __init__(self, now=0.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def deadline(self, seconds):
        return Deadline.after(seconds, clock=self, sleeper=self.sleep)


class FakeWaiter:

    def __init__(self):
        self.calls = []

    def wait(self, **kwargs):
        self.calls.append(kwargs)


class FakeDynamoDB:

    def __init__(self, clock=None):
        self.clock = clock
        self.tables = {}
        self.descriptions = {}
        self.scan_calls = []
        self.write_calls = []
        # each entry is an exception to raise or an int count of requests to leave unprocessed
        self.scan_script = []
        self.write_script = []
        self.scan_cost = 0.0
        self.write_cost = 0.0
        self.waiter = FakeWaiter()

    def add_table(self, name, items=(), billing='PAY_PER_REQUEST'):
        self.tables[name] = {}
        self.descriptions[name] = {
            'Table': {
                'TableName': name,
                'KeySchema': [{'AttributeName': 'pk', 'KeyType': 'HASH'}],
                'AttributeDefinitions': [{'AttributeName': 'pk', 'AttributeType': 'S'}],
                'BillingModeSummary': {'BillingMode': billing},
                'ProvisionedThroughput': {'ReadCapacityUnits': 0, 'WriteCapacityUnits': 0},
                'ItemCount': len(items),
            }
        }
        for item in items:
            self.tables[name][item['pk']['S']] = item
        return self.tables[name]

    def _table(self, name, operation):
        if name not in self.tables:
            raise client_error('ResourceNotFoundException', operation, f"Requested resource not found: {name}")
        return self.tables[name]

    # table metadata

    def describe_table(self, TableName):
        self._table(TableName, 'DescribeTable')
        return {**self.descriptions[TableName], 'ResponseMetadata': {'HTTPStatusCode': 200}}

    def create_table(self, TableName, **kwargs):
        if TableName in self.tables:
            raise client_error('ResourceInUseException', 'CreateTable', f"Table already exists: {TableName}")
        self.tables[TableName] = {}
        self.descriptions[TableName] = {'Table': {'TableName': TableName, **kwargs}}
        return {'TableDescription': {'TableName': TableName, 'TableStatus': 'CREATING'}}

    def get_waiter(self, name):
        assert name == 'table_exists'
        return self.waiter

    # data plane

    def scan(self, TableName, Segment, TotalSegments, Limit, ExclusiveStartKey=None):
        self.scan_calls.append({'TableName': TableName, 'Segment': Segment, 'TotalSegments': TotalSegments,
                                'Limit': Limit, 'ExclusiveStartKey': ExclusiveStartKey})
        if self.clock is not None:
            self.clock.advance(self.scan_cost)
        if self.scan_script:
            step = self.scan_script.pop(0)
            if isinstance(step, Exception):
                raise step
        table = self._table(TableName, 'Scan')

        keys = sorted(k for k in table if zlib.crc32(k.encode()) % TotalSegments == Segment)
        if ExclusiveStartKey is not None:
            keys = [k for k in keys if k > ExclusiveStartKey['pk']['S']]
        page = keys[:Limit]
        response = {'Items': [table[k] for k in page], 'Count': len(page)}
        # like DynamoDB, a full page always carries a cursor, even when nothing follows
        if len(page) == Limit:
            response['LastEvaluatedKey'] = {'pk': {'S': page[-1]}}
        return response

    def batch_write_item(self, RequestItems):
        (table_name, requests), = RequestItems.items()
        self.write_calls.append(list(requests))
        if self.clock is not None:
            self.clock.advance(self.write_cost)
        unprocessed_count = 0
        if self.write_script:
            step = self.write_script.pop(0)
            if isinstance(step, Exception):
                raise step
            unprocessed_count = step
        table = self._table(table_name, 'BatchWriteItem')

        accepted = requests[:len(requests) - unprocessed_count]
        for request in accepted:
            item = request['PutRequest']['Item']
            table[item['pk']['S']] = item
        unprocessed = requests[len(accepted):]
        return {'UnprocessedItems': {table_name: unprocessed} if unprocessed else {}}


class FakeS3:

    def __init__(self):
        self.objects = {}
        self.put_calls = []

    def put_object(self, Bucket, Key, Body):
        self.put_calls.append(Key)
        self.objects[(Bucket, Key)] = bytes(Body)
        return {'ETag': '"etag"'}

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise client_error('NoSuchKey', 'GetObject', 'The specified key does not exist.')
        return {'Body': io.BytesIO(self.objects[(Bucket, Key)])}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dynamodb(clock):
    return FakeDynamoDB(clock)


@pytest.fixture
def s3():
    return FakeS3()


@pytest.fixture
def store(s3):
    return S3ShardStore(s3, 'clone-staging')


@pytest.fixture
def log():
    return JobLogger.for_request('test-request')


@pytest.fixture
def lambda_context():
    return SimpleNamespace(aws_request_id='req-123', get_remaining_time_in_millis=lambda: 60000)
