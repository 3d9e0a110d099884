"""
Table metadata export/import.

Only the base table is cloned: key schema, the attribute definitions those
keys need, and the billing mode. Indexes, streams and TTL are not copied.
"""

import json
from dataclasses import dataclass
from typing import List, Union

from botocore.exceptions import WaiterError

from dynamodb_clone.errors import BACKEND_ERRORS, CloneError, ErrorKind, error_code


@dataclass(frozen=True)
class KeyElement:
    name: str
    key_type: str  # HASH or RANGE


@dataclass(frozen=True)
class AttributeDefinition:
    name: str
    attribute_type: str  # S, N or B


@dataclass(frozen=True)
class OnDemandBilling:
    mode = 'PAY_PER_REQUEST'


@dataclass(frozen=True)
class ProvisionedBilling:
    read_capacity: int
    write_capacity: int
    mode = 'PROVISIONED'


Billing = Union[OnDemandBilling, ProvisionedBilling]


@dataclass(frozen=True)
class TableSchema:
    key_schema: List[KeyElement]
    attribute_definitions: List[AttributeDefinition]
    billing: Billing

    @classmethod
    def from_description(cls, description):
        """Build from a DescribeTable response (or its stored JSON)."""
        table = description.get('Table') if isinstance(description, dict) else None
        if not isinstance(table, dict):
            raise CloneError(ErrorKind.CODEC, "unknown table schema")
        try:
            key_schema = [KeyElement(k['AttributeName'], k['KeyType']) for k in table['KeySchema']]
            definitions = [AttributeDefinition(a['AttributeName'], a['AttributeType'])
                           for a in table['AttributeDefinitions']]
        except (KeyError, TypeError) as e:
            raise CloneError(ErrorKind.CODEC, f"malformed table schema: missing {e}") from e
        return cls(key_schema, definitions, _billing(table))

    def create_table_request(self, table_name):
        key_names = {k.name for k in self.key_schema}
        request = {
            'TableName': table_name,
            'KeySchema': [{'AttributeName': k.name, 'KeyType': k.key_type} for k in self.key_schema],
            'AttributeDefinitions': [{'AttributeName': a.name, 'AttributeType': a.attribute_type}
                                     for a in self.attribute_definitions if a.name in key_names],
            'BillingMode': self.billing.mode,
        }
        if isinstance(self.billing, ProvisionedBilling):
            request['ProvisionedThroughput'] = {
                'ReadCapacityUnits': self.billing.read_capacity,
                'WriteCapacityUnits': self.billing.write_capacity,
            }
        return request


def _billing(table):
    throughput = table.get('ProvisionedThroughput') or {}
    reads = int(throughput.get('ReadCapacityUnits') or 0)
    writes = int(throughput.get('WriteCapacityUnits') or 0)
    mode = (table.get('BillingModeSummary') or {}).get('BillingMode')
    if mode is None:
        # tables created before on-demand existed carry no summary
        mode = 'PROVISIONED' if reads or writes else 'PAY_PER_REQUEST'
    if mode == 'PROVISIONED':
        return ProvisionedBilling(read_capacity=reads, write_capacity=writes)
    if mode == 'PAY_PER_REQUEST':
        return OnDemandBilling()
    raise CloneError(ErrorKind.CODEC, f"unknown billing mode {mode!r}")


def export_schema(dynamodb, store, table, log):
    log.info("pulling table schema")
    try:
        description = dynamodb.describe_table(TableName=table)
    except BACKEND_ERRORS as e:
        if error_code(e) == 'ResourceNotFoundException':
            raise CloneError(ErrorKind.BACKEND, f"table {table} not found",
                             code='ResourceNotFoundException') from e
        raise CloneError.from_backend_error(e, f"describe of {table} failed") from e

    description.pop('ResponseMetadata', None)
    # fail here rather than at import time on a description we can't rebuild
    TableSchema.from_description(description)

    log.info(f"storing schema for {table}")
    store.put_schema(table, json.dumps(description, default=str).encode('utf-8'))
    return True


def load_schema(store, table):
    try:
        description = json.loads(store.get_schema(table))
    except ValueError as e:
        raise CloneError(ErrorKind.CODEC, f"unable to unmarshal schema for {table}: {e}") from e
    return TableSchema.from_description(description)


def import_schema(dynamodb, store, source_table, destination_table, log, if_exists='fail',
                  waiter_config=None):
    """Create `destination_table` from the stored schema of `source_table`.

    Returns True when the table was created, False when an existing table
    was kept (if_exists='skip').
    """
    log.info("pulling table schema from storage")
    schema = load_schema(store, source_table)

    if isinstance(schema.billing, ProvisionedBilling):
        log.warning("warning provisioned throughput may slow down restore",
                    reads=schema.billing.read_capacity, writes=schema.billing.write_capacity)

    log.info(f"creating table {destination_table} with retrieved schema")
    try:
        dynamodb.create_table(**schema.create_table_request(destination_table))
    except BACKEND_ERRORS as e:
        if error_code(e) == 'ResourceInUseException':
            if if_exists == 'skip':
                log.info(f"Table {destination_table} already exists. Skipping creation.")
                return False
            raise CloneError(ErrorKind.BACKEND, f"table {destination_table} already exists",
                             code='ResourceInUseException') from e
        raise CloneError.from_backend_error(e, f"create of {destination_table} failed") from e

    try:
        dynamodb.get_waiter('table_exists').wait(TableName=destination_table,
                                                 WaiterConfig=waiter_config or {})
    except WaiterError as e:
        raise CloneError(ErrorKind.BACKEND, f"failed to wait for {destination_table} to be created: {e}") from e

    log.info("create completed")
    return True
