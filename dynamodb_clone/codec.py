"""
Shard content codec.

A shard is newline-delimited JSON, one record per line. Two layouts:

    dynamodb  {"Item": {"pk": {"S": "a"}, "n": {"N": "1.50"}}}   (default)
    plain     {"pk": "a", "n": 1.5}

The typed layout keeps every DynamoDB type exactly. The plain layout is
easier to read but folds sets into lists, binary into base64 strings and
numbers into JSON numbers.
"""

import base64
import enum
import json
from decimal import Decimal

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from dynamodb_clone.errors import CloneError, ErrorKind


class ShardFormat(enum.Enum):
    DYNAMODB = 'dynamodb'
    PLAIN = 'plain'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls((value or cls.DYNAMODB.value).lower())
        except ValueError:
            raise CloneError(ErrorKind.CONFIG, f"unknown shard format {value!r}")


def _b64(data):
    return base64.b64encode(bytes(data)).decode('ascii')


def to_json_safe(value):
    """Attribute value (client shape) -> JSON-serializable attribute value."""
    (tag, inner), = value.items()
    if tag == 'B':
        return {'B': _b64(inner)}
    if tag == 'BS':
        return {'BS': [_b64(v) for v in inner]}
    if tag == 'M':
        return {'M': {k: to_json_safe(v) for k, v in inner.items()}}
    if tag == 'L':
        return {'L': [to_json_safe(v) for v in inner]}
    return {tag: inner}


def from_json_safe(value):
    (tag, inner), = value.items()
    if tag == 'B':
        return {'B': base64.b64decode(inner)}
    if tag == 'BS':
        return {'BS': [base64.b64decode(v) for v in inner]}
    if tag == 'M':
        return {'M': {k: from_json_safe(v) for k, v in inner.items()}}
    if tag == 'L':
        return {'L': [from_json_safe(v) for v in inner]}
    return {tag: inner}


def encode_item(item):
    return {k: to_json_safe(v) for k, v in item.items()}


def decode_item(item):
    return {k: from_json_safe(v) for k, v in item.items()}


def _plain_default(obj):
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if isinstance(obj, Binary):
        return _b64(obj.value)
    if isinstance(obj, (bytes, bytearray)):
        return _b64(obj)
    raise TypeError(f"unable to encode {type(obj).__name__}")


def encode_records(items, fmt=ShardFormat.DYNAMODB) -> bytes:
    """Serialize a page of scanned items into shard bytes."""
    fmt = ShardFormat.parse(fmt)
    lines = []
    try:
        if fmt is ShardFormat.DYNAMODB:
            for item in items:
                lines.append(json.dumps({'Item': encode_item(item)}, separators=(',', ':')))
        else:
            deserializer = TypeDeserializer()
            for item in items:
                record = {k: deserializer.deserialize(v) for k, v in item.items()}
                lines.append(json.dumps(record, default=_plain_default, separators=(',', ':')))
    except (TypeError, ValueError) as e:
        raise CloneError(ErrorKind.CODEC, f"unable to encode record: {e}") from e
    return ''.join(line + '\n' for line in lines).encode('utf-8')


def decode_records(data: bytes, fmt=ShardFormat.DYNAMODB):
    """Parse shard bytes back into client-shaped items, in file order."""
    fmt = ShardFormat.parse(fmt)
    serializer = TypeSerializer()
    try:
        text = data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise CloneError(ErrorKind.CODEC, f"shard is not valid UTF-8: {e}") from e

    items = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            if fmt is ShardFormat.DYNAMODB:
                items.append(decode_item(json.loads(line)['Item']))
            else:
                record = json.loads(line, parse_float=Decimal)
                items.append({k: serializer.serialize(v) for k, v in record.items()})
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CloneError(ErrorKind.CODEC, f"unable to decode record on line {lineno}: {e}") from e
    return items
