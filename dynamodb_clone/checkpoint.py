"""
Checkpoint state threaded between invocations.

The orchestrator hands the last returned checkpoint back unchanged on every
call; the engines treat the incoming value as read-only and return a new
one. JSON keys match the job descriptor consumed by the handlers:

    {
      "region": "eu-west-1",
      "bucket": "clone-staging",
      "origtable": "users",
      "newtable": "users-copy",
      "dataexporterconfig": {"segment": 0, "totalsegments": 4, "limit": 10000},
      "dataexporter": {"processed": 0, "records": [], "lastkey": null, "complete": false},
      "dataimporterconfig": {"batchsize": 25},
      "dataimporter": {"processed": 0, "records": [], "complete": false}
    }
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from dynamodb_clone import config
from dynamodb_clone.codec import ShardFormat, decode_item, encode_item
from dynamodb_clone.errors import CloneError, ErrorKind


def _int(data, key):
    try:
        return int(data.get(key) or 0)
    except (TypeError, ValueError) as e:
        raise CloneError(ErrorKind.CONFIG, f"{key} must be an integer, got {data.get(key)!r}") from e


def _shard_list(value):
    # older single-shard descriptors carry a bare string
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


@dataclass(frozen=True)
class SegmentDescriptor:
    segment: int = 0
    total_segments: int = config.DEFAULT_TOTAL_SEGMENTS
    limit: int = config.DEFAULT_SCAN_LIMIT

    def __post_init__(self):
        if self.total_segments < 1:
            raise CloneError(ErrorKind.CONFIG, f"total segments must be >= 1, got {self.total_segments}")
        if not 0 <= self.segment < self.total_segments:
            raise CloneError(ErrorKind.CONFIG,
                             f"segment {self.segment} out of range for {self.total_segments} segments")
        if self.limit < 1:
            raise CloneError(ErrorKind.CONFIG, f"scan limit must be >= 1, got {self.limit}")

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        limit = _int(data, 'limit')
        total = _int(data, 'totalsegments')
        return cls(
            segment=_int(data, 'segment'),
            total_segments=total if total >= 1 else config.DEFAULT_TOTAL_SEGMENTS,
            limit=limit if limit >= 1 else config.DEFAULT_SCAN_LIMIT,
        )

    def to_dict(self):
        return {'segment': self.segment, 'totalsegments': self.total_segments, 'limit': self.limit}


@dataclass(frozen=True)
class ImportConfig:
    batch_size: int = config.DEFAULT_BATCH_SIZE

    @classmethod
    def from_dict(cls, data):
        size = _int(data or {}, 'batchsize')
        if size < 1:
            size = config.DEFAULT_BATCH_SIZE
        return cls(batch_size=min(size, config.MAX_BATCH_SIZE))

    def to_dict(self):
        return {'batchsize': self.batch_size}


@dataclass
class ExportCheckpoint:
    processed: int = 0
    shard_ids: List[str] = field(default_factory=list)
    continuation_key: Optional[Dict[str, Any]] = None
    complete: bool = False
    duration_ms: int = 0

    def copy(self):
        return replace(self, shard_ids=list(self.shard_ids),
                       continuation_key=dict(self.continuation_key) if self.continuation_key else None)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        lastkey = data.get('lastkey')
        try:
            continuation_key = decode_item(lastkey) if lastkey else None
        except (ValueError, TypeError, AttributeError) as e:
            raise CloneError(ErrorKind.CODEC, f"malformed continuation key: {e}") from e
        return cls(
            processed=_int(data, 'processed'),
            shard_ids=_shard_list(data.get('records')),
            continuation_key=continuation_key,
            complete=bool(data.get('complete')),
            duration_ms=_int(data, 'durationms'),
        )

    def to_dict(self):
        return {
            'processed': self.processed,
            'records': list(self.shard_ids),
            'lastkey': encode_item(self.continuation_key) if self.continuation_key else None,
            'durationms': self.duration_ms,
            'complete': self.complete,
        }


@dataclass
class ImportCheckpoint:
    processed: int = 0
    shard_ids: List[str] = field(default_factory=list)
    complete: bool = False
    duration_ms: int = 0

    def copy(self):
        return replace(self, shard_ids=list(self.shard_ids))

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            processed=_int(data, 'processed'),
            shard_ids=_shard_list(data.get('records')),
            complete=bool(data.get('complete')),
            duration_ms=_int(data, 'durationms'),
        )

    def to_dict(self):
        return {
            'processed': self.processed,
            'records': list(self.shard_ids),
            'durationms': self.duration_ms,
            'complete': self.complete,
        }


def merge_shard_ids(checkpoints):
    """Concatenate per-segment shard lists in segment order.

    `checkpoints` is a sequence of ExportCheckpoint indexed by segment.
    Order within a segment is kept as exported.
    """
    merged = []
    for checkpoint in checkpoints:
        merged.extend(checkpoint.shard_ids)
    return merged


@dataclass
class JobDescriptor:
    source_table: str
    bucket: str
    region: Optional[str] = None
    destination_table: Optional[str] = None
    segment: SegmentDescriptor = field(default_factory=SegmentDescriptor)
    import_config: ImportConfig = field(default_factory=ImportConfig)
    export: ExportCheckpoint = field(default_factory=ExportCheckpoint)
    import_: ImportCheckpoint = field(default_factory=ImportCheckpoint)
    shard_format: ShardFormat = ShardFormat.DYNAMODB

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        source = data.get('origtable')
        bucket = data.get('bucket')
        if not source:
            raise CloneError(ErrorKind.CONFIG, "job is missing the source table (origtable)")
        if not bucket:
            raise CloneError(ErrorKind.CONFIG, "job is missing the staging bucket (bucket)")
        return cls(
            source_table=source,
            bucket=bucket,
            region=data.get('region') or None,
            destination_table=data.get('newtable') or None,
            segment=SegmentDescriptor.from_dict(data.get('dataexporterconfig')),
            import_config=ImportConfig.from_dict(data.get('dataimporterconfig')),
            export=ExportCheckpoint.from_dict(data.get('dataexporter')),
            import_=ImportCheckpoint.from_dict(data.get('dataimporter')),
            shard_format=ShardFormat.parse(data.get('shardformat')),
        )

    def to_dict(self):
        return {
            'region': self.region,
            'bucket': self.bucket,
            'origtable': self.source_table,
            'newtable': self.destination_table,
            'dataexporterconfig': self.segment.to_dict(),
            'dataexporter': self.export.to_dict(),
            'dataimporterconfig': self.import_config.to_dict(),
            'dataimporter': self.import_.to_dict(),
            'shardformat': self.shard_format.value,
        }

    def require_destination(self):
        if not self.destination_table:
            raise CloneError(ErrorKind.CONFIG, "job is missing the destination table (newtable)")
        return self.destination_table
