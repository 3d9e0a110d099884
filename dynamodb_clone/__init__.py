"""Resumable DynamoDB table clone through an S3 staging bucket."""

from dynamodb_clone.checkpoint import (ExportCheckpoint, ImportCheckpoint, ImportConfig, JobDescriptor,
                                       SegmentDescriptor, merge_shard_ids)
from dynamodb_clone.deadline import Deadline
from dynamodb_clone.errors import CloneError, ErrorKind
from dynamodb_clone.exporter import Exporter, scan_segment
from dynamodb_clone.importer import Importer, import_into

__version__ = '0.1.0'

__all__ = [
    'CloneError',
    'Deadline',
    'ErrorKind',
    'ExportCheckpoint',
    'Exporter',
    'ImportCheckpoint',
    'ImportConfig',
    'Importer',
    'JobDescriptor',
    'SegmentDescriptor',
    'import_into',
    'merge_shard_ids',
    'scan_segment',
]
