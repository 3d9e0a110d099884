"""
Local driver for a full clone.

Plays the part of the step function: exports the schema, creates the
destination table, runs every export segment to completion (segments in
parallel, each invocation given a fresh time budget), then runs the import
until it completes. Progress is optionally written to a state file after
every invocation so an interrupted run picks up where it stopped.
"""

import json
import logging
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from dynamodb_clone import config
from dynamodb_clone.checkpoint import (ExportCheckpoint, ImportCheckpoint, ImportConfig,
                                       SegmentDescriptor, merge_shard_ids)
from dynamodb_clone.codec import ShardFormat
from dynamodb_clone.deadline import Deadline
from dynamodb_clone.errors import CloneError, ErrorKind
from dynamodb_clone.exporter import Exporter
from dynamodb_clone.importer import Importer
from dynamodb_clone.schema import export_schema, import_schema

logger = logging.getLogger(__name__)

# consecutive invocations without progress before giving up
MAX_STALLED_INVOCATIONS = 3


class CloneState:
    """Checkpoints of one clone job, persisted as JSON between invocations."""

    def __init__(self, total_segments, path=None):
        self.path = Path(path) if path else None
        self.lock = threading.Lock()
        self.schema_exported = False
        self.schema_imported = False
        self.exports = [ExportCheckpoint() for _ in range(total_segments)]
        self.import_ = ImportCheckpoint()

    @classmethod
    def load(cls, total_segments, path=None):
        state = cls(total_segments, path)
        if state.path is None or not state.path.exists():
            return state
        with open(state.path) as f:
            data = json.load(f)
        exports = data.get('segments') or []
        if len(exports) != total_segments:
            raise CloneError(ErrorKind.CONFIG,
                             f"state file has {len(exports)} segments, job asks for {total_segments}")
        state.schema_exported = bool(data.get('schemaexported'))
        state.schema_imported = bool(data.get('schemaimported'))
        state.exports = [ExportCheckpoint.from_dict(e) for e in exports]
        state.import_ = ImportCheckpoint.from_dict(data.get('dataimporter'))
        logger.info(f"Loaded clone state from {state.path}")
        return state

    def to_dict(self):
        return {
            'schemaexported': self.schema_exported,
            'schemaimported': self.schema_imported,
            'segments': [e.to_dict() for e in self.exports],
            'dataimporter': self.import_.to_dict(),
        }

    def save(self):
        if self.path is None:
            return
        with self.lock:
            payload = self.to_dict()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # write-then-rename so a crash never leaves a torn file
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w') as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                os.unlink(tmp)
                raise

    def update_export(self, segment, checkpoint):
        with self.lock:
            self.exports[segment] = checkpoint
        self.save()

    def update_import(self, checkpoint):
        with self.lock:
            self.import_ = checkpoint
        self.save()


def _made_progress(before, after):
    return after.complete or after.processed != before.processed or \
        getattr(after, 'continuation_key', None) != getattr(before, 'continuation_key', None)


class CloneOrchestrator:

    def __init__(self, dynamodb, store, log, source_table, destination_table,
                 total_segments=config.DEFAULT_TOTAL_SEGMENTS, limit=config.DEFAULT_SCAN_LIMIT,
                 batch_size=config.DEFAULT_BATCH_SIZE, budget=900.0, shard_format=ShardFormat.DYNAMODB,
                 if_exists='skip', workers=None, state=None, deadline_factory=Deadline.after):
        if total_segments < 1:
            raise CloneError(ErrorKind.CONFIG, f"total segments must be >= 1, got {total_segments}")
        self.dynamodb = dynamodb
        self.store = store
        self.log = log.bind(stable=source_table, dtable=destination_table)
        self.source_table = source_table
        self.destination_table = destination_table
        self.segments = [SegmentDescriptor(segment=i, total_segments=total_segments, limit=limit)
                         for i in range(total_segments)]
        self.import_config = ImportConfig.from_dict({'batchsize': batch_size})
        self.budget = budget
        self.shard_format = ShardFormat.parse(shard_format)
        self.if_exists = if_exists
        self.workers = workers or total_segments
        self.state = state or CloneState(total_segments)
        self.deadline_factory = deadline_factory

    def copy_schema(self):
        if not self.state.schema_exported:
            export_schema(self.dynamodb, self.store, self.source_table, self.log)
            self.state.schema_exported = True
            self.state.save()
        if not self.state.schema_imported:
            import_schema(self.dynamodb, self.store, self.source_table, self.destination_table,
                          self.log, if_exists=self.if_exists)
            self.state.schema_imported = True
            self.state.save()

    def export_segment(self, segment):
        log = self.log.bind(segment=segment.segment)
        exporter = Exporter(self.dynamodb, self.store, log, shard_format=self.shard_format)
        checkpoint = self.state.exports[segment.segment]
        stalled = 0
        while not checkpoint.complete:
            result = exporter.scan_segment(self.source_table, segment, checkpoint,
                                           self.deadline_factory(self.budget))
            stalled = 0 if _made_progress(checkpoint, result) else stalled + 1
            if stalled >= MAX_STALLED_INVOCATIONS:
                raise CloneError(ErrorKind.CONFIG,
                                 f"segment {segment.segment} made no progress in {stalled} invocations")
            checkpoint = result
            self.state.update_export(segment.segment, checkpoint)
        return checkpoint

    def export_data(self):
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            results = list(pool.map(self.export_segment, self.segments))
        return merge_shard_ids(results)

    def import_data(self, shard_ids):
        importer = Importer(self.dynamodb, self.store, self.log, shard_format=self.shard_format)
        checkpoint = self.state.import_
        stalled = 0
        while not checkpoint.complete:
            result = importer.import_into(self.destination_table, self.source_table, shard_ids, checkpoint,
                                          self.import_config.batch_size, self.deadline_factory(self.budget))
            stalled = 0 if _made_progress(checkpoint, result) else stalled + 1
            if stalled >= MAX_STALLED_INVOCATIONS:
                raise CloneError(ErrorKind.CONFIG, f"import made no progress in {stalled} invocations")
            checkpoint = result
            self.state.update_import(checkpoint)
        return checkpoint

    def run(self, copy_data=True):
        self.copy_schema()
        if not copy_data:
            self.log.info("data copy disabled, schema only")
            return None
        shard_ids = self.export_data()
        exported = sum(e.processed for e in self.state.exports)
        self.log.info("export complete", items=exported, shards=len(shard_ids))
        result = self.import_data(shard_ids)
        self.log.info("import complete", items=result.processed)
        return result
