"""
Lambda entry points.

Each handler takes the job descriptor (see dynamodb_clone.checkpoint) as its
event and returns the updated state. The step function driving the clone
feeds the returned checkpoint back in until "complete" is true.

    schema_export_handler  -> {"durationms": ..., "complete": true}
    schema_import_handler  -> {"durationms": ..., "complete": true}
    data_export_handler    -> dataexporter checkpoint
    data_import_handler    -> dataimporter checkpoint
"""

import time

from dynamodb_clone.checkpoint import JobDescriptor
from dynamodb_clone.config import Settings
from dynamodb_clone.deadline import Deadline
from dynamodb_clone.errors import CloneError
from dynamodb_clone.exporter import Exporter
from dynamodb_clone.importer import Importer
from dynamodb_clone.logs import JobLogger, configure_logging
from dynamodb_clone.schema import export_schema, import_schema
from dynamodb_clone.session import Clients
from dynamodb_clone.shard_store import S3ShardStore


class Invocation:
    """Everything one handler call needs, built from the event and context."""

    def __init__(self, event, context, clients=None, settings=None):
        self.settings = settings or Settings.from_env()
        configure_logging(self.settings.log_level)
        request_id = getattr(context, 'aws_request_id', None)
        self.job = JobDescriptor.from_dict(event)
        self.log = JobLogger.for_request(request_id, region=self.job.region or self.settings.region,
                                         bucket=self.job.bucket, tableName=self.job.source_table)
        self.clients = clients or Clients(self.settings.for_region(self.job.region))
        self.deadline = Deadline.from_lambda_context(context)
        self.store = S3ShardStore(self.clients.s3, self.job.bucket)
        self.started = time.monotonic()

    def elapsed_ms(self):
        return int((time.monotonic() - self.started) * 1000)


def _run(name, event, context, work, clients=None, settings=None):
    try:
        invocation = Invocation(event, context, clients=clients, settings=settings)
    except CloneError as e:
        log = JobLogger.for_request(getattr(context, 'aws_request_id', None))
        log.error(f"{name} rejected", **e.to_dict())
        raise
    invocation.log.info(f"dynamodb {name} handler")
    try:
        output = work(invocation)
    except CloneError as e:
        invocation.log.error(f"{name} failed", **e.to_dict())
        raise
    return output, invocation


def schema_export_handler(event, context, clients=None, settings=None):
    def work(inv):
        return export_schema(inv.clients.dynamodb, inv.store, inv.job.source_table, inv.log)

    complete, inv = _run("table schema export", event, context, work, clients, settings)
    output = {'durationms': inv.elapsed_ms(), 'complete': complete}
    inv.log.info("complete", duration=output['durationms'])
    return output


def schema_import_handler(event, context, clients=None, settings=None):
    def work(inv):
        destination = inv.job.require_destination()
        import_schema(inv.clients.dynamodb, inv.store, inv.job.source_table, destination,
                      inv.log.bind(dtable=destination))
        return True

    complete, inv = _run("table schema import", event, context, work, clients, settings)
    output = {'durationms': inv.elapsed_ms(), 'complete': complete}
    inv.log.info("complete", duration=output['durationms'])
    return output


def data_export_handler(event, context, clients=None, settings=None):
    def work(inv):
        exporter = Exporter(inv.clients.dynamodb, inv.store, inv.log, shard_format=inv.job.shard_format)
        return exporter.scan_segment(inv.job.source_table, inv.job.segment, inv.job.export, inv.deadline)

    checkpoint, inv = _run("data export", event, context, work, clients, settings)
    checkpoint.duration_ms = inv.elapsed_ms()
    inv.log.info("complete", duration=checkpoint.duration_ms, items=checkpoint.processed)
    return checkpoint.to_dict()


def data_import_handler(event, context, clients=None, settings=None):
    def work(inv):
        destination = inv.job.require_destination()
        importer = Importer(inv.clients.dynamodb, inv.store, inv.log, shard_format=inv.job.shard_format)
        return importer.import_into(destination, inv.job.source_table, inv.job.import_.shard_ids,
                                    inv.job.import_, inv.job.import_config.batch_size, inv.deadline)

    checkpoint, inv = _run("data import", event, context, work, clients, settings)
    checkpoint.duration_ms = inv.elapsed_ms()
    inv.log.info("complete", duration=checkpoint.duration_ms, items=checkpoint.processed)
    return checkpoint.to_dict()
