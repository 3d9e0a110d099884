"""
Batch import of exported shards.

The shard list is resolved to the same flat record sequence on every call;
`processed` is an index into that sequence. Batches are written in order and
a batch only counts once DynamoDB has accepted every record in it.
"""

import time

from dynamodb_clone import config
from dynamodb_clone.backoff import ExponentialBackoff
from dynamodb_clone.codec import ShardFormat, decode_records
from dynamodb_clone.errors import BACKEND_ERRORS, CloneError, ErrorKind, error_code, is_throttling


class ProgressMeter:
    """Logs the write rate every `interval` seconds, independent of batches."""

    def __init__(self, log, processed, interval=config.PROGRESS_INTERVAL, clock=time.monotonic):
        self.log = log
        self.interval = interval
        self.clock = clock
        self.last_tick = clock()
        self.last_processed = processed

    def poll(self, processed):
        now = self.clock()
        period = now - self.last_tick
        if period <= 0 or period < self.interval:
            return None
        tick_processed = processed - self.last_processed
        rate = round(tick_processed / period, 2)
        self.log.info("processing writes", items=processed, rate=rate, processed=tick_processed)
        self.last_tick = now
        self.last_processed = processed
        return rate


def resolve_records(store, table, shard_ids, shard_format, log):
    """Fetch and decode every shard, in order, into one record list."""
    records = []
    for shard_id in shard_ids:
        log.info(f"retrieving data key {shard_id} for {table}")
        records.extend(decode_records(store.get(table, shard_id), shard_format))
    return records


class Importer:

    def __init__(self, dynamodb, store, log, shard_format=ShardFormat.DYNAMODB,
                 safety_margin=config.IMPORT_SAFETY_MARGIN,
                 progress_interval=config.PROGRESS_INTERVAL,
                 backoff_factory=ExponentialBackoff):
        self.dynamodb = dynamodb
        self.store = store
        self.log = log
        self.shard_format = ShardFormat.parse(shard_format)
        self.safety_margin = safety_margin
        self.progress_interval = progress_interval
        self.backoff_factory = backoff_factory

    def write_batch(self, table, requests):
        """One BatchWriteItem call; returns the requests DynamoDB left unprocessed."""
        result = self.dynamodb.batch_write_item(RequestItems={table: requests})
        return result.get('UnprocessedItems', {}).get(table, [])

    def import_into(self, table, source_table, shard_ids, checkpoint, batch_size, deadline):
        """Write shards of `source_table` into `table` from `checkpoint.processed`.

        Returns a new ImportCheckpoint with the same shard list. Raises
        CloneError on any non-throttling failure; progress made during the
        failed call is dropped and replayed by the next one.
        """
        log = self.log.bind(table=table)
        if batch_size < 1 or batch_size > config.MAX_BATCH_SIZE:
            raise CloneError(ErrorKind.CONFIG,
                             f"batch size must be between 1 and {config.MAX_BATCH_SIZE}, got {batch_size}")

        shard_ids = list(shard_ids)
        if checkpoint.processed and checkpoint.shard_ids != shard_ids:
            # processed indexes the flattened shards; a different list invalidates it
            raise CloneError(ErrorKind.CONFIG, "shard list differs from the one the checkpoint was built on")

        output = checkpoint.copy()
        output.shard_ids = shard_ids
        if output.complete:
            log.info("import already complete", items=output.processed)
            return output

        log.info(f"importing data into table {table}")

        data = resolve_records(self.store, source_table, output.shard_ids, self.shard_format, log)
        log.info(f"successfully retrieved {len(data)} records from {len(output.shard_ids)} shards")

        if output.processed > len(data):
            raise CloneError(ErrorKind.CONFIG,
                             f"checkpoint processed {output.processed} exceeds {len(data)} exported records")

        budget = deadline.shrink(self.safety_margin)
        boff = self.backoff_factory(deadline=budget)
        start_processed = output.processed
        meter = ProgressMeter(log, output.processed, self.progress_interval, clock=budget.clock)

        log.info(f"starting processing from record {output.processed}")

        for start in range(output.processed, len(data), batch_size):
            records = data[start:start + batch_size]
            requests = [{'PutRequest': {'Item': record}} for record in records]

            while True:
                meter.poll(output.processed)

                if budget.expired():
                    log.warning("data import duration expired", writes=output.processed - start_processed)
                    return output

                try:
                    unprocessed = self.write_batch(table, requests)
                except BACKEND_ERRORS as e:
                    if not is_throttling(e):
                        raise CloneError.from_backend_error(e, f"batch write to {table} failed") from e
                    log.warning("throughput error backing off", itemcount=output.processed, code=error_code(e))
                    if not boff.wait():
                        log.warning("data import duration expired while backing off",
                                    writes=output.processed - start_processed)
                        return output
                    continue

                log.debug("write completed", items=len(requests), unprocessed=len(unprocessed))

                if not unprocessed:
                    boff.reset()
                    output.processed += len(records)
                    break

                log.info("partial write detected", items=len(requests), unprocessed=len(unprocessed))
                # retry only what was left over before moving on
                requests = unprocessed
                if not boff.wait():
                    log.warning("data import duration expired while backing off",
                                writes=output.processed - start_processed)
                    return output

        output.complete = True
        log.info("import complete", items=output.processed, writes=output.processed - start_processed)
        return output


def import_into(dynamodb, store, table, source_table, shard_ids, checkpoint, batch_size, deadline, log,
                **kwargs):
    return Importer(dynamodb, store, log, **kwargs).import_into(
        table, source_table, shard_ids, checkpoint, batch_size, deadline)
