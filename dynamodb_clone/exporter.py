"""
Segmented table export.

One call scans as many pages of one segment as fit in the time budget,
stores each page as a shard and returns the checkpoint to resume from.
"""

from dynamodb_clone import config
from dynamodb_clone.backoff import ExponentialBackoff
from dynamodb_clone.codec import ShardFormat, encode_records
from dynamodb_clone.errors import BACKEND_ERRORS, CloneError, ErrorKind, error_code, is_throttling
from dynamodb_clone.shard_store import new_shard_id


class Exporter:

    def __init__(self, dynamodb, store, log, shard_format=ShardFormat.DYNAMODB,
                 safety_margin=config.EXPORT_SAFETY_MARGIN, id_factory=new_shard_id,
                 backoff_factory=ExponentialBackoff):
        self.dynamodb = dynamodb
        self.store = store
        self.log = log
        self.shard_format = ShardFormat.parse(shard_format)
        self.safety_margin = safety_margin
        self.id_factory = id_factory
        self.backoff_factory = backoff_factory

    def store_items(self, table, items, log):
        body = encode_records(items, self.shard_format)
        shard_id = self.id_factory()
        log.info("storing items", records=len(items), shard=shard_id)
        self.store.put(table, shard_id, body)
        return shard_id

    def scan_segment(self, table, segment, checkpoint, deadline):
        """Scan `segment` of `table` from `checkpoint` until done or out of time.

        Returns a new ExportCheckpoint; `checkpoint` is left untouched.
        Raises CloneError on any non-throttling backend failure.
        """
        log = self.log.bind(table=table, segment=segment.segment, totalsegments=segment.total_segments)

        output = checkpoint.copy()
        if output.complete:
            log.info("segment already exported", items=output.processed)
            return output
        if output.continuation_key is None and (output.processed or output.shard_ids):
            raise CloneError(ErrorKind.CONFIG,
                             "export checkpoint has progress but no continuation key")

        # leave room for the final shard upload and the return path
        budget = deadline.shrink(self.safety_margin)
        boff = self.backoff_factory(deadline=budget)
        start_processed = output.processed

        log.info(f"scanning table {table}", resume=output.continuation_key is not None)

        while True:
            if budget.expired():
                log.warning("data export duration expired", reads=output.processed - start_processed)
                return output

            params = {
                'TableName': table,
                'Segment': segment.segment,
                'TotalSegments': segment.total_segments,
                'Limit': segment.limit,
            }
            if output.continuation_key:
                params['ExclusiveStartKey'] = output.continuation_key

            try:
                resp = self.dynamodb.scan(**params)
            except BACKEND_ERRORS as e:
                if not is_throttling(e):
                    raise CloneError.from_backend_error(e, f"scan of {table} failed") from e
                log.warning("throughput error backing off", itemcount=output.processed, code=error_code(e))
                if not boff.wait():
                    log.warning("data export duration expired while backing off",
                                reads=output.processed - start_processed)
                    return output
                continue

            items = resp.get('Items', [])

            # a page that arrives after the budget is not persisted
            if budget.expired():
                log.warning("page returned after export deadline, discarding", items=len(items),
                            reads=output.processed - start_processed)
                return output

            boff.reset()

            if items:
                shard_id = self.store_items(table, items, log)
                output.shard_ids.append(shard_id)
                output.processed += len(items)
                log.info("items stored", items=len(items))

            output.continuation_key = resp.get('LastEvaluatedKey') or None

            if output.continuation_key is None:
                output.complete = True
                log.info("segment export complete", items=output.processed, shards=len(output.shard_ids))
                return output


def scan_segment(dynamodb, store, table, segment, checkpoint, deadline, log, **kwargs):
    return Exporter(dynamodb, store, log, **kwargs).scan_segment(table, segment, checkpoint, deadline)
