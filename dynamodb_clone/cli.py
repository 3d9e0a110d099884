import argparse
import sys

from dynamodb_clone import config
from dynamodb_clone.codec import ShardFormat
from dynamodb_clone.config import Settings
from dynamodb_clone.errors import CloneError
from dynamodb_clone.logs import JobLogger, configure_logging
from dynamodb_clone.orchestrator import CloneOrchestrator, CloneState
from dynamodb_clone.session import Clients
from dynamodb_clone.shard_store import S3ShardStore


def build_parser():
    parser = argparse.ArgumentParser(
        prog='dynamodb-clone',
        description="Clone a DynamoDB table (schema and data) through an S3 bucket.")
    parser.add_argument('source_table')
    parser.add_argument('destination_table')
    parser.add_argument('--bucket', required=True, help="staging bucket for schema and shards")
    parser.add_argument('--region', help="defaults to AWS_DEFAULT_REGION, then us-west-2")
    parser.add_argument('--segments', type=int, default=config.DEFAULT_TOTAL_SEGMENTS,
                        help="parallel scan segments")
    parser.add_argument('--limit', type=int, default=config.DEFAULT_SCAN_LIMIT, help="items per scan page")
    parser.add_argument('--batch-size', type=int, default=config.DEFAULT_BATCH_SIZE,
                        help=f"items per batch write (max {config.MAX_BATCH_SIZE})")
    parser.add_argument('--budget', type=float, default=900.0,
                        help="seconds allowed per export/import invocation")
    parser.add_argument('--format', choices=[f.value for f in ShardFormat], default=ShardFormat.DYNAMODB.value,
                        help="shard record layout")
    parser.add_argument('--if-exists', choices=['skip', 'fail'], default='skip',
                        help="what to do when the destination table already exists")
    parser.add_argument('--state-file', help="persist checkpoints here to resume an interrupted clone")
    parser.add_argument('--schema-only', action='store_true', help="create the table, copy no data")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.region:
        settings = settings.for_region(args.region)
    configure_logging(settings.log_level)

    log = JobLogger.for_request(None, region=settings.region, bucket=args.bucket)
    clients = Clients(settings)

    try:
        state = CloneState.load(args.segments, args.state_file)
        orchestrator = CloneOrchestrator(
            clients.dynamodb,
            S3ShardStore(clients.s3, args.bucket),
            log,
            args.source_table,
            args.destination_table,
            total_segments=args.segments,
            limit=args.limit,
            batch_size=args.batch_size,
            budget=args.budget,
            shard_format=args.format,
            if_exists=args.if_exists,
            state=state,
        )
        result = orchestrator.run(copy_data=not (args.schema_only or settings.disable_datacopy))
    except CloneError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if result is not None:
        print(f"Data copy completed successfully. {result.processed} items copied.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
