import os
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_REGION = 'us-west-2'

# scan page size and parallelism used when a job leaves them unset
DEFAULT_SCAN_LIMIT = 10000
DEFAULT_TOTAL_SEGMENTS = 1

# BatchWriteItem accepts at most 25 put requests
MAX_BATCH_SIZE = 25
DEFAULT_BATCH_SIZE = MAX_BATCH_SIZE

# time held back from the invocation budget for the final upload and return.
# Must exceed the worst case time to persist one shard.
EXPORT_SAFETY_MARGIN = 3.0
# an in-flight batch write must return inside this
IMPORT_SAFETY_MARGIN = 2.5

PROGRESS_INTERVAL = 5.0

BACKOFF_INITIAL_INTERVAL = 0.5
BACKOFF_MULTIPLIER = 1.5
BACKOFF_JITTER = 0.5
BACKOFF_MAX_INTERVAL = 1.5

# botocore bounds for a single call. Its worst case, attempts * (connect + read),
# must stay under the smaller safety margin so an in-flight call cannot outlive
# the invocation. Throttling is retried by the engines, not the SDK.
SDK_CONNECT_TIMEOUT = 0.5
SDK_READ_TIMEOUT = 1.5
SDK_MAX_ATTEMPTS = 1


def _flag(value):
    return bool(value and value.strip())


@dataclass(frozen=True)
class Settings:
    region: str = DEFAULT_REGION
    endpoint_url: Optional[str] = None
    s3_path_style: bool = False
    log_level: str = 'INFO'
    disable_datacopy: bool = False
    sdk_max_attempts: int = SDK_MAX_ATTEMPTS
    connect_timeout: float = SDK_CONNECT_TIMEOUT
    read_timeout: float = SDK_READ_TIMEOUT

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        return cls(
            region=env.get('AWS_DEFAULT_REGION') or DEFAULT_REGION,
            endpoint_url=env.get('AWS_ENDPOINT') or None,
            s3_path_style=_flag(env.get('AWS_S3_FORCEPATHSTYLE')),
            log_level=(env.get('LOG_LEVEL') or 'INFO').upper(),
            disable_datacopy='DISABLE_DATACOPY' in env,
        )

    @property
    def call_bound(self):
        """Longest one SDK call can block, retries included."""
        return self.sdk_max_attempts * (self.connect_timeout + self.read_timeout)

    def for_region(self, region):
        """Settings for a job that names its own region."""
        if not region or region == self.region:
            return self
        return replace(self, region=region)
