"""Failure taxonomy shared by the export and import engines."""

import enum

from botocore.exceptions import BotoCoreError, ClientError

THROTTLING_CODES = frozenset({
    'ProvisionedThroughputExceededException',
    'RequestLimitExceeded',
    'ThrottlingException',
})

# everything a boto3 call can raise: service errors and transport failures
BACKEND_ERRORS = (ClientError, BotoCoreError)


class ErrorKind(enum.Enum):
    # throttling is retried locally and never surfaces as a kind
    BACKEND = 'backend'
    CODEC = 'codec'
    CONFIG = 'config'


class CloneError(Exception):
    """A fatal failure of one invocation, tagged with its kind.

    Raising this never leaves a half-updated checkpoint behind: the engines
    only hand back a new checkpoint on a clean return.
    """

    def __init__(self, kind, message, code=None):
        super().__init__(message)
        self.kind = kind
        self.code = code

    @classmethod
    def from_backend_error(cls, exc, message):
        """Wrap a ClientError or a botocore transport error as BACKEND."""
        return cls(ErrorKind.BACKEND, f"{message}: {exc}", code=error_code(exc))

    def to_dict(self):
        return {'kind': self.kind.value, 'code': self.code, 'error': str(self)}


def error_code(exc):
    if isinstance(exc, ClientError):
        return exc.response.get('Error', {}).get('Code')
    if isinstance(exc, BotoCoreError):
        return type(exc).__name__
    return None


def is_throttling(exc) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) in THROTTLING_CODES
