"""
Logging for clone invocations.

Every engine call receives a JobLogger carrying the invocation's context
(request id, table, segment, ...). Nothing here is process-global apart from
the handler installed by configure_logging(), which the entry points call
once.

Usage:
    log = JobLogger.for_request(request_id, table='users')
    log.info("items stored", items=120)
    # ... INFO dynamodb_clone items stored items=120 rqID=abc table=users
"""

import logging
import sys
from typing import Any, Dict, Optional

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s%(context)s'


class ContextFormatter(logging.Formatter):
    """Appends bound context fields as key=value pairs."""

    def format(self, record):
        fields = getattr(record, 'fields', None) or {}
        record.context = ''.join(f" {k}={v}" for k, v in fields.items() if v is not None)
        return super().format(record)


def configure_logging(level='INFO', stream=None):
    root = logging.getLogger()
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(ContextFormatter(LOG_FORMAT))
    # Lambda pre-installs a handler on the root logger; replace it
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    if level != 'DEBUG':
        logging.getLogger('botocore').setLevel(logging.WARNING)
    return root


class JobLogger(logging.LoggerAdapter):
    """Logger adapter threaded explicitly through one invocation."""

    def __init__(self, logger: logging.Logger, fields: Optional[Dict[str, Any]] = None):
        super().__init__(logger, dict(fields or {}))

    @classmethod
    def for_request(cls, request_id=None, name='dynamodb_clone', **fields):
        return cls(logging.getLogger(name), {'rqID': request_id, **fields})

    def bind(self, **fields):
        return JobLogger(self.logger, {**self.extra, **fields})

    def process(self, msg, kwargs):
        # keyword arguments that are not logging parameters become fields
        call_fields = {k: kwargs.pop(k) for k in list(kwargs)
                       if k not in ('exc_info', 'stack_info', 'stacklevel', 'extra')}
        extra = dict(kwargs.pop('extra', None) or {})
        # call fields win over bound ones
        bound = {k: v for k, v in self.extra.items() if k not in call_fields}
        extra['fields'] = {**call_fields, **bound}
        kwargs['extra'] = extra
        return msg, kwargs
