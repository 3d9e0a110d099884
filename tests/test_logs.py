import io
import logging

from dynamodb_clone.logs import ContextFormatter, JobLogger


def test_bind_adds_fields_without_touching_parent():
    log = JobLogger.for_request('rq-1', table='users')
    child = log.bind(segment=2)

    assert child.extra == {'rqID': 'rq-1', 'table': 'users', 'segment': 2}
    assert log.extra == {'rqID': 'rq-1', 'table': 'users'}


def test_formatter_appends_context():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ContextFormatter('%(levelname)s %(message)s%(context)s'))
    logger = logging.getLogger('dynamodb_clone.test_logs')
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    try:
        JobLogger(logger, {'rqID': 'rq-1', 'bucket': None}).info("items stored", items=12)
    finally:
        logger.removeHandler(handler)

    assert stream.getvalue().strip() == 'INFO items stored items=12 rqID=rq-1'


def test_call_fields_override_bound_fields(caplog):
    log = JobLogger.for_request('rq-1', name='dynamodb_clone.test_fields', segment=0)
    with caplog.at_level(logging.INFO, logger='dynamodb_clone.test_fields'):
        log.info("retrying", segment=3)

    assert caplog.records[-1].fields == {'segment': 3, 'rqID': 'rq-1'}
