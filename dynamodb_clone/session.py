import logging

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)


class Clients:
    """Lazily built boto3 clients sharing one session."""

    def __init__(self, settings, session=None):
        self.settings = settings
        self._session = session
        self._clients = {}

    @property
    def session(self):
        if self._session is None:
            self._session = boto3.session.Session(region_name=self.settings.region)
        return self._session

    def _config(self, service):
        options = {
            'retries': {'max_attempts': self.settings.sdk_max_attempts, 'mode': 'standard'},
            'connect_timeout': self.settings.connect_timeout,
            'read_timeout': self.settings.read_timeout,
        }
        if service == 's3' and self.settings.s3_path_style:
            logger.info("setting S3 to pathstyle")
            options['s3'] = {'addressing_style': 'path'}
        return Config(**options)

    def client(self, service):
        if service not in self._clients:
            kwargs = {'region_name': self.settings.region, 'config': self._config(service)}
            if self.settings.endpoint_url:
                logger.info(f"setting endpoint to {self.settings.endpoint_url}")
                kwargs['endpoint_url'] = self.settings.endpoint_url
            self._clients[service] = self.session.client(service, **kwargs)
        return self._clients[service]

    @property
    def dynamodb(self):
        return self.client('dynamodb')

    @property
    def s3(self):
        return self.client('s3')
