"""AWS client construction for the reconcilers."""
import logging
from typing import Any, Dict, Optional

import boto3

from fleet_reconciler.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AWSClientFactory:
    """Builds boto3 clients from settings.

    Clients are cached on the factory instance only. Each Lambda invocation
    builds its own factory and hands the clients to the reconciler it runs.
    """

    def __init__(self, settings: Optional[Settings] = None, session: Optional[boto3.Session] = None):
        self.settings = settings or get_settings()
        self.session = session or boto3.Session()
        self.region = self.settings.region
        self.endpoint_url = self.settings.aws_endpoint_url
        self._clients: Dict[str, Any] = {}

        logger.debug(f"Initializing AWSClientFactory (region: {self.region}, endpoint: {self.endpoint_url})")

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        client_kwargs = {
            'region_name': self.region
        }

        # Local fake-AWS servers
        if self.endpoint_url:
            client_kwargs['endpoint_url'] = self.endpoint_url

        try:
            client = self.session.client(service_name, **client_kwargs)
        except Exception as e:
            logger.error(f"Error creating {service_name} client: {str(e)}")
            raise

        self._clients[service_name] = client
        logger.debug(f"Created {service_name} client")
        return client

    def ec2(self):
        """Get the EC2 client."""
        return self.get_client('ec2')

    def route53(self):
        """Get the Route53 client."""
        return self.get_client('route53')

    def ssm(self):
        """Get the SSM client."""
        return self.get_client('ssm')

    def autoscaling(self):
        """Get the Auto Scaling Group client."""
        return self.get_client('autoscaling')
