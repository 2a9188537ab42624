"""
Scale-Out Handler for the OpenVPN gateway

Reacts to EC2 instance launch notifications published to the fleet's SNS
topic and points the VPN hostname at the new instance:
1. resolve the instance's public IPv4 address
2. disable the source/destination check so the instance can forward traffic
3. UPSERT the Route53 A record for the hostname

Any failure in steps 1-3 is raised so SNS redelivers the notification. The
A record is never written with an empty value.

Instance termination needs no DNS work here: the record is left as is until
the next launch overwrites it.
"""

import logging
from typing import Any, Dict, Optional

from mypy_boto3_ec2 import EC2Client
from mypy_boto3_route53 import Route53Client

from fleet_reconciler.aws_clients import AWSClientFactory
from fleet_reconciler.config.settings import DEFAULT_DNS_TTL, get_settings
from fleet_reconciler.errors import MalformedEventError, PublicAddressNotReady
from fleet_reconciler.notifications import describe_event, parse_notification
from fleet_reconciler.schemas import LaunchEvent, failure, ok
from fleet_reconciler.utils.decorators import log_execution_time
from fleet_reconciler.utils.log_setup import configure_logging

logger = logging.getLogger(__name__)

DNS_CHANGE_COMMENT = 'Automatic DNS update based on ASG event'


def resolve_public_address(ec2_client: EC2Client, instance_id: str) -> Optional[str]:
    """Get the public IPv4 address of an instance, None if it has none yet.

    Looked up on every launch: the address may not be assigned when the
    notification is delivered.
    """
    logger.info('Calling ec2.describe_instances')
    response = ec2_client.describe_instances(InstanceIds=[instance_id])

    reservations = response.get('Reservations') or [{}]
    instances = reservations[0].get('Instances') or [{}]
    public_ip = instances[0].get('PublicIpAddress')

    if public_ip:
        logger.info(f"Successfully got public IP address {public_ip} for EC2 instance {instance_id}")
    return public_ip or None


def disable_source_dest_check(ec2_client: EC2Client, instance_id: str) -> None:
    """Turn off the source/destination check required for a VPN gateway."""
    logger.info('Calling ec2.modify_instance_attribute')
    response = ec2_client.modify_instance_attribute(
        InstanceId=instance_id,
        SourceDestCheck={'Value': False},
    )
    logger.info(f"Got ec2.modify_instance_attribute response: {response.get('ResponseMetadata', {}).get('HTTPStatusCode')}")


def upsert_dns_record(
    route53_client: Route53Client,
    hosted_zone: str,
    dns_name: str,
    address: str,
    ttl: int = DEFAULT_DNS_TTL,
) -> Optional[str]:
    """Create or replace the A record for `dns_name`.

    Last writer wins: whichever launch reconciled most recently owns the
    record. Returns the Route53 change id.
    """
    logger.info('Calling route53.change_resource_record_sets')
    response = route53_client.change_resource_record_sets(
        HostedZoneId=hosted_zone,
        ChangeBatch={
            'Comment': DNS_CHANGE_COMMENT,
            'Changes': [
                {
                    'Action': 'UPSERT',
                    'ResourceRecordSet': {
                        'Name': dns_name,
                        'Type': 'A',
                        'TTL': ttl,
                        'ResourceRecords': [{'Value': address}],
                    },
                },
            ],
        },
    )
    change_info = response.get('ChangeInfo', {})
    logger.info(f"Got route53.change_resource_record_sets response: {change_info.get('Id')} ({change_info.get('Status')})")
    return change_info.get('Id')


class ScaleOutReconciler:
    """Converges DNS and instance attributes onto a newly launched instance."""

    def __init__(
        self,
        ec2_client: EC2Client,
        route53_client: Route53Client,
        hosted_zone: str,
        dns_name: str,
        dns_ttl: int = DEFAULT_DNS_TTL,
    ):
        self.ec2_client = ec2_client
        self.route53_client = route53_client
        self.hosted_zone = hosted_zone
        self.dns_name = dns_name
        self.dns_ttl = dns_ttl

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Process one notification from the fleet topic."""
        try:
            notification = parse_notification(event, LaunchEvent)
        except MalformedEventError as e:
            logger.error(f"{e}. Payload: {describe_event(event)}")
            return failure(str(e))

        if not notification.is_launch:
            logger.info(f"Ignoring event: {notification.event}")
            return ok("Event ignored. Not EC2_INSTANCE_LAUNCH")

        logger.info(f"InstanceId that is being launched is: {notification.ec2_instance_id}")
        return self.reconcile_launch(notification.ec2_instance_id)

    def reconcile_launch(self, instance_id: str) -> Dict[str, Any]:
        """Run describe -> modify attribute -> upsert DNS, in that order."""
        try:
            public_ip = resolve_public_address(self.ec2_client, instance_id)
        except Exception:
            logger.error('Error describing ec2 instance and/or getting instance public ip address', exc_info=True)
            raise

        if public_ip is None:
            error = PublicAddressNotReady(instance_id)
            logger.error(str(error))
            raise error

        try:
            disable_source_dest_check(self.ec2_client, instance_id)
        except Exception:
            logger.error(f"Error modifying ec2 instance attributes for {instance_id}", exc_info=True)
            raise

        try:
            upsert_dns_record(self.route53_client, self.hosted_zone, self.dns_name, public_ip, self.dns_ttl)
        except Exception:
            logger.error(f"Error changing Route53 resource record sets for EC2 instance {instance_id}", exc_info=True)
            raise

        logger.info('Successfully processed event!')
        return ok(f"Successfully pointed {self.dns_name} at {public_ip}")


@log_execution_time
def lambda_handler(event, context):
    settings = get_settings()
    configure_logging(settings.log_level)
    settings.require("hosted_zone", "dns_name")

    logger.info(f"Received event: {describe_event(event)}")

    clients = AWSClientFactory(settings)
    reconciler = ScaleOutReconciler(
        ec2_client=clients.ec2(),
        route53_client=clients.route53(),
        hosted_zone=settings.hosted_zone,
        dns_name=settings.dns_name,
        dns_ttl=settings.dns_ttl,
    )
    return reconciler.handle(event)
