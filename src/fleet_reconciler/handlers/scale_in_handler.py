"""
Scale-In Handler for the OpenVPN gateway

Triggered by the auto scaling group's terminating lifecycle hook. While the
instance is held in Terminating:Wait, the handler runs the certificate backup
command document on it through SSM. The document completes the lifecycle
action itself once the backup is uploaded, so the instance is only destroyed
after the backup finishes (or the hook's 5 minute heartbeat timeout elapses).

With LIFECYCLE_COMPLETION_MODE=direct the backup is skipped and the handler
completes the lifecycle action itself. Only one of the two paths runs for a
given notification; the action token cannot be used twice.

Failure policy:
- missing/unparseable message: 500 response, not raised
- command document not found: logged, hold left to expire
- send_command failure: logged, success response (no redelivery against a
  single-use token)
"""

import logging
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_ssm import SSMClient

from fleet_reconciler.aws_clients import AWSClientFactory
from fleet_reconciler.config.settings import DEFAULT_COMMAND_TIMEOUT_SECONDS, CompletionMode, get_settings
from fleet_reconciler.errors import MalformedEventError
from fleet_reconciler.fleet import FleetManager
from fleet_reconciler.notifications import describe_event, parse_notification
from fleet_reconciler.schemas import LifecycleActionResult, LifecycleNotification, failure, ok
from fleet_reconciler.utils.decorators import log_execution_time
from fleet_reconciler.utils.log_setup import configure_logging

logger = logging.getLogger(__name__)


def find_command_document(ssm_client: SSMClient, document_name: str) -> Optional[Dict[str, Any]]:
    """Look up a command document by exact name.

    Lookup failures are treated the same as "not found".
    """
    try:
        response = ssm_client.list_documents(
            Filters=[
                {
                    'Key': 'Name',
                    'Values': [document_name],
                },
            ],
        )
    except (ClientError, BotoCoreError) as e:
        logger.warning(f"Failed to list specified SSM Document {document_name}: {e}")
        return None

    identifiers = response.get('DocumentIdentifiers', [])
    logger.info(f"Successfully listed documents: {[d.get('Name') for d in identifiers]}")

    match = next((d for d in identifiers if d.get('Name') == document_name), None)
    if match is None:
        logger.info(f"No document with name {document_name} found")
    return match


def send_backup_command(
    ssm_client: SSMClient,
    document: Dict[str, Any],
    instance_id: str,
    parameters: Dict[str, str],
    timeout_seconds: int = DEFAULT_COMMAND_TIMEOUT_SECONDS,
) -> Optional[str]:
    """Run `document` on the instance. Returns the command id, None on failure."""
    document_name = document.get('Name')
    if not document_name:
        logger.warning(f"Unnamed document cannot be run! {document}")
        return None

    logger.info(f"Sending command via document name {document_name} to EC2 instance {instance_id}")

    try:
        response = ssm_client.send_command(
            DocumentName=document_name,
            InstanceIds=[instance_id],
            TimeoutSeconds=timeout_seconds,
            Parameters={key: [value] for key, value in parameters.items()},
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"An error occurred while sending command: {e}")
        return None

    command = response.get('Command', {})
    logger.info(f"Command response is {command.get('CommandId')} ({command.get('Status')})")
    return command.get('CommandId')


class ScaleInReconciler:
    """Runs the pre-termination certificate backup on an outgoing instance."""

    def __init__(
        self,
        ssm_client: SSMClient,
        region: str,
        document_name: str,
        dns_name: Optional[str] = None,
        bucket_name: Optional[str] = None,
        fleet_manager: Optional[FleetManager] = None,
        completion_mode: CompletionMode = CompletionMode.REMOTE_COMMAND,
        command_timeout_seconds: int = DEFAULT_COMMAND_TIMEOUT_SECONDS,
    ):
        if completion_mode == CompletionMode.DIRECT and fleet_manager is None:
            raise ValueError("Direct lifecycle completion requires a fleet manager")

        self.ssm_client = ssm_client
        self.region = region
        self.document_name = document_name
        self.dns_name = dns_name
        self.bucket_name = bucket_name
        self.fleet_manager = fleet_manager
        self.completion_mode = completion_mode
        self.command_timeout_seconds = command_timeout_seconds

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Process one lifecycle hook notification."""
        try:
            notification = parse_notification(event, LifecycleNotification)
        except MalformedEventError as e:
            logger.error(f"{e}. Payload: {describe_event(event)}")
            return failure(str(e))

        if not notification.is_terminating:
            discriminant = notification.lifecycle_transition or notification.event
            logger.info(f"Ignoring lifecycle event: {discriminant}")
            return ok("Event ignored. Not EC2_INSTANCE_TERMINATING")

        if self.completion_mode == CompletionMode.DIRECT:
            return self.complete_directly(notification)
        return self.run_backup(notification)

    def command_parameters(self, notification: LifecycleNotification) -> Dict[str, str]:
        return {
            'region': self.region,
            'domainName': self.dns_name,
            'bucketName': self.bucket_name,
            'autoScalingGroupName': notification.auto_scaling_group_name,
            'lifecycleHookName': notification.lifecycle_hook_name,
            'lifecycleActionToken': notification.lifecycle_action_token,
        }

    def run_backup(self, notification: LifecycleNotification) -> Dict[str, Any]:
        """Send the backup document; the document completes the lifecycle action."""
        document = find_command_document(self.ssm_client, self.document_name)
        if document is None:
            logger.warning(
                f"Lifecycle hold for {notification.ec2_instance_id} left to expire: "
                f"document {self.document_name} unavailable"
            )
            return ok(f"No command document {self.document_name}; lifecycle hold left to expire")

        command_id = send_backup_command(
            self.ssm_client,
            document,
            notification.ec2_instance_id,
            self.command_parameters(notification),
            self.command_timeout_seconds,
        )
        if command_id is None:
            logger.warning(f"Backup command was not sent to {notification.ec2_instance_id}")
            return ok(f"Backup command not sent to {notification.ec2_instance_id}")

        return ok(f"SUCCESS: backup command {command_id} sent to {notification.ec2_instance_id}")

    def complete_directly(self, notification: LifecycleNotification) -> Dict[str, Any]:
        """Release the hold now, without a certificate backup."""
        try:
            self.fleet_manager.complete_lifecycle_action(
                group_name=notification.auto_scaling_group_name,
                hook_name=notification.lifecycle_hook_name,
                action_token=notification.lifecycle_action_token,
                instance_id=notification.ec2_instance_id,
                result=LifecycleActionResult.CONTINUE,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to complete lifecycle action for {notification.ec2_instance_id}: {e}")
            return ok(f"Lifecycle action not completed for {notification.ec2_instance_id}; hold left to expire")

        return ok(f"SUCCESS: lifecycle action completed for {notification.ec2_instance_id}")


@log_execution_time
def lambda_handler(event, context):
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info(f"Received auto scaling lifecycle hook event: {describe_event(event)}")

    clients = AWSClientFactory(settings)
    fleet_manager = None
    if settings.lifecycle_completion_mode == CompletionMode.DIRECT:
        fleet_manager = FleetManager(clients.autoscaling())
    else:
        settings.require("dns_name", "bucket_name")

    reconciler = ScaleInReconciler(
        ssm_client=clients.ssm(),
        region=settings.region,
        document_name=settings.document_name,
        dns_name=settings.dns_name,
        bucket_name=settings.bucket_name,
        fleet_manager=fleet_manager,
        completion_mode=settings.lifecycle_completion_mode,
        command_timeout_seconds=settings.command_timeout_seconds,
    )
    return reconciler.handle(event)
