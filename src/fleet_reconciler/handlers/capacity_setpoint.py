"""
Capacity Setpoint Handler

Triggered by an EventBridge schedule. Two copies are deployed, one with
DESIRED_ASG_SIZE=0 (scale in at night) and one with DESIRED_ASG_SIZE=1
(scale out in the morning). The auto scaling group does the rest.
"""

import logging
from typing import Any, Dict

from fleet_reconciler.aws_clients import AWSClientFactory
from fleet_reconciler.config.settings import get_settings
from fleet_reconciler.fleet import FleetManager
from fleet_reconciler.notifications import describe_event
from fleet_reconciler.schemas import ok
from fleet_reconciler.utils.decorators import log_execution_time
from fleet_reconciler.utils.log_setup import configure_logging

logger = logging.getLogger(__name__)


class CapacitySetpointController:
    """Sets the fleet's desired capacity to a value fixed at deployment."""

    def __init__(self, fleet_manager: FleetManager, group_name: str, desired_capacity: int):
        self.fleet_manager = fleet_manager
        self.group_name = group_name
        self.desired_capacity = desired_capacity

    def apply(self) -> Dict[str, Any]:
        """Push the setpoint. No local retry: failures go back to the scheduler."""
        try:
            self.fleet_manager.set_desired_capacity(self.group_name, self.desired_capacity)
        except Exception as e:
            logger.error(f"Failed to update auto scaling group {self.group_name} settings: {e}")
            raise

        message = (
            f"Successfully updated auto scaling group {self.group_name} "
            f"to DesiredCapacity {self.desired_capacity}"
        )
        logger.info(message)
        return ok(message)


@log_execution_time
def lambda_handler(event, context):
    settings = get_settings()
    configure_logging(settings.log_level)
    settings.require("asg_group_name", "desired_asg_size")

    logger.info(f"Received event: {describe_event(event)}")
    logger.info(f"DESIRED_ASG_SIZE is {settings.desired_asg_size}")
    logger.info(f"ASG_GROUP_NAME is {settings.asg_group_name}")

    clients = AWSClientFactory(settings)
    controller = CapacitySetpointController(
        fleet_manager=FleetManager(clients.autoscaling()),
        group_name=settings.asg_group_name,
        desired_capacity=settings.desired_asg_size,
    )
    return controller.apply()
