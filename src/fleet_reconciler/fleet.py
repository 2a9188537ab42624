"""
Auto scaling group operations used by the reconcilers.

The group is the fleet manager: it owns convergence toward the desired
capacity and emits the lifecycle notifications the handlers react to.
"""
import logging
from typing import Any, Dict

from mypy_boto3_autoscaling import AutoScalingClient

from fleet_reconciler.errors import FleetReconcilerError
from fleet_reconciler.schemas import LifecycleActionResult

logger = logging.getLogger(__name__)


class FleetManager:
    """Thin wrapper around the autoscaling client."""

    def __init__(self, autoscaling_client: AutoScalingClient):
        self.autoscaling_client = autoscaling_client

    def set_desired_capacity(self, group_name: str, desired_capacity: int) -> Dict[str, Any]:
        """Set the group's desired capacity without waiting for convergence.

        Setting the value the group already has is a no-op on the AWS side.
        API errors propagate to the caller.
        """
        logger.info(f"Setting desired capacity of auto scaling group {group_name} to {desired_capacity}")
        response = self.autoscaling_client.update_auto_scaling_group(
            AutoScalingGroupName=group_name,
            DesiredCapacity=desired_capacity,
        )
        logger.info(f"Got autoscaling.update_auto_scaling_group response: {response.get('ResponseMetadata', {}).get('HTTPStatusCode')}")
        return response

    def describe_capacity(self, group_name: str) -> Dict[str, Any]:
        """Get desired/min/max capacity and instance lifecycle states of the group."""
        response = self.autoscaling_client.describe_auto_scaling_groups(AutoScalingGroupNames=[group_name])
        if not response['AutoScalingGroups']:
            raise FleetReconcilerError(f"ASG {group_name} not found")

        group = response['AutoScalingGroups'][0]
        return {
            'group_name': group_name,
            'desired': group['DesiredCapacity'],
            'min_size': group['MinSize'],
            'max_size': group['MaxSize'],
            'instances': {i['InstanceId']: i['LifecycleState'] for i in group.get('Instances', [])},
        }

    def complete_lifecycle_action(
        self,
        group_name: str,
        hook_name: str,
        action_token: str,
        instance_id: str,
        result: LifecycleActionResult = LifecycleActionResult.CONTINUE,
    ) -> Dict[str, Any]:
        """Release a lifecycle hold.

        The token is single use; completing the same hold twice fails on the
        AWS side.
        """
        logger.info(
            f"Completing lifecycle action {hook_name} for instance {instance_id} "
            f"in {group_name} with result {result.value}"
        )
        return self.autoscaling_client.complete_lifecycle_action(
            AutoScalingGroupName=group_name,
            LifecycleHookName=hook_name,
            LifecycleActionToken=action_token,
            InstanceId=instance_id,
            LifecycleActionResult=result.value,
        )
