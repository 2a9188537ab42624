#######################################
# --- Notification/result schemas --- #
#######################################

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Self

HTTP_OK = 200
HTTP_FAILURE = 500


class LifecycleTransition(str, Enum):
    """Lifecycle hook transitions emitted by the auto scaling group"""
    INSTANCE_LAUNCHING = "autoscaling:EC2_INSTANCE_LAUNCHING"
    INSTANCE_TERMINATING = "autoscaling:EC2_INSTANCE_TERMINATING"


class AsgEventType(str, Enum):
    """`Event` discriminant of auto scaling group notifications"""
    INSTANCE_LAUNCH = "autoscaling:EC2_INSTANCE_LAUNCH"
    INSTANCE_LAUNCH_ERROR = "autoscaling:EC2_INSTANCE_LAUNCH_ERROR"
    INSTANCE_TERMINATE = "autoscaling:EC2_INSTANCE_TERMINATE"
    INSTANCE_TERMINATE_ERROR = "autoscaling:EC2_INSTANCE_TERMINATE_ERROR"
    TEST_NOTIFICATION = "autoscaling:TEST_NOTIFICATION"


class LifecycleActionResult(str, Enum):
    """Result passed to complete_lifecycle_action"""
    CONTINUE = "CONTINUE"
    ABANDON = "ABANDON"


class LifecycleNotification(BaseModel):
    """Lifecycle hook notification for an instance transition.

    Example message:
        {
            "Origin": "AutoScalingGroup",
            "LifecycleHookName": "openvpn-instance-termination-lifecycle-hook",
            "Destination": "EC2",
            "AccountId": "123456789012",
            "RequestId": "5487e9ac-efe3-4df3-8dd4-1549237aa99a",
            "LifecycleTransition": "autoscaling:EC2_INSTANCE_TERMINATING",
            "AutoScalingGroupName": "OpenVpnAccessServerInfraStack-asg-openvpn",
            "Service": "AWS Auto Scaling",
            "Time": "2021-04-15T16:41:59.710Z",
            "EC2InstanceId": "i-0242f2f4a3f027b85",
            "LifecycleActionToken": "61579bd3-de96-4341-b773-b4b961e0f6e1"
        }

    The action token is single use: it is only valid until the hold is
    completed or its heartbeat timeout elapses.
    """
    origin: Optional[str] = Field(default=None, alias="Origin")
    lifecycle_hook_name: Optional[str] = Field(default=None, alias="LifecycleHookName")
    destination: Optional[str] = Field(default=None, alias="Destination")
    account_id: Optional[str] = Field(default=None, alias="AccountId")
    request_id: Optional[str] = Field(default=None, alias="RequestId")
    lifecycle_transition: Optional[str] = Field(default=None, alias="LifecycleTransition")
    auto_scaling_group_name: Optional[str] = Field(default=None, alias="AutoScalingGroupName")
    service: Optional[str] = Field(default=None, alias="Service")
    # Raw string, not parsed
    time: Optional[str] = Field(default=None, alias="Time")
    ec2_instance_id: Optional[str] = Field(default=None, alias="EC2InstanceId")
    lifecycle_action_token: Optional[str] = Field(default=None, alias="LifecycleActionToken")
    # Present on the test notification sent when a hook is created
    event: Optional[str] = Field(default=None, alias="Event")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def is_terminating(self) -> bool:
        return self.lifecycle_transition == LifecycleTransition.INSTANCE_TERMINATING.value

    @model_validator(mode="after")
    def check_terminating_fields(self) -> Self:
        """A terminating notification must carry everything needed to release the hold."""
        if self.is_terminating:
            missing = [
                alias for alias, value in (
                    ("EC2InstanceId", self.ec2_instance_id),
                    ("AutoScalingGroupName", self.auto_scaling_group_name),
                    ("LifecycleHookName", self.lifecycle_hook_name),
                    ("LifecycleActionToken", self.lifecycle_action_token),
                ) if not value
            ]
            if missing:
                raise ValueError(f"Terminating notification is missing {', '.join(missing)}")
        return self


class LaunchEvent(BaseModel):
    """Auto scaling group notification published to the fleet topic.

    Only `autoscaling:EC2_INSTANCE_LAUNCH` triggers reconciliation; every other
    `Event` value is acknowledged and ignored.
    """
    event: Optional[str] = Field(default=None, alias="Event")
    ec2_instance_id: Optional[str] = Field(default=None, alias="EC2InstanceId")
    auto_scaling_group_name: Optional[str] = Field(default=None, alias="AutoScalingGroupName")
    account_id: Optional[str] = Field(default=None, alias="AccountId")
    request_id: Optional[str] = Field(default=None, alias="RequestId")
    service: Optional[str] = Field(default=None, alias="Service")
    description: Optional[str] = Field(default=None, alias="Description")
    cause: Optional[str] = Field(default=None, alias="Cause")
    # Raw string, not parsed
    time: Optional[str] = Field(default=None, alias="Time")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def is_launch(self) -> bool:
        return self.event == AsgEventType.INSTANCE_LAUNCH.value

    @model_validator(mode="after")
    def check_launch_has_instance(self) -> Self:
        if self.is_launch and not self.ec2_instance_id:
            raise ValueError("Launch notification is missing EC2InstanceId")
        return self


class HandlerResponse(BaseModel):
    """Structured result returned to the Lambda runtime."""
    status_code: int = Field(alias="statusCode")
    body: str

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def ok(message: str) -> Dict[str, Any]:
    """200 response: the event was handled, including deliberate ignores."""
    return HandlerResponse(status_code=HTTP_OK, body=json.dumps(message)).to_dict()


def failure(message: str) -> Dict[str, Any]:
    """500 response for events that cannot be processed."""
    return HandlerResponse(status_code=HTTP_FAILURE, body=json.dumps(message)).to_dict()
