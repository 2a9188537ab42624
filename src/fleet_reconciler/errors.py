"""Exceptions raised by the fleet reconcilers."""


class FleetReconcilerError(Exception):
    """Base class for reconciler errors"""
    pass


class ConfigurationError(FleetReconcilerError):
    """Raised when a handler is invoked without the settings it needs"""
    pass


class MalformedEventError(FleetReconcilerError):
    """Raised when a notification body is missing or cannot be parsed.

    Handlers report this as a 500 response instead of re-raising it.
    """
    pass


class RetryableReconcileError(FleetReconcilerError):
    """Raised out of a handler so the delivery transport redelivers the event"""
    pass


class PublicAddressNotReady(RetryableReconcileError):
    """Raised when a launched instance has no public IPv4 address yet"""

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Could not retrieve the public IP address for EC2 instance {instance_id}")
