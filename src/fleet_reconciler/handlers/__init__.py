"""
Lambda handlers for the OpenVPN fleet.

- capacity_setpoint: scheduled; pins the group's desired capacity to 0 or 1
- scale_out_handler: fleet topic; points DNS at a newly launched instance
- scale_in_handler: terminating lifecycle hook; backs up the certificate
  before the instance is destroyed

Concurrency assumption: the group's maximum size is 1, so at most one
instance is launching or terminating at a time. The handlers do not defend
against concurrent launches of several instances.
"""
