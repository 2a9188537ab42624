"""
Reconcilers for a scale-to-zero OpenVPN gateway fleet.

Contains the Lambda handlers that react to auto scaling notifications and the
scheduled capacity setpoint, plus the settings, schemas and client factory
they share.
"""

__version__ = "0.1.0"
