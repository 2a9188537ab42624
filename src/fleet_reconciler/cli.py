# cli.py
import json
import logging

import click

from fleet_reconciler.aws_clients import AWSClientFactory
from fleet_reconciler.config.settings import get_settings
from fleet_reconciler.errors import FleetReconcilerError
from fleet_reconciler.fleet import FleetManager
from fleet_reconciler.handlers import scale_in_handler, scale_out_handler
from fleet_reconciler.utils.log_setup import configure_logging

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Operator commands for the OpenVPN fleet reconcilers"""
    configure_logging(get_settings().log_level)


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Region: {settings.region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  Auto Scaling Group: {settings.asg_group_name}")
    print(f"  Desired ASG Size: {settings.desired_asg_size}")
    print(f"  DNS Name: {settings.dns_name}")
    print(f"  Hosted Zone: {settings.hosted_zone}")
    print(f"  DNS TTL: {settings.dns_ttl}")
    print(f"  Command Document: {settings.document_name}")
    print(f"  Certificate Bucket: {settings.bucket_name}")
    print(f"  Lifecycle Completion: {settings.lifecycle_completion_mode.value}")


@cli.command()
@click.option("--group", default=None, help="Auto scaling group name (defaults to ASG_GROUP_NAME)")
def status(group):
    """Show desired capacity and instances of the auto scaling group"""
    settings = get_settings()
    group = group or settings.asg_group_name
    if not group:
        raise click.UsageError("No auto scaling group given and ASG_GROUP_NAME is not set")

    fleet = FleetManager(AWSClientFactory(settings).autoscaling())
    try:
        capacity = fleet.describe_capacity(group)
    except FleetReconcilerError as e:
        raise click.ClickException(str(e))

    print(f"Auto Scaling Group: {group}")
    print(f"  Desired: {capacity['desired']} (min {capacity['min_size']}, max {capacity['max_size']})")
    for instance_id, state in capacity['instances'].items():
        print(f"  {instance_id}: {state}")


@cli.command()
@click.option("--size", type=click.IntRange(0, 1), required=True, help="Desired capacity")
@click.option("--group", default=None, help="Auto scaling group name (defaults to ASG_GROUP_NAME)")
def set_capacity(size, group):
    """Set the desired capacity of the auto scaling group"""
    settings = get_settings()
    group = group or settings.asg_group_name
    if not group:
        raise click.UsageError("No auto scaling group given and ASG_GROUP_NAME is not set")

    fleet = FleetManager(AWSClientFactory(settings).autoscaling())
    fleet.set_desired_capacity(group, size)
    print(f"✅ {group} desired capacity set to {size}")


@cli.command()
@click.argument("handler", type=click.Choice(["scale-out", "scale-in"]))
@click.argument("event_file", type=click.File("r"))
def replay(handler, event_file):
    """Run a handler locally against a recorded notification (SNS event or bare message)"""
    event = json.load(event_file)

    if handler == "scale-out":
        result = scale_out_handler.lambda_handler(event, None)
    else:
        result = scale_in_handler.lambda_handler(event, None)

    print(json.dumps(result, indent=2))
    if result.get("statusCode") != 200:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
