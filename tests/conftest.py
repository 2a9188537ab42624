from tests.fixtures.aws_fixtures import (  # noqa: F401
    autoscaling_client,
    aws_credentials,
    clean_settings,
    hosted_zone,
    mocked_aws,
    openvpn_asg,
    route53_client,
)
from tests.fixtures.event_fixtures import launch_event, terminating_event  # noqa: F401
