from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from fleet_reconciler.config.settings import CompletionMode
from fleet_reconciler.handlers import scale_in_handler
from fleet_reconciler.handlers.scale_in_handler import (
    ScaleInReconciler,
    find_command_document,
    send_backup_command,
)
from fleet_reconciler.schemas import LifecycleActionResult
from tests.consts import (
    TEST_ACTION_TOKEN,
    TEST_ASG_NAME,
    TEST_BUCKET_NAME,
    TEST_DNS_NAME,
    TEST_DOCUMENT_NAME,
    TEST_HOOK_NAME,
    TEST_INSTANCE_ID,
    TEST_REGION,
)
from tests.fixtures.event_fixtures import sns_event, terminating_message


def client_error(operation, code="InternalServerError"):
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


@pytest.fixture
def ssm_client():
    client = MagicMock()
    client.list_documents.return_value = {
        "DocumentIdentifiers": [{"Name": TEST_DOCUMENT_NAME, "DocumentVersion": "1"}]
    }
    client.send_command.return_value = {"Command": {"CommandId": "cmd-1", "Status": "Pending"}}
    return client


@pytest.fixture
def fleet_manager():
    return MagicMock()


@pytest.fixture
def reconciler(ssm_client, fleet_manager):
    return ScaleInReconciler(
        ssm_client=ssm_client,
        region=TEST_REGION,
        document_name=TEST_DOCUMENT_NAME,
        dns_name=TEST_DNS_NAME,
        bucket_name=TEST_BUCKET_NAME,
        fleet_manager=fleet_manager,
    )


def test_backup_command_gets_all_parameters(reconciler, ssm_client, fleet_manager, terminating_event):
    response = reconciler.handle(terminating_event)

    assert response["statusCode"] == 200
    ssm_client.list_documents.assert_called_once_with(
        Filters=[{"Key": "Name", "Values": [TEST_DOCUMENT_NAME]}]
    )
    ssm_client.send_command.assert_called_once_with(
        DocumentName=TEST_DOCUMENT_NAME,
        InstanceIds=[TEST_INSTANCE_ID],
        TimeoutSeconds=300,
        Parameters={
            "region": [TEST_REGION],
            "domainName": [TEST_DNS_NAME],
            "bucketName": [TEST_BUCKET_NAME],
            "autoScalingGroupName": [TEST_ASG_NAME],
            "lifecycleHookName": [TEST_HOOK_NAME],
            "lifecycleActionToken": [TEST_ACTION_TOKEN],
        },
    )
    # the document releases the hold, never the handler
    fleet_manager.complete_lifecycle_action.assert_not_called()


def test_missing_document_leaves_hold_unresolved(reconciler, ssm_client, fleet_manager, terminating_event):
    ssm_client.list_documents.return_value = {"DocumentIdentifiers": []}

    response = reconciler.handle(terminating_event)

    assert response["statusCode"] == 200
    ssm_client.send_command.assert_not_called()
    fleet_manager.complete_lifecycle_action.assert_not_called()


def test_prefix_match_is_not_a_match(reconciler, ssm_client, terminating_event):
    ssm_client.list_documents.return_value = {
        "DocumentIdentifiers": [{"Name": f"{TEST_DOCUMENT_NAME}-v2"}]
    }

    reconciler.handle(terminating_event)

    ssm_client.send_command.assert_not_called()


def test_list_documents_failure_is_treated_as_missing(reconciler, ssm_client, fleet_manager, terminating_event):
    ssm_client.list_documents.side_effect = client_error("ListDocuments")

    response = reconciler.handle(terminating_event)

    assert response["statusCode"] == 200
    ssm_client.send_command.assert_not_called()
    fleet_manager.complete_lifecycle_action.assert_not_called()


@pytest.mark.parametrize("error", [
    client_error("SendCommand", "InvalidInstanceId"),
    EndpointConnectionError(endpoint_url="https://ssm.us-east-1.amazonaws.com"),
])
def test_send_command_failure_is_swallowed(reconciler, ssm_client, fleet_manager, terminating_event, error):
    ssm_client.send_command.side_effect = error

    response = reconciler.handle(terminating_event)

    assert response["statusCode"] == 200
    fleet_manager.complete_lifecycle_action.assert_not_called()


@pytest.mark.parametrize("event", [
    {},
    None,
    {"Records": [{"Sns": {"Message": None}}]},
    {"Records": {"Sns": {"Message": "{}"}}},
    {"Records": ["not-a-record"]},
    {"Records": [{"Sns": "not-a-dict"}]},
    {"Records": []},
    sns_event("{broken"),
])
def test_missing_message_returns_500(reconciler, ssm_client, event):
    response = reconciler.handle(event)

    assert response["statusCode"] == 500
    ssm_client.list_documents.assert_not_called()


def test_terminating_message_without_token_is_malformed(reconciler, ssm_client):
    message = terminating_message()
    del message["LifecycleActionToken"]

    response = reconciler.handle(sns_event(message))

    assert response["statusCode"] == 500
    ssm_client.send_command.assert_not_called()


def test_test_notification_is_acknowledged(reconciler, ssm_client):
    event = sns_event({
        "AccountId": "123456789012",
        "RequestId": "d5ff2ca4-9e3a-4c4e-9f4a-8b9d7c0a1e2f",
        "AutoScalingGroupARN": "arn:aws:autoscaling:us-east-1:123456789012:autoScalingGroup",
        "AutoScalingGroupName": TEST_ASG_NAME,
        "Service": "AWS Auto Scaling",
        "Event": "autoscaling:TEST_NOTIFICATION",
        "Time": "2021-04-15T16:00:00.000Z",
    })

    response = reconciler.handle(event)

    assert response["statusCode"] == 200
    ssm_client.list_documents.assert_not_called()


def test_launching_transition_is_ignored(reconciler, ssm_client):
    message = terminating_message()
    message["LifecycleTransition"] = "autoscaling:EC2_INSTANCE_LAUNCHING"

    response = reconciler.handle(sns_event(message))

    assert response["statusCode"] == 200
    ssm_client.list_documents.assert_not_called()


def test_direct_mode_completes_without_backup(ssm_client, fleet_manager, terminating_event):
    reconciler = ScaleInReconciler(
        ssm_client=ssm_client,
        region=TEST_REGION,
        document_name=TEST_DOCUMENT_NAME,
        fleet_manager=fleet_manager,
        completion_mode=CompletionMode.DIRECT,
    )

    response = reconciler.handle(terminating_event)

    assert response["statusCode"] == 200
    ssm_client.send_command.assert_not_called()
    fleet_manager.complete_lifecycle_action.assert_called_once_with(
        group_name=TEST_ASG_NAME,
        hook_name=TEST_HOOK_NAME,
        action_token=TEST_ACTION_TOKEN,
        instance_id=TEST_INSTANCE_ID,
        result=LifecycleActionResult.CONTINUE,
    )


def test_direct_mode_completion_failure_is_not_raised(ssm_client, fleet_manager, terminating_event):
    fleet_manager.complete_lifecycle_action.side_effect = client_error("CompleteLifecycleAction", "ValidationError")
    reconciler = ScaleInReconciler(
        ssm_client=ssm_client,
        region=TEST_REGION,
        document_name=TEST_DOCUMENT_NAME,
        fleet_manager=fleet_manager,
        completion_mode=CompletionMode.DIRECT,
    )

    response = reconciler.handle(terminating_event)

    assert response["statusCode"] == 200


def test_direct_mode_requires_fleet_manager(ssm_client):
    with pytest.raises(ValueError):
        ScaleInReconciler(
            ssm_client=ssm_client,
            region=TEST_REGION,
            document_name=TEST_DOCUMENT_NAME,
            completion_mode=CompletionMode.DIRECT,
        )


def test_find_command_document_returns_exact_match(ssm_client):
    document = find_command_document(ssm_client, TEST_DOCUMENT_NAME)

    assert document["Name"] == TEST_DOCUMENT_NAME


def test_send_backup_command_skips_unnamed_document(ssm_client):
    assert send_backup_command(ssm_client, {}, TEST_INSTANCE_ID, {}) is None
    ssm_client.send_command.assert_not_called()


def test_lambda_handler_requires_backup_settings(terminating_event):
    from fleet_reconciler.errors import ConfigurationError

    with pytest.raises(ConfigurationError, match="BUCKET_NAME"):
        scale_in_handler.lambda_handler(terminating_event, None)


def test_lambda_handler_direct_mode_uses_autoscaling(monkeypatch, terminating_event):
    monkeypatch.setenv("LIFECYCLE_COMPLETION_MODE", "direct")
    clients = {"ssm": MagicMock(), "autoscaling": MagicMock()}
    monkeypatch.setattr(
        scale_in_handler.AWSClientFactory, "get_client", lambda self, name: clients[name]
    )

    response = scale_in_handler.lambda_handler(terminating_event, None)

    assert response["statusCode"] == 200
    clients["autoscaling"].complete_lifecycle_action.assert_called_once()
    clients["ssm"].send_command.assert_not_called()


@pytest.mark.parametrize("timestamp", ["yesterday", "2021-13-45T99:99:99Z", ""])
def test_unparseable_time_still_runs_backup(reconciler, ssm_client, timestamp):
    message = terminating_message()
    message["Time"] = timestamp

    response = reconciler.handle(sns_event(message))

    assert response["statusCode"] == 200
    ssm_client.send_command.assert_called_once()


def test_command_timeout_default_matches_settings(ssm_client):
    from fleet_reconciler.config.settings import Settings

    reconciler = ScaleInReconciler(ssm_client=ssm_client, region=TEST_REGION, document_name=TEST_DOCUMENT_NAME)

    assert reconciler.command_timeout_seconds == Settings().command_timeout_seconds
