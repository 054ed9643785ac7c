import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from sessync.core.config import Config
from sessync.core.ses_api import SESTemplateAPI, TemplateNotFoundError


@pytest.fixture
def stubbed():
    session = boto3.session.Session(
        region_name="us-east-1", aws_access_key_id="testing", aws_secret_access_key="testing"
    )
    client = session.client("sesv2")
    with Stubber(client) as stubber:
        yield SESTemplateAPI(client), stubber
        stubber.assert_no_pending_responses()


EXPECTED = {
    "TemplateName": "welcome",
    "TemplateContent": {"Subject": "Hi", "Text": "Hello", "Html": "<p>Hello</p>"},
}


def test_update_template(stubbed):
    api, stubber = stubbed
    stubber.add_response("update_email_template", {}, EXPECTED)
    api.update_template("welcome", "<p>Hello</p>", "Hi", "Hello")


def test_update_missing_template_raises_not_found(stubbed):
    api, stubber = stubbed
    stubber.add_client_error(
        "update_email_template", service_error_code="NotFoundException", http_status_code=404
    )
    with pytest.raises(TemplateNotFoundError) as exc:
        api.update_template("welcome", "<p>Hello</p>", "Hi", "Hello")
    assert exc.value.name == "welcome"
    assert isinstance(exc.value.cause, ClientError)


def test_update_other_error_propagates(stubbed):
    api, stubber = stubbed
    stubber.add_client_error(
        "update_email_template", service_error_code="TooManyRequestsException", http_status_code=429
    )
    with pytest.raises(ClientError):
        api.update_template("welcome", "<p>Hello</p>", "Hi", "Hello")


def test_create_template(stubbed):
    api, stubber = stubbed
    stubber.add_response("create_email_template", {}, EXPECTED)
    api.create_template("welcome", "<p>Hello</p>", "Hi", "Hello")


def test_from_config_uses_static_credentials():
    api = SESTemplateAPI.from_config(Config(path="/tmp/c.json", aws_region="eu-west-1",
                                            aws_key="AKIAEXAMPLE", aws_secret="secret"))
    assert api.client.meta.region_name == "eu-west-1"
    creds = api.client._request_signer._credentials
    assert creds.access_key == "AKIAEXAMPLE"
    assert creds.secret_key == "secret"
