import pytest
import responses

from models import BlinkSession, Credentials


@pytest.fixture
def credentials(tmp_path):
    return Credentials(
        email="user@example.com",
        password="hunter2",
        save_directory=tmp_path,
        api_host="rest-prod.immedia-semi.com",
    )


@pytest.fixture
def session():
    return BlinkSession(auth_token="tok", account_id=123, client_id=456, tier="e")


@pytest.fixture
def mocked_responses():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps
