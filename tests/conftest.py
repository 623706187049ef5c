"""
Shared test config
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from istiocsr_operator.test_helpers.helpers import configure_logging, operand_image

configure_logging()


@pytest.fixture(autouse=True)
def no_local_kubeconfig():
    """This fixture makes sure the tests run as if KUBECONFIG is not exported in
    the environment, even if it is
    """
    with mock.patch(
        "kubernetes.config.new_client_from_config", side_effect=RuntimeError
    ):
        yield


@pytest.fixture(autouse=True)
def no_retry_backoff():
    """Conflict retries must not slow the tests down"""
    with mock.patch("istiocsr_operator.client.base.time.sleep"):
        yield


@pytest.fixture
def image_env():
    """The operand image environment variable set to the test image"""
    with operand_image():
        yield
