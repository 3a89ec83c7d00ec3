from tests.fixtures.aws import mocked_aws  # noqa: F401
from tests.fixtures.app import alice, backend, bob, client, test_settings  # noqa: F401
