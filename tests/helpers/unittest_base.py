import atexit
import http.client
import json
import logging
import mock
import os
import shutil
import sys
import tempfile
import unittest

import faker

os.environ["UNITTEST_FLAG"] = "1"

# pylint: disable=wrong-import-position
from consent_service import config, main, singletons
from consent_service.dao import database_factory
from consent_service.participant_enums import VerificationChannel
from tests.helpers.data_generator import DataGenerator


class BaseTestCase(unittest.TestCase):
    """Base class for unit tests.

  Every test gets a fresh in-memory database and a test client for the API.
  """

    _configs_dir = os.path.join(tempfile.gettempdir(), 'consent_configs')
    _first_setup = True

    def __init__(self, *args, **kwargs):
        super(BaseTestCase, self).__init__(*args, **kwargs)
        self.fake = faker.Faker()
        self.config_data_to_reset = {}
        self.uses_database = True
        self.sends_notifications = False

    def _set_up_test_suite(self):
        self.setup_config()

    def setUp(self) -> None:
        super(BaseTestCase, self).setUp()

        logger = logging.getLogger()
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(logging.Formatter('%(asctime)s %(message)s'))
        logger.addHandler(stream_handler)
        self.addCleanup(logger.removeHandler, stream_handler)

        # Raise to logging.ERROR to see server errors while debugging a test.
        logger.setLevel(logging.CRITICAL)

        if BaseTestCase._first_setup:
            self._set_up_test_suite()
            BaseTestCase._first_setup = False

        # Dropping the cached database handle gives each test an empty in-memory database.
        singletons.reset_for_tests()
        self.app = main.app.test_client()

        self.maxDiff = None

        if not self.sends_notifications:
            self.notifier = self.mock('consent_service.services.notification.SendgridNotifier.send_verification')

        if self.uses_database:
            self.session = database_factory.get_database().make_session()
            self.data_generator = DataGenerator(self.session, self.fake)
        else:
            database_patch = mock.patch('consent_service.dao.database_factory.get_database')
            database_patch.start()
            self.addCleanup(database_patch.stop)

    def tearDown(self):
        super(BaseTestCase, self).tearDown()
        if self.uses_database:
            self.session.close()

        for key, original_data in self.config_data_to_reset.items():
            config.override_setting(key, original_data)
        self.config_data_to_reset = {}

    def setup_config(self):
        os.environ['CONSENT_CONFIG_ROOT'] = self._configs_dir
        if not os.path.exists(self._configs_dir):
            os.mkdir(self._configs_dir)
            atexit.register(self.remove_config)
        config.store_current_config(config.load_base_config())

    def temporarily_override_config_setting(self, key, value):
        """Makes config return value for key until the test finishes."""
        # Restoring a None override falls back to the stored config.
        self.config_data_to_reset.setdefault(key, config.CONFIG_OVERRIDES.get(key))

        config.override_setting(key, value)

    def remove_config(self):
        if os.path.exists(self._configs_dir):
            shutil.rmtree(self._configs_dir)

    def auth_headers(self, account):
        """Headers signing requests in as the given account."""
        account_session = self.data_generator.create_database_account_session(account)
        return {"Authorization": f"Bearer {account_session.token}"}

    def create_staff_account(self, roles, **kwargs):
        return self.data_generator.create_database_account(roles=roles, **kwargs)

    def send_post(self, *args, **kwargs):
        return self.send_request("POST", *args, **kwargs)

    def send_delete(self, *args, **kwargs):
        return self.send_request("DELETE", *args, **kwargs)

    def send_get(self, *args, **kwargs):
        return self.send_request("GET", *args, **kwargs)

    def send_request(self, method, local_path, request_data=None, query_string=None,
                     expected_status=http.client.OK, headers=None, expected_response_headers=None,
                     test_client=None, prefix=main.API_PREFIX):
        """Sends a JSON request to the API and asserts the response status.

        Returns the parsed body for successful responses and the raw response otherwise. Passing
        expected_status=None skips the status check.
        """
        if test_client is None:
            test_client = self.app
        response = test_client.open(
            prefix + local_path,
            method=method,
            data=json.dumps(request_data) if request_data is not None else None,
            query_string=query_string,
            content_type="application/json",
            headers=headers,
        )
        if expected_status is not None:
            self.assertEqual(expected_status, response.status_code, response.data)
        if expected_response_headers:
            self.assertTrue(
                set(expected_response_headers.items()).issubset(set(response.headers.items())),
                "Expected response headers: %s; actual: %s" % (expected_response_headers, response.headers),
            )
        if expected_status in (http.client.OK, http.client.CREATED, http.client.ACCEPTED):
            return json.loads(response.data)

        return response

    def assert_verification_sent(self, channel: VerificationChannel, address):
        self.assertIn(
            (channel, address),
            [(call.args[1], call.args[2]) for call in self.notifier.call_args_list]
        )

    def mock(self, namespace_to_patch):
        patcher = mock.patch(namespace_to_patch)
        mock_instance = patcher.start()
        self.addCleanup(patcher.stop)

        return mock_instance
