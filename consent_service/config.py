"""Service settings.

Settings live in one JSON document. The document shipped in config/base_config.json supplies the
defaults; a stored document (see ConfigProvider) overrides them key by key.
"""
import json
import logging
import os

from abc import ABC, abstractmethod

from consent_service import singletons
from consent_service.provider import Provider

_NO_DEFAULT = object()

# Name the service configuration is stored under
CONFIG_SINGLETON_KEY = "current_config"
CONFIG_CACHE_TTL_SECONDS = 60

DB_CONNECTION_STRING = "db_connection_string"
DEFAULT_PAGE_SIZE = "default_page_size"
MAX_PAGE_SIZE = "max_page_size"
SESSION_TOKEN_LENGTH = "session_token_length"

SENDGRID_KEY = "sendgrid_key"
SENDGRID_FROM_EMAIL = "sendgrid_from_email"
VERIFICATION_EMAIL_SUBJECT = "verification_email_subject"
VERIFICATION_EMAIL_BODY = "verification_email_body"

# Allow requests which are never permitted in production, such as creating
# fully configured test apps through the API.
ALLOW_NONPROD_REQUESTS = "allow_nonprod_requests"

# Per-key overrides used by tests; a None value means "not overridden".
CONFIG_OVERRIDES = {}


def override_setting(key, value):
    CONFIG_OVERRIDES[key] = value


class MissingConfigException(Exception):
    """Raised when a setting without a default is not configured"""


class InvalidConfigException(Exception):
    """Raised when a setting does not have the expected shape"""


class ConfigProvider(Provider, ABC):
    environment_variable_name = 'CONSENT_CONFIG_PROVIDER'

    @abstractmethod
    def load(self, name):
        """Returns the stored document, or None if nothing is stored under the name."""

    @abstractmethod
    def store(self, name, config_dict):
        pass


class LocalFilesystemConfigProvider(ConfigProvider):
    """Keeps each document as <CONSENT_CONFIG_ROOT>/<name>.json."""
    DEFAULT_CONFIG_ROOT = os.path.join(os.path.dirname(__file__), '.configs')

    def __init__(self):
        self._config_root = os.environ.get('CONSENT_CONFIG_ROOT', self.DEFAULT_CONFIG_ROOT)
        os.makedirs(self._config_root, exist_ok=True)

    def _path(self, name):
        return os.path.join(self._config_root, f'{name}.json')

    def load(self, name):
        path = self._path(name)
        if not os.path.exists(path):
            return None
        with open(path, 'r') as handle:
            return json.load(handle)

    def store(self, name, config_dict):
        with open(self._path(name), 'w') as handle:
            json.dump(config_dict, handle, indent=2, sort_keys=True)


def get_config_provider() -> ConfigProvider:
    provider_class = ConfigProvider.get_provider(default=LocalFilesystemConfigProvider)
    return provider_class()


def load_base_config():
    base_config_path = os.path.join(os.path.dirname(__file__), 'config', 'base_config.json')
    with open(base_config_path, 'r') as handle:
        return json.load(handle)


def store_current_config(config_dict):
    get_config_provider().store(CONFIG_SINGLETON_KEY, config_dict)
    singletons.invalidate(singletons.MAIN_CONFIG_INDEX)
    return config_dict


def _load_current_config():
    current = load_base_config()
    stored = get_config_provider().load(CONFIG_SINGLETON_KEY)
    if stored is None:
        logging.info('No stored configuration found, using the base configuration.')
    else:
        current.update(stored)
    return current


def get_config():
    return singletons.get(
        singletons.MAIN_CONFIG_INDEX, _load_current_config, cache_ttl_seconds=CONFIG_CACHE_TTL_SECONDS
    )


def getSettingJson(key, default=_NO_DEFAULT):
    """Returns the setting as stored, which may be any JSON value.

    Raises:
      MissingConfigException: if the key is not configured and no default is given.
    """
    override = CONFIG_OVERRIDES.get(key)
    if override is not None:
        return override

    value = get_config().get(key, default)
    if value is _NO_DEFAULT:
        raise MissingConfigException(f'Config key "{key}" has no value.')
    return value


def getSetting(key, default=_NO_DEFAULT):
    """Returns a single-valued setting. A list holding exactly one entry yields that entry."""
    value = getSettingJson(key, default)
    if isinstance(value, list):
        if len(value) != 1:
            raise InvalidConfigException(f"Config key {key} has {len(value)} entries instead of one.")
        return value[0]
    return value
