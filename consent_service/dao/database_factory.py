import os

from sqlalchemy.engine.url import make_url

from consent_service import singletons
from consent_service.model.database import Database

_DEFAULT_CONNECTION_STRING = "sqlite://"


class _SqlDatabase(Database):
    def __init__(self, **kwargs):
        url = make_url(get_db_connection_string())
        super(_SqlDatabase, self).__init__(url, **kwargs)
        if self.db_type.startswith("sqlite"):
            # Local and test databases have no migrations; their tables are created on first use.
            self.create_schema()


def get_database() -> Database:
    """Returns a singleton _SqlDatabase."""
    return singletons.get(singletons.SQL_DATABASE_INDEX, _SqlDatabase)


def get_db_connection_string() -> str:
    """
    Return the database connection string we should use to connect with.
    :return: connection string.
    """
    # Tools and deployments define the connection string in the environment.
    env_db_connection_string = os.environ.get('DB_CONNECTION_STRING', None)
    if not os.environ.get("UNITTEST_FLAG", None) and env_db_connection_string:
        return env_db_connection_string

    if os.environ.get("UNITTEST_FLAG", None):
        return _DEFAULT_CONNECTION_STRING

    # Only import "config" on demand, so that tools can connect without loading the
    # service configuration.
    from consent_service import config
    return config.getSettingJson(config.DB_CONNECTION_STRING, _DEFAULT_CONNECTION_STRING)
