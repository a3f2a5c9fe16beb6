from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from consent_service.model.base import Base

# All tables in the schema should be imported below here.
# pylint: disable=unused-import
from consent_service.model.account import Account, AccountSession, AccountSubstudy
from consent_service.model.app import App
from consent_service.model.app_config import AppConfig
from consent_service.model.consent import ConsentSignature, IntentToParticipate
from consent_service.model.external_identifier import ExternalIdentifier
from consent_service.model.organization import Organization, OrganizationSponsoredStudy
from consent_service.model.subpopulation import StudyConsent, Subpopulation
from consent_service.model.substudy import Substudy
from consent_service.model.template import Template


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):  # pylint: disable=unused-argument
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON;")
    cursor.close()


# Server databases drop idle connections; recycle ours well before MySQL's default wait_timeout.
_SERVER_ENGINE_OPTIONS = dict(pool_pre_ping=True, pool_recycle=3600, pool_size=30, max_overflow=20)


class Database(object):
    """Owns the engine and hands out sessions bound to it."""

    def __init__(self, url, **kwargs):
        self.db_type = url.drivername
        if self.db_type.startswith("sqlite"):
            if url.database in (None, "", ":memory:"):
                # An in-memory database lives in one connection; every thread has to share it.
                kwargs.setdefault("poolclass", StaticPool)
                kwargs.setdefault("connect_args", {"check_same_thread": False})
            self._engine = create_engine(url, **kwargs)
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self._engine = create_engine(url, **_SERVER_ENGINE_OPTIONS, **kwargs)
        # Models stay readable after their session commits and closes.
        self._Session = sessionmaker(bind=self._engine, expire_on_commit=False)

    def create_schema(self):
        Base.metadata.create_all(self._engine)

    def make_session(self) -> Session:
        return self._Session()

    @contextmanager
    def session(self):
        """Yields a session that is committed when the block exits cleanly and rolled back otherwise."""
        sess = self.make_session()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()
