import sqlalchemy as sa

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import CriteriaType, UTCDateTime


class AppConfig(Base):
    """Client configuration delivered to the app version, platform and language it matches."""

    __tablename__ = "app_config"
    guid = sa.Column("guid", sa.String(60), primary_key=True)
    appId = sa.Column("app_id", sa.String(60), sa.ForeignKey("app.app_id"), nullable=False)
    label = sa.Column("label", sa.String(255), nullable=False)
    criteria = sa.Column("criteria", CriteriaType)
    clientData = sa.Column("client_data", sa.JSON)
    deleted = sa.Column("deleted", sa.Boolean, nullable=False, default=False)
    version = sa.Column("version", sa.Integer, nullable=False, default=1)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)


sa.event.listen(AppConfig, "before_insert", model_insert_listener)
sa.event.listen(AppConfig, "before_update", model_update_listener)
