import sqlalchemy as sa

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import UTCDateTime


class Substudy(Base):
    """A partition of an app that scopes account visibility and external identifiers."""

    __tablename__ = "substudy"
    appId = sa.Column("app_id", sa.String(60), sa.ForeignKey("app.app_id"), primary_key=True)
    id = sa.Column("id", sa.String(60), primary_key=True)
    name = sa.Column("name", sa.String(255), nullable=False)
    deleted = sa.Column("deleted", sa.Boolean, nullable=False, default=False)
    version = sa.Column("version", sa.Integer, nullable=False, default=1)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)


sa.event.listen(Substudy, "before_insert", model_insert_listener)
sa.event.listen(Substudy, "before_update", model_update_listener)
