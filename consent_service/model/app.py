import sqlalchemy as sa

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import UTCDateTime


class App(Base):
    """One deployment of a study programme; every other entity is scoped to an app."""

    __tablename__ = "app"
    appId = sa.Column("app_id", sa.String(60), primary_key=True)
    name = sa.Column("name", sa.String(255), nullable=False)
    externalIdValidationEnabled = sa.Column("external_id_validation_enabled", sa.Boolean, nullable=False,
                                            default=False)
    """When set, external identifiers used at sign-up must already exist in the registry"""
    externalIdRequiredOnSignup = sa.Column("external_id_required_on_signup", sa.Boolean, nullable=False,
                                           default=False)
    dataGroups = sa.Column("data_groups", sa.JSON, nullable=False, default=list)
    """Data groups that accounts in this app may be placed in"""
    version = sa.Column("version", sa.Integer, nullable=False, default=1)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)


sa.event.listen(App, "before_insert", model_insert_listener)
sa.event.listen(App, "before_update", model_update_listener)
