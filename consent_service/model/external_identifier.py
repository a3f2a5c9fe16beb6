import sqlalchemy as sa

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import UTCDateTime


class ExternalIdentifier(Base):
    """
    A study provisioned identifier that can be used in place of an email or phone. The identifier
    string is only unique within its owning substudy.
    """

    __tablename__ = "external_identifier"
    appId = sa.Column("app_id", sa.String(60), primary_key=True)
    substudyId = sa.Column("substudy_id", sa.String(60), primary_key=True)
    identifier = sa.Column("identifier", sa.String(255), primary_key=True)
    accountId = sa.Column("account_id", sa.String(24), sa.ForeignKey("account.id", ondelete="SET NULL"))
    """The account the identifier is assigned to, if any"""
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)

    __table_args__ = (
        sa.ForeignKeyConstraint(["app_id", "substudy_id"], ["substudy.app_id", "substudy.id"]),
        sa.Index("idx_external_identifier_identifier", "app_id", "identifier"),
    )

    @property
    def assigned(self):
        return self.accountId is not None


sa.event.listen(ExternalIdentifier, "before_insert", model_insert_listener)
sa.event.listen(ExternalIdentifier, "before_update", model_update_listener)
