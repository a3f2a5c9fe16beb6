import sqlalchemy as sa

from consent_service.model.base import Base, model_insert_listener, model_update_listener
from consent_service.model.utils import CriteriaType, UTCDateTime


class Template(Base):
    """A message template (e.g. a verification email); one is chosen per type by criteria."""

    __tablename__ = "template"
    guid = sa.Column("guid", sa.String(60), primary_key=True)
    appId = sa.Column("app_id", sa.String(60), sa.ForeignKey("app.app_id"), nullable=False)
    templateType = sa.Column("template_type", sa.String(80), nullable=False)
    name = sa.Column("name", sa.String(255), nullable=False)
    criteria = sa.Column("criteria", CriteriaType)
    documentContent = sa.Column("document_content", sa.Text)
    deleted = sa.Column("deleted", sa.Boolean, nullable=False, default=False)
    version = sa.Column("version", sa.Integer, nullable=False, default=1)
    created = sa.Column("created", UTCDateTime, nullable=False)
    modified = sa.Column("modified", UTCDateTime, nullable=False)

    __table_args__ = (
        sa.Index("idx_template_type", "app_id", "template_type"),
    )


sa.event.listen(Template, "before_insert", model_insert_listener)
sa.event.listen(Template, "before_update", model_update_listener)
