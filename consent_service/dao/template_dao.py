import uuid

from werkzeug.exceptions import NotFound

from consent_service.dao.base_dao import UpdatableDao, required_field
from consent_service.logic.criteria import Criteria, select_first, validate_criteria
from consent_service.model.template import Template


class TemplateDao(UpdatableDao):
    def __init__(self):
        super(TemplateDao, self).__init__(Template)

    def get_id(self, obj):
        return obj.guid

    def _validate_model(self, session, obj):
        validate_criteria(obj.criteria or Criteria())

    def insert_with_session(self, session, obj):
        if not obj.guid:
            obj.guid = str(uuid.uuid4())
        return super(TemplateDao, self).insert_with_session(session, obj)

    def _do_update(self, session, obj, existing_obj):
        obj.deleted = existing_obj.deleted
        obj.templateType = existing_obj.templateType
        return super(TemplateDao, self)._do_update(session, obj, existing_obj)

    def get_template_with_session(self, session, app_id, guid, include_deleted=False):
        template = self.get_with_session(session, guid)
        if template is None or template.appId != app_id or (template.deleted and not include_deleted):
            raise NotFound(f"Template {guid} not found.")
        return template

    @staticmethod
    def get_templates_with_session(session, app_id, template_type=None, include_deleted=False):
        query = session.query(Template).filter(Template.appId == app_id)
        if template_type:
            query = query.filter(Template.templateType == template_type)
        if not include_deleted:
            query = query.filter(Template.deleted.is_(False))
        return query.order_by(Template.created, Template.guid).all()

    def get_template_for_user(self, app_id, template_type, context):
        """The earliest created template of the type whose criteria match the participant."""
        with self.session() as session:
            candidates = self.get_templates_with_session(session, app_id, template_type)
        template = select_first(candidates, context)
        if template is None:
            raise NotFound(f"No {template_type} template matches this participant.")
        return template

    def delete_with_session(self, session, app_id, guid, physical=False):
        template = self.get_template_with_session(session, app_id, guid, include_deleted=physical)
        if physical:
            session.delete(template)
        else:
            template.deleted = True
            template.version += 1
        return template

    def to_client_json(self, model):
        return {
            "guid": model.guid,
            "templateType": model.templateType,
            "name": model.name,
            "criteria": (model.criteria or Criteria()).to_json(),
            "documentContent": model.documentContent,
            "deleted": model.deleted,
            "version": model.version,
            "createdOn": model.created.isoformat() if model.created else None,
        }

    def from_client_json(self, resource, app_id=None, id_=None, expected_version=None, **kwargs):
        return Template(
            guid=id_ or resource.get("guid"),
            appId=app_id,
            templateType=required_field(resource, "templateType"),
            name=required_field(resource, "name"),
            criteria=Criteria.from_json(resource.get("criteria")),
            documentContent=resource.get("documentContent"),
            version=expected_version if expected_version is not None else resource.get("version"),
        )
