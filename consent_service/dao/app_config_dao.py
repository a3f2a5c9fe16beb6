import uuid

from werkzeug.exceptions import NotFound

from consent_service.dao.base_dao import UpdatableDao, required_field
from consent_service.logic.criteria import Criteria, select_best_fit, validate_criteria
from consent_service.model.app_config import AppConfig


class AppConfigDao(UpdatableDao):
    def __init__(self):
        super(AppConfigDao, self).__init__(AppConfig)

    def get_id(self, obj):
        return obj.guid

    def _validate_model(self, session, obj):
        validate_criteria(obj.criteria or Criteria())

    def insert_with_session(self, session, obj):
        if not obj.guid:
            obj.guid = str(uuid.uuid4())
        return super(AppConfigDao, self).insert_with_session(session, obj)

    def _do_update(self, session, obj, existing_obj):
        obj.deleted = existing_obj.deleted
        return super(AppConfigDao, self)._do_update(session, obj, existing_obj)

    def get_app_config_with_session(self, session, app_id, guid, include_deleted=False):
        app_config = self.get_with_session(session, guid)
        if app_config is None or app_config.appId != app_id or (app_config.deleted and not include_deleted):
            raise NotFound(f"App config {guid} not found.")
        return app_config

    @staticmethod
    def get_app_configs_with_session(session, app_id, include_deleted=False):
        query = session.query(AppConfig).filter(AppConfig.appId == app_id)
        if not include_deleted:
            query = query.filter(AppConfig.deleted.is_(False))
        return query.order_by(AppConfig.created, AppConfig.guid).all()

    def get_app_config_for_user(self, app_id, context):
        """The app config best fitting the requester's platform, version and languages."""
        with self.session() as session:
            candidates = self.get_app_configs_with_session(session, app_id)
        app_config = select_best_fit(candidates, context)
        if app_config is None:
            raise NotFound("No app config matches this client.")
        return app_config

    def delete_with_session(self, session, app_id, guid, physical=False):
        app_config = self.get_app_config_with_session(session, app_id, guid, include_deleted=physical)
        if physical:
            session.delete(app_config)
        else:
            app_config.deleted = True
            app_config.version += 1
        return app_config

    def to_client_json(self, model):
        return {
            "guid": model.guid,
            "label": model.label,
            "criteria": (model.criteria or Criteria()).to_json(),
            "clientData": model.clientData,
            "deleted": model.deleted,
            "version": model.version,
            "createdOn": model.created.isoformat() if model.created else None,
        }

    def from_client_json(self, resource, app_id=None, id_=None, expected_version=None, **kwargs):
        return AppConfig(
            guid=id_ or resource.get("guid"),
            appId=app_id,
            label=required_field(resource, "label"),
            criteria=Criteria.from_json(resource.get("criteria")),
            clientData=resource.get("clientData"),
            version=expected_version if expected_version is not None else resource.get("version"),
        )
