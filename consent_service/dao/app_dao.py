from werkzeug.exceptions import NotFound

from consent_service.dao.base_dao import UpdatableDao, required_field
from consent_service.exceptions import EntityAlreadyExists
from consent_service.model.app import App


class AppDao(UpdatableDao):
    def __init__(self):
        super(AppDao, self).__init__(App)

    def get_id(self, obj):
        return obj.appId

    def _validate_insert(self, session, obj):
        if self.get_with_session(session, obj.appId) is not None:
            raise EntityAlreadyExists(f"App {obj.appId} already exists.")
        super(AppDao, self)._validate_insert(session, obj)

    def get_app_or_404_with_session(self, session, app_id):
        app = self.get_with_session(session, app_id) if app_id else None
        if app is None:
            raise NotFound(f"App {app_id} not found.")
        return app

    def to_client_json(self, model):
        return {
            "appId": model.appId,
            "name": model.name,
            "externalIdValidationEnabled": model.externalIdValidationEnabled,
            "externalIdRequiredOnSignup": model.externalIdRequiredOnSignup,
            "dataGroups": sorted(model.dataGroups or []),
            "version": model.version,
        }

    def from_client_json(self, resource, id_=None, expected_version=None, **kwargs):
        return App(
            appId=id_ or required_field(resource, "appId"),
            name=required_field(resource, "name"),
            externalIdValidationEnabled=bool(resource.get("externalIdValidationEnabled", False)),
            externalIdRequiredOnSignup=bool(resource.get("externalIdRequiredOnSignup", False)),
            dataGroups=sorted(set(resource.get("dataGroups") or [])),
            version=expected_version,
        )
