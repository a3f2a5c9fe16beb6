from consent_service import api_util, app_util
from consent_service.api.base_api import BaseApi
from consent_service.dao.substudy_dao import SubstudyDao


class SubstudyApi(BaseApi):
    method_decorators = {
        "get": [app_util.auth_required(api_util.STUDY_STAFF)],
        "post": [app_util.auth_required(api_util.SUPERADMIN_AND_ADMIN)],
        "delete": [app_util.auth_required(api_util.SUPERADMIN_AND_ADMIN)],
    }

    def __init__(self):
        super(SubstudyApi, self).__init__(SubstudyDao())

    def _get_model(self, session, app_id, id_):
        return self.dao.get_substudy_with_session(session, app_id, id_)

    def _list_models(self, session, app_id, include_deleted):
        return self.dao.get_substudies_with_session(session, app_id, include_deleted)

    def _delete_model(self, session, app_id, id_, physical):
        return self.dao.delete_with_session(session, app_id, id_, physical)
