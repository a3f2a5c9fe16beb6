from consent_service import api_util, app_util
from consent_service.api.base_api import BaseApi
from consent_service.dao.subpopulation_dao import SubpopulationDao


class SubpopulationApi(BaseApi):
    method_decorators = [app_util.auth_required(api_util.DEVELOPER_AND_ADMIN)]

    def __init__(self):
        super(SubpopulationApi, self).__init__(SubpopulationDao())

    def _get_model(self, session, app_id, id_):
        return self.dao.get_subpopulation_with_session(session, app_id, id_)

    def _list_models(self, session, app_id, include_deleted):
        return self.dao.get_subpopulations_with_session(session, app_id, include_deleted)

    def _delete_model(self, session, app_id, id_, physical):
        return self.dao.delete_with_session(session, app_id, id_, physical)
