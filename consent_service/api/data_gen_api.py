import logging

from flask_restful import Resource

from consent_service.api.base_api import get_request_json
from consent_service.api_util import SUPERADMIN
from consent_service.app_util import nonprod
from consent_service.dao.account_dao import AccountDao
from consent_service.dao.app_dao import AppDao
from consent_service.dao.base_dao import required_field
from consent_service.model.account import Account
from consent_service.participant_enums import AccountStatus, SharingScope
from consent_service.services.authentication import hash_password


class DataGenApi(Resource):
    """Creates an app with a superadmin account so that test environments can be set up through
    the API. Never available in production."""

    def __init__(self):
        self.app_dao = AppDao()
        self.account_dao = AccountDao()

    @nonprod
    def post(self):
        resource = get_request_json()
        app = self.app_dao.from_client_json(resource)
        admin_email = required_field(resource, "adminEmail")
        admin_password = required_field(resource, "adminPassword")
        with self.app_dao.session() as session:
            self.app_dao.insert_with_session(session, app)
            session.flush()
            admin = Account(
                appId=app.appId,
                email=admin_email,
                passwordHash=hash_password(admin_password),
                status=AccountStatus.ENABLED,
                roles=[SUPERADMIN],
                dataGroups=[],
                languages=[],
                sharingScope=SharingScope.NO_SHARING,
                emailVerified=True,
                phoneVerified=False,
            )
            self.account_dao.insert_account_with_session(session, admin)
            logging.info(f"Created app {app.appId} with superadmin account {admin.id}.")
            return {"app": self.app_dao.to_client_json(app), "adminId": admin.id}, 201
