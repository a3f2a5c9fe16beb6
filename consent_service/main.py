"""Routes of the consent service. Every endpoint speaks JSON."""

import logging

from flask import got_request_exception
from flask_restful import Api
from sqlalchemy.exc import DBAPIError
from werkzeug.exceptions import HTTPException

from consent_service import app_util
from consent_service.api.account_api import AccountApi, IdentifierUpdateApi, SelfApi
from consent_service.api.app_config_api import AppConfigApi, AppConfigForUserApi
from consent_service.api.auth_api import SignInApi, SignOutApi, SignUpApi
from consent_service.api.data_gen_api import DataGenApi
from consent_service.api.consent_api import ConsentHistoryApi, ConsentSignatureApi, ConsentStatusApi, \
    IntentToParticipateApi, PublishConsentApi, StudyConsentApi, WithdrawConsentApi
from consent_service.api.external_id_api import ExternalIdApi, SubstudyExternalIdApi
from consent_service.api.organization_api import OrganizationApi, OrganizationMemberApi, SponsoredStudyApi, \
    UnassignedAdminApi
from consent_service.api.subpopulation_api import SubpopulationApi
from consent_service.api.substudy_api import SubstudyApi
from consent_service.api.template_api import TemplateApi, TemplateForSelfApi
from consent_service.services.flask import app, API_PREFIX, flask_warmup


def _log_request_exception(sender, exception, **extra):  # pylint: disable=unused-argument
    """flask_restful turns HTTPExceptions into responses without logging them."""
    if isinstance(exception, HTTPException):
        if exception.code is not None and exception.code < 500:
            logging.warning(f"{exception}: {exception.description}")
        else:
            logging.error(f"{exception}: {exception.description}", exc_info=True)


got_request_exception.connect(_log_request_exception, app)


api = Api(app)

#
# Sessions and the signed in participant
#

api.add_resource(SignUpApi, API_PREFIX + "auth/signUp", endpoint="auth.signUp", methods=["POST"])
api.add_resource(SignInApi, API_PREFIX + "auth/signIn", endpoint="auth.signIn", methods=["POST"])
api.add_resource(SignOutApi, API_PREFIX + "auth/signOut", endpoint="auth.signOut", methods=["POST"])

api.add_resource(SelfApi, API_PREFIX + "accounts/self", endpoint="accounts.self", methods=["GET"])
api.add_resource(
    IdentifierUpdateApi,
    API_PREFIX + "accounts/self/identifiers",
    endpoint="accounts.self.identifiers",
    methods=["POST"],
)

api.add_resource(AccountApi, API_PREFIX + "accounts", endpoint="accounts", methods=["GET", "POST"])
api.add_resource(
    AccountApi,
    API_PREFIX + "accounts/<string:account_id>",
    endpoint="accounts.item",
    methods=["GET", "POST", "DELETE"],
)

#
# External identifiers
#

api.add_resource(ExternalIdApi, API_PREFIX + "externalIds", endpoint="externalIds", methods=["GET", "POST"])
api.add_resource(
    ExternalIdApi,
    API_PREFIX + "externalIds/<string:identifier>",
    endpoint="externalIds.item",
    methods=["GET", "DELETE"],
)

api.add_resource(
    SubstudyExternalIdApi,
    API_PREFIX + "substudies/<string:substudy_id>/externalIds",
    endpoint="substudies.externalIds",
    methods=["GET"],
)

#
# Consent
#

api.add_resource(ConsentStatusApi, API_PREFIX + "consentStatus", endpoint="consentStatus", methods=["GET"])

api.add_resource(
    ConsentSignatureApi,
    API_PREFIX + "subpopulations/<string:subpop_guid>/consents/signature",
    endpoint="consents.signature",
    methods=["GET", "POST"],
)

api.add_resource(
    WithdrawConsentApi,
    API_PREFIX + "subpopulations/<string:subpop_guid>/consents/signature/withdraw",
    endpoint="consents.signature.withdraw",
    methods=["POST"],
)

api.add_resource(
    ConsentHistoryApi,
    API_PREFIX + "subpopulations/<string:subpop_guid>/consents/signature/history",
    endpoint="consents.signature.history",
    methods=["GET"],
)

api.add_resource(IntentToParticipateApi, API_PREFIX + "itp", endpoint="itp", methods=["POST"])

api.add_resource(
    SubpopulationApi,
    API_PREFIX + "subpopulations",
    endpoint="subpopulations",
    methods=["GET", "POST"],
)
api.add_resource(
    SubpopulationApi,
    API_PREFIX + "subpopulations/<string:id_>",
    endpoint="subpopulations.item",
    methods=["GET", "POST", "DELETE"],
)

api.add_resource(
    StudyConsentApi,
    API_PREFIX + "subpopulations/<string:subpop_guid>/consents",
    endpoint="consents",
    methods=["GET", "POST"],
)

api.add_resource(
    PublishConsentApi,
    API_PREFIX + "subpopulations/<string:subpop_guid>/consents/<string:created_on>/publish",
    endpoint="consents.publish",
    methods=["POST"],
)

#
# Organizations and substudies
#

api.add_resource(
    UnassignedAdminApi,
    API_PREFIX + "organizations/nonmembers",
    endpoint="organizations.nonmembers",
    methods=["GET"],
)

api.add_resource(
    OrganizationApi,
    API_PREFIX + "organizations",
    endpoint="organizations",
    methods=["GET", "POST"],
)
api.add_resource(
    OrganizationApi,
    API_PREFIX + "organizations/<string:org_id>",
    endpoint="organizations.item",
    methods=["GET", "POST", "DELETE"],
)

api.add_resource(
    OrganizationMemberApi,
    API_PREFIX + "organizations/<string:org_id>/members",
    endpoint="organizations.members",
    methods=["GET"],
)
api.add_resource(
    OrganizationMemberApi,
    API_PREFIX + "organizations/<string:org_id>/members/<string:account_id>",
    endpoint="organizations.members.item",
    methods=["POST", "DELETE"],
)

api.add_resource(
    SponsoredStudyApi,
    API_PREFIX + "organizations/<string:org_id>/studies",
    endpoint="organizations.studies",
    methods=["GET"],
)
api.add_resource(
    SponsoredStudyApi,
    API_PREFIX + "organizations/<string:org_id>/studies/<string:substudy_id>",
    endpoint="organizations.studies.item",
    methods=["POST", "DELETE"],
)

api.add_resource(SubstudyApi, API_PREFIX + "substudies", endpoint="substudies", methods=["GET", "POST"])
api.add_resource(
    SubstudyApi,
    API_PREFIX + "substudies/<string:id_>",
    endpoint="substudies.item",
    methods=["GET", "POST", "DELETE"],
)

#
# App configs and templates
#

api.add_resource(AppConfigApi, API_PREFIX + "appconfigs", endpoint="appconfigs", methods=["GET", "POST"])
api.add_resource(
    AppConfigApi,
    API_PREFIX + "appconfigs/<string:id_>",
    endpoint="appconfigs.item",
    methods=["GET", "POST", "DELETE"],
)

api.add_resource(
    AppConfigForUserApi,
    API_PREFIX + "apps/<string:app_id>/appconfig",
    endpoint="apps.appconfig",
    methods=["GET"],
)

api.add_resource(
    TemplateForSelfApi,
    API_PREFIX + "templates/self/<string:template_type>",
    endpoint="templates.self",
    methods=["GET"],
)

api.add_resource(TemplateApi, API_PREFIX + "templates", endpoint="templates", methods=["GET", "POST"])
api.add_resource(
    TemplateApi,
    API_PREFIX + "templates/<string:id_>",
    endpoint="templates.item",
    methods=["GET", "POST", "DELETE"],
)

api.add_resource(DataGenApi, API_PREFIX + "DataGen", endpoint="datagen", methods=["POST"])

app.add_url_rule("/_ah/warmup", endpoint="warmup", view_func=flask_warmup, methods=["GET"])

app.after_request(app_util.add_headers)

app.register_error_handler(DBAPIError, app_util.handle_database_disconnect)
