from werkzeug.exceptions import NotFound

from consent_service import api_util
from consent_service.clock import CLOCK
from consent_service.dao.base_dao import BaseDao
from consent_service.logic.consent_status import signed_published_consent
from consent_service.model.consent import ConsentSignature, IntentToParticipate
from consent_service.model.subpopulation import StudyConsent


class StudyConsentDao(BaseDao):
    def __init__(self):
        super(StudyConsentDao, self).__init__(StudyConsent)

    def get_id(self, obj):
        return obj.subpopGuid, obj.createdOn

    def get_consent_with_session(self, session, subpop_guid, created_on):
        consent = self.get_with_session(session, (subpop_guid, created_on))
        if consent is None:
            raise NotFound(f"Consent {created_on.isoformat()} of subpopulation {subpop_guid} not found.")
        return consent

    @staticmethod
    def get_consents_with_session(session, subpop_guid):
        return session.query(StudyConsent).filter(
            StudyConsent.subpopGuid == subpop_guid
        ).order_by(StudyConsent.createdOn.desc()).all()

    @staticmethod
    def to_client_json(model, published_created_on=None):
        return {
            "subpopGuid": model.subpopGuid,
            "createdOn": model.createdOn.isoformat(),
            "documentContent": model.documentContent,
            "active": model.createdOn == published_created_on,
        }


class ConsentSignatureDao(BaseDao):
    def __init__(self):
        super(ConsentSignatureDao, self).__init__(ConsentSignature)

    def get_id(self, obj):
        return obj.id

    @staticmethod
    def get_active_signatures_with_session(session, account_id):
        """Non-withdrawn signatures keyed by subpopulation, keeping the most recent one of each."""
        signatures = session.query(ConsentSignature).filter(
            ConsentSignature.accountId == account_id,
            ConsentSignature.withdrewOn.is_(None)
        ).order_by(ConsentSignature.signedOn, ConsentSignature.id).all()
        return {signature.subpopGuid: signature for signature in signatures}

    @staticmethod
    def get_history_with_session(session, account_id, subpop_guid):
        return session.query(ConsentSignature).filter(
            ConsentSignature.accountId == account_id,
            ConsentSignature.subpopGuid == subpop_guid
        ).order_by(ConsentSignature.signedOn.desc(), ConsentSignature.id.desc()).all()

    @staticmethod
    def withdraw_with_session(session, account_id, subpop_guid, withdrew_on=None):
        """Marks every active signature of the subpopulation as withdrawn; returns how many there were."""
        return session.query(ConsentSignature).filter(
            ConsentSignature.accountId == account_id,
            ConsentSignature.subpopGuid == subpop_guid,
            ConsentSignature.withdrewOn.is_(None)
        ).update({ConsentSignature.withdrewOn: withdrew_on or CLOCK.now()}, synchronize_session=False)

    @staticmethod
    def to_client_json(model, active_created_on=None):
        result = {
            "subpopGuid": model.subpopGuid,
            "name": model.name,
            "birthdate": model.birthdate,
            "scope": model.sharingScope,
            "imageData": model.imageData,
            "imageMimeType": model.imageMimeType,
            "consentCreatedOn": model.consentCreatedOn,
            "signedOn": model.signedOn,
            "withdrewOn": model.withdrewOn,
            "hasSignedActiveConsent": (
                model.withdrewOn is None and signed_published_consent(model, active_created_on)
            ),
        }
        api_util.format_json_enum(result, "scope")
        for field_name in ("consentCreatedOn", "signedOn", "withdrewOn"):
            api_util.format_json_date(result, field_name)
        return {key: value for key, value in result.items() if value is not None}


class IntentToParticipateDao(BaseDao):
    def __init__(self):
        super(IntentToParticipateDao, self).__init__(IntentToParticipate)

    def get_id(self, obj):
        return obj.appId, obj.phone, obj.subpopGuid

    def upsert_with_session(self, session, intent):
        """Stores the intent, replacing an earlier one for the same phone and subpopulation."""
        intent.created = CLOCK.now()
        return session.merge(intent)

    @staticmethod
    def get_for_phone_with_session(session, app_id, phone):
        return session.query(IntentToParticipate).filter(
            IntentToParticipate.appId == app_id,
            IntentToParticipate.phone == phone
        ).order_by(IntentToParticipate.created).all()
