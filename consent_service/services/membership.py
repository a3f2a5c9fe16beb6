"""
Consent and substudy membership: which subpopulations apply to a participant, what they have
signed, and which substudies an account effectively belongs to.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Set

from werkzeug.exceptions import BadRequest, NotFound

from consent_service import api_util
from consent_service.clock import CLOCK
from consent_service.dao.account_dao import AccountDao
from consent_service.dao.base_dao import required_field
from consent_service.dao.consent_dao import ConsentSignatureDao, IntentToParticipateDao, StudyConsentDao
from consent_service.dao.organization_dao import OrganizationDao
from consent_service.dao.subpopulation_dao import SubpopulationDao
from consent_service.exceptions import InvalidEntity
from consent_service.logic.consent_status import derive_consent_statuses, is_fully_consented
from consent_service.logic.criteria import CriteriaContext, matches
from consent_service.model.account import AccountSubstudy
from consent_service.model.consent import ConsentSignature, IntentToParticipate
from consent_service.model.subpopulation import StudyConsent
from consent_service.participant_enums import SharingScope


@dataclass
class ClientContext:
    """Request details that feed criteria evaluation alongside the account's own state."""
    osName: Optional[str] = None
    appVersion: Optional[int] = None
    languages: Optional[list] = None


@dataclass
class CallerScope:
    """
    The accounts a caller may see. substudyIds is None for callers with an unscoped role;
    otherwise only accounts in one of these substudies (or the caller itself) are visible.
    """
    accountId: str
    substudyIds: Optional[Set[str]] = None

    @property
    def unscoped(self):
        return self.substudyIds is None

    def includes_substudy(self, substudy_id):
        return self.unscoped or substudy_id in self.substudyIds

    def filter_for(self, account_id):
        """Scope to apply when looking up account_id; callers always see themselves."""
        if self.unscoped or account_id == self.accountId:
            return None
        return self.substudyIds


@dataclass
class SignatureRequest:
    name: str
    birthdate: str
    scope: SharingScope
    imageData: Optional[str] = None
    imageMimeType: Optional[str] = None

    @classmethod
    def from_client_json(cls, resource):
        if not isinstance(resource, dict):
            raise InvalidEntity("A consent signature is required")
        birthdate = required_field(resource, "birthdate")
        try:
            birthdate = api_util.parse_date(birthdate, date_only=True).date().isoformat()
        except BadRequest:
            raise InvalidEntity(f"Invalid birthdate: {birthdate}")
        try:
            scope = SharingScope.from_name(required_field(resource, "scope"))
        except KeyError:
            raise InvalidEntity(f"Invalid scope: {resource.get('scope')}")
        image_data = resource.get("imageData")
        image_mime_type = resource.get("imageMimeType")
        if bool(image_data) != bool(image_mime_type):
            raise InvalidEntity("imageData and imageMimeType must be provided together")
        return cls(
            name=required_field(resource, "name"),
            birthdate=birthdate,
            scope=scope,
            imageData=image_data,
            imageMimeType=image_mime_type,
        )


class MembershipEngine:
    def __init__(self, account_dao=None, subpopulation_dao=None, signature_dao=None, study_consent_dao=None,
                 intent_dao=None, organization_dao=None):
        self.account_dao = account_dao or AccountDao()
        self.subpopulation_dao = subpopulation_dao or SubpopulationDao()
        self.signature_dao = signature_dao or ConsentSignatureDao()
        self.study_consent_dao = study_consent_dao or StudyConsentDao()
        self.intent_dao = intent_dao or IntentToParticipateDao()
        self.organization_dao = organization_dao or OrganizationDao()

    # Substudy membership

    def effective_substudies(self, session, account) -> Set[str]:
        return self.account_dao.get_effective_substudy_ids_with_session(session, account)

    def scope_for_caller(self, session, caller) -> CallerScope:
        if set(caller.roles or []) & set(api_util.UNSCOPED_ROLES):
            return CallerScope(caller.id)
        substudy_ids = self.effective_substudies(session, caller)
        substudy_ids |= self.organization_dao.get_sponsored_study_ids_with_session(
            session, caller.appId, caller.orgMembership
        )
        return CallerScope(caller.id, substudy_ids)

    def scope_for(self, caller) -> CallerScope:
        with self.account_dao.session() as session:
            return self.scope_for_caller(session, caller)

    def get_account_in_scope(self, session, scope: CallerScope, app_id, account_id):
        return self.account_dao.get_account_with_session(session, app_id, account_id, scope.filter_for(account_id))

    @staticmethod
    def add_substudies(account, substudy_ids):
        """Adds the account to each substudy it is not already in."""
        current = account.substudyIds
        for substudy_id in sorted(set(substudy_ids or []) - current):
            account.substudies.append(AccountSubstudy(accountId=account.id, substudyId=substudy_id))

    @staticmethod
    def refresh_memberships(session, account):
        """Reloads the account's memberships after they were changed by bulk statements."""
        session.flush()
        session.expire(account, ["substudies"])

    # Consent status

    def context_for_account(self, session, account, client: ClientContext = None) -> CriteriaContext:
        client = client or ClientContext()
        return CriteriaContext(
            appId=account.appId,
            accountId=account.id,
            dataGroups=set(account.dataGroups or []),
            substudyIds=self.effective_substudies(session, account),
            languages=list(client.languages or account.languages or []),
            osName=client.osName,
            appVersion=client.appVersion,
        )

    def consent_statuses_with_session(self, session, account, client: ClientContext = None):
        context = self.context_for_account(session, account, client)
        subpopulations = self.subpopulation_dao.get_subpopulations_with_session(session, account.appId)
        signatures = self.signature_dao.get_active_signatures_with_session(session, account.id)
        return derive_consent_statuses(subpopulations, context, signatures)

    def get_consent_statuses(self, caller, account_id=None, client: ClientContext = None):
        """Consent statuses of the caller, or of another account visible to the caller."""
        with self.account_dao.session() as session:
            scope = self.scope_for_caller(session, caller)
            account = self.get_account_in_scope(session, scope, caller.appId, account_id or caller.id)
            return self.consent_statuses_with_session(session, account, client)

    def session_view_with_session(self, session, account, client: ClientContext = None):
        """The account as returned to the participant it belongs to, with consent statuses."""
        statuses = self.consent_statuses_with_session(session, account, client)
        view = self.account_dao.to_client_json(account, self.effective_substudies(session, account))
        view["consented"] = is_fully_consented(statuses)
        view["consentStatuses"] = {guid: status.to_client_json() for guid, status in statuses.items()}
        return view

    # Signatures

    def sign_consent(self, account_id, app_id, subpop_guid, request: SignatureRequest,
                     client: ClientContext = None):
        with self.account_dao.session() as session:
            account = self.account_dao.get_account_with_session(session, app_id, account_id)
            signature = self.sign_consent_with_session(session, account, subpop_guid, request, client)
            return signature, self.session_view_with_session(session, account, client)

    def sign_consent_with_session(self, session, account, subpop_guid, request: SignatureRequest,
                                  client: ClientContext = None):
        subpopulation = self.subpopulation_dao.get_subpopulation_with_session(session, account.appId, subpop_guid)
        if subpopulation.publishedConsentCreatedOn is None:
            raise InvalidEntity(f"Subpopulation {subpop_guid} has no published consent.")
        if not matches(subpopulation.criteria, self.context_for_account(session, account, client)):
            raise InvalidEntity(f"Subpopulation {subpop_guid} does not apply to this participant.")

        signature = ConsentSignature(
            accountId=account.id,
            subpopGuid=subpopulation.guid,
            name=request.name,
            birthdate=request.birthdate,
            imageData=request.imageData,
            imageMimeType=request.imageMimeType,
            sharingScope=request.scope,
            consentCreatedOn=subpopulation.publishedConsentCreatedOn,
            signedOn=CLOCK.now(),
        )
        self.signature_dao.insert_with_session(session, signature)
        self._apply_signature(account, subpopulation, request.scope)
        session.flush()
        return signature

    def _apply_signature(self, account, subpopulation, scope):
        account.sharingScope = scope
        self.add_substudies(account, subpopulation.substudyIdsAssignedOnConsent)
        account.version += 1

    def withdraw_consent(self, account_id, app_id, subpop_guid, reason=None):
        """Withdraws the account's active signature; sharing stops once nothing remains signed."""
        with self.account_dao.session() as session:
            account = self.account_dao.get_account_with_session(session, app_id, account_id)
            self.subpopulation_dao.get_subpopulation_with_session(
                session, app_id, subpop_guid, include_deleted=True
            )
            if not self.signature_dao.withdraw_with_session(session, account.id, subpop_guid, CLOCK.now()):
                raise NotFound(f"No active consent signature for subpopulation {subpop_guid}.")
            logging.info(f"Account {account.id} withdrew from {subpop_guid}: {reason or 'no reason given'}")
            if not self.signature_dao.get_active_signatures_with_session(session, account.id):
                account.sharingScope = SharingScope.NO_SHARING
            account.version += 1
            return self.session_view_with_session(session, account)

    def get_consent_signature(self, account_id, app_id, subpop_guid):
        with self.account_dao.session() as session:
            subpopulation = self.subpopulation_dao.get_subpopulation_with_session(
                session, app_id, subpop_guid, include_deleted=True
            )
            signature = self.signature_dao.get_active_signatures_with_session(session, account_id).get(subpop_guid)
            if signature is None:
                raise NotFound(f"No active consent signature for subpopulation {subpop_guid}.")
            return self.signature_dao.to_client_json(signature, subpopulation.publishedConsentCreatedOn)

    def get_consent_history(self, account_id, app_id, subpop_guid):
        with self.account_dao.session() as session:
            subpopulation = self.subpopulation_dao.get_subpopulation_with_session(
                session, app_id, subpop_guid, include_deleted=True
            )
            return [
                self.signature_dao.to_client_json(signature, subpopulation.publishedConsentCreatedOn)
                for signature in self.signature_dao.get_history_with_session(session, account_id, subpop_guid)
            ]

    # Consent documents

    def create_consent(self, app_id, subpop_guid, document_content):
        if not document_content:
            raise InvalidEntity("documentContent is required")
        with self.account_dao.session() as session:
            subpopulation = self.subpopulation_dao.get_subpopulation_with_session(session, app_id, subpop_guid)
            consent = StudyConsent(
                subpopGuid=subpopulation.guid, createdOn=CLOCK.now(), documentContent=document_content
            )
            self.study_consent_dao.insert_with_session(session, consent)
            return self.study_consent_dao.to_client_json(consent, subpopulation.publishedConsentCreatedOn)

    def get_consents(self, app_id, subpop_guid):
        with self.account_dao.session() as session:
            subpopulation = self.subpopulation_dao.get_subpopulation_with_session(session, app_id, subpop_guid)
            return [
                self.study_consent_dao.to_client_json(consent, subpopulation.publishedConsentCreatedOn)
                for consent in self.study_consent_dao.get_consents_with_session(session, subpop_guid)
            ]

    def publish_consent(self, app_id, subpop_guid, created_on):
        """Makes a consent version the one participants sign; earlier signatures become obsolete."""
        with self.account_dao.session() as session:
            subpopulation = self.subpopulation_dao.get_subpopulation_with_session(session, app_id, subpop_guid)
            consent = self.study_consent_dao.get_consent_with_session(session, subpop_guid, created_on)
            subpopulation.publishedConsentCreatedOn = consent.createdOn
            subpopulation.version += 1
            return self.subpopulation_dao.to_client_json(subpopulation)

    # Intents to participate

    def submit_intent(self, app_id, resource):
        """Records a signature given before sign-up. It is applied when an account with the same
        phone number is created."""
        if not isinstance(resource, dict):
            raise InvalidEntity("An intent to participate is required")
        phone = required_field(resource, "phone")
        subpop_guid = required_field(resource, "subpopGuid")
        request = SignatureRequest.from_client_json(resource.get("consentSignature"))
        with self.account_dao.session() as session:
            subpopulation = self.subpopulation_dao.get_subpopulation_with_session(session, app_id, subpop_guid)
            if subpopulation.publishedConsentCreatedOn is None:
                raise InvalidEntity(f"Subpopulation {subpop_guid} has no published consent.")
            intent = IntentToParticipate(
                appId=app_id,
                phone=phone,
                subpopGuid=subpopulation.guid,
                name=request.name,
                birthdate=request.birthdate,
                imageData=request.imageData,
                imageMimeType=request.imageMimeType,
                sharingScope=request.scope,
                osName=resource.get("osName"),
                consentCreatedOn=subpopulation.publishedConsentCreatedOn,
            )
            self.intent_dao.upsert_with_session(session, intent)

    def consume_intents_with_session(self, session, account):
        """Turns the intents recorded for the account's phone into signatures and discards them."""
        if not account.phone:
            return []
        signatures = []
        for intent in self.intent_dao.get_for_phone_with_session(session, account.appId, account.phone):
            subpopulation = self.subpopulation_dao.get_with_session(session, intent.subpopGuid)
            if subpopulation is not None and not subpopulation.deleted:
                signature = ConsentSignature(
                    accountId=account.id,
                    subpopGuid=intent.subpopGuid,
                    name=intent.name,
                    birthdate=intent.birthdate,
                    imageData=intent.imageData,
                    imageMimeType=intent.imageMimeType,
                    sharingScope=intent.sharingScope,
                    consentCreatedOn=intent.consentCreatedOn,
                    signedOn=intent.created,
                )
                self.signature_dao.insert_with_session(session, signature)
                self._apply_signature(account, subpopulation, intent.sharingScope)
                signatures.append(signature)
            else:
                logging.info(f"Discarding intent for removed subpopulation {intent.subpopGuid}.")
            session.delete(intent)
        return signatures
