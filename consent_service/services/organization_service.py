import logging

from werkzeug.exceptions import BadRequest, Forbidden

from consent_service import api_util
from consent_service.dao.account_dao import AccountDao
from consent_service.dao.organization_dao import OrganizationDao
from consent_service.dao.substudy_dao import SubstudyDao
from consent_service.exceptions import ConstraintViolation
from consent_service.services.membership import MembershipEngine


class OrganizationService:
    def __init__(self, organization_dao=None, account_dao=None, substudy_dao=None, membership=None):
        self.organization_dao = organization_dao or OrganizationDao()
        self.account_dao = account_dao or AccountDao()
        self.substudy_dao = substudy_dao or SubstudyDao()
        self.membership = membership or MembershipEngine()

    def create(self, app_id, resource):
        organization = self.organization_dao.from_client_json(resource, app_id=app_id)
        with self.organization_dao.session() as session:
            self.organization_dao.insert_with_session(session, organization)
            session.flush()
            return self.organization_dao.to_client_json(organization)

    def get(self, app_id, org_id):
        with self.organization_dao.session() as session:
            return self.organization_dao.to_client_json(
                self.organization_dao.get_organization_with_session(session, app_id, org_id)
            )

    def list(self, app_id):
        with self.organization_dao.session() as session:
            organizations = self.organization_dao.get_organizations_with_session(session, app_id)
            return {
                "items": [self.organization_dao.to_client_json(organization) for organization in organizations],
                "total": len(organizations),
            }

    def update(self, app_id, org_id, resource):
        organization = self.organization_dao.from_client_json(resource, app_id=app_id, id_=org_id)
        with self.organization_dao.session() as session:
            updated = self.organization_dao.update_with_session(session, organization)
            session.flush()
            return self.organization_dao.to_client_json(updated)

    def delete(self, app_id, org_id):
        with self.organization_dao.session() as session:
            organization = self.organization_dao.get_organization_with_session(session, app_id, org_id)
            member_count = self.account_dao.count_org_members_with_session(session, app_id, org_id)
            if member_count:
                raise ConstraintViolation(f"Organization {org_id} still has {member_count} members.")
            self.organization_dao.delete_with_session(session, organization)

    # Members

    def add_member(self, caller, org_id, account_id):
        with self.organization_dao.session() as session:
            self._check_can_administer(session, caller, org_id)
            scope = self.membership.scope_for_caller(session, caller)
            account = self.membership.get_account_in_scope(session, scope, caller.appId, account_id)
            if account.orgMembership and account.orgMembership != org_id:
                logging.info(f"Moving account {account.id} from {account.orgMembership} to {org_id}.")
            account.orgMembership = org_id
            account.version += 1

    def remove_member(self, caller, org_id, account_id):
        with self.organization_dao.session() as session:
            self._check_can_administer(session, caller, org_id)
            scope = self.membership.scope_for_caller(session, caller)
            account = self.membership.get_account_in_scope(session, scope, caller.appId, account_id)
            if account.orgMembership != org_id:
                raise BadRequest(f"Account {account_id} is not a member of {org_id}.")
            account.orgMembership = None
            account.version += 1

    def list_members(self, caller, org_id, page_size, offset_key=None):
        with self.organization_dao.session() as session:
            self._check_can_administer(session, caller, org_id)
            results = self.account_dao.list_org_members_with_session(
                session, caller.appId, org_id, page_size, offset_key
            )
            return api_util.make_list_response(results, self.account_dao.to_client_json)

    def list_unassigned_admins(self, app_id):
        with self.account_dao.session() as session:
            accounts = self.account_dao.list_unassigned_admins_with_session(session, app_id)
            return {
                "items": [self.account_dao.to_client_json(account) for account in accounts],
                "total": len(accounts),
            }

    def _check_can_administer(self, session, caller, org_id):
        """Org admins only manage their own organization; admins manage all of them."""
        self.organization_dao.get_organization_with_session(session, caller.appId, org_id)
        if set(caller.roles or []) & set(api_util.SUPERADMIN_AND_ADMIN):
            return
        if caller.orgMembership != org_id:
            logging.warning(f"Account {caller.id} attempted to manage organization {org_id}.")
            raise Forbidden(f"You cannot manage organization {org_id}.")

    # Sponsored studies

    def add_sponsored_study(self, app_id, org_id, substudy_id):
        with self.organization_dao.session() as session:
            self.organization_dao.get_organization_with_session(session, app_id, org_id)
            self.substudy_dao.get_substudy_with_session(session, app_id, substudy_id)
            self.organization_dao.add_sponsored_study_with_session(session, app_id, org_id, substudy_id)

    def remove_sponsored_study(self, app_id, org_id, substudy_id):
        with self.organization_dao.session() as session:
            self.organization_dao.get_organization_with_session(session, app_id, org_id)
            self.organization_dao.remove_sponsored_study_with_session(session, app_id, org_id, substudy_id)

    def list_sponsored_studies(self, app_id, org_id):
        with self.organization_dao.session() as session:
            self.organization_dao.get_organization_with_session(session, app_id, org_id)
            substudy_ids = self.organization_dao.get_sponsored_study_ids_with_session(session, app_id, org_id)
            substudies = self.substudy_dao.get_substudies_with_session(
                session, app_id, include_deleted=True, substudy_ids=sorted(substudy_ids)
            )
            return {
                "items": [self.substudy_dao.to_client_json(substudy) for substudy in substudies],
                "total": len(substudies),
            }
