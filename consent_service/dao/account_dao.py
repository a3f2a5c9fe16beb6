from sqlalchemy import or_, select
from werkzeug.exceptions import NotFound

from consent_service import api_util
from consent_service.dao.base_dao import BaseDao, UpdatableDao, escape_like
from consent_service.model.account import Account, AccountSession, AccountSubstudy
from consent_service.model.consent import ConsentSignature
from consent_service.model.external_identifier import ExternalIdentifier
from consent_service.participant_enums import AccountStatus


class AccountDao(UpdatableDao):
    # Account updates come from services that hold the row already; the version is still bumped.
    validate_version_match = False

    def __init__(self):
        super(AccountDao, self).__init__(Account)

    def get_id(self, obj):
        return obj.id

    def insert_account_with_session(self, session, account):
        """Inserts the account under a newly generated random id."""
        account.version = 1
        if account.status is None:
            account.status = AccountStatus.ENABLED
        return self.insert_with_random_id(session, account, "id")

    @staticmethod
    def get_by_identifier_with_session(session, app_id, email=None, phone=None, synapse_user_id=None,
                                       external_id=None):
        """Looks an account up by whichever identifier is given; None when there is no such account."""
        query = session.query(Account).filter(Account.appId == app_id)
        if email:
            return query.filter(Account.email == email).one_or_none()
        if phone:
            return query.filter(Account.phone == phone).one_or_none()
        if synapse_user_id:
            return query.filter(Account.synapseUserId == synapse_user_id).one_or_none()
        if external_id:
            owner_ids = select(ExternalIdentifier.accountId).where(
                ExternalIdentifier.appId == app_id,
                ExternalIdentifier.identifier == external_id,
                ExternalIdentifier.accountId.isnot(None)
            )
            return query.filter(Account.id.in_(owner_ids)).order_by(Account.id).first()
        return None

    @staticmethod
    def get_account_with_session(session, app_id, account_id, scope_substudy_ids=None):
        """Gets an account, raising NotFound when it is absent or outside the given scope."""
        query = session.query(Account).filter(Account.appId == app_id, Account.id == account_id)
        if scope_substudy_ids is not None:
            query = AccountDao.apply_scope(query, scope_substudy_ids)
        account = query.one_or_none()
        if account is None:
            raise NotFound(f"Account {account_id} not found.")
        return account

    @staticmethod
    def apply_scope(query, scope_substudy_ids):
        """Restricts an account query to accounts whose effective substudies intersect the scope."""
        by_membership = select(AccountSubstudy.accountId).where(AccountSubstudy.substudyId.in_(scope_substudy_ids))
        by_external_id = select(ExternalIdentifier.accountId).where(
            ExternalIdentifier.substudyId.in_(scope_substudy_ids),
            ExternalIdentifier.accountId.isnot(None)
        )
        return query.filter(or_(Account.id.in_(by_membership), Account.id.in_(by_external_id)))

    @staticmethod
    def get_effective_substudy_ids_with_session(session, account):
        """Directly assigned substudies plus the owners of identifiers assigned to the account."""
        substudy_ids = {
            row.substudyId for row in
            session.query(AccountSubstudy.substudyId).filter(AccountSubstudy.accountId == account.id)
        }
        substudy_ids.update(
            row.substudyId for row in
            session.query(ExternalIdentifier.substudyId).filter(ExternalIdentifier.accountId == account.id)
        )
        return substudy_ids

    def search_with_session(self, session, app_id, page_size, offset_key=None, email_filter=None,
                            phone_filter=None, scope_substudy_ids=None):
        query = session.query(Account).filter(Account.appId == app_id)
        if email_filter:
            query = query.filter(Account.email.like(f"%{escape_like(email_filter)}%", escape="\\"))
        if phone_filter:
            query = query.filter(Account.phone.like(f"%{escape_like(phone_filter)}%", escape="\\"))
        if scope_substudy_ids is not None:
            query = self.apply_scope(query, scope_substudy_ids)
        return self._page_by_key(query, [Account.id], page_size, offset_key)

    def list_org_members_with_session(self, session, app_id, org_id, page_size, offset_key=None):
        query = session.query(Account).filter(Account.appId == app_id, Account.orgMembership == org_id)
        return self._page_by_key(query, [Account.id], page_size, offset_key)

    @staticmethod
    def count_org_members_with_session(session, app_id, org_id):
        return session.query(Account).filter(Account.appId == app_id, Account.orgMembership == org_id).count()

    @staticmethod
    def list_unassigned_admins_with_session(session, app_id):
        """Accounts holding an administrative role that belong to no organization."""
        accounts = session.query(Account).filter(
            Account.appId == app_id,
            Account.orgMembership.is_(None)
        ).order_by(Account.id).all()
        return [
            account for account in accounts
            if set(account.roles or []) & set(api_util.ADMINISTRATIVE_ROLES)
        ]

    @staticmethod
    def delete_with_session(session, account):
        """Removes the account with its sessions and signatures, releasing its external identifiers."""
        session.query(ExternalIdentifier).filter(
            ExternalIdentifier.accountId == account.id
        ).update({ExternalIdentifier.accountId: None}, synchronize_session=False)
        session.query(ConsentSignature).filter(ConsentSignature.accountId == account.id).delete()
        session.query(AccountSession).filter(AccountSession.accountId == account.id).delete()
        session.delete(account)

    def to_client_json(self, model, substudy_ids=None):
        """Converts an account for study staff; identifiers are included, the password hash is not."""
        result = {
            "id": model.id,
            "email": model.email,
            "phone": model.phone,
            "synapseUserId": model.synapseUserId,
            "firstName": model.firstName,
            "lastName": model.lastName,
            "status": model.status,
            "roles": sorted(model.roles or []),
            "dataGroups": sorted(model.dataGroups or []),
            "languages": list(model.languages or []),
            "orgMembership": model.orgMembership,
            "sharingScope": model.sharingScope,
            "emailVerified": model.emailVerified,
            "phoneVerified": model.phoneVerified,
            "externalIds": model.externalIds,
            "substudyIds": sorted(substudy_ids if substudy_ids is not None else model.substudyIds),
            "version": model.version,
            "createdOn": model.created,
        }
        api_util.format_json_enum(result, "status")
        api_util.format_json_enum(result, "sharingScope")
        api_util.format_json_date(result, "createdOn")
        return {key: value for key, value in result.items() if value is not None}


class AccountSessionDao(BaseDao):
    def __init__(self):
        super(AccountSessionDao, self).__init__(AccountSession)

    def get_id(self, obj):
        return obj.token

    def create_session_with_session(self, session, account_id, token_length):
        account_session = AccountSession(accountId=account_id)
        return self.insert_with_random_id(session, account_session, "token", length=token_length)

    @staticmethod
    def get_account_for_token(session, token):
        if not token:
            return None
        return session.query(Account).join(
            AccountSession, AccountSession.accountId == Account.id
        ).filter(AccountSession.token == token).one_or_none()

    @staticmethod
    def delete_token_with_session(session, token):
        session.query(AccountSession).filter(AccountSession.token == token).delete()
