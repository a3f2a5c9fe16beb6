from sqlalchemy import or_

from consent_service.clock import CLOCK
from consent_service.dao.base_dao import BaseDao, escape_like
from consent_service.exceptions import EntityAlreadyExists
from consent_service.model.account import AccountSubstudy
from consent_service.model.external_identifier import ExternalIdentifier


class ExternalIdDao(BaseDao):
    def __init__(self):
        super(ExternalIdDao, self).__init__(ExternalIdentifier)

    def get_id(self, obj):
        return obj.appId, obj.substudyId, obj.identifier

    def _validate_insert(self, session, obj):
        if self.get_with_session(session, self.get_id(obj)) is not None:
            raise EntityAlreadyExists(f"External identifier {obj.identifier} already exists in {obj.substudyId}.")
        super(ExternalIdDao, self)._validate_insert(session, obj)

    @staticmethod
    def get_matching_with_session(session, app_id, identifier, substudy_id=None):
        """All identifiers with the given string, across substudies unless one is named."""
        query = session.query(ExternalIdentifier).filter(
            ExternalIdentifier.appId == app_id,
            ExternalIdentifier.identifier == identifier
        )
        if substudy_id:
            query = query.filter(ExternalIdentifier.substudyId == substudy_id)
        return query.order_by(ExternalIdentifier.substudyId).all()

    @staticmethod
    def get_assigned_to_account_with_session(session, account_id):
        return session.query(ExternalIdentifier).filter(
            ExternalIdentifier.accountId == account_id
        ).order_by(ExternalIdentifier.substudyId).all()

    @staticmethod
    def assign_with_session(session, app_id, substudy_id, identifier, account_id):
        """Assigns the identifier unless it is held by another account. Returns whether the
        identifier now belongs to the account.

        This is a single conditional UPDATE so that of two concurrent assignments of the
        same identifier only one can succeed."""
        rowcount = session.query(ExternalIdentifier).filter(
            ExternalIdentifier.appId == app_id,
            ExternalIdentifier.substudyId == substudy_id,
            ExternalIdentifier.identifier == identifier,
            or_(ExternalIdentifier.accountId.is_(None), ExternalIdentifier.accountId == account_id)
        ).update(
            {ExternalIdentifier.accountId: account_id, ExternalIdentifier.modified: CLOCK.now()},
            synchronize_session=False
        )
        if rowcount != 1:
            return False

        membership = session.query(AccountSubstudy).get((account_id, substudy_id))
        if membership is None:
            session.add(AccountSubstudy(accountId=account_id, substudyId=substudy_id, externalId=identifier))
        else:
            membership.externalId = identifier
        session.flush()
        return True

    @staticmethod
    def release_with_session(session, external_id):
        """Clears the assignment and the account's reference to the identifier. Safe to repeat."""
        account_id = external_id.accountId
        if account_id is None:
            return
        session.query(ExternalIdentifier).filter(
            ExternalIdentifier.appId == external_id.appId,
            ExternalIdentifier.substudyId == external_id.substudyId,
            ExternalIdentifier.identifier == external_id.identifier
        ).update(
            {ExternalIdentifier.accountId: None, ExternalIdentifier.modified: CLOCK.now()},
            synchronize_session=False
        )
        session.query(AccountSubstudy).filter(
            AccountSubstudy.accountId == account_id,
            AccountSubstudy.substudyId == external_id.substudyId,
            AccountSubstudy.externalId == external_id.identifier
        ).update({AccountSubstudy.externalId: None}, synchronize_session=False)
        session.expire(external_id)
        membership = session.query(AccountSubstudy).get((account_id, external_id.substudyId))
        if membership is not None:
            session.expire(membership)

    def list_with_session(self, session, app_id, page_size, offset_key=None, id_filter=None,
                          assignment_filter=None, substudy_id=None, scope_substudy_ids=None):
        """
        Lists identifiers ordered by identifier and substudy.
        :param id_filter: only identifiers starting with this prefix
        :param assignment_filter: True/False to only list assigned/unassigned identifiers
        :param scope_substudy_ids: when not None, only identifiers owned by these substudies
        """
        query = session.query(ExternalIdentifier).filter(ExternalIdentifier.appId == app_id)
        if id_filter:
            query = query.filter(ExternalIdentifier.identifier.like(escape_like(id_filter) + '%', escape='\\'))
        if assignment_filter is True:
            query = query.filter(ExternalIdentifier.accountId.isnot(None))
        elif assignment_filter is False:
            query = query.filter(ExternalIdentifier.accountId.is_(None))
        if substudy_id:
            query = query.filter(ExternalIdentifier.substudyId == substudy_id)
        if scope_substudy_ids is not None:
            query = query.filter(ExternalIdentifier.substudyId.in_(scope_substudy_ids))

        return self._page_by_key(
            query,
            [ExternalIdentifier.identifier, ExternalIdentifier.substudyId],
            page_size,
            offset_key
        )

    def to_client_json(self, model):
        return {
            "identifier": model.identifier,
            "substudyId": model.substudyId,
            "assigned": model.assigned,
        }
