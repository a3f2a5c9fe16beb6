import mock
from werkzeug.exceptions import Forbidden, NotFound, Unauthorized

from consent_service.dao.account_dao import AccountDao
from consent_service.dao.external_id_dao import ExternalIdDao
from consent_service.exceptions import ConcurrentModification, EntityAlreadyExists, InvalidEntity
from consent_service.participant_enums import VerificationChannel
from consent_service.services.identity_resolver import IdentifierUpdate, IdentityResolver
from tests.helpers.data_generator import DEFAULT_PASSWORD
from tests.helpers.unittest_base import BaseTestCase


class IdentityResolverTest(BaseTestCase):
    def setUp(self):
        super(IdentityResolverTest, self).setUp()
        self.notifier = mock.MagicMock()
        self.resolver = IdentityResolver(notifier=self.notifier)
        self.account_dao = AccountDao()
        self.test_app = self.data_generator.default_app()
        self.data_generator.create_database_substudy(id='studyA')
        self.data_generator.create_database_substudy(id='studyB')
        self.account = self.data_generator.create_database_account(email='owner@example.com')

    def _update(self, sign_in=None, **updates):
        resource = {'signIn': sign_in or {'email': 'owner@example.com', 'password': DEFAULT_PASSWORD}}
        resource.update(updates)
        return IdentifierUpdate.from_client_json(resource, self.test_app.appId)

    def test_update_parsing(self):
        with self.assertRaises(InvalidEntity):
            self._update()
        with self.assertRaises(InvalidEntity):
            self._update(phoneUpdate='+12065550100', synapseUserIdUpdate='123')
        with self.assertRaises(InvalidEntity):
            self._update(sign_in={'email': 'owner@example.com'}, phoneUpdate='+12065550100')
        with self.assertRaises(InvalidEntity):
            self._update(sign_in={'email': 'owner@example.com', 'phone': '+1206', 'password': 'x'},
                         phoneUpdate='+12065550100')
        with self.assertRaises(InvalidEntity):
            self._update(externalIdUpdate=['not', 'a', 'map'])

    def test_add_phone_sends_verification(self):
        view = self.resolver.update_identifiers(self._update(phoneUpdate='+12065550100'))

        self.assertEqual('+12065550100', view['phone'])
        self.assertFalse(view['phoneVerified'])
        stored = self.account_dao.get(self.account.id)
        self.assertEqual('+12065550100', stored.phone)
        self.assertEqual(2, stored.version)
        self.notifier.send_verification.assert_called_once_with(
            self.account.id, VerificationChannel.PHONE, '+12065550100'
        )

    def test_existing_identifier_is_not_replaced(self):
        self.resolver.update_identifiers(self._update(synapseUserIdUpdate='111'))
        self.resolver.update_identifiers(self._update(synapseUserIdUpdate='222'))
        stored = self.account_dao.get(self.account.id)
        self.assertEqual('111', stored.synapseUserId)
        self.assertEqual(2, stored.version)
        self.notifier.send_verification.assert_not_called()

    def test_existing_email_is_not_replaced(self):
        phone_only = self.data_generator.create_database_account(email=None, phone='+12065550111')
        sign_in = {'phone': '+12065550111', 'password': DEFAULT_PASSWORD}

        view = self.resolver.update_identifiers(self._update(sign_in=sign_in, emailUpdate='first@example.com'))
        self.assertEqual('first@example.com', view['email'])
        self.assertFalse(view['emailVerified'])

        view = self.resolver.update_identifiers(self._update(sign_in=sign_in, emailUpdate='second@example.com'))
        self.assertEqual('first@example.com', view['email'])

        stored = self.account_dao.get(phone_only.id)
        self.assertEqual('first@example.com', stored.email)
        self.assertEqual(2, stored.version)
        self.notifier.send_verification.assert_called_once_with(
            phone_only.id, VerificationChannel.EMAIL, 'first@example.com'
        )

    def test_existing_phone_is_not_replaced(self):
        self.resolver.update_identifiers(self._update(phoneUpdate='+12065550100'))
        view = self.resolver.update_identifiers(self._update(phoneUpdate='+12065550199'))

        self.assertEqual('+12065550100', view['phone'])
        stored = self.account_dao.get(self.account.id)
        self.assertEqual('+12065550100', stored.phone)
        self.assertEqual(2, stored.version)
        self.notifier.send_verification.assert_called_once_with(
            self.account.id, VerificationChannel.PHONE, '+12065550100'
        )

    def test_identifier_used_by_another_account(self):
        self.data_generator.create_database_account(phone='+12065550100')
        with self.assertRaises(EntityAlreadyExists):
            self.resolver.update_identifiers(self._update(phoneUpdate='+12065550100'))
        self.assertIsNone(self.account_dao.get(self.account.id).phone)
        self.notifier.send_verification.assert_not_called()

    def test_sign_in_with_any_identifier(self):
        self.resolver.update_identifiers(self._update(phoneUpdate='+12065550100'))
        view = self.resolver.update_identifiers(self._update(
            sign_in={'phone': '+12065550100', 'password': DEFAULT_PASSWORD},
            synapseUserIdUpdate='333'
        ))
        self.assertEqual('333', view['synapseUserId'])

    def test_credentials_are_checked(self):
        with self.assertRaises(Unauthorized):
            self.resolver.update_identifiers(self._update(
                sign_in={'email': 'owner@example.com', 'password': 'wrong'}, phoneUpdate='+12065550100'
            ))
        with self.assertRaises(NotFound):
            self.resolver.update_identifiers(self._update(
                sign_in={'email': 'nobody@example.com', 'password': DEFAULT_PASSWORD}, phoneUpdate='+12065550100'
            ))

    def test_credentials_must_match_session(self):
        other = self.data_generator.create_database_account()
        with self.assertRaises(Forbidden):
            self.resolver.update_identifiers(self._update(phoneUpdate='+12065550100'), session_account_id=other.id)

    def test_external_id_grants_membership(self):
        self.data_generator.create_database_external_id(substudyId='studyA', identifier='EXT-1')
        view = self.resolver.update_identifiers(self._update(externalIdUpdate={'studyA': 'EXT-1'}))

        self.assertEqual({'studyA': 'EXT-1'}, view['externalIds'])
        self.assertEqual(['studyA'], view['substudyIds'])
        self.assertEqual(self.account.id, ExternalIdDao().get((self.test_app.appId, 'studyA', 'EXT-1')).accountId)

    def test_external_id_only_added_for_new_substudies(self):
        self.data_generator.create_database_assigned_external_id(self.account, substudyId='studyA', identifier='OLD')
        self.data_generator.create_database_external_id(substudyId='studyA', identifier='NEW')
        self.data_generator.create_database_external_id(substudyId='studyB', identifier='B-1')

        view = self.resolver.update_identifiers(self._update(externalIdUpdate={'studyA': 'NEW', 'studyB': 'B-1'}))
        self.assertEqual({'studyA': 'OLD', 'studyB': 'B-1'}, view['externalIds'])
        self.assertIsNone(ExternalIdDao().get((self.test_app.appId, 'studyA', 'NEW')).accountId)

    def test_external_id_held_by_another_account(self):
        other = self.data_generator.create_database_account()
        self.data_generator.create_database_assigned_external_id(other, substudyId='studyA', identifier='TAKEN')
        with self.assertRaises(ConcurrentModification):
            self.resolver.update_identifiers(self._update(
                phoneUpdate='+12065550100', externalIdUpdate={'studyA': 'TAKEN'}
            ))
        # Nothing from the failed update is kept
        self.assertIsNone(self.account_dao.get(self.account.id).phone)
        self.notifier.send_verification.assert_not_called()

    def test_notification_failure_is_logged_not_raised(self):
        self.notifier.send_verification.side_effect = RuntimeError('gateway down')
        with mock.patch('consent_service.services.notification.logging') as mock_logging:
            view = self.resolver.update_identifiers(self._update(phoneUpdate='+12065550100'))
        self.assertEqual('+12065550100', view['phone'])
        self.assertEqual('+12065550100', self.account_dao.get(self.account.id).phone)
        mock_logging.error.assert_called_once()
