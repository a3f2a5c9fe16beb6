import mock
from werkzeug.exceptions import Forbidden, NotFound, Unauthorized

from consent_service import config
from consent_service.api_util import ADMIN, DEVELOPER, RESEARCHER, SUPERADMIN
from consent_service.dao.account_dao import AccountDao, AccountSessionDao
from consent_service.dao.external_id_dao import ExternalIdDao
from consent_service.exceptions import EntityAlreadyExists, InvalidEntity
from consent_service.participant_enums import AccountStatus, SharingScope, VerificationChannel
from consent_service.services.account_service import AccountService, Participant
from tests.helpers.data_generator import DEFAULT_PASSWORD
from tests.helpers.unittest_base import BaseTestCase


class AccountServiceTest(BaseTestCase):
    def setUp(self):
        super(AccountServiceTest, self).setUp()
        self.notifier = mock.MagicMock()
        self.service = AccountService(notifier=self.notifier)
        self.account_dao = AccountDao()
        self.test_app = self.data_generator.default_app()
        for substudy_id in ('studyA', 'studyB'):
            self.data_generator.create_database_substudy(id=substudy_id)

    def _sign_up(self, **fields):
        resource = {'password': DEFAULT_PASSWORD}
        resource.update(fields)
        return self.service.sign_up(self.test_app.appId, resource)

    def test_participant_parsing(self):
        participant = Participant.from_client_json({
            'email': 'a@example.com', 'dataGroups': ['b', 'a', 'b'], 'externalIds': {'studyA': 'X', 'studyB': ''}
        })
        self.assertEqual(['a', 'b'], participant.dataGroups)
        self.assertEqual({'studyA': 'X'}, participant.externalIds)
        self.assertEqual([(VerificationChannel.EMAIL, 'a@example.com')], participant.verifications())
        with self.assertRaises(InvalidEntity):
            Participant.from_client_json({'email': 'a@example.com', 'phone': '+12065550100'})
        with self.assertRaises(InvalidEntity):
            Participant.from_client_json({'dataGroups': 'group1'})

    def test_sign_up(self):
        account_id = self._sign_up(email='new@example.com', dataGroups=['group1'], externalIds={'studyA': 'EXT-1'})

        account = self.account_dao.get(account_id)
        self.assertEqual('new@example.com', account.email)
        self.assertEqual(AccountStatus.ENABLED, account.status)
        self.assertEqual(SharingScope.NO_SHARING, account.sharingScope)
        self.assertFalse(account.emailVerified)
        self.assertEqual(['group1'], account.dataGroups)
        self.assertEqual({'studyA': 'EXT-1'}, account.externalIds)
        self.assertEqual(account_id, ExternalIdDao().get((self.test_app.appId, 'studyA', 'EXT-1')).accountId)
        self.notifier.send_verification.assert_called_once_with(
            account_id, VerificationChannel.EMAIL, 'new@example.com'
        )

    def test_duplicate_sign_up_is_quiet(self):
        existing = self.data_generator.create_database_account(email='taken@example.com')
        self.assertIsNone(self._sign_up(email='taken@example.com'))

        holder = self.data_generator.create_database_account()
        self.data_generator.create_database_assigned_external_id(holder, substudyId='studyA', identifier='HELD')
        self.assertIsNone(self._sign_up(phone='+12065550100', externalIds={'studyA': 'HELD'}))

        self.assertEqual(2, self.account_dao.count())
        self.assertEqual(1, self.account_dao.get(existing.id).version)
        self.notifier.send_verification.assert_not_called()

    def test_sign_up_validation(self):
        with self.assertRaises(InvalidEntity):
            self.service.sign_up(self.test_app.appId, {'email': 'new@example.com'})
        with self.assertRaises(InvalidEntity):
            self._sign_up(email='new@example.com', dataGroups=['not_a_group'])
        with self.assertRaises(InvalidEntity):
            self._sign_up(email='new@example.com', substudyIds=['unknown'])
        with self.assertRaises(NotFound):
            self.service.sign_up('missing-app', {'email': 'new@example.com', 'password': DEFAULT_PASSWORD})
        self.assertEqual(0, self.account_dao.count())

    def test_external_id_required_on_sign_up(self):
        app = self.data_generator.create_database_app(externalIdRequiredOnSignup=True,
                                                      externalIdValidationEnabled=True)
        self.data_generator.create_database_substudy(appId=app.appId, id='studyA')
        self.data_generator.create_database_external_id(appId=app.appId, substudyId='studyA', identifier='KNOWN')

        with self.assertRaises(InvalidEntity):
            self.service.sign_up(app.appId, {'email': 'a@example.com', 'password': DEFAULT_PASSWORD})
        with self.assertRaises(InvalidEntity):
            self.service.sign_up(app.appId, {'password': DEFAULT_PASSWORD, 'externalIds': {'studyA': 'UNKNOWN'}})

        account_id = self.service.sign_up(app.appId, {'password': DEFAULT_PASSWORD,
                                                      'externalIds': {'studyA': 'KNOWN'}})
        self.assertEqual({'studyA'}, self.account_dao.get(account_id).substudyIds)

    def test_sign_in_and_out(self):
        self._sign_up(email='new@example.com')
        view = self.service.sign_in(self.test_app.appId, {'email': 'new@example.com', 'password': DEFAULT_PASSWORD})
        self.assertEqual(config.getSettingJson(config.SESSION_TOKEN_LENGTH), len(view['sessionToken']))
        self.assertIn('consented', view)
        with AccountSessionDao().session() as session:
            self.assertIsNotNone(AccountSessionDao.get_account_for_token(session, view['sessionToken']))

        self.service.sign_out(view['sessionToken'])
        with AccountSessionDao().session() as session:
            self.assertIsNone(AccountSessionDao.get_account_for_token(session, view['sessionToken']))

    def test_sign_in_failures(self):
        self.data_generator.create_database_account(email='off@example.com', status=AccountStatus.DISABLED)
        with self.assertRaises(Forbidden):
            self.service.sign_in(self.test_app.appId, {'email': 'off@example.com', 'password': DEFAULT_PASSWORD})
        with self.assertRaises(Unauthorized):
            self.service.sign_in(self.test_app.appId, {'email': 'off@example.com', 'password': 'nope'})
        with self.assertRaises(NotFound):
            self.service.sign_in(self.test_app.appId, {'email': 'who@example.com', 'password': DEFAULT_PASSWORD})

    def test_create_account_by_admin(self):
        admin = self.data_generator.create_database_account(roles=[ADMIN])
        response = self.service.create_account(admin, {
            'email': 'staff@example.com', 'password': DEFAULT_PASSWORD, 'roles': [DEVELOPER],
            'substudyIds': ['studyB'], 'externalIds': {'studyA': 'E-1'}
        })
        self.assertEqual([DEVELOPER], response['roles'])
        self.assertEqual(['studyA', 'studyB'], response['substudyIds'])
        self.assertNotIn('passwordHash', response)

        with self.assertRaises(EntityAlreadyExists):
            self.service.create_account(admin, {'email': 'staff@example.com'})
        with self.assertRaises(Forbidden):
            self.service.create_account(admin, {'email': 'root@example.com', 'roles': [SUPERADMIN]})

    def test_only_admins_assign_roles(self):
        researcher = self.data_generator.create_database_account(roles=[RESEARCHER], substudyIds=['studyA'])
        with self.assertRaises(Forbidden):
            self.service.create_account(researcher, {'email': 'x@example.com', 'roles': [DEVELOPER]})
        superadmin = self.data_generator.create_database_account(roles=[SUPERADMIN])
        response = self.service.create_account(superadmin, {'email': 'root@example.com', 'roles': [SUPERADMIN]})
        self.assertEqual([SUPERADMIN], response['roles'])

    def test_scoped_caller_creates_accounts_in_own_substudies(self):
        researcher = self.data_generator.create_database_account(roles=[RESEARCHER], substudyIds=['studyA'])
        response = self.service.create_account(researcher, {'email': 'p@example.com'})
        self.assertEqual(['studyA'], response['substudyIds'])
        with self.assertRaises(InvalidEntity):
            self.service.create_account(researcher, {'email': 'q@example.com', 'substudyIds': ['studyB']})

    def test_get_and_delete_account(self):
        admin = self.data_generator.create_database_account(roles=[ADMIN])
        account = self.data_generator.create_database_account()
        self.data_generator.create_database_assigned_external_id(account, substudyId='studyA', identifier='E-1')

        self.assertEqual(account.email, self.service.get_account(admin, account.id)['email'])
        self.service.delete_account(admin, account.id)
        with self.assertRaises(NotFound):
            self.service.get_account(admin, account.id)
        self.assertIsNone(ExternalIdDao().get((self.test_app.appId, 'studyA', 'E-1')).accountId)

    def test_update_account(self):
        admin = self.data_generator.create_database_account(roles=[ADMIN])
        account = self.data_generator.create_database_account(substudyIds=['studyA'])
        response = self.service.update_account(admin, account.id, {
            'firstName': 'Updated', 'dataGroups': ['group2'], 'status': 'DISABLED', 'substudyIds': ['studyB'],
            'email': 'ignored@example.com'
        })
        self.assertEqual('Updated', response['firstName'])
        self.assertEqual(['group2'], response['dataGroups'])
        self.assertEqual('DISABLED', response['status'])
        self.assertEqual(['studyB'], response['substudyIds'])
        self.assertEqual(account.email, response['email'])
        self.assertEqual(2, response['version'])

        with self.assertRaises(InvalidEntity):
            self.service.update_account(admin, account.id, {'status': 'PAUSED'})
        with self.assertRaises(InvalidEntity):
            self.service.update_account(admin, account.id, {'dataGroups': ['nope']})

    def test_scoped_update_keeps_memberships_outside_scope(self):
        researcher = self.data_generator.create_database_account(roles=[RESEARCHER], substudyIds=['studyA'])
        account = self.data_generator.create_database_account(substudyIds=['studyA', 'studyB'])
        response = self.service.update_account(researcher, account.id, {'substudyIds': []})
        self.assertEqual(['studyB'], response['substudyIds'])

    def test_update_keeps_memberships_held_by_external_id(self):
        admin = self.data_generator.create_database_account(roles=[ADMIN])
        account = self.data_generator.create_database_account()
        self.data_generator.create_database_assigned_external_id(account, substudyId='studyA', identifier='E-1')
        response = self.service.update_account(admin, account.id, {'substudyIds': ['studyB']})
        self.assertEqual(['studyA', 'studyB'], response['substudyIds'])

    def test_search_is_scoped(self):
        researcher = self.data_generator.create_database_account(roles=[RESEARCHER], substudyIds=['studyA'])
        self.data_generator.create_database_account(substudyIds=['studyA'])
        self.data_generator.create_database_account(substudyIds=['studyB'])

        response = self.service.search_accounts(researcher, 10)
        self.assertEqual(2, response['total'])
        admin = self.data_generator.create_database_account(roles=[ADMIN])
        self.assertEqual(4, self.service.search_accounts(admin, 10)['total'])
