import http.client

from consent_service.api_util import ADMIN, ORG_ADMIN, RESEARCHER, SUPERADMIN
from consent_service.dao.account_dao import AccountDao
from tests.helpers.unittest_base import BaseTestCase


class OrganizationApiTest(BaseTestCase):
    def setUp(self):
        super(OrganizationApiTest, self).setUp()
        self.test_app = self.data_generator.default_app()
        self.data_generator.create_database_substudy(id='studyA')
        self.admin = self.create_staff_account([ADMIN])
        self.admin_headers = self.auth_headers(self.admin)

    def test_organization_lifecycle(self):
        created = self.send_post('organizations', {'identifier': 'clinic', 'name': 'Clinic'},
                                 headers=self.admin_headers, expected_status=http.client.CREATED)
        self.assertEqual('Clinic', created['name'])

        researcher = self.create_staff_account([RESEARCHER])
        listing = self.send_get('organizations', headers=self.auth_headers(researcher))
        self.assertEqual(['clinic'], [item['identifier'] for item in listing['items']])
        self.send_post('organizations', {'identifier': 'other', 'name': 'Other'},
                       headers=self.auth_headers(researcher), expected_status=http.client.FORBIDDEN)

        updated = self.send_post('organizations/clinic', {'name': 'City clinic', 'version': 1},
                                 headers=self.admin_headers)
        self.assertEqual('City clinic', updated['name'])

        self.send_delete('organizations/clinic', headers=self.admin_headers, expected_status=http.client.FORBIDDEN)
        superadmin = self.create_staff_account([SUPERADMIN])
        self.send_delete('organizations/clinic', headers=self.auth_headers(superadmin))
        self.send_get('organizations/clinic', headers=self.admin_headers, expected_status=http.client.NOT_FOUND)

    def test_members(self):
        self.data_generator.create_database_organization(identifier='clinic')
        account = self.data_generator.create_database_account()
        path = f'organizations/clinic/members/{account.id}'

        self.send_post(path, headers=self.admin_headers)
        self.assertEqual('clinic', AccountDao().get(account.id).orgMembership)
        listing = self.send_get('organizations/clinic/members', headers=self.admin_headers)
        self.assertEqual([account.id], [item['id'] for item in listing['items']])

        superadmin = self.create_staff_account([SUPERADMIN])
        self.send_delete('organizations/clinic', headers=self.auth_headers(superadmin),
                         expected_status=http.client.CONFLICT)

        self.send_delete(path, headers=self.admin_headers)
        self.send_delete(path, headers=self.admin_headers, expected_status=http.client.BAD_REQUEST)
        self.assertEqual(0, self.send_get('organizations/clinic/members', headers=self.admin_headers)['total'])

    def test_org_admin(self):
        self.data_generator.create_database_organization(identifier='clinic')
        self.data_generator.create_database_organization(identifier='lab')
        self.data_generator.create_database_sponsored_study(appId=self.test_app.appId, orgId='clinic',
                                                            substudyId='studyA')
        org_admin = self.create_staff_account([ORG_ADMIN], orgMembership='clinic')
        headers = self.auth_headers(org_admin)
        participant = self.data_generator.create_database_account(substudyIds=['studyA'])

        self.send_post(f'organizations/clinic/members/{participant.id}', headers=headers)
        self.send_post(f'organizations/lab/members/{participant.id}', headers=headers,
                       expected_status=http.client.FORBIDDEN)
        self.send_get('organizations/lab/members', headers=headers, expected_status=http.client.FORBIDDEN)

        nonmembers = self.send_get('organizations/nonmembers', headers=headers)
        self.assertEqual([self.admin.id], [item['id'] for item in nonmembers['items']])

        researcher = self.create_staff_account([RESEARCHER])
        self.send_get('organizations/nonmembers', headers=self.auth_headers(researcher),
                      expected_status=http.client.FORBIDDEN)

    def test_sponsored_studies(self):
        self.data_generator.create_database_organization(identifier='clinic')
        path = 'organizations/clinic/studies'

        self.send_post(f'{path}/studyA', headers=self.admin_headers)
        listing = self.send_get(path, headers=self.admin_headers)
        self.assertEqual(['studyA'], [item['id'] for item in listing['items']])

        self.send_post(f'{path}/unknown', headers=self.admin_headers, expected_status=http.client.NOT_FOUND)
        org_admin = self.create_staff_account([ORG_ADMIN], orgMembership='clinic')
        self.send_post(f'{path}/studyA', headers=self.auth_headers(org_admin), expected_status=http.client.FORBIDDEN)

        self.send_delete(f'{path}/studyA', headers=self.admin_headers)
        self.send_delete(f'{path}/studyA', headers=self.admin_headers, expected_status=http.client.BAD_REQUEST)
        self.assertEqual(0, self.send_get(path, headers=self.admin_headers)['total'])
