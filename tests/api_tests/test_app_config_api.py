import http.client

from consent_service.api_util import ADMIN, DEVELOPER, RESEARCHER
from consent_service.logic.criteria import Criteria
from tests.helpers.unittest_base import BaseTestCase

IOS_14 = 'Asthma/14 (iPhone 12; iPhone OS/14.2) StudySDK/4'
IOS_3 = 'Asthma/3 (iPhone 6; iPhone OS/9.1) StudySDK/4'


class AppConfigApiTest(BaseTestCase):
    def setUp(self):
        super(AppConfigApiTest, self).setUp()
        self.test_app = self.data_generator.default_app()
        self.headers = self.auth_headers(self.create_staff_account([DEVELOPER]))

    def test_crud(self):
        created = self.send_post('appconfigs', {
            'label': 'Modern clients',
            'criteria': {'minAppVersions': {'Android': 12}},
            'clientData': {'theme': 'dark'}
        }, headers=self.headers, expected_status=http.client.CREATED)
        path = f"appconfigs/{created['guid']}"
        self.assertEqual({'theme': 'dark'}, self.send_get(path, headers=self.headers)['clientData'])

        self.send_post('appconfigs', {'label': 'Bad', 'criteria': {'minAppVersions': {'Android': 'new'}}},
                       headers=self.headers, expected_status=http.client.BAD_REQUEST)
        for criteria in ({'minAppVersions': [1]}, {'allOfGroups': 'ab'}, {'language': 5}):
            self.send_post('appconfigs', {'label': 'Bad', 'criteria': criteria},
                           headers=self.headers, expected_status=http.client.BAD_REQUEST)

        self.send_delete(path, headers=self.headers)
        self.send_get(path, headers=self.headers, expected_status=http.client.NOT_FOUND)

    def test_config_for_client(self):
        self.data_generator.create_database_app_config(
            label='new ios', criteria=Criteria(minAppVersions={'iPhone OS': 10})
        )
        self.data_generator.create_database_app_config(
            label='new ios french', criteria=Criteria(minAppVersions={'iPhone OS': 10}, language='fr')
        )
        path = f'apps/{self.test_app.appId}/appconfig'

        response = self.send_get(path, headers={'User-Agent': IOS_14})
        self.assertEqual('new ios', response['label'])
        response = self.send_get(path, headers={'User-Agent': IOS_14, 'Accept-Language': 'fr-CA, en;q=0.5'})
        self.assertEqual('new ios french', response['label'])

        self.send_get(path, headers={'User-Agent': IOS_3}, expected_status=http.client.NOT_FOUND)
        self.send_get('apps/unknown/appconfig', headers={'User-Agent': IOS_14},
                      expected_status=http.client.NOT_FOUND)


class TemplateApiTest(BaseTestCase):
    def setUp(self):
        super(TemplateApiTest, self).setUp()
        self.test_app = self.data_generator.default_app()

    def test_template_for_participant(self):
        self.data_generator.create_database_template(name='french', criteria=Criteria(language='fr'))
        self.data_generator.create_database_template(name='testers', criteria=Criteria(allOfGroups={'test_user'}))
        self.data_generator.create_database_template(name='everyone')
        participant = self.data_generator.create_database_account(languages=['en'])
        headers = self.auth_headers(participant)

        self.assertEqual('everyone', self.send_get('templates/self/email_verify', headers=headers)['name'])
        self.send_get('templates/self/sms_verify', headers=headers, expected_status=http.client.NOT_FOUND)

    def test_list_by_type(self):
        self.data_generator.create_database_template(templateType='email_verify')
        self.data_generator.create_database_template(templateType='sms_verify')
        headers = self.auth_headers(self.create_staff_account([DEVELOPER]))

        listing = self.send_get('templates', query_string={'type': 'sms_verify'}, headers=headers)
        self.assertEqual(['sms_verify'], [item['templateType'] for item in listing['items']])
        self.assertEqual(2, self.send_get('templates', headers=headers)['total'])


class SubstudyApiTest(BaseTestCase):
    def setUp(self):
        super(SubstudyApiTest, self).setUp()
        self.test_app = self.data_generator.default_app()
        self.admin_headers = self.auth_headers(self.create_staff_account([ADMIN]))

    def test_substudies(self):
        created = self.send_post('substudies', {'id': 'studyA', 'name': 'Study A'}, headers=self.admin_headers,
                                 expected_status=http.client.CREATED)
        self.assertEqual(1, created['version'])
        self.send_post('substudies', {'id': 'studyA', 'name': 'Again'}, headers=self.admin_headers,
                       expected_status=http.client.CONFLICT)

        researcher_headers = self.auth_headers(self.create_staff_account([RESEARCHER]))
        listing = self.send_get('substudies', headers=researcher_headers)
        self.assertEqual(['studyA'], [item['id'] for item in listing['items']])
        self.send_post('substudies', {'id': 'studyB', 'name': 'Study B'}, headers=researcher_headers,
                       expected_status=http.client.FORBIDDEN)

        participant = self.data_generator.create_database_account()
        self.send_get('substudies', headers=self.auth_headers(participant), expected_status=http.client.FORBIDDEN)

        self.send_delete('substudies/studyA', headers=self.admin_headers)
        self.assertEqual(0, self.send_get('substudies', headers=researcher_headers)['total'])
        listing = self.send_get('substudies', query_string={'includeDeleted': 'true'}, headers=researcher_headers)
        self.assertTrue(listing['items'][0]['deleted'])
