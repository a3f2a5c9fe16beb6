import datetime
import unittest

from consent_service.exceptions import InvalidEntity
from consent_service.logic.criteria import Criteria, CriteriaContext, matches, parse_accept_language, \
    parse_user_agent, select_best_fit, select_first, validate_criteria


class _Candidate:
    def __init__(self, guid, criteria, created):
        self.guid = guid
        self.criteria = criteria
        self.created = created


class CriteriaMatchingTest(unittest.TestCase):
    def test_empty_criteria_match_everyone(self):
        self.assertTrue(matches(Criteria(), CriteriaContext()))
        self.assertTrue(matches(None, CriteriaContext(dataGroups={'group1'})))

    def test_data_groups(self):
        criteria = Criteria(allOfGroups={'group1'}, noneOfGroups={'group2'})
        self.assertTrue(matches(criteria, CriteriaContext(dataGroups={'group1', 'group3'})))
        self.assertFalse(matches(criteria, CriteriaContext(dataGroups={'group3'})))
        self.assertFalse(matches(criteria, CriteriaContext(dataGroups={'group1', 'group2'})))

    def test_substudies(self):
        criteria = Criteria(allOfSubstudyIds={'studyA'}, noneOfSubstudyIds={'studyB'})
        self.assertTrue(matches(criteria, CriteriaContext(substudyIds={'studyA'})))
        self.assertFalse(matches(criteria, CriteriaContext(substudyIds=set())))
        self.assertFalse(matches(criteria, CriteriaContext(substudyIds={'studyA', 'studyB'})))

    def test_app_version_bounds_apply_only_to_known_clients(self):
        criteria = Criteria(minAppVersions={'iPhone OS': 5}, maxAppVersions={'iPhone OS': 10})
        self.assertTrue(matches(criteria, CriteriaContext(osName='iPhone OS', appVersion=7)))
        self.assertFalse(matches(criteria, CriteriaContext(osName='iPhone OS', appVersion=4)))
        self.assertFalse(matches(criteria, CriteriaContext(osName='iPhone OS', appVersion=11)))
        # No bound for this platform
        self.assertTrue(matches(criteria, CriteriaContext(osName='Android', appVersion=1)))
        # Version unknown
        self.assertTrue(matches(criteria, CriteriaContext(osName='iPhone OS')))

    def test_os_synonyms(self):
        criteria = Criteria.from_json({'minAppVersions': {'iOS': 3}})
        self.assertEqual({'iPhone OS': 3}, criteria.minAppVersions)
        self.assertFalse(matches(criteria, CriteriaContext(osName='ios', appVersion=2)))

    def test_language(self):
        criteria = Criteria(language='es')
        self.assertTrue(matches(criteria, CriteriaContext(languages=['en', 'ES'])))
        self.assertFalse(matches(criteria, CriteriaContext(languages=['en'])))
        self.assertFalse(matches(criteria, CriteriaContext()))

    def test_json_round_trip_keeps_fields(self):
        resource = {
            'language': 'fr',
            'allOfGroups': ['b', 'a'],
            'noneOfGroups': [],
            'allOfSubstudyIds': ['s1'],
            'noneOfSubstudyIds': [],
            'minAppVersions': {'Android': 2},
            'maxAppVersions': {},
        }
        self.assertEqual(
            dict(resource, allOfGroups=['a', 'b']),
            Criteria.from_json(resource).to_json()
        )

    def test_malformed_criteria(self):
        with self.assertRaises(InvalidEntity):
            Criteria.from_json(['not', 'an', 'object'])
        with self.assertRaises(InvalidEntity):
            Criteria.from_json({'minAppVersions': {'Android': 'latest'}})
        with self.assertRaises(InvalidEntity):
            Criteria.from_json({'minAppVersions': [1]})
        with self.assertRaises(InvalidEntity):
            Criteria.from_json({'maxAppVersions': 'Android'})
        with self.assertRaises(InvalidEntity):
            Criteria.from_json({'allOfGroups': 'ab'})
        with self.assertRaises(InvalidEntity):
            Criteria.from_json({'noneOfSubstudyIds': ['studyA', 7]})
        with self.assertRaises(InvalidEntity):
            Criteria.from_json({'language': ['en']})

    def test_validation(self):
        validate_criteria(Criteria(allOfGroups={'a'}, noneOfGroups={'b'}))
        with self.assertRaises(InvalidEntity):
            validate_criteria(Criteria(allOfGroups={'a'}, noneOfGroups={'a'}))
        with self.assertRaises(InvalidEntity):
            validate_criteria(Criteria(allOfSubstudyIds={'s'}, noneOfSubstudyIds={'s'}))
        with self.assertRaises(InvalidEntity):
            validate_criteria(Criteria(minAppVersions={'Android': 5}, maxAppVersions={'Android': 4}))
        with self.assertRaises(InvalidEntity):
            validate_criteria(Criteria(minAppVersions={'Android': -1}))


class CriteriaSelectionTest(unittest.TestCase):
    def setUp(self):
        self.start = datetime.datetime(2020, 1, 1)

    def _candidate(self, guid, criteria=None, minutes=0):
        return _Candidate(guid, criteria or Criteria(), self.start + datetime.timedelta(minutes=minutes))

    def test_select_first_picks_earliest_match(self):
        candidates = [
            self._candidate('late', minutes=10),
            self._candidate('excluded', Criteria(allOfGroups={'x'}), minutes=0),
            self._candidate('early', minutes=5),
        ]
        self.assertEqual('early', select_first(candidates, CriteriaContext()).guid)
        self.assertIsNone(select_first([candidates[1]], CriteriaContext()))

    def test_select_best_fit_prefers_language(self):
        candidates = [
            self._candidate('default', minutes=0),
            self._candidate('spanish', Criteria(language='es'), minutes=5),
            self._candidate('french', Criteria(language='fr'), minutes=1),
        ]
        context = CriteriaContext(languages=['es', 'fr'])
        self.assertEqual('spanish', select_best_fit(candidates, context).guid)
        self.assertEqual('french', select_best_fit(candidates, CriteriaContext(languages=['fr'])).guid)
        self.assertEqual('default', select_best_fit(candidates, CriteriaContext(languages=['de'])).guid)


class HeaderParsingTest(unittest.TestCase):
    def test_accept_language(self):
        self.assertEqual(['fr', 'en', 'de'], parse_accept_language('en-US;q=0.8, fr, de;q=0.5, en;q=0.7'))
        self.assertEqual([], parse_accept_language(None))
        self.assertEqual(['en'], parse_accept_language('*, en;q=0.2, es;q=0'))

    def test_user_agent(self):
        self.assertEqual(
            ('iPhone OS', 14),
            parse_user_agent('Asthma/14 (iPhone 12; iPhone OS/14.2) StudySDK/4')
        )
        self.assertEqual((None, 3), parse_user_agent('Asthma/3'))
        self.assertEqual((None, None), parse_user_agent('Mozilla'))
        self.assertEqual((None, None), parse_user_agent(None))
