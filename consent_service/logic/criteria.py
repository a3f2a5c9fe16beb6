"""Matching of declarative criteria (data groups, substudies, app versions, language) against a participant."""
from dataclasses import dataclass, field
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

from consent_service.exceptions import InvalidEntity

# Operating system names sent by older clients, mapped to the name used in criteria.
_OS_SYNONYMS = {
    'ios': 'iPhone OS',
    'iphone os': 'iPhone OS',
    'android': 'Android',
}

_FULL_USER_AGENT = re.compile(r'^([^/]+)/(\d{1,9})\s*\(([^;]+);\s*([^/]+)/([^)]+)\)')
_SHORT_USER_AGENT = re.compile(r'^([^/]+)/(\d{1,9})(\s|$)')


def normalize_os_name(os_name: Optional[str]) -> Optional[str]:
    if not os_name:
        return None
    return _OS_SYNONYMS.get(os_name.strip().lower(), os_name.strip())


def _string_set(resource, field_name) -> Set[str]:
    values = resource.get(field_name) or []
    if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
        raise InvalidEntity(f"criteria.{field_name} must be a list of strings")
    return set(values)


def _version_map(resource, field_name) -> Dict[str, int]:
    """Parses an OS name to app version map, normalizing OS names."""
    versions = resource.get(field_name) or {}
    if not isinstance(versions, dict):
        raise InvalidEntity(f"criteria.{field_name} must map OS names to versions")
    parsed = {}
    for os_name, version in versions.items():
        if isinstance(version, bool):
            raise InvalidEntity(f"criteria.{field_name} has an invalid version for {os_name}")
        try:
            parsed[normalize_os_name(os_name)] = int(version)
        except (TypeError, ValueError):
            raise InvalidEntity(f"criteria.{field_name} has an invalid version for {os_name}")
    return parsed


@dataclass
class Criteria:
    language: Optional[str] = None
    allOfGroups: Set[str] = field(default_factory=set)
    noneOfGroups: Set[str] = field(default_factory=set)
    allOfSubstudyIds: Set[str] = field(default_factory=set)
    noneOfSubstudyIds: Set[str] = field(default_factory=set)
    minAppVersions: Dict[str, int] = field(default_factory=dict)
    maxAppVersions: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_json(cls, resource):
        if resource is None:
            return cls()
        if not isinstance(resource, dict):
            raise InvalidEntity("criteria must be an object")
        language = resource.get('language') or None
        if language is not None and not isinstance(language, str):
            raise InvalidEntity("criteria.language must be a string")
        return cls(
            language=language,
            allOfGroups=_string_set(resource, 'allOfGroups'),
            noneOfGroups=_string_set(resource, 'noneOfGroups'),
            allOfSubstudyIds=_string_set(resource, 'allOfSubstudyIds'),
            noneOfSubstudyIds=_string_set(resource, 'noneOfSubstudyIds'),
            minAppVersions=_version_map(resource, 'minAppVersions'),
            maxAppVersions=_version_map(resource, 'maxAppVersions'),
        )

    def to_json(self):
        result = {
            'allOfGroups': sorted(self.allOfGroups),
            'noneOfGroups': sorted(self.noneOfGroups),
            'allOfSubstudyIds': sorted(self.allOfSubstudyIds),
            'noneOfSubstudyIds': sorted(self.noneOfSubstudyIds),
            'minAppVersions': dict(self.minAppVersions),
            'maxAppVersions': dict(self.maxAppVersions),
        }
        if self.language:
            result['language'] = self.language
        return result


@dataclass
class CriteriaContext:
    """What is known about the participant a resource is being selected for."""
    appId: Optional[str] = None
    accountId: Optional[str] = None
    dataGroups: Set[str] = field(default_factory=set)
    substudyIds: Set[str] = field(default_factory=set)
    languages: List[str] = field(default_factory=list)
    osName: Optional[str] = None
    appVersion: Optional[int] = None


def matches(criteria: Optional[Criteria], context: CriteriaContext) -> bool:
    if criteria is None:
        return True

    data_groups = set(context.dataGroups or ())
    if not criteria.allOfGroups.issubset(data_groups):
        return False
    if criteria.noneOfGroups & data_groups:
        return False

    substudy_ids = set(context.substudyIds or ())
    if not criteria.allOfSubstudyIds.issubset(substudy_ids):
        return False
    if criteria.noneOfSubstudyIds & substudy_ids:
        return False

    os_name = normalize_os_name(context.osName)
    if os_name and context.appVersion is not None:
        min_version = criteria.minAppVersions.get(os_name)
        if min_version is not None and context.appVersion < min_version:
            return False
        max_version = criteria.maxAppVersions.get(os_name)
        if max_version is not None and context.appVersion > max_version:
            return False

    if criteria.language and criteria.language.lower() not in [lang.lower() for lang in context.languages or ()]:
        return False

    return True


def validate_criteria(criteria: Criteria):
    errors = []
    overlap = criteria.allOfGroups & criteria.noneOfGroups
    if overlap:
        errors.append(f"data groups {sorted(overlap)} are both required and prohibited")
    overlap = criteria.allOfSubstudyIds & criteria.noneOfSubstudyIds
    if overlap:
        errors.append(f"substudies {sorted(overlap)} are both required and prohibited")
    for os_name in set(criteria.minAppVersions) | set(criteria.maxAppVersions):
        min_version = criteria.minAppVersions.get(os_name)
        max_version = criteria.maxAppVersions.get(os_name)
        if (min_version is not None and min_version < 0) or (max_version is not None and max_version < 0):
            errors.append(f"app versions for {os_name} cannot be negative")
        elif min_version is not None and max_version is not None and min_version > max_version:
            errors.append(f"minimum app version for {os_name} is greater than the maximum")
    if errors:
        raise InvalidEntity("criteria is invalid: " + "; ".join(errors))


def _creation_order(candidate):
    return candidate.created, candidate.guid


def select_first(candidates: Sequence, context: CriteriaContext):
    """Returns the earliest created candidate whose criteria match, or None."""
    matching = [candidate for candidate in candidates if matches(candidate.criteria, context)]
    if not matching:
        return None
    return min(matching, key=_creation_order)


def select_best_fit(candidates: Sequence, context: CriteriaContext):
    """Returns the matching candidate whose language comes earliest in the participant's
    preferences, falling back to creation order. Candidates without a language rank last."""
    languages = [lang.lower() for lang in context.languages or ()]

    def rank(candidate):
        language = candidate.criteria.language if candidate.criteria else None
        language_rank = languages.index(language.lower()) if language else len(languages)
        return (language_rank,) + _creation_order(candidate)

    matching = [candidate for candidate in candidates if matches(candidate.criteria, context)]
    if not matching:
        return None
    return min(matching, key=rank)


def parse_accept_language(header: Optional[str]) -> List[str]:
    """Turns an Accept-Language header into an ordered list of two letter language codes."""
    if not header:
        return []
    weighted = []
    for position, language_range in enumerate(header.split(',')):
        parts = [part.strip() for part in language_range.split(';')]
        tag = parts[0].lower()
        if not tag or tag == '*':
            continue
        quality = 1.0
        for param in parts[1:]:
            if param.startswith('q='):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = 0.0
        if quality <= 0:
            continue
        weighted.append((-quality, position, tag.split('-')[0]))

    languages = []
    for _, _, language in sorted(weighted):
        if language not in languages:
            languages.append(language)
    return languages


def parse_user_agent(header: Optional[str]) -> Tuple[Optional[str], Optional[int]]:
    """Extracts (os name, app version) from a "App/version (Device; OS/os version) ..." user agent."""
    if not header:
        return None, None
    full_match = _FULL_USER_AGENT.match(header.strip())
    if full_match:
        return normalize_os_name(full_match.group(4)), int(full_match.group(2))
    short_match = _SHORT_USER_AGENT.match(header.strip())
    if short_match:
        return None, int(short_match.group(2))
    return None, None
