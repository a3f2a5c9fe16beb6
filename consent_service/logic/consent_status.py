from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from consent_service.logic.criteria import CriteriaContext, matches
from consent_service.participant_enums import ConsentState, UNCONSENTED_STATES


@dataclass
class ConsentStatus:
    """Consent state of one participant for one subpopulation, derived at read time."""
    subpopulationGuid: str
    name: str
    required: bool
    state: ConsentState
    signedOn: Optional[datetime] = None

    @property
    def consented(self):
        return self.state in (ConsentState.SIGNED_CURRENT, ConsentState.SIGNED_OBSOLETE)

    @property
    def signedMostRecentConsent(self):
        return self.state == ConsentState.SIGNED_CURRENT

    def to_client_json(self):
        result = {
            "subpopulationGuid": self.subpopulationGuid,
            "name": self.name,
            "required": self.required,
            "state": str(self.state),
            "consented": self.consented,
            "signedMostRecentConsent": self.signedMostRecentConsent,
        }
        if self.signedOn:
            result["signedOn"] = self.signedOn.isoformat()
        return result


def derive_consent_state(subpopulation, context: CriteriaContext, signature=None) -> ConsentState:
    """
    :param subpopulation: the subpopulation being evaluated
    :param context: the participant's data groups, substudies, languages and client
    :param signature: the participant's most recent non-withdrawn signature for the subpopulation
    """
    if not matches(subpopulation.criteria, context):
        return ConsentState.NO_CONSENT_REQUIRED
    if signature is None or signature.withdrewOn is not None:
        return ConsentState.REQUIRED_NOT_SIGNED
    if not signed_published_consent(signature, subpopulation.publishedConsentCreatedOn):
        return ConsentState.SIGNED_OBSOLETE
    return ConsentState.SIGNED_CURRENT


def signed_published_consent(signature, published_created_on) -> bool:
    """True when the signature is for the published consent version, or no version is published yet.

    Any other version counts as obsolete, including a newer one after an older version is re-published.
    """
    return published_created_on is None or signature.consentCreatedOn == published_created_on


def derive_consent_statuses(subpopulations, context: CriteriaContext, signatures_by_guid) -> Dict[str, ConsentStatus]:
    statuses = {}
    for subpopulation in subpopulations:
        signature = signatures_by_guid.get(subpopulation.guid)
        state = derive_consent_state(subpopulation, context, signature)
        statuses[subpopulation.guid] = ConsentStatus(
            subpopulationGuid=subpopulation.guid,
            name=subpopulation.name,
            required=subpopulation.required,
            state=state,
            signedOn=signature.signedOn if signature is not None and state != ConsentState.NO_CONSENT_REQUIRED
            else None
        )
    return statuses


def is_fully_consented(statuses: Dict[str, ConsentStatus]) -> bool:
    """True unless some required subpopulation is unsigned or was signed in an obsolete version."""
    return not any(
        status.required and status.state in UNCONSENTED_STATES
        for status in statuses.values()
    )
