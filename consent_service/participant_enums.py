from enum import Enum


class _NamedEnum(Enum):
    """Enums rendered to clients by name."""

    def __str__(self):
        return self.name

    @classmethod
    def from_name(cls, name):
        if name is None:
            return None
        if isinstance(name, cls):
            return name
        return cls[str(name).upper()]


class AccountStatus(_NamedEnum):
    ENABLED = 1
    DISABLED = 2


class SharingScope(_NamedEnum):
    NO_SHARING = 1
    SPONSORS_AND_PARTNERS = 2
    ALL_QUALIFIED_RESEARCHERS = 3


class ConsentState(_NamedEnum):
    """Consent status of one account for one subpopulation."""
    NO_CONSENT_REQUIRED = 1
    REQUIRED_NOT_SIGNED = 2
    SIGNED_OBSOLETE = 3
    SIGNED_CURRENT = 4


class VerificationChannel(_NamedEnum):
    EMAIL = 1
    PHONE = 2


# Consent states that keep a required subpopulation from counting as consented.
UNCONSENTED_STATES = (ConsentState.REQUIRED_NOT_SIGNED, ConsentState.SIGNED_OBSOLETE)
