"""Profile Provider Base Class.

This module defines the interface the sync job uses to read business listings
from an external provider, and the verification status vocabulary shared by
all providers.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from typing import Any, Optional


class ProviderError(Exception):
    """Raised when the provider cannot be reached or returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class VerificationStatus:
    """Verification states a location can be in."""

    PENDING = 'PENDING'
    HARD_SUSPENDED = 'HARD_SUSPENDED'
    SOFT_SUSPENDED = 'SOFT_SUSPENDED'
    VERIFIED = 'VERIFIED'
    UNKNOWN = 'UNKNOWN'


def derive_verification_status(state: Mapping[str, Any]) -> str:
    """Derive a VerificationStatus from a voice-of-merchant state payload.

    A pending verification wins over everything else. Otherwise the status
    follows from the two flags, which must be actual booleans:

        hasVoiceOfMerchant  hasBusinessAuthority  status
        False               False                 HARD_SUSPENDED
        False               True                  SOFT_SUSPENDED
        True                True                  VERIFIED
        anything else                             UNKNOWN

    Example:
        >>> derive_verification_status({"hasVoiceOfMerchant": True, "hasBusinessAuthority": True})
        'VERIFIED'
    """
    verify = state.get('verify')
    if isinstance(verify, Mapping) and verify.get('hasPendingVerification'):
        return VerificationStatus.PENDING

    voice_of_merchant = state.get('hasVoiceOfMerchant')
    business_authority = state.get('hasBusinessAuthority')

    if voice_of_merchant is False and business_authority is False:
        return VerificationStatus.HARD_SUSPENDED
    if voice_of_merchant is False and business_authority is True:
        return VerificationStatus.SOFT_SUSPENDED
    if voice_of_merchant is True and business_authority is True:
        return VerificationStatus.VERIFIED

    return VerificationStatus.UNKNOWN


class ProfileProvider(ABC):
    """Abstract base class for business listing providers.

    Usage:
        class MyProvider(ProfileProvider):
            def fetch_location(self, location_id):
                ...

            def fetch_verification_status(self, location_id):
                ...

            def fetch_reviews(self, account_id, location_id):
                ...
    """

    @abstractmethod
    def fetch_location(self, location_id: str) -> dict[str, Any]:
        """Fetch a location profile.

        The returned mapping carries the provider's profile fields plus a
        `verificationStatus` key holding a VerificationStatus value.

        Raises:
            ProviderError: If the provider returns an error response
        """
        pass

    @abstractmethod
    def fetch_verification_status(self, location_id: str) -> str:
        """Fetch the verification status of a location.

        Returns:
            One of the VerificationStatus values

        Raises:
            ProviderError: If the provider returns an error response
        """
        pass

    @abstractmethod
    def fetch_reviews(self, account_id: str, location_id: str) -> Iterator[dict[str, Any]]:
        """Yield every review of a location, following pagination.

        The sequence is lazy and can only be restarted from the first page.

        Raises:
            ProviderError: If any page request fails
        """
        pass

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"{self.__class__.__name__}()"
