"""Profile Provider Package.

Fetches business listing data from Google for the sync job.

Main components:
- ProfileProvider: Abstract interface for listing providers
- GoogleBusinessClient: Google Business Profile API implementation
- GoogleCredentialService: Refresh-token to access-token exchange
"""

from .base import ProfileProvider, ProviderError, VerificationStatus, derive_verification_status
from .credentials import CredentialError, GoogleCredentialService
from .google_client import GoogleBusinessClient

__all__ = [
    "CredentialError",
    "GoogleBusinessClient",
    "GoogleCredentialService",
    "ProfileProvider",
    "ProviderError",
    "VerificationStatus",
    "derive_verification_status",
]
__version__ = "0.1.0"
