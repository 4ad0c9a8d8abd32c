"""
Google Business Profile API Client.

Reads location profiles, verification state and reviews for one Google
account using a short-lived OAuth access token.

Endpoints:
- Business Information v1: GET /v1/locations/{id}?readMask=...
- Verifications v1:        GET /v1/locations/{id}/VoiceOfMerchantState
- My Business v4:          GET /v4/accounts/{account}/locations/{id}/reviews
"""

import logging
from collections.abc import Iterator
from typing import Any, Optional

import requests

from .base import ProfileProvider, ProviderError, derive_verification_status

logger = logging.getLogger(__name__)

# Constants
API_TIMEOUT_SECONDS = 30
BUSINESS_INFORMATION_URL = "https://mybusinessbusinessinformation.googleapis.com/v1"
VERIFICATIONS_URL = "https://mybusinessverifications.googleapis.com/v1"
MY_BUSINESS_URL = "https://mybusiness.googleapis.com/v4"

LOCATION_READ_MASK = (
    "name",
    "languageCode",
    "storeCode",
    "title",
    "storefrontAddress",
    "serviceArea",
    "phoneNumbers",
    "regularHours",
    "websiteUri",
    "categories",
    "metadata",
    "profile",
)


class GoogleBusinessClient(ProfileProvider):
    """
    Client for the Google Business Profile APIs.

    One client is built per location run, with the access token refreshed
    for that location's Google account.
    """

    def __init__(self, access_token: str, timeout: float = API_TIMEOUT_SECONDS):
        """
        Initialize the client.

        Args:
            access_token: OAuth access token with the business.manage scope
            timeout: Per-request timeout in seconds
        """
        if not access_token:
            raise ValueError("access_token is required")

        self.access_token = access_token
        self.timeout = timeout
        self.api_call_count = 0

    def _get(self, url: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Make an authenticated GET request and return the JSON body.

        Raises:
            ProviderError: On network errors, HTTP errors or a non-JSON body
        """
        headers = {"Authorization": f"Bearer {self.access_token}"}
        self.api_call_count += 1

        logger.debug("Making Google API call", extra={"url": url, "params": params})

        try:
            response = requests.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Request to {url} failed: {e}") from e

        if response.status_code == 401:
            raise ProviderError("Access token rejected by Google", status_code=401)
        elif response.status_code == 429:
            raise ProviderError("Rate limit exceeded - too many API calls", status_code=429)
        elif response.status_code >= 400:
            raise ProviderError(
                f"API error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {url}: {response.text[:200]}") from e

        return data if isinstance(data, dict) else {}

    def fetch_verification_status(self, location_id: str) -> str:
        """Fetch the voice-of-merchant state and derive a VerificationStatus."""
        data = self._get(f"{VERIFICATIONS_URL}/locations/{location_id}/VoiceOfMerchantState")
        return derive_verification_status(data)

    def fetch_location(self, location_id: str) -> dict[str, Any]:
        """
        Fetch a location profile with its verification status attached.

        Returns:
            Business Information location JSON, plus `verificationStatus`
        """
        logger.info("Fetching location data", extra={"gmb_id": location_id})

        data = self._get(
            f"{BUSINESS_INFORMATION_URL}/locations/{location_id}",
            params={"readMask": ",".join(LOCATION_READ_MASK)},
        )
        data["verificationStatus"] = self.fetch_verification_status(location_id)
        return data

    def fetch_reviews(self, account_id: str, location_id: str) -> Iterator[dict[str, Any]]:
        """
        Yield every review of a location, one page at a time.

        Pages are followed through `nextPageToken` until Google stops
        returning one.
        """
        logger.info("Fetching reviews", extra={"gmb_id": location_id, "account_id": account_id})

        url = f"{MY_BUSINESS_URL}/accounts/{account_id}/locations/{location_id}/reviews"
        page_token: Optional[str] = None
        pages = 0

        while True:
            data = self._get(url, params={"pageToken": page_token} if page_token else None)
            pages += 1

            yield from data.get("reviews") or []

            page_token = data.get("nextPageToken") or None
            if not page_token:
                break

        logger.debug(
            "Fetched all review pages",
            extra={"gmb_id": location_id, "pages": pages},
        )
