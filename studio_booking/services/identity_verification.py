"""Customer identity verification against the external OTP service"""

import logging
from typing import Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)


class IdentityVerifier:
    """Checks a phone number + one-time code pair with the OTP service"""

    def __init__(self, verify_url: Optional[str] = None, api_key: Optional[str] = None, timeout: float = 5.0):
        self.verify_url = verify_url if verify_url is not None else config.OTP_VERIFY_URL
        self.api_key = api_key if api_key is not None else config.OTP_SERVICE_API_KEY
        self.timeout = timeout

    def verify(self, phone_number: str, code: str) -> bool:
        """True only when the OTP service confirms the code for this phone"""
        if not self.verify_url:
            logger.error("❌ OTP_VERIFY_URL not configured, cannot verify customer identity")
            return False
        if not code:
            return False

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.verify_url,
                    json={"phone": f"{config.PHONE_COUNTRY_CODE}{phone_number}", "code": code},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ OTP verification request failed: {e}")
            return False

        if response.status_code != 200:
            logger.warning(f"🔒 OTP verification rejected: HTTP {response.status_code}")
            return False

        try:
            verified = bool(response.json().get("verified"))
        except ValueError:
            logger.error("❌ OTP service returned a non-JSON response")
            return False

        if not verified:
            logger.warning(f"🔒 OTP verification failed for phone ending {phone_number[-4:]}")
        return verified


def get_identity_verifier() -> IdentityVerifier:
    """FastAPI dependency for the identity verifier"""
    return IdentityVerifier()
