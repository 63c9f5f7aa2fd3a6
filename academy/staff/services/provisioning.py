"""
Client for the identity provider's server-side "create-coach-account" function.

Creating a coach also creates the login account the coach signs in with; the
function answers {"success": bool, "coach": {...}, "error": str}.
"""
import httpx
import logging
from typing import Optional

from academy.core.config import (
    COACH_PROVISIONING_URL,
    COACH_PROVISIONING_KEY,
    COACH_PROVISIONING_TIMEOUT,
    COACH_DEFAULT_PASSWORD,
)
from academy.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "coach-provisioning"


class CoachProvisioningClient:
    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def create_account(
        self,
        name: str,
        email: str,
        phone: Optional[str] = None,
        password: Optional[str] = None,
    ) -> str:
        """
        Create the login account and return its identity-provider user id.

        Raises:
            ExternalServiceError: transport failure, non-2xx answer or success=false
        """
        payload = {
            "name": name,
            "email": email,
            "phone": phone,
            "password": password or COACH_DEFAULT_PASSWORD,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    self.url, json=payload, headers=self._headers()
                )
        except httpx.HTTPError as e:
            logger.error(
                f"Coach provisioning request failed: {str(e)}",
                extra={"email": email, "exception_type": type(e).__name__},
            )
            raise ExternalServiceError(SERVICE_NAME, "Coach account service is unavailable")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("success"):
            error = body.get("error") or f"HTTP {response.status_code}"
            logger.error(
                f"Coach provisioning rejected: {error}",
                extra={"email": email, "status_code": response.status_code},
            )
            raise ExternalServiceError(
                SERVICE_NAME, f"Failed to create coach account: {error}"
            )

        coach = body.get("coach") or {}
        auth_id = coach.get("auth_id") or coach.get("id")
        if not auth_id:
            raise ExternalServiceError(
                SERVICE_NAME, "Coach account service returned no account id"
            )

        logger.info(
            "Coach account provisioned", extra={"email": email, "auth_id": str(auth_id)}
        )
        return str(auth_id)


def get_provisioning_client() -> Optional[CoachProvisioningClient]:
    """Dependency: None when provisioning is not configured"""
    if not COACH_PROVISIONING_URL:
        return None
    return CoachProvisioningClient(
        COACH_PROVISIONING_URL, COACH_PROVISIONING_KEY, COACH_PROVISIONING_TIMEOUT
    )
