"""
HTTP clients for the Mediator auth and jobs APIs
"""
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from cortex import __version__
from cortex.errors import AuthError, CredentialError, PollError, SubmissionError
from cortex.logger import get_logger
from cortex.models import AccessToken, JobEnvelope, RemoteJobHandle

logger = get_logger(__name__)

TOKEN_HEADER = "Authorization"


class MediatorClient:
    """Shared HTTP plumbing for Mediator API clients."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout
        self.user_agent = f"Cortex-Runner/{__version__}"
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout_seconds),
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._http_client

    async def cleanup(self) -> None:
        """Clean up HTTP client resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body; raises httpx errors."""
        response = await self._get_http_client().request(method, url, **kwargs)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Expected a JSON object from {url}")
        return body


class AuthClient(MediatorClient):
    """Exchanges a client key/secret pair for an access token."""

    async def authenticate(self, client_id: Optional[str], secret: Optional[str]) -> AccessToken:
        if not client_id or not secret:
            raise CredentialError("Client key and client secret are required")

        try:
            body = await self._request(
                "POST",
                "/auth/token",
                data={"clientKey": client_id, "clientSecret": secret},
            )
            return AccessToken.from_response(body)
        except httpx.HTTPStatusError as e:
            raise AuthError(
                f"Token request rejected: HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code},
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Auth service unreachable: {e}")
        except (ValueError, ValidationError) as e:
            raise AuthError(f"Malformed token response: {e}")


class JobClient(MediatorClient):
    """Submits jobs and fetches their status."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._token: Optional[AccessToken] = None

    def set_token(self, token: AccessToken) -> None:
        self._token = token

    def _auth_headers(self) -> Dict[str, str]:
        return {TOKEN_HEADER: self._token.authorization}

    async def submit(self, envelope: JobEnvelope, token: AccessToken) -> RemoteJobHandle:
        """Create a job; the token is kept for subsequent status fetches."""
        self.set_token(token)

        expired = envelope.expired_locators()
        if expired:
            raise SubmissionError(
                "Envelope references expired or unsigned locators",
                details={"locators": expired},
            )

        try:
            body = await self._request(
                "POST",
                "/jobs",
                json=envelope.to_payload(),
                headers=self._auth_headers(),
            )
            return RemoteJobHandle.from_response(body)
        except httpx.HTTPStatusError as e:
            raise SubmissionError(
                f"Job creation rejected: HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code, "body": e.response.text[:500]},
            )
        except httpx.HTTPError as e:
            raise SubmissionError(f"Job creation failed: {e}")
        except (ValueError, ValidationError) as e:
            raise SubmissionError(f"Malformed job response: {e}")

    async def fetch_status(self, handle: RemoteJobHandle) -> RemoteJobHandle:
        """Re-read a job from the Mediator."""
        if self._token is None:
            raise PollError("No access token; submit a job first", details={"job_id": handle.id})

        try:
            body = await self._request(
                "GET",
                f"/jobs/{handle.id}",
                headers=self._auth_headers(),
            )
            fetched = RemoteJobHandle.from_response(body)
        except httpx.HTTPStatusError as e:
            raise PollError(
                f"Status fetch rejected: HTTP {e.response.status_code}",
                details={"job_id": handle.id, "status_code": e.response.status_code},
            )
        except httpx.HTTPError as e:
            raise PollError(f"Status fetch failed: {e}", details={"job_id": handle.id})
        except (ValueError, ValidationError) as e:
            raise PollError(f"Malformed job response: {e}", details={"job_id": handle.id})

        if fetched.id != handle.id:
            raise PollError(
                "Mediator returned a different job",
                details={"job_id": handle.id, "returned_id": fetched.id},
            )
        return fetched
