"""
App Store Connect analytics client with cookie session login.

This module provides:
- Username/password login with optional two-step verification
- Immutable Session values threaded through every authenticated call
- Settings and time-series requests against the analytics API
- Translation of HTTP failures into ApiError / NetworkError
"""

import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from core.config import settings
from core.exceptions import (
    ApiError,
    AuthError,
    DataFormatError,
    NetworkError,
    NotAuthenticatedError,
)
from models.base import NoGrouping
from schemas.analytics import ProviderSettings, TimeSeriesResponse
from schemas.export import DimensionKey, Session

logger = logging.getLogger(__name__)

TwoFactorPrompt = Callable[[], Union[str, Awaitable[str]]]

ACCOUNT_COOKIE = "myacinfo"
SESSION_COOKIE = "itctx"


def require_authenticated(session: Optional[Session], name: str) -> None:
    """Raise if the session is missing either cookie"""
    if session is None or not session.is_authenticated():
        raise NotAuthenticatedError(
            f"{name} requires authentication; use login first",
            context={"operation": name}
        )


class AnalyticsClient:
    """
    Async client for the App Store Connect analytics API.

    The client holds no authentication state: login() returns a Session and
    every other call takes one.

    Attributes:
        http: Underlying httpx client (created if not given)
        headers: Default headers sent with every request
    """

    AUTH_BASE_URL = "https://idmsa.apple.com/appleauth/auth"
    SESSION_URL = "https://appstoreconnect.apple.com/olympus/v1/session"
    API_BASE_URL = "https://appstoreconnect.apple.com/analytics/api/v1"
    WIDGET_KEY = "e0b80c3bf78523bfe80974d320935bfa30add02e1bff88ec2166c6bd5a706c42"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None
    ):
        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=timeout or settings.HTTP_TIMEOUT
        )
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/javascript, */*",
        }

    async def close(self):
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "AnalyticsClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _headers(self, session: Optional[Session] = None, **extra: str) -> Dict[str, str]:
        headers = {**self.headers, **extra}
        if session is not None:
            headers["Cookie"] = session.cookie_header()
        return headers

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, mapping transport failures to NetworkError"""
        try:
            return await self.http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(
                f"{method} {url} failed: {type(e).__name__}",
                context={"url": url},
                original_exception=e
            )

    @staticmethod
    def _error_payload(response: httpx.Response) -> Optional[str]:
        """Provider error details, preferring the JSON `errors` field"""
        try:
            body = response.json()
        except ValueError:
            return response.text[:500] or None
        if isinstance(body, dict) and body.get("errors"):
            return json.dumps(body["errors"], indent=2)
        return None

    @classmethod
    def check_response(cls, response: httpx.Response, start_message: str) -> None:
        """
        Raise an ApiError for a non-success response.

        Raises:
            ApiError: RateLimitError for 429, ServerError for 5xx
        """
        if response.is_success:
            return
        provider_message = cls._error_payload(response)
        message = f"{start_message}: {response.status_code} {response.reason_phrase}"
        raise ApiError.from_status(
            message,
            status_code=response.status_code,
            provider_message=provider_message,
            context={"url": str(response.request.url)}
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DataFormatError(
                "Failed to parse JSON response",
                context={
                    "url": str(response.request.url),
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

    @staticmethod
    def _cookie(response: httpx.Response, key: str) -> str:
        value = response.cookies.get(key)
        if not value:
            raise AuthError(f"Could not get {key} cookie", status_code=response.status_code)
        return value

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(
        self,
        username: str,
        password: str,
        on_two_factor_prompt: Optional[TwoFactorPrompt] = None
    ) -> Session:
        """
        Log in and return a Session holding the account and session cookies.

        A 409 from the sign-in endpoint starts two-step verification: a code
        is requested, read through on_two_factor_prompt and submitted. Any
        other success skips the challenge.

        Raises:
            AuthError: Bad credentials, missing code or missing cookies
            NetworkError: Transport failure
        """
        try:
            return await self._sign_in(username, password, on_two_factor_prompt)
        finally:
            # Credentials live only in the returned Session
            self.http.cookies.clear()

    async def _sign_in(
        self,
        username: str,
        password: str,
        on_two_factor_prompt: Optional[TwoFactorPrompt]
    ) -> Session:
        login_headers = {"X-Apple-Widget-Key": self.WIDGET_KEY}

        login_response = await self._send(
            "POST",
            f"{self.AUTH_BASE_URL}/signin",
            params={"isRememberMeEnabled": "true"},
            json={"accountName": username, "password": password, "rememberMe": False},
            headers=self._headers(**login_headers),
        )

        if login_response.status_code == 409:
            login_response = await self._verify_two_factor(
                login_response, login_headers, on_two_factor_prompt
            )

        if not login_response.is_success:
            if login_response.status_code == 401:
                reason = "Invalid username and password"
            else:
                reason = "Unrecognized error"
            raise AuthError(
                f"Could not log in: {login_response.status_code} {reason}",
                status_code=login_response.status_code
            )

        account_cookie = self._cookie(login_response, ACCOUNT_COOKIE)
        partial = Session(account_cookie=account_cookie)

        session_response = await self._send(
            "GET", self.SESSION_URL, headers=self._headers(partial)
        )
        if not session_response.is_success:
            raise AuthError(
                f"Could not get session cookie: {session_response.status_code}",
                status_code=session_response.status_code
            )

        session = Session(
            account_cookie=account_cookie,
            session_cookie=self._cookie(session_response, SESSION_COOKIE),
        )
        logger.info("Logged in to App Store Connect")
        return session

    async def _verify_two_factor(
        self,
        login_response: httpx.Response,
        login_headers: Dict[str, str],
        on_two_factor_prompt: Optional[TwoFactorPrompt]
    ) -> httpx.Response:
        logger.info("Attempting to handle 2-step verification")

        login_headers["X-Apple-ID-Session-Id"] = login_response.headers.get(
            "X-Apple-ID-Session-Id", ""
        )
        login_headers["scnt"] = login_response.headers.get("scnt", "")

        code_response = await self._send(
            "GET", self.AUTH_BASE_URL, headers=self._headers(**login_headers)
        )
        if not code_response.is_success:
            if code_response.status_code == 423:
                logger.warning("Too many codes requested, try again later or use last code")
            else:
                raise AuthError(
                    f"Error requesting 2SV code: {code_response.status_code}",
                    status_code=code_response.status_code
                )

        if on_two_factor_prompt is None:
            raise AuthError("2-step verification required but no code prompt given")

        code = on_two_factor_prompt()
        if inspect.isawaitable(code):
            code = await code
        if not code or not str(code).strip():
            raise AuthError("No 2SV code given")

        # The verification response stands in for the sign-in response
        return await self._send(
            "POST",
            f"{self.AUTH_BASE_URL}/verify/phone/securitycode",
            json={
                "mode": "sms",
                "phoneNumber": {"id": 1},
                "securityCode": {"code": str(code).strip()},
            },
            headers=self._headers(**login_headers),
        )

    # ------------------------------------------------------------------
    # Analytics API
    # ------------------------------------------------------------------

    async def get_settings(self, session: Session) -> ProviderSettings:
        """Retrieve API metadata (data date range, dimensions, measures)"""
        require_authenticated(session, "get_settings")

        response = await self._send(
            "GET", f"{self.API_BASE_URL}/settings/all", headers=self._headers(session)
        )
        self.check_response(response, "Could not get API settings")

        try:
            return ProviderSettings.model_validate(self._decode(response))
        except ValidationError as e:
            raise DataFormatError(
                "Unexpected API settings payload",
                context={"errors": e.error_count()},
                original_exception=e
            )

    async def get_time_series(
        self,
        session: Session,
        app_id: str,
        measure: str,
        dimension: DimensionKey,
        start_date: str,
        end_date: str
    ) -> TimeSeriesResponse:
        """
        Get daily values of a measure, grouped by dimension unless ungrouped.

        Grouped requests return the top 10 dimension values in descending
        order. Dates are YYYY-MM-DD.
        """
        require_authenticated(session, "get_time_series")

        grouped = not isinstance(dimension, NoGrouping)
        body = {
            "adamId": [app_id],
            "measures": [measure],
            "group": {
                "dimension": dimension,
                "metric": measure,
                "limit": 10,
                "rank": "DESCENDING",
            } if grouped else None,
            "frequency": "day",
            "startTime": f"{start_date}T00:00:00Z",
            "endTime": f"{end_date}T00:00:00Z",
        }

        response = await self._send(
            "POST",
            f"{self.API_BASE_URL}/data/time-series",
            json=body,
            headers=self._headers(session, **{"X-Requested-By": "dev.apple.com"}),
        )
        self.check_response(response, "Could not get metrics")

        try:
            return TimeSeriesResponse.model_validate(self._decode(response))
        except ValidationError as e:
            raise DataFormatError(
                "Unexpected time-series payload",
                context={"measure": measure, "errors": e.error_count()},
                original_exception=e
            )
