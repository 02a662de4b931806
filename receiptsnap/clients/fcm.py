"""
Firebase Cloud Messaging (HTTP v1) client with service-account auth.

Access tokens are minted from an RS256 service-account assertion and cached
on an ``AccessTokenState`` owned by the client instance.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import jwt

from receiptsnap.errors import UpstreamError, truncate
from receiptsnap.schemas import RenewalMessage, SendResult

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"

ASSERTION_LIFETIME = 3600
EXPIRY_MARGIN = 60


class FcmAuthError(UpstreamError):
    pass


@dataclass
class AccessTokenState:
    token: Optional[str] = None
    expires_at: float = 0.0  # epoch seconds

    def is_fresh(self, now: float, margin: float = EXPIRY_MARGIN) -> bool:
        return self.token is not None and now < self.expires_at - margin


def build_renewal_message(
    subscription_name: str,
    amount: float,
    currency: str,
    days_until: int,
    subscription_id: str,
    notification_type: str,
) -> RenewalMessage:
    title = "Renewal Tomorrow!" if days_until == 1 else "Upcoming Renewal"
    unit = "day" if days_until == 1 else "days"
    body = f"{subscription_name} will charge {currency} {amount:.2f} in {days_until} {unit}"
    return RenewalMessage(
        title=title,
        body=body,
        data={
            "subscription_id": subscription_id,
            "type": notification_type,
            "click_action": CLICK_ACTION,
        },
    )


class FcmClient:
    def __init__(
        self,
        project_id: str,
        client_email: str,
        private_key: str,
        *,
        http_client: Optional[httpx.Client] = None,
        token_state: Optional[AccessTokenState] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.project_id = project_id
        self.client_email = client_email
        # Env vars usually carry the PEM with literal "\n" sequences
        self.private_key = private_key.replace("\\n", "\n")
        self.token_state = token_state or AccessTokenState()
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(10.0))
        self._clock = clock

    @property
    def send_url(self) -> str:
        return FCM_SEND_URL.format(project_id=self.project_id)

    build_renewal_message = staticmethod(build_renewal_message)

    # ---- auth ---------------------------------------------------------------
    def signed_assertion(self, now: int) -> str:
        payload = {
            "iss": self.client_email,
            "sub": self.client_email,
            "aud": TOKEN_URL,
            "iat": now,
            "exp": now + ASSERTION_LIFETIME,
            "scope": SCOPE,
        }
        return jwt.encode(payload, self.private_key, algorithm="RS256", headers={"typ": "JWT"})

    def authenticate(self) -> str:
        """Return a bearer token, minting a new one only when the cached one is stale."""
        now = self._clock()
        if self.token_state.is_fresh(now):
            return self.token_state.token

        assertion = self.signed_assertion(int(now))
        resp = self._http.post(
            TOKEN_URL,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if not resp.is_success:
            raise FcmAuthError(
                f"Failed to get access token: {truncate(resp.text)}",
                upstream_status=resp.status_code,
            )

        data = resp.json()
        token = data.get("access_token")
        if not token:
            raise FcmAuthError("Token endpoint returned no access_token")
        self.token_state.token = token
        self.token_state.expires_at = now + float(data.get("expires_in", ASSERTION_LIFETIME))
        logger.info("Minted FCM access token (expires in %ss)", data.get("expires_in", ASSERTION_LIFETIME))
        return token

    # ---- send ---------------------------------------------------------------
    def build_message(
        self,
        device_token: str,
        title: str,
        body: str,
        data: Optional[dict[str, str]] = None,
    ) -> dict:
        return {
            "message": {
                "token": device_token,
                "notification": {"title": title, "body": body},
                "data": data or {},
                "android": {
                    "priority": "high",
                    "notification": {"click_action": CLICK_ACTION},
                },
                "apns": {"payload": {"aps": {"sound": "default", "badge": 1}}},
            }
        }

    def send(
        self,
        device_token: str,
        title: str,
        body: str,
        data: Optional[dict[str, str]] = None,
    ) -> SendResult:
        try:
            access_token = self.authenticate()
            resp = self._http.post(
                self.send_url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
                json=self.build_message(device_token, title, body, data),
            )
        except UpstreamError as exc:
            logger.error("FCM auth failed: %s", exc.message)
            return SendResult(error=exc.message, error_code=exc.upstream_status)
        except (httpx.HTTPError, ValueError, TypeError, jwt.PyJWTError) as exc:
            logger.error("FCM send failed: %s", exc)
            return SendResult(error=str(exc) or exc.__class__.__name__, error_code=500)

        if not resp.is_success:
            message = truncate(resp.text)
            try:
                message = resp.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                pass
            logger.error("FCM V1 API error %s: %s", resp.status_code, message)
            return SendResult(error=message, error_code=resp.status_code)

        try:
            result = resp.json()
        except ValueError:
            result = {}
        message_id = result.get("name") if isinstance(result, dict) else None
        return SendResult(message_id=message_id)
