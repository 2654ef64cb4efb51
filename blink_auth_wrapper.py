"""
Blink authentication.

Exchanges the account email/password for an auth token and verifies the
one-time PIN the Blink service sends by email or SMS. The result is an
immutable BlinkSession used for every later request.

Key responsibilities:
- Login against the configured API host
- Regional host selection from the account tier
- PIN verification against the regional host

Tokens are never refreshed: when the session expires the process has to be
restarted and the PIN entered again.
"""

import requests

from errors import AuthError, PinError
from models import BlinkSession, Credentials
from tools import logger, VERBOSE


class BlinkAuthenticator(object):
    """
    Performs the two-step Blink login.

    Both steps are fatal on failure: a wrong password or PIN is an operator
    problem and is never retried.
    """

    LOGIN_URI = "https://{api_host}/api/v5/account/login"
    PIN_VERIFY_URI = "https://{regional_host}/api/v4/account/{account_id}/client/{client_id}/pin/verify"

    # Fixed client instance identifier sent with every login
    UNIQUE_ID = "00000000-1111-0000-1111-00000000000"

    def __init__(self, http=None, timeout=None):
        """
        Args:
            http: requests.Session to send requests with (a new one by default)
            timeout: Per-request timeout in seconds, None for no timeout
        """
        self._http = http or requests.Session()
        self._timeout = timeout

    def authenticate(self, credentials: Credentials) -> BlinkSession:
        """
        Log in with email and password.

        Returns:
            BlinkSession carrying token, account id, client id and tier

        Raises:
            AuthError: on transport failure, rejected credentials or an
                unexpected response body
        """
        url = BlinkAuthenticator.LOGIN_URI.format(api_host=credentials.api_host)
        logger.debug(f"Sending login request to: '{url}'")

        try:
            res = self._http.post(
                url,
                json={
                    "email": credentials.email,
                    "password": credentials.password,
                    "unique_id": BlinkAuthenticator.UNIQUE_ID,
                },
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
            res.raise_for_status()
            login_json = res.json()
        except (requests.RequestException, ValueError) as e:
            raise AuthError(f"Invalid credentials or network error: {e}") from e

        if VERBOSE:
            logger.debug(f"Login response: {login_json}")

        try:
            session = BlinkSession.from_login_response(login_json)
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError(f"Unexpected login response, missing {e}") from e

        logger.info(f"Authenticated account {session.account_id} on {session.regional_host}")
        return session

    def verify_pin(self, session: BlinkSession, pin: str) -> BlinkSession:
        """
        Verify the one-time PIN for this client.

        Returns:
            The same session, now usable for API requests

        Raises:
            PinError: on transport failure or a rejected PIN
        """
        url = BlinkAuthenticator.PIN_VERIFY_URI.format(
            regional_host=session.regional_host,
            account_id=session.account_id,
            client_id=session.client_id,
        )
        logger.debug(f"Sending PIN verification to: '{url}'")

        try:
            res = self._http.post(
                url,
                json={"pin": pin},
                headers={
                    "Content-Type": "application/json",
                    "TOKEN-AUTH": session.auth_token,
                },
                timeout=self._timeout,
            )
            res.raise_for_status()
        except requests.RequestException as e:
            raise PinError(f"Invalid PIN or verification failed: {e}") from e

        if VERBOSE:
            logger.debug(f"PIN verification response: {res.text}")

        logger.info("PIN verified successfully.")
        return session
