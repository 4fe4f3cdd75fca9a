"""Tesla Owner API client.

Covers what the reserve adjuster needs from the Tesla cloud: interactive
login (with optional MFA), refresh-token exchange, energy site status and
setting the backup reserve.
"""

import base64
import hashlib
import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

import requests

from .errors import AuthError, UpstreamError
from .models import Credential, DeviceStatus

logger = logging.getLogger(__name__)

OWNER_API_URL = "https://owner-api.teslamotors.com"
AUTH_URL = "https://auth.tesla.com/oauth2/v3"
CLIENT_ID = "ownerapi"
REDIRECT_URI = "https://auth.tesla.com/void/callback"
SCOPE = "openid email offline_access"

TESLA_USER_AGENT = "TeslaApp/3.4.4-350/fad4a582e/android/8.1.0"
USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 8.1.0; Pixel XL Build/OPM4.171019.021.D1; wv) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Version/4.0 Chrome/68.0.3440.91 Mobile Safari/537.36"
)

DEFAULT_TIMEOUT = 30

_HIDDEN_INPUT_RE = re.compile(r'<input type="hidden" name="([^"]*)" value="([^"]*)"')


def _code_verifier() -> str:
    return secrets.token_urlsafe(64)


def _code_challenge(verifier: str) -> str:
    """S256 PKCE challenge for ``verifier``."""
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')


def _hidden_form_fields(html: str) -> Dict[str, str]:
    return dict(_HIDDEN_INPUT_RE.findall(html))


class TeslaApiClient:
    """Tesla Owner API client.

    Args:
        base_url: Owner API base URL
        auth_url: OAuth base URL
        timeout: Per-request timeout in seconds
        session: Optional pre-built requests session (used by tests)
    """

    def __init__(
        self,
        base_url: str = OWNER_API_URL,
        auth_url: str = AUTH_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.auth_url = auth_url.rstrip('/')
        self.timeout = timeout

        self._session = session or requests.Session()
        self._session.headers['x-tesla-user-agent'] = TESLA_USER_AGENT
        self._session.headers['User-Agent'] = USER_AGENT

    @property
    def is_authenticated(self) -> bool:
        return 'Authorization' in self._session.headers

    def set_access_token(self, token: str) -> None:
        """Attach ``token`` as the bearer credential for Owner API calls."""
        self._session.headers['Authorization'] = f'Bearer {token}'

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault('timeout', self.timeout)
        try:
            return self._session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise UpstreamError(f"{method} {url} failed: {e}") from e

    def _api_call(self, method: str, path: str, **kwargs) -> Any:
        """Call an Owner API endpoint and return the ``response`` member."""
        url = f"{self.base_url}{path}"
        response = self._request(method, url, **kwargs)
        if not response.ok:
            raise UpstreamError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(f"{method} {path} returned invalid JSON: {e}") from e
        logger.debug("%s %s -> %s", method, path, body)
        if not isinstance(body, dict) or 'response' not in body:
            raise UpstreamError(f"{method} {path} returned no 'response' member")
        return body['response']

    def _token_request(self, payload: Dict[str, str]) -> Credential:
        url = f"{self.auth_url}/token"
        response = self._request('POST', url, json=payload)
        if 400 <= response.status_code < 500:
            raise AuthError(
                f"Token request ({payload.get('grant_type')}) rejected with "
                f"{response.status_code}: {response.text[:200]}"
            )
        if not response.ok:
            raise UpstreamError(f"Token endpoint returned {response.status_code}: {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"Token endpoint returned invalid JSON: {e}") from e
        return Credential.from_token_response(data, datetime.now(timezone.utc))

    def refresh(self, refresh_token: str) -> Credential:
        """Exchange a refresh token for a new credential triple.

        Raises:
            AuthError: If the refresh token is rejected
            UpstreamError: If the token endpoint cannot be reached
        """
        logger.info("Refreshing Tesla access token")
        return self._token_request({
            'grant_type': 'refresh_token',
            'client_id': CLIENT_ID,
            'refresh_token': refresh_token,
            'scope': SCOPE,
        })

    def login(self, username: str, password: str, mfa_code: Optional[str] = None) -> Credential:
        """Run the interactive PKCE login and return a fresh credential.

        Args:
            username: Tesla account e-mail
            password: Tesla account password
            mfa_code: Current passcode from the authenticator app, if MFA is enabled

        Raises:
            AuthError: If credentials or the MFA code are rejected
            UpstreamError: If the auth service cannot be reached
        """
        verifier = _code_verifier()
        params = {
            'client_id': CLIENT_ID,
            'code_challenge': _code_challenge(verifier),
            'code_challenge_method': 'S256',
            'redirect_uri': REDIRECT_URI,
            'response_type': 'code',
            'scope': SCOPE,
            'state': secrets.token_urlsafe(16),
            'login_hint': username,
        }
        authorize_url = f"{self.auth_url}/authorize"

        logger.debug("Fetching Tesla login form")
        response = self._request('GET', authorize_url, params=params)
        if not response.ok:
            raise UpstreamError(f"Login form returned {response.status_code}")
        form = _hidden_form_fields(response.text)
        if 'transaction_id' not in form:
            raise UpstreamError("Login form did not contain a transaction id")
        form.update({'identity': username, 'credential': password})

        response = self._request('POST', authorize_url, params=params, data=form, allow_redirects=False)

        if response.status_code == 200 and '/mfa/verify' in response.text:
            self._verify_mfa(form['transaction_id'], mfa_code)
            response = self._request(
                'POST', authorize_url, params=params,
                data={'transaction_id': form['transaction_id']}, allow_redirects=False,
            )

        if response.status_code != 302:
            raise AuthError("Tesla login failed, check your username and password")

        location = response.headers.get('Location', '')
        code = parse_qs(urlparse(location).query).get('code')
        if not code:
            raise AuthError(f"Tesla login redirect carried no authorization code: {location}")

        credential = self._token_request({
            'grant_type': 'authorization_code',
            'client_id': CLIENT_ID,
            'code': code[0],
            'code_verifier': verifier,
            'redirect_uri': REDIRECT_URI,
        })
        logger.info("Tesla login successful, token valid until %s", credential.expires_at)
        return credential

    def _verify_mfa(self, transaction_id: str, mfa_code: Optional[str]) -> None:
        if not mfa_code:
            raise AuthError("Tesla account requires an MFA code")

        response = self._request(
            'GET', f"{self.auth_url}/authorize/mfa/factors",
            params={'transaction_id': transaction_id},
        )
        if not response.ok:
            raise UpstreamError(f"MFA factor lookup returned {response.status_code}")
        factors = response.json().get('data') or []

        for factor in factors:
            response = self._request(
                'POST', f"{self.auth_url}/authorize/mfa/verify",
                json={'transaction_id': transaction_id, 'factor_id': factor['id'], 'passcode': mfa_code},
            )
            if response.ok and (response.json().get('data') or {}).get('valid'):
                logger.debug("MFA passcode accepted for factor %s", factor.get('name', factor['id']))
                return

        raise AuthError("MFA code was not accepted")

    def get_status(self) -> DeviceStatus:
        """Fetch the Powerwall site status."""
        logger.debug("Getting products on this Tesla account")
        products = self._api_call('GET', '/api/1/products')
        if not isinstance(products, list):
            raise UpstreamError("Product response does not contain a list of energy products")

        battery = next((p for p in products if p.get('resource_type') == 'battery'), None)
        if battery is None:
            raise UpstreamError("No battery found in product list")

        site_id = battery['energy_site_id']
        logger.debug("Getting site info for energy site %s", site_id)
        info = self._api_call('GET', f'/api/1/energy_sites/{site_id}/site_info')
        if not isinstance(info, dict):
            raise UpstreamError("Site info response is not an object")
        return DeviceStatus.from_site_info(site_id, info)

    def set_reserve(self, site_id: str, percent: int) -> Any:
        """Set the absolute backup reserve of an energy site."""
        logger.info("Setting backup reserve of site %s to %d%%", site_id, percent)
        return self._api_call(
            'POST', f'/api/1/energy_sites/{site_id}/backup',
            json={'backup_reserve_percent': percent},
        )
