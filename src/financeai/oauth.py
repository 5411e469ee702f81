"""Summary: Discord OAuth handler behind the /api/auth routes.

Importance: Completes the Discord login that links a Discord identity to a FinanceAI user.
Alternatives: Use a hosted auth service or an OAuth client library.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import threading
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from financeai.config import AppConfig
from financeai.models import Account, User, utcnow
from financeai.storage.auth_repository import DISCORD_PROVIDER, AccountRepository, AuthRepository
from financeai.storage.database import Database


logger = logging.getLogger(__name__)

DISCORD_AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
DISCORD_TOKEN_URL = "https://discord.com/api/oauth2/token"
DISCORD_PROFILE_URL = "https://discord.com/api/users/@me"
DISCORD_SCOPES = "identify email"
STATE_TTL = timedelta(minutes=10)

AccountCreatedHook = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class AuthRequest:
    """Summary: Framework-neutral HTTP request handed to the auth handler.

    Importance: Keeps the OAuth logic independent of FastAPI.
    Alternatives: Pass the Starlette request straight through.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None

    @property
    def path(self) -> str:
        return urllib.parse.urlsplit(self.url).path

    @property
    def query(self) -> dict[str, str]:
        return dict(urllib.parse.parse_qsl(urllib.parse.urlsplit(self.url).query))

    def json(self) -> dict[str, Any]:
        if not self.body:
            return {}
        payload = json.loads(self.body)
        return payload if isinstance(payload, dict) else {}


@dataclass(frozen=True)
class AuthResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None

    @staticmethod
    def json(status: int, payload: dict[str, Any]) -> "AuthResponse":
        return AuthResponse(
            status=status,
            headers={"content-type": "application/json"},
            body=json.dumps(payload),
        )

    @staticmethod
    def redirect(location: str) -> "AuthResponse":
        return AuthResponse(status=302, headers={"location": location})


@dataclass(frozen=True)
class OAuthTokenResult:
    """Summary: Normalized OAuth token response data.

    Importance: Provides a consistent token representation for account storage.
    Alternatives: Store the raw provider response without normalization.
    """

    access_token: str
    refresh_token: str | None
    scope: str | None
    raw: dict[str, Any]

    @staticmethod
    def from_response(payload: dict[str, Any]) -> "OAuthTokenResult":
        return OAuthTokenResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
            raw=payload,
        )


@dataclass(frozen=True)
class DiscordProfile:
    id: str
    username: str
    email: str | None
    verified: bool
    avatar_url: str | None

    @staticmethod
    def from_response(payload: dict[str, Any]) -> "DiscordProfile":
        avatar = payload.get("avatar")
        user_id = str(payload["id"])
        return DiscordProfile(
            id=user_id,
            username=payload.get("global_name") or payload.get("username") or "",
            email=payload.get("email"),
            verified=bool(payload.get("verified")),
            avatar_url=f"https://cdn.discordapp.com/avatars/{user_id}/{avatar}.png" if avatar else None,
        )


def create_state_token() -> str:
    """Summary: Generate a CSRF state token.

    Importance: Protects OAuth flows from CSRF attacks.
    Alternatives: Use server-side session storage with pre-generated tokens.
    """

    return secrets.token_urlsafe(24)


class DiscordAuthHandler:
    """Summary: Handles sign-in, callback, and status requests for Discord OAuth.

    Importance: Creates users and accounts on first login and fires the account-created hook.
    Alternatives: Delegate the whole flow to an external identity provider.
    """

    def __init__(
        self,
        config: AppConfig,
        database: Database,
        users: AuthRepository,
        accounts: AccountRepository,
        on_account_created: AccountCreatedHook | None = None,
    ) -> None:
        self.config = config
        self.database = database
        self.users = users
        self.accounts = accounts
        self.on_account_created = on_account_created
        self._states: dict[str, dict[str, Any]] = {}
        self._states_lock = threading.Lock()

    @property
    def redirect_uri(self) -> str:
        return f"{self.config.auth_base_url}/api/auth/callback/discord"

    async def handle(self, request: AuthRequest) -> AuthResponse:
        """Summary: Route an auth request to the matching endpoint.

        Importance: Unknown routes get a 404 JSON body instead of an exception.
        Alternatives: Register each endpoint as its own FastAPI route.
        """

        route = request.path.rstrip("/").split("/api/auth", 1)[-1]
        if request.method == "POST" and route == "/sign-in/social":
            payload = request.json()
            return self.sign_in_social(payload.get("provider", ""), payload.get("callbackURL"))
        if request.method == "GET" and route == "/callback/discord":
            query = request.query
            return await self.callback(query.get("code"), query.get("state"), query.get("error"))
        if request.method == "GET" and route == "/ok":
            return AuthResponse.json(200, {"ok": True})
        return AuthResponse.json(404, {"error": "Not found"})

    def sign_in_social(self, provider: str, callback_url: str | None = None) -> AuthResponse:
        if provider != DISCORD_PROVIDER:
            return AuthResponse.json(400, {"error": f"Unsupported provider: {provider}"})
        target = self.trusted_callback(callback_url or f"{self.config.auth_base_url}/login-success")
        if target is None:
            logger.warning("Rejected untrusted callback URL %s.", callback_url)
            return AuthResponse.json(400, {"error": "Invalid callbackURL"})
        url = self.authorization_url(target)
        return AuthResponse.json(200, {"url": url, "redirect": True})

    def trusted_callback(self, callback_url: str) -> str | None:
        """Summary: Resolve a post-login redirect against the trusted origins.

        Importance: Only the auth server and TRUSTED_ORIGINS may receive users after login.
        Alternatives: Ignore the requested callback and always use /login-success.
        """

        if not isinstance(callback_url, str):
            return None
        parts = urllib.parse.urlsplit(callback_url)
        if not parts.scheme and not parts.netloc and callback_url.startswith("/"):
            return f"{self.config.auth_base_url}{callback_url}"
        origin = _origin(callback_url)
        trusted = {_origin(self.config.auth_base_url)}
        trusted.update(_origin(item) for item in self.config.trusted_origins)
        return callback_url if origin is not None and origin in trusted else None

    def authorization_url(self, callback_url: str) -> str:
        state = create_state_token()
        self._register_state(state, callback_url)
        params = {
            "client_id": self.config.discord_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": DISCORD_SCOPES,
            "state": state,
            "prompt": "consent",
        }
        return f"{DISCORD_AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"

    async def callback(self, code: str | None, state: str | None, error: str | None = None) -> AuthResponse:
        """Summary: Finish the OAuth flow and link the Discord account.

        Importance: New accounts trigger the login-success DM.
        Alternatives: Link accounts in a background job after redirecting.
        """

        if error:
            logger.warning("Discord returned OAuth error %s.", error)
            return AuthResponse.json(400, {"error": error})
        callback_url = self._consume_state(state)
        if callback_url is None:
            return AuthResponse.json(400, {"error": "Invalid or expired OAuth state"})
        if not code:
            return AuthResponse.json(400, {"error": "Missing authorization code"})

        tokens = await asyncio.to_thread(self.exchange_code, code)
        profile = await asyncio.to_thread(self.fetch_profile, tokens.access_token)
        user, created = await asyncio.to_thread(self.link_account, profile, tokens)
        if created and self.on_account_created is not None:
            await self.on_account_created(user.id)
        return AuthResponse.redirect(callback_url)

    def exchange_code(self, code: str) -> OAuthTokenResult:
        payload = {
            "client_id": self.config.discord_client_id,
            "client_secret": self.config.discord_client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }
        return OAuthTokenResult.from_response(_post_form(DISCORD_TOKEN_URL, payload))

    def fetch_profile(self, access_token: str) -> DiscordProfile:
        return DiscordProfile.from_response(
            _get_json(DISCORD_PROFILE_URL, {"Authorization": f"Bearer {access_token}"})
        )

    def link_account(self, profile: DiscordProfile, tokens: OAuthTokenResult) -> tuple[User, bool]:
        """Summary: Create or refresh the user and Discord account in one transaction.

        Importance: A user is never left without its account row.
        Alternatives: Insert user and account with separate commits.
        """

        with self.database.transaction() as transaction:
            account = self.accounts.find_by_provider_account(DISCORD_PROVIDER, profile.id, transaction)
            if account is not None:
                self.accounts.update(
                    account.id,
                    {
                        "access_token": tokens.access_token,
                        "refresh_token": tokens.refresh_token,
                        "scope": tokens.scope,
                    },
                    transaction,
                )
                user = self.users.find_by_id(account.user_id, transaction)
                logger.info("Refreshed Discord account for user %s.", account.user_id)
                return user, False

            email = profile.email or f"{profile.id}@users.discord.invalid"
            user = self.users.find_by_email(email, transaction)
            if user is None:
                user = self.users.create(
                    User(
                        name=profile.username,
                        email=email,
                        email_verified=profile.verified,
                        image=profile.avatar_url,
                    ),
                    transaction,
                )
                logger.info("Created user %s for Discord id %s.", user.id, profile.id)
            self.accounts.create(
                Account(
                    account_id=profile.id,
                    provider_id=DISCORD_PROVIDER,
                    user_id=user.id,
                    access_token=tokens.access_token,
                    refresh_token=tokens.refresh_token,
                    scope=tokens.scope,
                ),
                transaction,
            )
        logger.info("Linked Discord id %s to user %s.", profile.id, user.id)
        return user, True

    def _register_state(self, state: str, callback_url: str) -> None:
        with self._states_lock:
            self._prune_states()
            self._states[state] = {"callback_url": callback_url, "created_at": utcnow()}

    def _consume_state(self, state: str | None) -> str | None:
        if not state:
            return None
        with self._states_lock:
            record = self._states.pop(state, None)
        if record is None:
            logger.warning("Unknown OAuth state received.")
            return None
        if utcnow() - record["created_at"] > STATE_TTL:
            logger.warning("Expired OAuth state received.")
            return None
        return record["callback_url"]

    def _prune_states(self) -> None:
        # Caller holds _states_lock.
        cutoff: datetime = utcnow() - STATE_TTL
        for key in [key for key, record in list(self._states.items()) if record["created_at"] < cutoff]:
            del self._states[key]


def _origin(url: str) -> tuple[str, str] | None:
    parts = urllib.parse.urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        return None
    return parts.scheme, parts.netloc.lower()


def _post_form(url: str, payload: dict[str, str]) -> dict[str, Any]:
    """Summary: Send a form-encoded POST request and parse JSON.

    Importance: Avoids new dependencies while supporting OAuth exchanges.
    Alternatives: Use requests or a provider SDK.
    """

    data = urllib.parse.urlencode(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded", "Accept": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise RuntimeError(f"Token exchange failed: {error_body or exc.reason}") from exc
    return json.loads(raw)


def _get_json(url: str, headers: dict[str, str]) -> dict[str, Any]:
    request = urllib.request.Request(url, headers={"Accept": "application/json", **headers})
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raise RuntimeError(f"Discord profile request failed: {exc.code} {exc.reason}") from exc
    return json.loads(raw)
