"""Wires the client core together once per process."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .analytics import ViewCounter
from .auth import AuthFlow
from .backends import HttpSessionBackend, MockSessionBackend, SessionBackend
from .bookings import BookingOrchestrator
from .config import Settings
from .gateway import RequestGateway
from .observability import init_otel, init_sentry, instrument_http_client
from .pricing import PricingEngine
from .session import FileTokenStore, InMemoryTokenStore, Session, TokenStore
from .startup import PreloadTask, StartupReport, run_preload

logger = logging.getLogger(__name__)


@dataclass
class SamayaClient:
    settings: Settings
    session: Session
    gateway: RequestGateway
    auth: AuthFlow
    pricing: PricingEngine
    bookings: BookingOrchestrator
    views: ViewCounter

    async def aclose(self) -> None:
        await self.gateway.aclose()

    async def __aenter__(self) -> "SamayaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def check_app_version(self) -> dict:
        return await self.gateway.execute(
            "app_version", params={"current": self.settings.app_version}
        )

    async def load_categories(self) -> dict:
        return await self.gateway.execute("categories")

    async def initialize(self, extra: dict[str, PreloadTask] | None = None) -> StartupReport:
        """Preload session status, categories and the version check concurrently."""
        tasks: dict[str, PreloadTask] = {
            "auth_status": self.auth.check_auth_status,
            "categories": self.load_categories,
            "app_version": self.check_app_version,
        }
        tasks.update(extra or {})
        return await run_preload(tasks, self.settings.startup_min_duration_seconds)


def build_token_store(settings: Settings) -> TokenStore:
    if settings.token_file is not None:
        return FileTokenStore(settings.token_file, settings.token_storage_key)
    return InMemoryTokenStore()


def build_session_backend(settings: Settings, gateway: RequestGateway) -> SessionBackend:
    live = HttpSessionBackend(gateway)
    if settings.mock_auth:
        logger.info("Using mock session backend (environment=%s)", settings.environment)
        return MockSessionBackend(
            sentinel_code=settings.otp_mock_code,
            fallback=live if settings.is_development else None,
        )
    return live


def build_client(
    settings: Settings | None = None,
    *,
    http: httpx.AsyncClient | None = None,
    token_store: TokenStore | None = None,
    backend: SessionBackend | None = None,
    observability: bool = False,
) -> SamayaClient:
    """Build the client graph. The session backend strategy is fixed here."""
    settings = settings or Settings()
    if observability:
        init_sentry(settings)
        init_otel(settings)

    session = Session(token_store or build_token_store(settings))
    gateway = RequestGateway(settings, session, http=http)
    instrument_http_client(gateway.http)

    return SamayaClient(
        settings=settings,
        session=session,
        gateway=gateway,
        auth=AuthFlow(backend or build_session_backend(settings, gateway), session),
        pricing=PricingEngine(settings.base_price, settings.currency),
        bookings=BookingOrchestrator(gateway),
        views=ViewCounter(gateway),
    )
