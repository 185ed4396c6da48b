"""Process wiring: build collaborators from settings and own their lifecycle."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping, Optional

from .config import Settings, get_settings
from .crypto import CryptoProvider, crypto_from_settings
from .db.session import create_schema, dispose_engine
from .gateway import PersistenceGateway
from .logging_config import configure_logging
from .sessions import InMemorySessionStore
from .signup import SignupOrchestrator, SignupResult
from .storage import ProfileStorage, storage_from_settings

logger = logging.getLogger(__name__)


class SignupService:
    """Owns the session store and collaborators for the life of the process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        storage: Optional[ProfileStorage] = None,
        crypto: Optional[CryptoProvider] = None,
        sessions: Optional[InMemorySessionStore] = None,
    ) -> None:
        self.settings = settings or get_settings()
        ttl = self.settings.session_ttl_seconds
        self.sessions = sessions or InMemorySessionStore(ttl=timedelta(seconds=ttl) if ttl else None)
        self.storage = storage or storage_from_settings(self.settings)
        self.crypto = crypto or crypto_from_settings(self.settings)
        self.orchestrator = SignupOrchestrator(PersistenceGateway(self.storage, self.sessions), self.crypto)
        self._started = False

    def start(self) -> "SignupService":
        if self._started:
            return self
        if self.settings.storage_mode == "database":
            create_schema()
        self.sessions.open()
        self._started = True
        logger.info(
            "Signup service started (storage=%s, crypto=%s, unlocked=%s)",
            self.settings.storage_mode,
            self.crypto.name,
            self.crypto.is_unlocked(),
        )
        return self

    def shutdown(self) -> None:
        if not self._started:
            return
        self.sessions.close()
        if self.settings.storage_mode == "database":
            dispose_engine()
        self._started = False
        logger.info("Signup service stopped")

    async def signup(self, answers: Mapping[str, Any], session_id: Optional[str] = None) -> SignupResult:
        if not self._started:
            raise RuntimeError("SignupService.start() must be called before handling signups.")
        return await self.orchestrator.process(answers, session_id)


def create_signup_service(settings: Optional[Settings] = None) -> SignupService:
    configure_logging()
    return SignupService(settings).start()


__all__ = ["SignupService", "create_signup_service"]
