"""
In-process registry of open checkout sessions (one per mounted booking screen)

Sessions leave the registry when the browser abandons them, once their Result has
been handed out, or after sitting idle longer than CHECKOUT_SESSION_TTL_SECONDS.
"""
import secrets
import logging
import time
from typing import Callable, Dict, Optional

from app.config.settings import settings
from app.services.checkout_flow import CheckoutFlow
from app.services.payment_gateway import PaymentGateway, RelayedSnapWidget, TransactionTokenClient

logger = logging.getLogger(__name__)


class CheckoutSessionRegistry:
    def __init__(self, gateway: Optional[PaymentGateway] = None, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.gateway = gateway or PaymentGateway(TransactionTokenClient(), RelayedSnapWidget())
        self.ttl_seconds = settings.CHECKOUT_SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, CheckoutFlow] = {}
        self._last_seen: Dict[str, float] = {}

    @property
    def widget(self) -> RelayedSnapWidget:
        return self.gateway.widget

    def add(self, flow: CheckoutFlow) -> str:
        self.purge_idle()
        session_id = secrets.token_urlsafe(16)
        flow.notifier.session_label = session_id[:8]
        self._sessions[session_id] = flow
        self._last_seen[session_id] = self._clock()
        return session_id

    def get(self, session_id: str) -> Optional[CheckoutFlow]:
        flow = self._sessions.get(session_id)
        if flow is not None:
            self._last_seen[session_id] = self._clock()
        return flow

    def _pop(self, session_id: str) -> Optional[CheckoutFlow]:
        self._last_seen.pop(session_id, None)
        flow = self._sessions.pop(session_id, None)
        if flow is not None and flow.payment_token:
            self.widget.forget(flow.payment_token)
        return flow

    def discard(self, session_id: str) -> None:
        """Browser navigated away"""
        flow = self._pop(session_id)
        if flow is None:
            return
        flow.abandon()
        logger.info("Discarded checkout session %s", session_id[:8])

    def release(self, session_id: str) -> None:
        """Finished session; its Result has been delivered"""
        if self._pop(session_id) is not None:
            logger.info("Released finished checkout session %s", session_id[:8])

    def purge_idle(self) -> int:
        cutoff = self._clock() - self.ttl_seconds
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in expired:
            self.discard(session_id)
        if expired:
            logger.info("Purged %s idle checkout session(s)", len(expired))
        return len(expired)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

checkout_sessions = CheckoutSessionRegistry()
