"""
Jamaah roster - the booker plus companions, with the pax counter kept in step.

Invariant after every operation: pax == 1 + len(companions) and pax >= 1.
The free-text pax field may be transiently empty or 0 while the user types;
that raw text lives in ``pax_input`` and never leaks into ``pax``.
"""
import logging
from typing import Optional

from app.models.booking import BookingDraft, Companion
from app.services.notifier import Notifier

logger = logging.getLogger(__name__)


class JamaahRoster:
    def __init__(self, draft: BookingDraft, notifier: Optional[Notifier] = None):
        self.draft = draft
        self.notifier = notifier or Notifier()
        self.pax_input: Optional[str] = None

    @property
    def pax(self) -> int:
        return self.draft.pax

    @property
    def companions(self):
        return self.draft.companions

    @property
    def pax_display(self) -> str:
        """What the pax text field currently shows"""
        return self.pax_input if self.pax_input is not None else str(self.draft.pax)

    def _resize(self, pax: int) -> None:
        needed = pax - 1
        companions = self.draft.companions
        if len(companions) > needed:
            del companions[needed:]
        while len(companions) < needed:
            companions.append(Companion())
        self.draft.pax = pax

    def increment(self) -> None:
        self.pax_input = None
        self.draft.companions.append(Companion())
        self.draft.pax = len(self.draft.companions) + 1

    def decrement(self) -> None:
        self.pax_input = None
        if self.draft.pax > 1:
            self._resize(self.draft.pax - 1)

    def set_pax_direct(self, text: str, blur: bool = False) -> None:
        """Free-text edit of the pax field.

        Empty or non-numeric text is kept as typed and leaves the roster alone;
        a number resizes the companion list to max(1, n) - 1 from the tail.
        On blur the field snaps back to the (clamped) pax value.
        """
        raw = (text or "").strip()
        try:
            count = int(raw)
        except ValueError:
            count = None
        if count is not None:
            self._resize(max(1, count))
            self.pax_input = raw
        elif raw == "":
            self.pax_input = ""
        if blur:
            self.pax_input = None

    def remove_companion_at(self, index: int) -> bool:
        """Remove one companion; the booker can never be removed this way"""
        companions = self.draft.companions
        if not 0 <= index < len(companions):
            logger.warning("Ignoring removal of companion %s (roster has %s)", index, len(companions))
            return False
        del companions[index]
        self.draft.pax = len(companions) + 1
        self.pax_input = None
        self.notifier.info("Data jamaah telah dihapus.")
        return True

    def update_companion(self, index: int, name: Optional[str] = None, whatsapp: Optional[str] = None) -> None:
        companions = self.draft.companions
        if not 0 <= index < len(companions):
            raise IndexError(f"No companion at {index} (roster has {len(companions)})")
        companion = companions[index]
        if name is not None:
            companion.name = name
        if whatsapp is not None:
            companion.whatsapp = whatsapp
