"""
Human-facing reference numbers for quotations and invoices

KAY-<6 digit timestamp suffix><3 random digits>
INV-<year><6 digit timestamp suffix><3 random digits>
"""
import logging
import random
import time
from typing import Callable, Optional, Protocol

from app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

QUOTATION_PREFIX = "KAY"
INVOICE_PREFIX = "INV"


class ReferenceGenerator(Protocol):
    def quotation_reference(self) -> str: ...

    def invoice_number(self, year: int) -> str: ...


class TimestampReferenceGenerator:
    """Millisecond timestamp suffix plus random digits"""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.clock = clock
        self.rng = rng or random.Random()

    def _suffix(self) -> str:
        millis = str(int(self.clock() * 1000))
        return f"{millis[-6:]}{self.rng.randint(0, 999):03d}"

    def quotation_reference(self) -> str:
        return f"{QUOTATION_PREFIX}-{self._suffix()}"

    def invoice_number(self, year: int) -> str:
        return f"{INVOICE_PREFIX}-{year}{self._suffix()}"


class SequenceReferenceGenerator:
    """Deterministic counter, used by tests and bulk imports"""

    def __init__(self, start: int = 1):
        self.counter = start

    def _next(self) -> int:
        value = self.counter
        self.counter += 1
        return value

    def quotation_reference(self) -> str:
        return f"{QUOTATION_PREFIX}-{self._next():09d}"

    def invoice_number(self, year: int) -> str:
        return f"{INVOICE_PREFIX}-{year}{self._next():09d}"


def generate_unique(
    produce: Callable[[], str],
    exists: Callable[[str], bool],
    attempts: int = 5,
) -> str:
    """
    Draw references until one is not taken

    Raises:
        PersistenceError: if every attempt collided
    """
    for attempt in range(1, attempts + 1):
        candidate = produce()
        if not exists(candidate):
            return candidate
        logger.warning(f"Reference collision on {candidate} (attempt {attempt}/{attempts})")
    raise PersistenceError("Could not generate a unique reference number")
