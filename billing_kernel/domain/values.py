"""
Values -- Immutable, self-validating money value object.

Responsibility:
    Provides ``Money``, an integer-cent amount paired with its currency, and
    ``round_half_up_cents``, the one sanctioned rounding function for turning
    a fractional cent computation back into whole cents.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Money is always whole cents (int), never float.
    - Arithmetic never mixes currencies.
    - Rounding is half-up at the cent: 0.5 cent rounds up, 0.49 rounds down.

Failure modes:
    - TypeError on construction with float or bool cents.
    - ValueError on malformed currency or currency mixing.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


def round_half_up_cents(value: Decimal) -> int:
    """
    Round a fractional cent amount to whole cents, half away from zero.

    This is the ONLY sanctioned rounding function for ledger amounts.

    >>> round_half_up_cents(Decimal("12.5"))
    13
    >>> round_half_up_cents(Decimal("12.49"))
    12
    """
    if not isinstance(value, Decimal):
        raise TypeError(f"round_half_up_cents expects Decimal, got {type(value).__name__}")
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount in integer cents.

    Contract:
        Pairs whole cents with an ISO 4217 code.  The ledger stores and
        exchanges cents as plain ints; Money is the type used wherever
        arithmetic happens.

    Guarantees:
        - Immutable and hashable.
        - cents is always an int (never float, never bool).
        - currency is a three-letter uppercase code.

    Non-goals:
        - Does NOT perform currency conversion.
    """

    cents: int
    currency: str = "USD"

    def __post_init__(self) -> None:
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise TypeError(f"Money cents must be int, got {type(self.cents).__name__}")
        if not isinstance(self.currency, str):
            raise ValueError(f"Invalid currency: {self.currency!r}")
        code = self.currency.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency: {self.currency!r}")
        object.__setattr__(self, "currency", code)

    @classmethod
    def zero(cls, currency: str = "USD") -> Money:
        return cls(0, currency)

    @property
    def is_zero(self) -> bool:
        return self.cents == 0

    @property
    def is_positive(self) -> bool:
        return self.cents > 0

    def _check_currency(self, other: Money, op: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {op} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def percent(self, rate: Decimal | int) -> Money:
        """
        ``rate`` percent of this amount, rounded half-up to whole cents.

        ``Money(10000).percent(Decimal("5"))`` is ``Money(500)``.
        """
        if isinstance(rate, float):
            raise TypeError("percent rate must be Decimal or int, not float")
        raw = Decimal(self.cents) * Decimal(rate) / Decimal(100)
        return Money(round_half_up_cents(raw), self.currency)

    def min(self, other: Money) -> Money:
        self._check_currency(other, "compare")
        return self if self.cents <= other.cents else other

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "add")
        return Money(self.cents + other.cents, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtract")
        return Money(self.cents - other.cents, self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.cents < other.cents

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.cents <= other.cents

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.cents > other.cents

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.cents >= other.cents

    def __str__(self) -> str:
        sign = "-" if self.cents < 0 else ""
        whole, frac = divmod(abs(self.cents), 100)
        return f"{sign}{whole}.{frac:02d} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({self.cents!r}, {self.currency!r})"
