"""
Module: billing_kernel.db.types
Responsibility: Annotated type aliases for ledger column types.  Centralizes
    widths so every model uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money is always whole cents in a BigInteger column.
    - Free text is length-bounded at the column level as well as in services.

Models annotate columns with these aliases (``Mapped[Cents]``); Base resolves
them through ``TYPE_ANNOTATION_MAP``.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

MAX_TEXT_LENGTH = 500
MAX_CHECK_NUMBER_LENGTH = 50

# Whole cents
Cents = Annotated[int, BigInteger()]

# Late-fee setting: whole cents (flat) or a percent such as Decimal("5.0000")
FeeAmount = Annotated[Decimal, Numeric(14, 4)]

# ISO 4217 currency code (e.g., "USD")
Currency = Annotated[str, String(3)]

# Billing period token "YYYY-MM"
PeriodToken = Annotated[str, String(7)]

# Short identifier strings (entity names, audit actions, check numbers)
ShortCode = Annotated[str, String(MAX_CHECK_NUMBER_LENGTH)]

# Descriptions, memos, void reasons
LongText = Annotated[str, String(MAX_TEXT_LENGTH)]

TYPE_ANNOTATION_MAP = {
    alias: alias.__metadata__[0]
    for alias in (Cents, FeeAmount, Currency, PeriodToken, ShortCode, LongText)
}
