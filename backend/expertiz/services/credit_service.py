"""Credit ledger service."""
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from expertiz.exceptions import InsufficientCredit, NotFound
from expertiz.models.credit import CreditLedger, CreditTransaction, CreditTransactionType
from expertiz.repositories.interfaces import CreditLedgerRepositoryInterface, LedgerEntry
from expertiz.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def normalize_amount(amount: Decimal | int | float | str) -> Decimal:
    """Validate a credit amount and round it to two decimals."""
    try:
        value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid credit amount: {amount!r}")
    if value <= 0:
        raise ValueError("Credit amount must be positive")
    return value


class CreditService:
    """Debit, credit and refund operations on a user's ledger.

    Every balance change goes through `CreditLedgerRepository.apply()`, which
    serializes mutations of the same user and records the transaction in the
    same step.
    """

    def __init__(
        self,
        repository: CreditLedgerRepositoryInterface,
        notifications: NotificationService | None = None,
    ):
        self.repository = repository
        self.notifications = notifications

    async def open_ledger(self, user_id: int) -> CreditLedger:
        """Create the (empty) ledger of a newly registered user."""
        return await self.repository.create(user_id)

    async def debit(
        self,
        user_id: int,
        amount: Decimal | int | str,
        reason: str,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerEntry:
        """Charge `amount`; raises InsufficientCredit when the balance is short."""
        value = normalize_amount(amount)

        def mutate(ledger: CreditLedger) -> None:
            if ledger.balance < value:
                raise InsufficientCredit(required=value, available=ledger.balance)
            ledger.balance -= value
            ledger.total_used += value

        entry = await self.repository.apply(
            user_id,
            CreditTransactionType.USAGE,
            value,
            mutate,
            description=reason,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )
        self._log(entry, "Debited", user_id, value)
        return entry

    async def credit(
        self,
        user_id: int,
        amount: Decimal | int | str,
        reference_id: str | None = None,
        reason: str = "Credit purchase",
        idempotency_key: str | None = None,
    ) -> LedgerEntry:
        """Add purchased credits (after payment confirmation)."""
        value = normalize_amount(amount)

        def mutate(ledger: CreditLedger) -> None:
            ledger.balance += value
            ledger.total_purchased += value

        entry = await self.repository.apply(
            user_id,
            CreditTransactionType.PURCHASE,
            value,
            mutate,
            description=reason,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )
        self._log(entry, "Credited", user_id, value)
        if not entry.replayed and self.notifications is not None:
            await self.notifications.notify_credit_added(user_id, value, entry.ledger.balance)
        return entry

    async def refund(
        self,
        user_id: int,
        amount: Decimal | int | str,
        reason: str,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
        notify: bool = True,
    ) -> LedgerEntry:
        """Give back previously used credits.

        `total_used` is left alone so usage statistics stay historical.
        """
        value = normalize_amount(amount)

        def mutate(ledger: CreditLedger) -> None:
            ledger.balance += value
            ledger.total_refunded += value

        entry = await self.repository.apply(
            user_id,
            CreditTransactionType.REFUND,
            value,
            mutate,
            description=reason,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )
        self._log(entry, "Refunded", user_id, value)
        if notify and not entry.replayed and self.notifications is not None:
            await self.notifications.notify_credit_refunded(user_id, value, entry.ledger.balance)
        return entry

    async def get_summary(self, user_id: int) -> CreditLedger:
        ledger = await self.repository.get(user_id)
        if ledger is None:
            raise NotFound("Credit ledger for user", user_id)
        return ledger

    async def get_history(
        self, user_id: int, page: int = 1, page_size: int = 20
    ) -> tuple[list[CreditTransaction], int]:
        return await self.repository.list_transactions(user_id, page, page_size)

    @staticmethod
    def _log(entry: LedgerEntry, action: str, user_id: int, amount: Decimal) -> None:
        if entry.replayed:
            logger.info(
                "Ledger replay for user %s (key=%s), transaction %s",
                user_id,
                entry.transaction.idempotency_key,
                entry.transaction.id,
            )
            return
        logger.info(
            "%s %s credits for user %s, balance now %s",
            action,
            amount,
            user_id,
            entry.ledger.balance,
        )
