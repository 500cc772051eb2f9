"""Credit package purchases.

A purchase starts as a pending payment. The payment provider later
confirms or rejects it through the signed webhook; confirmation credits the
package (bonus included) under the key `payment:<id>`, so a webhook that is
delivered twice adds the credits once.
"""
import logging
from datetime import datetime, timezone

from expertiz.config import CreditPackage, Settings, get_settings
from expertiz.exceptions import InvalidCreditPackage, NotFound
from expertiz.models.payment import Payment, PaymentStatus
from expertiz.repositories.interfaces import PaymentRepositoryInterface
from expertiz.services.credit_service import CreditService
from expertiz.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def payment_key(payment_id: int) -> str:
    return f"payment:{payment_id}"


class PaymentService:
    """Starts purchases and settles them on provider confirmation."""

    def __init__(
        self,
        payments: PaymentRepositoryInterface,
        credits: CreditService,
        notifications: NotificationService,
        settings: Settings | None = None,
    ):
        self.payments = payments
        self.credits = credits
        self.notifications = notifications
        self.settings = settings or get_settings()

    def packages(self) -> dict[str, CreditPackage]:
        return dict(self.settings.credit_packages)

    async def start_purchase(self, user_id: int, package_id: str) -> Payment:
        package = self.settings.credit_packages.get(package_id)
        if package is None:
            raise InvalidCreditPackage(package_id)

        payment = await self.payments.add(
            Payment(
                user_id=user_id,
                package=package_id,
                amount=package.price,
                credits=package.credits,
                status=PaymentStatus.PENDING,
            )
        )
        logger.info(
            "Payment %s started by user %s: %s package for %s",
            payment.id,
            user_id,
            package_id,
            package.price,
        )
        return payment

    async def _get_pending(self, payment_id: int) -> Payment | None:
        payment = await self.payments.get_for_update(payment_id)
        if payment is None:
            raise NotFound("Payment", payment_id)
        if payment.status != PaymentStatus.PENDING:
            logger.info("Payment %s already %s, ignoring", payment.id, payment.status.value)
            return None
        return payment

    async def confirm(self, payment_id: int, provider_reference: str | None = None) -> Payment:
        """Credit the purchased package; settled payments are returned unchanged."""
        payment = await self._get_pending(payment_id)
        if payment is None:
            return await self.payments.get(payment_id)

        bonus = payment.credits - payment.amount
        reason = f"{payment.credits} credits ({payment.package} package"
        reason += f", {bonus} bonus)" if bonus > 0 else ")"
        entry = await self.credits.credit(
            payment.user_id,
            payment.credits,
            reference_id=payment.reference,
            reason=reason,
            idempotency_key=payment_key(payment.id),
        )

        payment.status = PaymentStatus.COMPLETED
        payment.provider_reference = provider_reference
        payment.credit_transaction_id = entry.transaction.id
        payment.completed_at = datetime.now(timezone.utc)
        await self.payments.save(payment)
        logger.info("Payment %s confirmed for user %s", payment.id, payment.user_id)
        return payment

    async def fail(self, payment_id: int, reason: str | None = None) -> Payment:
        """Record a rejected payment and tell the user."""
        payment = await self._get_pending(payment_id)
        if payment is None:
            return await self.payments.get(payment_id)

        payment.status = PaymentStatus.FAILED
        payment.failure_reason = reason
        payment.completed_at = datetime.now(timezone.utc)
        await self.payments.save(payment)
        logger.warning("Payment %s for user %s failed: %s", payment.id, payment.user_id, reason)

        await self.notifications.notify_payment_failed(payment.user_id, payment.credits)
        return payment

    async def list_for_user(
        self, user_id: int, page: int = 1, page_size: int = 20
    ) -> tuple[list[Payment], int]:
        return await self.payments.list_for_user(user_id, page, page_size)
