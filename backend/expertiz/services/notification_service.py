"""User notification producer and inbox operations."""
import logging
from decimal import Decimal

from expertiz.exceptions import NotFound
from expertiz.models.notification import Notification, NotificationType
from expertiz.models.report import ReportType
from expertiz.repositories.interfaces import NotificationRepositoryInterface

logger = logging.getLogger(__name__)

REPORT_TYPE_NAMES: dict[ReportType, str] = {
    ReportType.PAINT_ANALYSIS: "paint analysis",
    ReportType.DAMAGE_ASSESSMENT: "damage assessment",
    ReportType.ENGINE_SOUND_ANALYSIS: "engine sound analysis",
    ReportType.VALUE_ESTIMATION: "value estimation",
    ReportType.FULL_REPORT: "full report",
}


def report_type_name(report_type: ReportType) -> str:
    return REPORT_TYPE_NAMES.get(report_type, report_type.value)


def _vehicle_label(vehicle_plate: str | None) -> str:
    return f"vehicle {vehicle_plate}" if vehicle_plate else "your vehicle"


class NotificationService:
    """Creates notifications from templates and serves the user's inbox.

    Workflow code goes through `emit()` (and the `notify_*` templates built on
    it), which never raises: a failed write is logged and dropped so that it
    cannot undo a ledger or report change.
    """

    def __init__(self, repository: NotificationRepositoryInterface):
        self.repository = repository

    async def create(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: NotificationType,
        action_url: str | None = None,
    ) -> Notification:
        """Write one notification; errors propagate."""
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            action_url=action_url,
            is_read=False,
        )
        return await self.repository.add(notification)

    async def emit(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: NotificationType,
        action_url: str | None = None,
    ) -> Notification | None:
        """Best-effort variant of `create()` used by the workflows."""
        try:
            return await self.create(user_id, title, message, notification_type, action_url)
        except Exception:
            logger.warning(
                "Dropping notification %r for user %s", title, user_id, exc_info=True
            )
            return None

    async def create_bulk(
        self,
        user_ids: list[int],
        title: str,
        message: str,
        notification_type: NotificationType,
        action_url: str | None = None,
    ) -> int:
        """Send the same notification to many users at once."""
        if not user_ids:
            return 0
        notifications = [
            Notification(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                action_url=action_url,
                is_read=False,
            )
            for user_id in user_ids
        ]
        count = await self.repository.add_many(notifications)
        logger.info("Created %s %r notifications", count, title)
        return count

    # Templates

    async def notify_report_completed(
        self,
        user_id: int,
        report_id: int,
        report_type: ReportType,
        vehicle_plate: str | None,
    ) -> Notification | None:
        return await self.emit(
            user_id,
            "Report completed",
            f"Your {report_type_name(report_type)} report for {_vehicle_label(vehicle_plate)} is ready.",
            NotificationType.SUCCESS,
            action_url=f"/reports/{report_id}",
        )

    async def notify_report_processing(
        self,
        user_id: int,
        report_type: ReportType,
        vehicle_plate: str | None,
    ) -> Notification | None:
        return await self.emit(
            user_id,
            "Report in progress",
            f"The {report_type_name(report_type)} for {_vehicle_label(vehicle_plate)} is in progress.",
            NotificationType.INFO,
            action_url="/reports",
        )

    async def notify_report_failed(
        self,
        user_id: int,
        report_id: int,
        report_type: ReportType,
        vehicle_plate: str | None,
        refunded_amount: Decimal | None,
    ) -> Notification | None:
        if refunded_amount is not None:
            refund_text = f"{refunded_amount} credits have been refunded to your account."
        else:
            refund_text = "Your credits will be refunded shortly."
        return await self.emit(
            user_id,
            "Report failed",
            f"The {report_type_name(report_type)} for {_vehicle_label(vehicle_plate)} "
            f"could not be completed. {refund_text}",
            NotificationType.ERROR,
            action_url=f"/reports/{report_id}",
        )

    async def notify_credit_added(
        self, user_id: int, amount: Decimal, new_balance: Decimal
    ) -> Notification | None:
        return await self.emit(
            user_id,
            "Credits added",
            f"{amount} credits were added to your account. New balance: {new_balance}",
            NotificationType.INFO,
            action_url="/dashboard",
        )

    async def notify_credit_refunded(
        self, user_id: int, amount: Decimal, new_balance: Decimal
    ) -> Notification | None:
        return await self.emit(
            user_id,
            "Credits refunded",
            f"{amount} credits were refunded to your account. New balance: {new_balance}",
            NotificationType.INFO,
            action_url="/dashboard",
        )

    async def notify_payment_failed(self, user_id: int, amount: Decimal) -> Notification | None:
        return await self.emit(
            user_id,
            "Payment failed",
            f"Your purchase of {amount} credits could not be completed. Please try again.",
            NotificationType.WARNING,
            action_url="/payment/add-credits",
        )

    async def notify_welcome(self, user_id: int, first_name: str) -> Notification | None:
        return await self.emit(
            user_id,
            "Welcome!",
            f"{first_name}, welcome to Mivvo Expertiz! Start by creating your first report.",
            NotificationType.SUCCESS,
            action_url="/vehicle/new-report",
        )

    async def broadcast_maintenance(self, user_ids: list[int], message: str) -> int:
        return await self.create_bulk(
            user_ids,
            "System maintenance",
            message,
            NotificationType.WARNING,
            action_url="/dashboard",
        )

    # Inbox

    async def list_for_user(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
        notification_type: NotificationType | None = None,
    ) -> tuple[list[Notification], int]:
        return await self.repository.list_for_user(
            user_id,
            page=page,
            limit=limit,
            unread_only=unread_only,
            notification_type=notification_type,
        )

    async def unread_count(self, user_id: int) -> int:
        return await self.repository.count_unread(user_id)

    async def _get_owned(self, user_id: int, notification_id: int) -> Notification:
        notification = await self.repository.get(notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFound("Notification", notification_id)
        return notification

    async def mark_read(self, user_id: int, notification_id: int) -> Notification:
        notification = await self._get_owned(user_id, notification_id)
        return await self.repository.mark_read(notification)

    async def mark_all_read(self, user_id: int) -> int:
        return await self.repository.mark_all_read(user_id)

    async def delete(self, user_id: int, notification_id: int) -> None:
        notification = await self._get_owned(user_id, notification_id)
        await self.repository.delete(notification)
