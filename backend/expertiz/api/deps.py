"""Shared API dependencies."""
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from expertiz.database import get_db
from expertiz.models.user import User
from expertiz.repositories import UserRepository
from expertiz.services.analysis import AnalysisInvoker, get_analysis_invoker
from expertiz.services.auth_service import AuthService
from expertiz.services.credit_service import CreditService
from expertiz.services.factory import (
    build_auth_service,
    build_credit_service,
    build_notification_service,
    build_payment_service,
    build_report_service,
)
from expertiz.services.notification_service import NotificationService
from expertiz.services.payment_service import PaymentService
from expertiz.services.report_service import ReportService
from expertiz.utils.security import get_user_id_from_token

bearer_scheme = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    db: DbSession,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User:
    """Resolve the user of the bearer access token."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    user_id = get_user_id_from_token(credentials.credentials)
    if user_id is None:
        raise unauthorized

    user = await UserRepository(db).get(user_id)
    if user is None or not user.is_active:
        raise unauthorized
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_admin_user(current_user: CurrentUser) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


AdminUser = Annotated[User, Depends(get_admin_user)]


def get_invoker() -> AnalysisInvoker:
    return get_analysis_invoker()


def get_auth_service(db: DbSession) -> AuthService:
    return build_auth_service(db)


def get_credit_service(db: DbSession) -> CreditService:
    return build_credit_service(db)


def get_notification_service(db: DbSession) -> NotificationService:
    return build_notification_service(db)


def get_payment_service(db: DbSession) -> PaymentService:
    return build_payment_service(db)


def get_report_service(
    db: DbSession,
    invoker: AnalysisInvoker = Depends(get_invoker),
) -> ReportService:
    return build_report_service(db, invoker=invoker)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CreditServiceDep = Annotated[CreditService, Depends(get_credit_service)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]
