"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import FeedbackModel, ProviderModel, ServiceRequestModel, UserModel
from roadside.domain.enums import (
    LIVE_STATUSES,
    ProviderStatus,
    RequestStatus,
    ServiceType,
)

# Statuses the simulation timers may still move forward
_SIMULATED_STATUSES = (
    RequestStatus.REQUESTED,
    RequestStatus.ACCEPTED,
    RequestStatus.EN_ROUTE,
)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        return result.scalar_one_or_none()


class ServiceRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, request: ServiceRequestModel) -> ServiceRequestModel:
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_by_id(self, request_id: int) -> Optional[ServiceRequestModel]:
        return await self.session.get(ServiceRequestModel, request_id)

    async def get_by_id_for_update(
        self, request_id: int
    ) -> Optional[ServiceRequestModel]:
        """SELECT ... FOR UPDATE so concurrent writers serialise on the row."""
        result = await self.session.execute(
            select(ServiceRequestModel)
            .where(ServiceRequestModel.id == request_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def get_live_for_user(
        self, user_id: int
    ) -> Optional[ServiceRequestModel]:
        result = await self.session.execute(
            select(ServiceRequestModel)
            .where(
                ServiceRequestModel.user_id == user_id,
                ServiceRequestModel.status.in_(LIVE_STATUSES),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_live(
        self, provider_id: int | None = None
    ) -> list[ServiceRequestModel]:
        """Non-terminal requests, oldest first; optionally one provider's."""
        query = (
            select(ServiceRequestModel)
            .where(ServiceRequestModel.status.in_(LIVE_STATUSES))
            .order_by(ServiceRequestModel.created_at, ServiceRequestModel.id)
        )
        if provider_id is not None:
            query = query.where(ServiceRequestModel.provider_id == provider_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_simulated_for_update(self) -> list[ServiceRequestModel]:
        result = await self.session.execute(
            select(ServiceRequestModel)
            .where(ServiceRequestModel.status.in_(_SIMULATED_STATUSES))
            .order_by(ServiceRequestModel.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def count_live(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(ServiceRequestModel)
            .where(ServiceRequestModel.status.in_(LIVE_STATUSES))
        )
        return result.scalar() or 0


class ProviderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, provider_id: int) -> Optional[ProviderModel]:
        return await self.session.get(ProviderModel, provider_id)

    async def get_all(self) -> list[ProviderModel]:
        result = await self.session.execute(
            select(ProviderModel).order_by(ProviderModel.id)
        )
        return list(result.scalars().all())

    async def get_candidates_for_update(
        self, service_type: ServiceType
    ) -> list[ProviderModel]:
        """Available providers of one specialty, in roster order, locked."""
        result = await self.session.execute(
            select(ProviderModel)
            .where(
                ProviderModel.service_type == service_type,
                ProviderModel.status == ProviderStatus.AVAILABLE,
            )
            .order_by(ProviderModel.id)
            .with_for_update()
        )
        return list(result.scalars().all())


class FeedbackRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, feedback: FeedbackModel) -> FeedbackModel:
        self.session.add(feedback)
        await self.session.flush()
        return feedback

    async def get_for_request(self, request_id: int) -> list[FeedbackModel]:
        result = await self.session.execute(
            select(FeedbackModel)
            .where(FeedbackModel.request_id == request_id)
            .order_by(FeedbackModel.id)
        )
        return list(result.scalars().all())
