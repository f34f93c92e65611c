# backend/billsync/db/repositories/subscription_repository.py
from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import select, update, or_, case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.core.constants import StripeSubscriptionStatus
from billsync.core.exceptions import PersistenceError
from billsync.db.base import utcnow
from billsync.db.models.subscription import Subscription
from billsync.db.repositories.base import BaseRepository

# Columns an upsert may overwrite on an existing row
MUTABLE_FIELDS = (
    "tenant_id",
    "stripe_customer_id",
    "stripe_price_id",
    "status",
    "current_period_start",
    "current_period_end",
    "cancel_at_period_end",
    "last_event_at",
)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _not_newer_than(event_at: Any):
    """Row predicate: stored write is not newer than ``event_at``."""
    return or_(
        Subscription.last_event_at.is_(None),
        Subscription.last_event_at <= event_at,
    )


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for Subscription operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Subscription, session)

    async def get_by_external_id(self, stripe_subscription_id: str) -> Optional[Subscription]:
        """Get subscription by Stripe subscription id, bypassing the identity map"""
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.stripe_subscription_id == stripe_subscription_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_tenant_id(self, stripe_subscription_id: str) -> Optional[int]:
        result = await self.session.execute(
            select(Subscription.tenant_id)
            .where(Subscription.stripe_subscription_id == stripe_subscription_id)
        )
        return result.scalar_one_or_none()

    async def get_current_for_tenant(
        self,
        tenant_id: int,
        statuses: Iterable[str],
    ) -> Optional[Subscription]:
        """Newest subscription of the tenant whose status is in ``statuses``"""
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.tenant_id == tenant_id)
            .where(Subscription.status.in_(list(statuses)))
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect]
        except KeyError:
            raise PersistenceError(
                f"Upsert is not supported on the '{dialect}' dialect",
                context={"dialect": dialect},
            )

    async def upsert(self, values: Dict[str, Any]) -> Subscription:
        """
        Insert-or-update keyed on ``stripe_subscription_id``.

        A single INSERT .. ON CONFLICT DO UPDATE statement. The update branch
        only fires when the stored row was not written by a newer event, so a
        late redelivery of an older event leaves the row untouched.

        Args:
            values: Column values; must include ``stripe_subscription_id``
                and ``last_event_at``.

        Returns:
            The row as stored after the statement.
        """
        table = Subscription.__table__
        now = utcnow()
        insert = self._insert()

        stmt = insert(table).values(**values, created_at=now, updated_at=now)
        set_ = {field: stmt.excluded[field] for field in MUTABLE_FIELDS if field in values}
        set_["updated_at"] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.stripe_subscription_id],
            set_=set_,
            where=or_(
                table.c.last_event_at.is_(None),
                table.c.last_event_at <= stmt.excluded.last_event_at,
            ),
        )
        await self.session.execute(stmt)
        return await self.get_by_external_id(values["stripe_subscription_id"])

    async def update_status(
        self,
        stripe_subscription_id: str,
        status: str,
        event_at: datetime,
        terminal: bool = False,
    ) -> int:
        """
        Write only the status of an existing row.

        Non-terminal updates are skipped when the row holds a newer write or
        has already been canceled.
        Terminal updates always apply and keep the newer of the two event
        timestamps. Period, price and cancel flags are never touched.

        Returns:
            Number of rows changed (0 or 1)
        """
        stmt = update(Subscription).where(
            Subscription.stripe_subscription_id == stripe_subscription_id
        )
        if terminal:
            last_event_at = case(
                (Subscription.last_event_at > event_at, Subscription.last_event_at),
                else_=event_at,
            )
        else:
            stmt = stmt.where(
                _not_newer_than(event_at),
                Subscription.status != StripeSubscriptionStatus.CANCELED.value,
            )
            last_event_at = event_at

        result = await self.session.execute(
            stmt.values(status=status, last_event_at=last_event_at, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
