"""Exchange-rate prices per org and currency."""

from datetime import datetime

from ledger_core.errors import NotFoundError
from ledger_core.models.events import ChangeAction, EntityKind
from ledger_core.models.ledger import Price
from ledger_core.operations.base import LedgerService
from ledger_core.validation.validator import require, require_id


class PriceService(LedgerService):

    async def create_price(self, price: Price, user_id: str) -> Price:
        """
        Record a price. The date defaults to the insert time.

        Raises:
            PermissionDeniedError: user not in the org
            InvalidInputError: id, orgId or currency missing
        """
        await self._require_membership(price.org_id, user_id)
        require_id(price.id, "id")
        require_id(price.org_id, "orgId")
        require(price.currency, "currency")

        now = self._now()
        new = price.model_copy(update={
            "inserted": now,
            "updated": now,
            "date": price.date or now,
        })
        await self._storage.insert_price(new)

        self._audit.log_price_created(new.org_id, user_id, new.id, new.currency)
        await self._notify(EntityKind.PRICE, new, new.org_id, ChangeAction.CREATE)
        return new

    async def delete_price(self, price_id: str, user_id: str) -> Price:
        price = await self._storage.get_price(price_id)
        if price is None:
            raise NotFoundError("Price not found")
        await self._require_membership(price.org_id, user_id)

        await self._storage.delete_price(price_id)

        self._audit.log_price_deleted(price.org_id, user_id, price.id, price.currency)
        await self._notify(EntityKind.PRICE, price, price.org_id, ChangeAction.DELETE)
        return price

    async def get_prices_nearest_in_time(
        self,
        org_id: str,
        date: datetime,
        user_id: str,
    ) -> list[Price]:
        """For each currency, the price dated closest to `date`."""
        await self._require_membership(org_id, user_id)
        return await self._storage.get_prices_nearest_in_time(org_id, date)

    async def get_prices_by_currency(
        self,
        org_id: str,
        currency: str,
        user_id: str,
    ) -> list[Price]:
        """Price history for one currency, oldest first."""
        await self._require_membership(org_id, user_id)
        return await self._storage.get_prices_by_currency(org_id, currency)
