"""The org budget: one set of per-account amounts, replaced wholesale."""

from ledger_core.errors import InvalidInputError, NotFoundError
from ledger_core.models.ledger import Budget
from ledger_core.operations.base import LedgerService
from ledger_core.utils import fits_int64
from ledger_core.validation.validator import require


class BudgetService(LedgerService):

    async def get_budget(self, org_id: str, user_id: str) -> Budget:
        await self._require_membership(org_id, user_id)
        budget = await self._storage.get_budget(org_id)
        if budget is None:
            raise NotFoundError("Budget not found")
        return budget

    async def create_budget(self, budget: Budget, user_id: str) -> Budget:
        """Replace the org's budget with `budget` in one unit of work."""
        await self._require_membership(budget.org_id, user_id)
        require(budget.org_id, "orgId")
        if not all(fits_int64(item.amount) for item in budget.items):
            raise InvalidInputError("amount out of range")

        new = budget.model_copy(deep=True, update={"inserted": self._now()})
        for item in new.items:
            item.org_id = new.org_id
        new.items.sort(key=lambda item: item.account_id)

        await self._storage.replace_budget(new)

        self._audit.log_budget_replaced(new.org_id, user_id, len(new.items))
        return new

    async def delete_budget(self, org_id: str, user_id: str) -> None:
        await self._require_membership(org_id, user_id)
        await self._storage.delete_budget(org_id)
        self._audit.log_budget_deleted(org_id, user_id)
