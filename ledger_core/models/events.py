"""
Change notifications pushed to subscribed clients.

A notification names the kind of entity, what happened to it, the entity
snapshot itself and the users that should receive it.
"""

from enum import Enum
from typing import Union

from pydantic import BaseModel, Field

from ledger_core.models.ledger import Account, Price, Transaction


class EntityKind(str, Enum):
    TRANSACTION = "transaction"
    ACCOUNT = "account"
    PRICE = "price"


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ChangeNotification(BaseModel):
    """One change event, addressed to a set of users."""

    entity_kind: EntityKind
    action: ChangeAction
    entity: Union[Transaction, Account, Price]
    recipient_user_ids: list[str] = Field(default_factory=list)

    def to_wire(self) -> dict:
        """Shape sent to clients: {"type", "action", "data"}."""
        return {
            "type": self.entity_kind.value,
            "action": self.action.value,
            "data": self.entity.model_dump(mode="json", by_alias=True),
        }
