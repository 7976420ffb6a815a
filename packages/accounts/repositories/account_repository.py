from typing import Optional
from common.repositories.base import BaseRepository
from packages.accounts.models.database.account import AccountEntity
from packages.accounts.models.domain.account import Account, AccountUpdateModel
from common.core.otel_axiom_exporter import trace_span


class AccountRepository(BaseRepository[AccountEntity, Account]):
    def __init__(self):
        super().__init__(AccountEntity, Account)

    @trace_span
    async def set_external_customer_id(
        self, account_id: int, external_customer_id: str
    ) -> Optional[Account]:
        return await self.update(
            account_id,
            AccountUpdateModel(external_customer_id=external_customer_id),
        )
