# src/infrastructure/repositories/account_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import GlobalAccount, Transaction
from src.domain.exceptions import InsufficientBalanceError


class AccountRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_account(self) -> GlobalAccount:
        account = self.db.execute(select(GlobalAccount).limit(1)).scalar_one_or_none()
        if account:
            return account
        return self._create_account()

    def lock_account(self) -> GlobalAccount:
        """
        SELECT ... FOR UPDATE
        Serializes concurrent debits against the shared balance.
        """

        stmt = select(GlobalAccount).limit(1).with_for_update()
        account = self.db.execute(stmt).scalar_one_or_none()

        if not account:
            account = self._create_account()

        return account

    def debit(self, amount: int) -> GlobalAccount:
        account = self.lock_account()

        if account.balance < amount:
            raise InsufficientBalanceError(balance=account.balance, amount=amount)

        account.balance -= amount
        return account

    def credit(self, amount: int) -> GlobalAccount:
        account = self.lock_account()
        account.balance += amount
        return account

    def record_transaction(
        self,
        amount: int,
        type_: str,
        user_id: str | None = None,
        booking_id: str | None = None,
        description: str | None = None,
    ) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            booking_id=booking_id,
            amount=amount,
            type=type_,
            status="completed",
            description=description,
        )
        self.db.add(transaction)
        return transaction

    def _create_account(self) -> GlobalAccount:
        account = GlobalAccount(balance=0)
        self.db.add(account)
        self.db.flush()
        return account
