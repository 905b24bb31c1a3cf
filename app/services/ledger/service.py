"""
LedgerService: the only writer of User.credit_balance.

Responsibilities:
- Signup grant (fixed initial balance)
- Atomic signed increments for transformation fees and corrective credits
- Idempotent purchase recording keyed by the payment provider id

Every balance change is a single UPDATE ... SET credit_balance = credit_balance + :delta
statement; the balance is never read and written back in two steps.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import NoReturn

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import CreditFailed, InsufficientCredits, UpstreamUnavailable, UserNotFound
from app.models.transaction import Transaction
from app.models.user import User
from app.utils.metrics import ledger_credit_failures_total, ledger_operations_total

logger = logging.getLogger(__name__)


class PurchaseState(str, Enum):
    INITIATED = "INITIATED"  # checkout started at the provider, never persisted here
    CONFIRMED = "CONFIRMED"
    RECORDED = "RECORDED"
    CREDITED = "CREDITED"
    CREDIT_FAILED = "CREDIT_FAILED"


@dataclass
class Purchase:
    payment_id: str
    amount: Decimal
    plan: str
    credits: int
    buyer_id: str


@dataclass
class PurchaseResult:
    transaction: Transaction
    state: PurchaseState
    replayed: bool = False


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    def grant_signup_credits(self, user: User) -> User:
        """Set the initial balance of a freshly created user. Caller commits."""
        user.credit_balance = settings.signup_credits
        self.db.add(user)
        self.db.flush()
        ledger_operations_total.labels(operation="signup").inc()
        return user

    def get_balance(self, user_id: str) -> int:
        balance = self.db.query(User.credit_balance).filter(User.id == user_id).scalar()
        if balance is None:
            raise UserNotFound(user_id)
        return balance

    def charge_fee(self, user_id: str, fee: int, commit: bool = True) -> int:
        """
        Apply a signed delta to the user's balance and return the new balance.
        fee < 0 is a transformation charge, fee > 0 a corrective credit.
        """
        try:
            new_balance = self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(credit_balance=User.credit_balance + fee)
                .returning(User.credit_balance)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamUnavailable("durable_store", str(exc)) from exc

        if new_balance is None:
            raise UserNotFound(user_id)
        if commit:
            self._commit()

        ledger_operations_total.labels(operation="credit" if fee >= 0 else "charge").inc()
        logger.info("credits_updated", extra={"user_id": user_id, "fee": fee, "new_balance": new_balance})
        return new_balance

    def try_debit(self, user_id: str, cost: int) -> int:
        """
        Atomically consume ``cost`` credits only if the balance covers it.
        Returns the new balance; raises InsufficientCredits otherwise.
        """
        try:
            new_balance = self.db.execute(
                update(User)
                .where(User.id == user_id, User.credit_balance >= cost)
                .values(credit_balance=User.credit_balance - cost)
                .returning(User.credit_balance)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamUnavailable("durable_store", str(exc)) from exc

        if new_balance is None:
            exists = self.db.query(User.id).filter(User.id == user_id).one_or_none()
            if exists is None:
                raise UserNotFound(user_id)
            logger.info("insufficient_credits", extra={"user_id": user_id, "fee": -cost})
            raise InsufficientCredits(user_id, cost)

        self._commit()
        ledger_operations_total.labels(operation="debit").inc()
        logger.info("credits_updated", extra={"user_id": user_id, "fee": -cost, "new_balance": new_balance})
        return new_balance

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    def get_transaction(self, payment_id: str) -> Transaction | None:
        return self.db.query(Transaction).filter(Transaction.stripe_id == payment_id).one_or_none()

    def record_purchase(self, purchase: Purchase) -> PurchaseResult:
        """
        Record a confirmed payment and credit the buyer exactly once.

        A payment id that already exists is the steady state of webhook
        re-delivery: the stored row is returned and nothing is credited.
        If the buyer is gone, or the credit amount is not positive, the
        payment row is still committed and
        CreditFailed is raised for manual reconciliation.
        """
        existing = self.get_transaction(purchase.payment_id)
        if existing:
            logger.info("payment_already_processed", extra={"payment_id": purchase.payment_id})
            return PurchaseResult(existing, PurchaseState.RECORDED, replayed=True)

        transaction = Transaction(
            stripe_id=purchase.payment_id,
            amount=purchase.amount,
            plan=purchase.plan,
            credits=purchase.credits,
            buyer_id=purchase.buyer_id,
        )
        try:
            self.db.add(transaction)
            self.db.flush()
        except IntegrityError:
            # A concurrent delivery of the same payment won the insert
            self.db.rollback()
            logger.warning("payment_duplicate", extra={"payment_id": purchase.payment_id})
            existing = self.get_transaction(purchase.payment_id)
            if existing is None:
                raise
            return PurchaseResult(existing, PurchaseState.RECORDED, replayed=True)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamUnavailable("durable_store", str(exc)) from exc

        if purchase.credits <= 0:
            self._fail_credit(purchase, "invalid credit amount")
        try:
            new_balance = self.charge_fee(purchase.buyer_id, purchase.credits, commit=False)
        except UserNotFound:
            self._fail_credit(purchase, "buyer not found")

        self._commit()
        logger.info(
            "purchase_recorded",
            extra={
                "payment_id": purchase.payment_id,
                "user_id": purchase.buyer_id,
                "credits": purchase.credits,
                "new_balance": new_balance,
            },
        )
        return PurchaseResult(transaction, PurchaseState.CREDITED)

    def _fail_credit(self, purchase: Purchase, reason: str) -> NoReturn:
        """Keep the payment row (CREDIT_FAILED) and surface the failure for manual reconciliation."""
        self._commit()
        ledger_credit_failures_total.inc()
        logger.error(
            "purchase_credit_failed",
            extra={
                "payment_id": purchase.payment_id,
                "user_id": purchase.buyer_id,
                "credits": purchase.credits,
                "error": reason,
            },
        )
        raise CreditFailed(purchase.payment_id, purchase.buyer_id, reason)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamUnavailable("durable_store", str(exc)) from exc
