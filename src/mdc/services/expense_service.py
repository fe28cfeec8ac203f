from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable

from mdc.domain.catalog import EXPENSE_CATEGORIES
from mdc.domain.errors import NotFoundError, ValidationError
from mdc.domain.models import ExpenseItem, new_id
from mdc.domain.money import ZERO, money, to_decimal

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpenseTotals:
    operating: Decimal
    losses: Decimal

    @property
    def total(self) -> Decimal:
        return self.operating + self.losses


def expense_totals(expenses: Iterable[ExpenseItem]) -> ExpenseTotals:
    operating = ZERO
    losses = ZERO
    for e in expenses:
        if e.is_loss:
            losses += to_decimal(e.amount)
        else:
            operating += to_decimal(e.amount)
    return ExpenseTotals(operating=money(operating), losses=money(losses))


class ExpenseService:
    def __init__(self, repo):
        self.repo = repo

    def list_expenses(self) -> list[ExpenseItem]:
        return self.repo.get_all()

    def _validate(self, description: str, amount: object, category: str) -> tuple[str, Decimal, str]:
        description = (description or "").strip()
        value = money(amount)
        if not description:
            raise ValidationError("Description is required.")
        if value <= 0:
            raise ValidationError("Amount must be > 0.")
        category = (category or "").strip() or EXPENSE_CATEGORIES[0]
        return description, value, category

    def add_expense(self, description: str, amount: object, category: str, is_loss: bool = False, on: date | None = None) -> ExpenseItem:
        description, value, category = self._validate(description, amount, category)
        item = ExpenseItem(
            id=new_id(),
            date=(on or date.today()).isoformat(),
            category=category,
            description=description,
            amount=value,
            is_loss=bool(is_loss),
        )
        saved = self.repo.add(item)
        log.info("expense_added id=%s amount=%s loss=%s", saved.id, saved.amount, saved.is_loss)
        return saved

    def edit_expense(self, expense_id: str, description: str, amount: object, category: str, is_loss: bool) -> ExpenseItem:
        current = self.repo.get(expense_id)
        if current is None:
            raise NotFoundError("Expense not found.")
        description, value, category = self._validate(description, amount, category)
        return self.repo.save(replace(current, description=description, amount=value, category=category, is_loss=bool(is_loss)))

    def remove_expense(self, expense_id: str) -> None:
        self.repo.delete(expense_id)

    def search(self, query: str) -> list[ExpenseItem]:
        q = (query or "").strip().lower()
        return [e for e in self.list_expenses() if q in e.description.lower() or q in e.category.lower()]

    def totals(self) -> ExpenseTotals:
        return expense_totals(self.list_expenses())
