"""Expense CRUD routes."""

from fastapi import APIRouter

from expense_tracker.api.dependencies import OptionalUserDep, ServiceDep, actor_of
from expense_tracker.models.expense import (
    DeletedExpense,
    ExpenseCreate,
    ExpenseEnvelope,
    ExpenseList,
    ExpensePatch,
)


router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("", response_model=ExpenseList, summary="List expenses")
async def list_expenses(service: ServiceDep) -> ExpenseList:
    return ExpenseList(expenses=await service.list_expenses())


@router.get("/{expense_id}", response_model=ExpenseEnvelope, summary="Get one expense")
async def get_expense(expense_id: int, service: ServiceDep, user: OptionalUserDep) -> ExpenseEnvelope:
    return ExpenseEnvelope(expense=await service.get_expense(expense_id, actor_of(user)))


@router.post("", response_model=ExpenseEnvelope, status_code=201, summary="Create an expense")
async def create_expense(body: ExpenseCreate, service: ServiceDep, user: OptionalUserDep) -> ExpenseEnvelope:
    return ExpenseEnvelope(expense=await service.create_expense(body, actor_of(user)))


@router.put("/{expense_id}", response_model=ExpenseEnvelope, summary="Replace title and amount")
async def replace_expense(
    expense_id: int,
    body: ExpenseCreate,
    service: ServiceDep,
    user: OptionalUserDep,
) -> ExpenseEnvelope:
    return ExpenseEnvelope(expense=await service.replace_expense(expense_id, body, actor_of(user)))


@router.patch("/{expense_id}", response_model=ExpenseEnvelope, summary="Update some fields")
async def patch_expense(
    expense_id: int,
    body: ExpensePatch,
    service: ServiceDep,
    user: OptionalUserDep,
) -> ExpenseEnvelope:
    """
    Send any subset of title, amount and fileKey. `fileUrl: null` detaches
    the receipt.
    """
    return ExpenseEnvelope(expense=await service.patch_expense(expense_id, body, actor_of(user)))


@router.delete("/{expense_id}", response_model=DeletedExpense, summary="Delete an expense")
async def delete_expense(expense_id: int, service: ServiceDep, user: OptionalUserDep) -> DeletedExpense:
    return DeletedExpense(deleted=await service.delete_expense(expense_id, actor_of(user)))
