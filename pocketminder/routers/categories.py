# pocketminder/routers/categories.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from pocketminder.categorize import (
    all_categories,
    categorize,
    category_info,
    suggest_categories,
)

router = APIRouter(tags=["categories"])


class CategorizeIn(BaseModel):
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    is_income: bool = False


@router.post("/categorize")
def categorize_description(payload: CategorizeIn):
    category_id = categorize(payload.description, payload.amount, payload.is_income)
    return {
        "category": category_id,
        "name": category_info(category_id)["name"],
        "suggestions": suggest_categories(payload.description),
    }


@router.get("/categories")
def list_categories():
    return {"categories": all_categories()}
