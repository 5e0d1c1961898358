"""单号生成：{前缀}-{年份}-{四位序号}，如 COMP-2026-0001"""
from datetime import datetime
from typing import Optional

from farm_office.db.document_store import Transaction

COUNTERS = "counters"

PURCHASE_PREFIX = "COMP"
EXPENSE_PREFIX = "GAST"


async def next_document_number(tx: Transaction, prefix: str, year: Optional[int] = None) -> str:
    """在事务内读取并递增计数器，并发创建时由事务冲突重试保证不重号"""
    year = year or datetime.now().year
    counter_id = f"{prefix}-{year}"

    counter = await tx.get(COUNTERS, counter_id)
    sequence = int((counter or {}).get("sequence", 0)) + 1
    tx.set(COUNTERS, counter_id, {"prefix": prefix, "year": year, "sequence": sequence})

    return f"{prefix}-{year}-{sequence:04d}"
