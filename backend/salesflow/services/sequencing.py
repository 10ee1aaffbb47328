"""
单号生成

格式：前缀-年月-四位流水，如 SO-202510-0001
同一前缀的生成与插入需在 sequence_key(prefix) 锁内完成，直到提交后释放。
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

PREFIXES = {
    "project": "PRJ",
    "sales_order": "SO",
    "production_order": "MO",
    "service_ticket": "TK",
}


def sequence_key(prefix: str):
    return ("sequence", prefix)


async def next_number(db: AsyncSession, column, prefix: str, now: Optional[datetime] = None) -> str:
    """生成下一个单号（同前缀同月内取最大流水 + 1）"""
    period = (now or datetime.now()).strftime("%Y%m")
    head = f"{prefix}-{period}-"

    result = await db.execute(select(func.max(column)).where(column.like(f"{head}%")))
    max_no = result.scalar()

    if max_no:
        try:
            seq = int(max_no[-4:]) + 1
        except ValueError:
            seq = 1
    else:
        seq = 1

    return f"{head}{seq:04d}"


def shipment_number(order_no: str, seq: int) -> str:
    return f"{order_no}-S{seq:02d}"
