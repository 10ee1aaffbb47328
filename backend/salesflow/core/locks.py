"""
进程内单写者锁

同一条记录（实体类型 + id）的所有写操作串行执行：读取状态 → 校验 → 写入 → 提交 都在锁内完成。
不同记录之间互不阻塞。锁按引用计数回收，不会随记录数量无限增长。

多进程部署时还需数据库层面的行锁（加载时 with_for_update），见 services/loaders.py。
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Hashable, List, Tuple


class RecordLocks:
    def __init__(self):
        self._locks: Dict[Hashable, List] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        slot = self._locks.get(key)
        if slot is None:
            slot = self._locks[key] = [asyncio.Lock(), 0]
        slot[1] += 1
        try:
            async with slot[0]:
                yield
        finally:
            slot[1] -= 1
            if slot[1] == 0:
                self._locks.pop(key, None)

    @asynccontextmanager
    async def hold_many(self, keys: List[Tuple]):
        """按固定顺序依次加锁，避免交叉等待"""
        ordered = sorted(set(keys), key=repr)
        async with _nested(self, ordered):
            yield

    def held_count(self) -> int:
        return len(self._locks)


@asynccontextmanager
async def _nested(locks: RecordLocks, keys):
    if not keys:
        yield
        return
    async with locks.hold(keys[0]):
        async with _nested(locks, keys[1:]):
            yield


record_locks = RecordLocks()
