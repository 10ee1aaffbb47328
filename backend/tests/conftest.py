"""
测试夹具

每个测试使用 tmp_path 下独立的 sqlite 文件库（aiosqlite），
并提供各角色用户、产品目录，以及已赢单项目、已确认订单两个常用起点。
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from salesflow.db.init_db import ensure_tables_exist
from salesflow.db.session import build_engine, build_session_factory
from salesflow.models import CatalogItem, PriceTier, User
from salesflow.workflow.enums import PricingModel, Role
from tests.flows import drive_order_to_confirmed, drive_project_to_won

USERS = [
    ("admin", "管理员", Role.ADMIN),
    ("manager", "王经理", Role.SALES_MANAGER),
    ("sales", "李销售", Role.SALES_ENGINEER),
    ("sales2", "赵销售", Role.SALES_ENGINEER),
    ("tech", "张工", Role.TECHNICAL_ENGINEER),
    ("tech2", "陈工", Role.TECHNICAL_ENGINEER),
    ("biz", "周商务", Role.BUSINESS_ENGINEER),
    ("biz2", "吴商务", Role.BUSINESS_ENGINEER),
    ("planner", "孙计划", Role.PRODUCTION_PLANNER),
    ("worker", "钱师傅", Role.SHOP_FLOOR),
    ("qa", "郑质检", Role.QA_INSPECTOR),
    ("logistics", "冯物流", Role.LOGISTICS),
    ("logistics2", "蒋物流", Role.LOGISTICS),
    ("aftersales", "何售后", Role.AFTER_SALES),
]


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await ensure_tables_exist(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def actors(db):
    users = [User(username=username, display_name=name, role=role.value) for username, name, role in USERS]
    db.add_all(users)
    await db.commit()
    return {user.username: user.to_actor() for user in users}


@pytest_asyncio.fixture
async def catalog(db):
    """阶梯价（1/10/50 台）与固定价各一个产品，另有一个停用产品；返回产品 id"""
    tiered = CatalogItem(
        code="CNC-500",
        name="立式加工中心",
        pricing_model=PricingModel.TIERED.value,
        base_price=Decimal("100.00"),
        price_tiers=[
            PriceTier(min_quantity=1, unit_price=Decimal("100.00")),
            PriceTier(min_quantity=10, unit_price=Decimal("90.00")),
            PriceTier(min_quantity=50, unit_price=Decimal("80.00")),
        ],
    )
    fixed = CatalogItem(
        code="SPD-12",
        name="电主轴",
        pricing_model=PricingModel.FIXED.value,
        base_price=Decimal("2500.00"),
    )
    inactive = CatalogItem(
        code="OLD-01",
        name="停产型号",
        pricing_model=PricingModel.FIXED.value,
        base_price=Decimal("1.00"),
        is_active=False,
    )
    db.add_all([tiered, fixed, inactive])
    await db.commit()
    return {"tiered": tiered.id, "fixed": fixed.id, "inactive": inactive.id}


@pytest_asyncio.fixture
async def won_project_id(db, actors, catalog):
    project = await drive_project_to_won(db, actors, catalog)
    return project.id


@pytest_asyncio.fixture
async def confirmed_order_id(db, actors, catalog):
    order = await drive_order_to_confirmed(db, actors, catalog)
    return order.id
