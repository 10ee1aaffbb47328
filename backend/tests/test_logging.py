import logging
from io import StringIO

import pytest

from salesflow.core.errors import PreconditionFailed
from salesflow.core.logging_config import (
    NO_ACTOR, ActorFilter, bind_actor, clear_actor, current_actor_label, setup_logging,
)
from salesflow.services import projects
from salesflow.workflow.actor import SYSTEM_ACTOR, Actor
from salesflow.workflow.enums import Role


@pytest.fixture(autouse=True)
def _clean_actor():
    clear_actor()
    yield
    clear_actor()


@pytest.fixture
def captured():
    """挂一个带 ActorFilter 的处理器到 salesflow 日志器上"""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(ActorFilter())
    handler.setFormatter(logging.Formatter("%(levelname)s [%(actor)s] %(message)s"))
    logger = logging.getLogger("salesflow")
    old_level = logger.level
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    yield stream
    logger.removeHandler(handler)
    logger.setLevel(old_level)


def test_actor_label():
    assert current_actor_label() == NO_ACTOR

    bind_actor(Actor(id=7, name="李销售", role=Role.SALES_ENGINEER))
    assert current_actor_label() == "李销售(Sales Engineer)#7"

    bind_actor(SYSTEM_ACTOR)
    assert current_actor_label() == "系统(System)"

    clear_actor()
    assert current_actor_label() == NO_ACTOR


def test_filter_keeps_explicit_actor():
    bind_actor(SYSTEM_ACTOR)
    record = logging.makeLogRecord({"msg": "x", "actor": "外部"})
    assert ActorFilter().filter(record)
    assert record.actor == "外部"

    record = logging.makeLogRecord({"msg": "x"})
    ActorFilter().filter(record)
    assert record.actor == "系统(System)"


@pytest.mark.asyncio
async def test_transition_logs_carry_actor(db, actors, captured):
    sales = actors["sales"]
    bind_actor(sales)
    project = await projects.create_project(db, sales, name="A", client_name="甲")
    project_id = project.id
    project_no = project.project_no

    await projects.assign_technical_support(db, project_id, sales, actors["tech"].id)
    with pytest.raises(PreconditionFailed):
        await projects.submit_technical_list(db, project_id, actors["tech"])

    lines = captured.getvalue().splitlines()
    label = f"[{sales.name}({sales.role.value})#{sales.id}]"
    assert all(label in line for line in lines)
    assert any(line.startswith("INFO") and project_no in line and "→" in line for line in lines)
    assert any(line.startswith("WARNING") and "precondition_failed" in line for line in lines)


def test_setup_logging_writes_daily_files(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("info", str(tmp_path / "logs"))
        bind_actor(SYSTEM_ACTOR)
        logger = logging.getLogger("salesflow.tests")
        logger.info("巡检开始")
        logger.error("传播失败")
        for handler in root.handlers:
            handler.flush()

        app_log = next((tmp_path / "logs").glob("app_*.log")).read_text(encoding="utf-8")
        error_log = next((tmp_path / "logs").glob("error_*.log")).read_text(encoding="utf-8")
        assert "[系统(System)] 巡检开始" in app_log
        assert "传播失败" in app_log
        assert "巡检开始" not in error_log
        assert "传播失败" in error_log
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
