import pytest

from salesflow.core.errors import Forbidden
from salesflow.models import CommercialProject, ProductionOrder, SalesOrder, ServiceTicket
from salesflow.workflow.actor import Actor
from salesflow.workflow.enums import Role
from salesflow.workflow.graphs import ORDER_DESK, TECHNICAL
from salesflow.workflow.ownership import (
    OWNERSHIP_VIOLATION, ROLE_NOT_PERMITTED, Relation, authorize, claim_if_unassigned, ensure_authorized,
)

ADMIN = Actor(1, "管理员", Role.ADMIN)
MANAGER = Actor(2, "王经理", Role.SALES_MANAGER)
SALES = Actor(3, "李销售", Role.SALES_ENGINEER)
OTHER_SALES = Actor(4, "赵销售", Role.SALES_ENGINEER)
BIZ = Actor(5, "周商务", Role.BUSINESS_ENGINEER)
OTHER_BIZ = Actor(6, "吴商务", Role.BUSINESS_ENGINEER)
QA = Actor(7, "郑质检", Role.QA_INSPECTOR)
TECH = Actor(9, "张工", Role.TECHNICAL_ENGINEER)
OTHER_TECH = Actor(10, "陈工", Role.TECHNICAL_ENGINEER)


def make_project(**kwargs):
    fields = dict(project_no="PRJ-1", created_by=SALES.id, owner_id=SALES.id)
    fields.update(kwargs)
    return CommercialProject(**fields)


def test_admin_always_allowed():
    order = SalesOrder(order_no="SO-1", created_by=99)
    assert authorize(ADMIN, order).allowed
    production = ProductionOrder(production_no="MO-1", created_by=99)
    assert authorize(ADMIN, production).allowed


def test_related_actor_allowed_unrelated_denied():
    order = SalesOrder(order_no="SO-1", created_by=BIZ.id, assigned_to=SALES.id)
    assert authorize(SALES, order).allowed
    assert authorize(BIZ, order).allowed
    decision = authorize(OTHER_SALES, order)
    assert not decision.allowed
    assert decision.reason == OWNERSHIP_VIOLATION


def test_sales_manager_bypass_is_scoped():
    assert authorize(MANAGER, make_project(created_by=99, owner_id=99)).allowed
    assert authorize(MANAGER, ServiceTicket(ticket_no="TK-1", created_by_id=99)).allowed
    # 生产订单不在销售经理的业务域内
    assert not authorize(MANAGER, ProductionOrder(production_no="MO-1", created_by=99)).allowed


def make_ticket(**kwargs):
    fields = dict(ticket_no="TK-1", created_by_id=SALES.id)
    fields.update(kwargs)
    return ServiceTicket(**fields)


def test_claimable_field_empty_allows_eligible_role():
    ticket = make_ticket()
    assert authorize(TECH, ticket, Relation.CLAIMABLE, "assigned_to_id", TECHNICAL).allowed
    # 商务工程师不是受理角色
    assert not authorize(BIZ, ticket, Relation.CLAIMABLE, "assigned_to_id", TECHNICAL).allowed


def test_claimable_field_held_by_someone_else():
    ticket = make_ticket(assigned_to_id=TECH.id)
    assert authorize(TECH, ticket, Relation.CLAIMABLE, "assigned_to_id", TECHNICAL).allowed
    decision = authorize(OTHER_TECH, ticket, Relation.CLAIMABLE, "assigned_to_id", TECHNICAL)
    assert not decision.allowed
    assert decision.reason == OWNERSHIP_VIOLATION


def test_any_relation_does_not_fall_back_to_claim():
    # 项目的商务工程师字段只能显式指派
    project = make_project()
    decision = authorize(BIZ, project)
    assert not decision.allowed
    assert decision.reason == OWNERSHIP_VIOLATION
    assigned = make_project(business_engineer_id=BIZ.id)
    assert authorize(BIZ, assigned).allowed
    assert not authorize(OTHER_BIZ, assigned).allowed
    assert not authorize(QA, ProductionOrder(production_no="MO-1", created_by=99)).allowed


def test_claim_writes_actor_once():
    ticket = make_ticket()
    assert claim_if_unassigned(TECH, ticket, "assigned_to_id", TECHNICAL)
    assert ticket.assigned_to_id == TECH.id
    assert not claim_if_unassigned(OTHER_TECH, ticket, "assigned_to_id", TECHNICAL)
    assert ticket.assigned_to_id == TECH.id


def test_admin_and_bypass_roles_do_not_claim():
    ticket = make_ticket()
    assert not claim_if_unassigned(ADMIN, ticket, "assigned_to_id", TECHNICAL)
    assert not claim_if_unassigned(MANAGER, ticket, "assigned_to_id", TECHNICAL)
    assert ticket.assigned_to_id is None


def test_ensure_authorized_reports_reason():
    order = SalesOrder(order_no="SO-1", created_by=SALES.id)
    with pytest.raises(Forbidden) as exc:
        ensure_authorized(QA, order, "确认订单", ORDER_DESK)
    assert exc.value.reason == ROLE_NOT_PERMITTED

    with pytest.raises(Forbidden) as exc:
        ensure_authorized(OTHER_SALES, order, "确认订单", ORDER_DESK)
    assert exc.value.reason == OWNERSHIP_VIOLATION
    assert exc.value.detail == {"reason": OWNERSHIP_VIOLATION}
