import pytest

from salesflow.core.errors import Forbidden, IllegalTransition, NotFound, PreconditionFailed
from salesflow.services import tickets
from salesflow.services.loaders import load_ticket
from salesflow.workflow.enums import CloseReason, TicketStatus, Visibility


async def new_ticket(db, actors, **kwargs):
    ticket = await tickets.create_ticket(db, actors["aftersales"], title="主轴异响", **kwargs)
    return ticket.id


async def resolved_ticket(db, actors):
    ticket_id = await new_ticket(db, actors)
    await tickets.assign_engineer(db, ticket_id, actors["aftersales"], actors["tech"].id)
    await tickets.accept_ticket(db, ticket_id, actors["tech"])
    await tickets.save_report(db, ticket_id, actors["tech"], "更换前轴承后试机正常", root_cause="轴承磨损")
    await tickets.mark_as_resolved(db, ticket_id, actors["tech"])
    return ticket_id


@pytest.mark.asyncio
async def test_create_ticket(db, actors, confirmed_order_id):
    ticket = await tickets.create_ticket(
        db, actors["aftersales"], title="主轴异响", sales_order_id=confirmed_order_id
    )
    assert ticket.ticket_no.startswith("TK-")
    assert ticket.status == TicketStatus.PENDING_ACCEPTANCE.value
    assert ticket.client_name == "华东机床厂"
    assert ticket.created_by_name == actors["aftersales"].name
    assert ticket.history[0].visibility == Visibility.ALL.value

    with pytest.raises(Forbidden):
        await tickets.create_ticket(db, actors["worker"], title="x")


@pytest.mark.asyncio
async def test_assign_and_accept(db, actors):
    ticket_id = await new_ticket(db, actors)

    with pytest.raises(PreconditionFailed) as exc:
        await tickets.assign_engineer(db, ticket_id, actors["aftersales"], actors["biz"].id)
    assert exc.value.condition == "engineer_not_technical"
    with pytest.raises(NotFound):
        await tickets.assign_engineer(db, ticket_id, actors["aftersales"], 9999)

    ticket = await tickets.assign_engineer(db, ticket_id, actors["aftersales"], actors["tech"].id)
    assert ticket.assigned_to_id == actors["tech"].id
    assert ticket.assigned_to_name == actors["tech"].name

    with pytest.raises(Forbidden) as exc:
        await tickets.accept_ticket(db, ticket_id, actors["tech2"])
    assert exc.value.reason == "ownership_violation"

    result = await tickets.accept_ticket(db, ticket_id, actors["tech"])
    assert result.to_status == TicketStatus.IN_PROGRESS.value
    assert result.entity.accepted_at is not None


@pytest.mark.asyncio
async def test_unassigned_ticket_is_claimed_on_accept(db, actors):
    ticket_id = await new_ticket(db, actors)

    result = await tickets.accept_ticket(db, ticket_id, actors["tech2"])
    assert result.entity.assigned_to_id == actors["tech2"].id

    with pytest.raises(Forbidden):
        await tickets.submit_solution(db, ticket_id, actors["tech"], "更换轴承")


@pytest.mark.asyncio
async def test_solution_review_and_customer_feedback(db, actors):
    ticket_id = await new_ticket(db, actors)
    await tickets.accept_ticket(db, ticket_id, actors["tech"])

    with pytest.raises(PreconditionFailed) as exc:
        await tickets.submit_solution(db, ticket_id, actors["tech"], "")
    assert exc.value.condition == "solution_required"

    result = await tickets.submit_solution(db, ticket_id, actors["tech"], "更换前轴承")
    assert result.to_status == TicketStatus.SOLUTION_REVIEW.value

    with pytest.raises(Forbidden) as exc:
        await tickets.approve_solution(db, ticket_id, actors["tech"])
    assert exc.value.reason == "role_not_permitted"

    result = await tickets.approve_solution(db, ticket_id, actors["manager"], notes="同意")
    assert result.to_status == TicketStatus.IN_PROGRESS.value

    await tickets.request_customer_feedback(db, ticket_id, actors["aftersales"])
    result = await tickets.record_customer_reply(db, ticket_id, actors["aftersales"], comments="客户同意停机")
    assert result.to_status == TicketStatus.IN_PROGRESS.value
    assert result.entity.history[-1].meta_data == {"comments": "客户同意停机"}


@pytest.mark.asyncio
async def test_resolution_requires_final_report(db, actors):
    ticket_id = await new_ticket(db, actors)
    await tickets.accept_ticket(db, ticket_id, actors["tech"])

    with pytest.raises(PreconditionFailed) as exc:
        await tickets.mark_as_resolved(db, ticket_id, actors["tech"])
    assert exc.value.condition == "final_report_missing"

    with pytest.raises(PreconditionFailed) as exc:
        await tickets.save_report(db, ticket_id, actors["tech"], "  ")
    assert exc.value.condition == "report_content_required"

    ticket = await tickets.save_report(db, ticket_id, actors["tech"], "更换前轴承后试机正常")
    assert ticket.final_report["generated_by"]["id"] == actors["tech"].id

    result = await tickets.mark_as_resolved(db, ticket_id, actors["tech"])
    assert result.to_status == TicketStatus.RESOLVED.value
    assert result.entity.resolved_at is not None

    with pytest.raises(IllegalTransition):
        await tickets.save_report(db, ticket_id, actors["tech"], "补充说明")


@pytest.mark.asyncio
async def test_reopen_requires_reason_and_comments(db, actors):
    ticket_id = await resolved_ticket(db, actors)

    with pytest.raises(PreconditionFailed) as exc:
        await tickets.reopen_ticket(db, ticket_id, actors["aftersales"], "", "客户电话反馈")
    assert exc.value.condition == "reason_required"
    with pytest.raises(PreconditionFailed) as exc:
        await tickets.reopen_ticket(db, ticket_id, actors["aftersales"], "问题复发", "")
    assert exc.value.condition == "comments_required"

    result = await tickets.reopen_ticket(db, ticket_id, actors["aftersales"], "问题复发", "客户电话反馈")
    assert result.to_status == TicketStatus.IN_PROGRESS.value
    assert result.entity.resolved_at is None
    assert result.entity.history[-1].meta_data == {"reason": "问题复发", "comments": "客户电话反馈"}


@pytest.mark.asyncio
async def test_close_by_manager(db, actors):
    ticket_id = await resolved_ticket(db, actors)

    with pytest.raises(Forbidden):
        await tickets.close_ticket(db, ticket_id, actors["tech"], CloseReason.RESOLVED)
    with pytest.raises(PreconditionFailed) as exc:
        await tickets.close_ticket(db, ticket_id, actors["manager"], "随便关掉")
    assert exc.value.condition == "close_reason_invalid"

    result = await tickets.close_ticket(
        db, ticket_id, actors["manager"], CloseReason.RESOLVED, feedback={"rating": 5}
    )
    ticket = result.entity
    assert ticket.status == TicketStatus.CLOSED.value
    assert ticket.closed_by_id == actors["manager"].id
    assert ticket.closed_by_role == "Sales Manager"
    assert ticket.close_reason == CloseReason.RESOLVED.value
    assert ticket.customer_feedback == {"rating": 5}

    with pytest.raises(IllegalTransition):
        await tickets.reopen_ticket(db, ticket_id, actors["aftersales"], "问题复发", "客户电话反馈")


@pytest.mark.asyncio
async def test_cancel_and_delete(db, actors):
    ticket_id = await new_ticket(db, actors)

    with pytest.raises(PreconditionFailed):
        await tickets.cancel_ticket(db, ticket_id, actors["aftersales"], "")
    result = await tickets.cancel_ticket(db, ticket_id, actors["aftersales"], "重复报修")
    assert result.to_status == TicketStatus.CANCELLED.value

    with pytest.raises(Forbidden):
        await tickets.delete_ticket(db, ticket_id, actors["aftersales"])
    await tickets.delete_ticket(db, ticket_id, actors["admin"])
    with pytest.raises(NotFound):
        await load_ticket(db, ticket_id)


@pytest.mark.asyncio
async def test_list_tickets(db, actors):
    ticket_id = await new_ticket(db, actors)
    await new_ticket(db, actors)
    await tickets.accept_ticket(db, ticket_id, actors["tech"])

    page = await tickets.list_tickets(db, assigned_to_id=actors["tech"].id)
    assert [t.id for t in page["data"]] == [ticket_id]
    page = await tickets.list_tickets(db, keyword="主轴")
    assert page["total"] == 2
