import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from salesflow.core.config import settings
from salesflow.core.deps import get_db
from salesflow.main import app
from salesflow.workflow.enums import ProjectStatus, SalesOrderStatus

API = settings.API_V1_STR


def as_actor(actor):
    # 请求头只能是 ASCII，姓名不传，由服务端按 id 生成
    return {"X-Actor-Id": str(actor.id), "X-Actor-Role": actor.role.value}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def post_project(client, actors):
    response = await client.post(
        f"{API}/projects/", json={"name": "二号线", "client_name": "西南重工"}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_create_and_read_project(client, actors):
    project = await post_project(client, actors)
    assert project["status"] == ProjectStatus.PENDING_TECH.value
    assert project["owner_id"] == actors["sales"].id
    assert project["is_locked"] is False
    assert project["is_terminal"] is False

    response = await client.get(f"{API}/projects/{project['id']}")
    assert response.json()["project_no"] == project["project_no"]

    response = await client.get(f"{API}/projects/{project['id']}/history")
    history = response.json()
    assert [h["operation"] for h in history] == ["create"]
    assert history[0]["actor_name"] == f"user-{actors['sales'].id}"

    response = await client.get(f"{API}/projects/{project['id']}/transitions")
    assert response.json() == ["assign_technical_support", "mark_lost"]

    response = await client.get(f"{API}/projects/", params={"keyword": "西南"})
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_identity_headers_required(client, actors):
    response = await client.post(f"{API}/projects/", json={"name": "A", "client_name": "甲"})
    assert response.status_code == 422

    response = await client.post(
        f"{API}/projects/", json={"name": "A", "client_name": "甲"},
        headers={"X-Actor-Id": "1", "X-Actor-Role": "Nobody"},
    )
    assert response.status_code == 400

    response = await client.post(
        f"{API}/projects/", json={"name": "A", "client_name": "甲"},
        headers={"X-Actor-Id": "1", "X-Actor-Role": "System"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_workflow_errors_map_to_status_codes(client, actors):
    project = await post_project(client, actors)
    url = f"{API}/projects/{project['id']}"

    response = await client.post(f"{url}/submit-quotation", headers=as_actor(actors["biz"]))
    assert response.status_code == 409
    assert response.json()["code"] == "illegal_transition"

    response = await client.post(
        f"{url}/assign-technical-support", json={"engineer_id": 9999}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"

    response = await client.post(
        f"{url}/assign-technical-support", json={"engineer_id": actors["tech"].id}, headers=as_actor(actors["sales2"])
    )
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"

    response = await client.post(
        f"{url}/assign-technical-support", json={"engineer_id": actors["biz"].id}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "precondition_failed"
    assert body["detail"]["condition"] == "engineer_not_technical"

    response = await client.post(
        f"{url}/assign-technical-support", json={"engineer_id": actors["tech"].id}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 200
    body = response.json()
    assert body["from_status"] == ProjectStatus.PENDING_TECH.value
    assert body["to_status"] == ProjectStatus.SELECTION.value
    assert body["fully_applied"] is True
    assert body["data"]["technical_support_id"] == actors["tech"].id


@pytest.mark.asyncio
async def test_convert_and_approve_order(client, actors, won_project_id):
    response = await client.post(
        f"{API}/sales-orders/", json={"project_id": won_project_id}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 200
    order = response.json()
    assert order["status"] == SalesOrderStatus.PENDING.value

    response = await client.post(
        f"{API}/sales-orders/", json={"project_id": won_project_id}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_link"

    response = await client.post(
        f"{API}/sales-orders/{order['id']}/approve",
        json={"decision": "Approved"}, headers=as_actor(actors["manager"]),
    )
    assert response.status_code == 200
    assert response.json()["to_status"] == SalesOrderStatus.CONFIRMED.value

    response = await client.get(f"{API}/statistics/status-counts/sales_order")
    assert response.json() == {SalesOrderStatus.CONFIRMED.value: 1}

    url = f"{API}/sales-orders/{order['id']}"
    response = await client.post(
        f"{url}/assign-planner", json={"user_id": actors["qa"].id}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 422
    assert response.json()["detail"]["condition"] == "assignee_not_planner"

    response = await client.post(
        f"{API}/production-orders/", json={"sales_order_id": order["id"]}, headers=as_actor(actors["planner"])
    )
    assert response.status_code == 403

    response = await client.post(
        f"{url}/assign-planner", json={"user_id": actors["planner"].id}, headers=as_actor(actors["sales"])
    )
    assert response.status_code == 200
    assert response.json()["planner_id"] == actors["planner"].id

    response = await client.post(
        f"{API}/production-orders/", json={"sales_order_id": order["id"]}, headers=as_actor(actors["planner"])
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_catalog_price_quote(client, catalog):
    response = await client.get(f"{API}/catalog/{catalog['tiered']}/price", params={"quantity": 25})
    assert response.status_code == 200
    quote = response.json()
    assert quote["unit_price"] == 90
    assert quote["pricing_model"] == "阶梯价格"
    assert quote["next_tier"]["additional_quantity"] == 25

    response = await client.get(f"{API}/catalog/{catalog['tiered']}/price", params={"quantity": 0})
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_quantity"

    response = await client.get(f"{API}/catalog/{catalog['inactive']}/price", params={"quantity": 1})
    assert response.status_code == 404

    response = await client.get(f"{API}/catalog/{catalog['tiered']}/tier-check")
    assert response.json()["valid"] is True
