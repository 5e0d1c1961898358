"""HTTP API：路由与业务异常映射"""
import httpx
import pytest

from farm_office.core.deps import get_store
from farm_office.main import app

API = "/api/v1"


@pytest.fixture
async def client(store):
    app.dependency_overrides[get_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def create_product(client, name="玉米", stock=0):
    response = await client.post(f"{API}/products/", json={"name": name, "stock": stock, "minStock": 2})
    assert response.status_code == 201
    return response.json()


async def create_approved_purchase(client, product_id, quantity=10):
    response = await client.post(f"{API}/purchases/", json={
        "supplier": "绿源农资",
        "lineItems": [{"productId": product_id, "name": "玉米", "quantity": quantity, "unitCost": 2}],
    })
    assert response.status_code == 201
    purchase_id = response.json()["purchaseId"]
    response = await client.post(f"{API}/purchases/{purchase_id}/approve")
    assert response.status_code == 200
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "ok"}


async def test_purchase_delivery_flow(client):
    product = await create_product(client, stock=1)
    purchase = await create_approved_purchase(client, product["id"])
    assert purchase["status"] == "approved"

    items = (await client.get(f"{API}/purchases/{purchase['id']}/deliverable-items")).json()
    assert items[0]["pendingQty"] == 10

    response = await client.post(f"{API}/purchases/{purchase['id']}/deliveries", json={
        "warehouseId": "WH-1",
        "deliveryDate": "2026-03-01",
        "products": [{"key": items[0]["key"], "quantity": "6"}],
    })
    assert response.status_code == 201
    delivery_id = response.json()["deliveryId"]

    detail = (await client.get(f"{API}/purchases/{purchase['id']}")).json()
    assert detail["status"] == "partial_delivered"
    assert detail["totalPending"] == 4

    response = await client.post(f"{API}/purchases/{purchase['id']}/deliveries/{delivery_id}/complete")
    assert response.status_code == 200
    stocked = (await client.get(f"{API}/products/{product['id']}")).json()
    assert stocked["stock"] == 7

    response = await client.post(f"{API}/purchases/{purchase['id']}/deliveries/{delivery_id}/cancel")
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"

    stats = (await client.get(f"{API}/purchases/stats")).json()
    assert stats["partialDelivered"] == 1


async def test_delivery_validation_errors(client):
    product = await create_product(client)
    purchase = await create_approved_purchase(client, product["id"])
    url = f"{API}/purchases/{purchase['id']}/deliveries"

    response = await client.post(url, json={"deliveryDate": "2026-03-01", "products": []})
    assert response.status_code == 400
    assert response.json()["code"] == "missing_warehouse"

    response = await client.post(url, json={"warehouseId": "WH-1", "deliveryDate": "", "products": []})
    assert response.json()["code"] == "missing_date"

    response = await client.post(url, json={
        "warehouseId": "WH-1", "deliveryDate": "2026-03-01", "products": [{"key": "x", "quantity": ""}],
    })
    assert response.json()["code"] == "empty_selection"


async def test_product_sale_errors(client):
    product = await create_product(client, stock=3)

    response = await client.post(f"{API}/expenses/product-sale", json={
        "productId": product["id"], "quantitySold": 5, "unitPrice": 2,
    })
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "insufficient_stock"
    assert (body["available"], body["requested"]) == (3, 5)

    response = await client.post(f"{API}/expenses/product-sale", json={"productId": "missing", "quantitySold": 1})
    assert response.status_code == 404
    assert response.json()["code"] == "product_not_found"

    response = await client.post(f"{API}/expenses/product-sale", json={"productId": product["id"], "quantitySold": 0})
    assert response.status_code == 422


async def test_expense_crud(client):
    product = await create_product(client, stock=3)
    response = await client.post(f"{API}/expenses/product-sale", json={
        "productId": product["id"], "quantitySold": 2, "unitPrice": 4,
    })
    expense_id = response.json()["expenseId"]

    expense = (await client.get(f"{API}/expenses/{expense_id}")).json()
    assert expense["totalAmount"] == 8
    assert expense["productName"] == "玉米"

    response = await client.put(f"{API}/expenses/{expense_id}", json={"notes": "集市"})
    assert response.json()["notes"] == "集市"

    low = (await client.get(f"{API}/products/low-stock")).json()
    assert low["total"] == 1

    response = await client.delete(f"{API}/expenses/{expense_id}")
    assert response.status_code == 200
    assert (await client.get(f"{API}/products/{product['id']}")).json()["stock"] == 3
    assert (await client.get(f"{API}/expenses/{expense_id}")).status_code == 404

    movements = (await client.get(f"{API}/products/{product['id']}/movements")).json()
    assert [m["sourceType"] for m in movements["data"]][:2] == ["expense_deletion", "expense"]


async def test_misc_expense_and_list(client):
    response = await client.post(f"{API}/expenses/misc", json={"description": "电费", "amount": 99.5})
    assert response.status_code == 201

    listing = (await client.get(f"{API}/expenses/", params={"type": "misc"})).json()
    assert listing["total"] == 1
    assert listing["data"][0]["expenseNumber"].startswith("GAST-")


async def test_expense_list_with_utc_dates(client):
    await client.post(f"{API}/expenses/misc", json={"description": "电费", "amount": 10})
    response = await client.post(f"{API}/expenses/misc", json={
        "description": "种子", "amount": 20, "date": "2026-01-01T00:00:00Z",
    })
    assert response.status_code == 201

    response = await client.get(f"{API}/expenses/")
    assert response.status_code == 200
    assert response.json()["total"] == 2
