import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest

from storefront.database.models import OrderStatus, PaymentStatus
from storefront.dashboard.service import DashboardService, display_status, relative_time
from storefront.database.core import utcnow

STRIPE = "storefront.payments.stripe_service.stripe"


@pytest.mark.parametrize("status, expected", [
    (OrderStatus.PENDING, ("processing", "En attente")),
    (OrderStatus.SHIPPED, ("shipped", "Expédiée")),
    (OrderStatus.DELIVERED, ("delivered", "Livrée")),
    (OrderStatus.REFUNDED, ("cancelled", "Remboursée")),
])
def test_display_status(status, expected):
    assert display_status(status) == expected


class TestStats:
    def test_only_delivered_orders_count_as_spent(self, client, test_user, auth_headers, make_product, make_order):
        cheap = make_product(price=10.5)
        make_order(test_user, [(cheap, 2)], status=OrderStatus.DELIVERED)
        make_order(test_user, [(cheap, 3)], status=OrderStatus.DELIVERED)
        make_order(test_user, [(cheap, 10)], status=OrderStatus.SHIPPED)

        stats = client.get("/api/dashboard/stats", headers=auth_headers).json()
        assert stats["total_orders"] == 3
        assert stats["total_spent"] == 52.5
        assert stats["loyalty_points"] == 52
        assert stats["favorite_products"] == 0

    def test_empty_dashboard(self, client, auth_headers):
        stats = client.get("/api/dashboard/stats", headers=auth_headers).json()
        assert stats["total_orders"] == 0
        assert stats["total_spent"] == 0
        assert stats["loyalty_points"] == 0


class TestOrders:
    def test_orders_with_display_fields(self, client, test_user, auth_headers, product, make_order):
        order = make_order(test_user, [(product, 2)], status=OrderStatus.SHIPPED, tracking_number="6A123")

        orders = client.get("/api/dashboard/orders", headers=auth_headers).json()
        assert len(orders) == 1
        entry = orders[0]
        assert entry["id"] == order.order_number
        assert entry["order_id"] == str(order.id)
        assert entry["status"] == "shipped"
        assert entry["status_text"] == "Expédiée"
        assert entry["tracking_number"] == "6A123"
        assert entry["items"] == 1
        assert entry["products"][0]["name"] == "Crème hydratante"
        assert entry["products"][0]["quantity"] == 2

    def test_deleted_product_keeps_the_line(self, client, db_session, test_user, auth_headers, make_product,
                                            make_order):
        doomed = make_product()
        order = make_order(test_user, [(doomed, 1)])
        order.items[0].product_id = None
        db_session.commit()

        entry = client.get("/api/dashboard/orders", headers=auth_headers).json()[0]
        assert entry["products"][0]["name"] == "Produit indisponible"
        assert entry["products"][0]["image"] is None


class TestFavorites:
    def test_add_list_remove(self, client, auth_headers, product):
        response = client.post("/api/dashboard/favorites", headers=auth_headers, json={"product_id": str(product.id)})
        assert response.status_code == 201
        assert response.json()["message"] == "Product added to favorites"

        response = client.post("/api/dashboard/favorites", headers=auth_headers, json={"product_id": str(product.id)})
        assert response.json()["message"] == "Product already in favorites"

        favorites = client.get("/api/dashboard/favorites", headers=auth_headers).json()
        assert [f["slug"] for f in favorites] == ["creme-hydratante"]
        assert favorites[0]["in_stock"] is True

        stats = client.get("/api/dashboard/stats", headers=auth_headers).json()
        assert stats["favorite_products"] == 1

        response = client.delete(f"/api/dashboard/favorites/{product.id}", headers=auth_headers)
        assert response.status_code == 200
        assert client.get("/api/dashboard/favorites", headers=auth_headers).json() == []

    def test_product_id_is_required(self, client, auth_headers):
        response = client.post("/api/dashboard/favorites", headers=auth_headers, json={})
        assert response.status_code == 400

    def test_unknown_product(self, client, auth_headers):
        response = client.post("/api/dashboard/favorites", headers=auth_headers, json={"product_id": str(uuid.uuid4())})
        assert response.status_code == 404

    def test_favorites_are_per_user(self, client, make_user, login, auth_headers, product):
        client.post("/api/dashboard/favorites", headers=auth_headers, json={"product_id": str(product.id)})
        other = login(make_user(email="other@example.com").email)
        assert client.get("/api/dashboard/favorites", headers=other).json() == []


class TestValidatePayment:
    @pytest.fixture
    def intent(self, db_session, test_user, mocker):
        test_user.stripe_customer_id = "cus_owner"
        db_session.commit()
        intent = SimpleNamespace(id="pi_paid", status="succeeded", customer="cus_owner")
        mocker.patch(f"{STRIPE}.PaymentIntent.retrieve", return_value=intent)
        return intent

    def test_returns_matching_order(self, client, test_user, auth_headers, product, make_order, intent):
        order = make_order(test_user, [(product, 1)], payment_id="pi_paid",
                           status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
        response = client.post("/api/dashboard/validate-payment", headers=auth_headers,
                               json={"payment_intent_id": "pi_paid"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["order_number"] == order.order_number
        assert body["payment_status"] == "PAID"

    def test_requires_intent_id(self, client, auth_headers):
        response = client.post("/api/dashboard/validate-payment", headers=auth_headers, json={})
        assert response.status_code == 400

    def test_unsuccessful_payment(self, client, auth_headers, intent):
        intent.status = "processing"
        response = client.post("/api/dashboard/validate-payment", headers=auth_headers,
                               json={"payment_intent_id": "pi_paid"})
        assert response.status_code == 400

    def test_no_matching_order(self, client, auth_headers, intent):
        response = client.post("/api/dashboard/validate-payment", headers=auth_headers,
                               json={"payment_intent_id": "pi_paid"})
        assert response.status_code == 404


@pytest.mark.parametrize("elapsed, text", [
    (timedelta(minutes=20), "Il y a quelques minutes"),
    (timedelta(hours=1, minutes=5), "Il y a 1 heure"),
    (timedelta(hours=5), "Il y a 5 heures"),
    (timedelta(days=1, hours=3), "Il y a 1 jour"),
    (timedelta(days=12), "Il y a 12 jours"),
])
def test_relative_time(elapsed, text):
    now = utcnow()
    assert relative_time(now - elapsed, now) == text


class TestActivity:
    def test_feed_lists_order_events_before_recommendations(self, db_session, test_user, make_product, make_order):
        now = utcnow()
        fresh = make_product(name="Huile sèche", slug="huile-seche", created_at=now - timedelta(days=1))
        make_product(name="Ancien savon", created_at=now - timedelta(days=30))
        delivered = make_order(test_user, [(fresh, 1)], status=OrderStatus.DELIVERED, total_amount=52.5,
                               created_at=now - timedelta(days=6), delivered_at=now - timedelta(days=2))
        shipped = make_order(test_user, [(fresh, 1)], status=OrderStatus.SHIPPED,
                             created_at=now - timedelta(hours=3), shipped_at=now - timedelta(hours=1))

        feed = DashboardService.get_activity(db_session, test_user.id, now=now)

        assert [(a.id, a.time) for a in feed] == [
            (f"order-created-{shipped.id}", "Il y a 3 heures"),
            (f"order-shipped-{shipped.id}", "Il y a 1 heure"),
            (f"order-created-{delivered.id}", "Il y a 6 jours"),
            (f"order-delivered-{delivered.id}", "Il y a 2 jours"),
            (f"points-earned-{delivered.id}", "Il y a 2 jours"),
            (f"recommendation-{fresh.id}", "Il y a 1 jour"),
        ]
        assert feed[4].message == "Vous avez gagné 52 points de fidélité"
        assert feed[4].link is None
        assert feed[5].link == "/products/huile-seche"

    def test_feed_is_capped(self, db_session, test_user, product, make_order):
        now = utcnow()
        for days in range(8):
            make_order(test_user, [(product, 1)], status=OrderStatus.DELIVERED,
                       created_at=now - timedelta(days=days + 1), delivered_at=now - timedelta(days=days))

        feed = DashboardService.get_activity(db_session, test_user.id, now=now)
        assert len(feed) == 10
        assert all(a.type == "order" for a in feed)

    def test_endpoint_shows_only_own_orders(self, client, make_user, auth_headers, make_order, product):
        stranger = make_user(email="stranger@example.com")
        make_order(stranger, [(product, 1)])

        response = client.get("/api/dashboard/activity", headers=auth_headers)
        assert response.status_code == 200
        assert [a["type"] for a in response.json()] == ["recommendation"]

    def test_requires_authentication(self, client):
        assert client.get("/api/dashboard/activity").status_code == 401
