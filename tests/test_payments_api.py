import json
import uuid
from types import SimpleNamespace

import pytest
import stripe

from storefront.core.cache import CacheTags, catalog_cache
from storefront.database.models import OrderStatus, PaymentStatus

STRIPE = "storefront.payments.stripe_service.stripe"
SIGNATURE = {"stripe-signature": "t=1700000000,v1=deadbeef"}


@pytest.fixture
def verify_header(mocker):
    return mocker.patch(f"{STRIPE}.WebhookSignature.verify_header", return_value=True)


@pytest.fixture
def confirmation_email(mocker):
    return mocker.patch("storefront.payments.service.send_order_confirmation_email")


def event(event_type, order_id=None, **intent_fields):
    metadata = {"orderId": str(order_id)} if order_id else {}
    return {
        "id": f"evt_{uuid.uuid4().hex[:8]}",
        "type": event_type,
        "data": {"object": {"id": "pi_123", "object": "payment_intent", "metadata": metadata, **intent_fields}},
    }


def post_event(client, payload, headers=SIGNATURE):
    body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
    return client.post("/api/stripe/webhook", content=body, headers=headers)


class TestWebhook:
    def test_succeeded_marks_paid_and_takes_stock_once(self, client, db_session, test_user, product, make_order,
                                                       verify_header, confirmation_email):
        order = make_order(test_user, [(product, 2)], payment_id="pi_123")
        catalog_cache.set("featured", ["stale"], tags=[CacheTags.FEATURED_PRODUCTS])
        payload = event("payment_intent.succeeded", order.id, payment_method_types=["card"])

        response = post_event(client, payload)
        assert response.status_code == 200
        assert response.json() == {"received": True}

        db_session.refresh(order)
        db_session.refresh(product)
        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.CONFIRMED
        assert order.payment_method == "card"
        assert order.stock_committed is True
        assert product.stock == 3
        assert catalog_cache.get("featured") is None
        confirmation_email.assert_called_once()
        recipient, data = confirmation_email.call_args.args
        assert recipient == test_user.email
        assert data["order_number"] == order.order_number
        assert data["items"] == [{"name": "Crème hydratante", "quantity": 2, "price": 29.99}]

        # Stripe retries deliveries
        assert post_event(client, payload).status_code == 200
        db_session.refresh(product)
        assert product.stock == 3
        confirmation_email.assert_called_once()

    def test_stock_never_goes_negative(self, client, db_session, test_user, make_product, make_order,
                                       verify_header, confirmation_email):
        scarce = make_product(stock=1)
        order = make_order(test_user, [(scarce, 3)])
        post_event(client, event("payment_intent.succeeded", order.id))
        db_session.refresh(scarce)
        assert scarce.stock == 0

    def test_untracked_stock_is_left_alone(self, client, db_session, test_user, make_product, make_order,
                                           verify_header, confirmation_email):
        on_demand = make_product(stock=0, track_stock=False)
        order = make_order(test_user, [(on_demand, 2)])
        post_event(client, event("payment_intent.succeeded", order.id))
        db_session.refresh(on_demand)
        db_session.refresh(order)
        assert on_demand.stock == 0
        assert order.payment_method == "card"

    @pytest.mark.parametrize("event_type", ["payment_intent.payment_failed", "payment_intent.canceled"])
    def test_failure_cancels_order(self, client, db_session, test_user, product, make_order, verify_header,
                                   event_type):
        order = make_order(test_user, [(product, 1)])
        assert post_event(client, event(event_type, order.id)).status_code == 200
        db_session.refresh(order)
        db_session.refresh(product)
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.CANCELLED
        assert product.stock == 5

    def test_requires_action_keeps_order_pending(self, client, db_session, test_user, product, make_order,
                                                 verify_header):
        order = make_order(test_user, [(product, 1)], status=OrderStatus.CONFIRMED)
        post_event(client, event("payment_intent.requires_action", order.id))
        db_session.refresh(order)
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING

    def test_unhandled_event_is_acknowledged(self, client, verify_header):
        response = post_event(client, {"id": "evt_1", "type": "customer.created", "data": {"object": {}}})
        assert response.status_code == 200
        assert response.json() == {"received": True}

    @pytest.mark.parametrize("order_id", [None, "not-a-uuid", uuid.uuid4()])
    def test_events_without_a_known_order_are_acknowledged(self, client, verify_header, order_id):
        assert post_event(client, event("payment_intent.succeeded", order_id)).status_code == 200

    def test_missing_signature(self, client, verify_header):
        response = post_event(client, event("payment_intent.succeeded"), headers={})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Missing signature"
        verify_header.assert_not_called()

    def test_invalid_signature(self, client, db_session, test_user, product, make_order, verify_header):
        verify_header.side_effect = stripe.SignatureVerificationError("No signatures found", "t=1,v1=bad")
        order = make_order(test_user, [(product, 1)])

        response = post_event(client, event("payment_intent.succeeded", order.id))
        assert response.status_code == 400
        db_session.refresh(order)
        assert order.payment_status == PaymentStatus.PENDING

    def test_malformed_payload(self, client, verify_header):
        assert post_event(client, b"{not json").status_code == 400

    def test_signature_is_checked_against_raw_body(self, client, verify_header):
        post_event(client, '{"id": "evt_1", "type": "ping", "data": {}}')
        payload, signature, secret = verify_header.call_args.args
        assert payload == '{"id": "evt_1", "type": "ping", "data": {}}'
        assert signature == SIGNATURE["stripe-signature"]
        assert secret == "whsec_test_secret"


@pytest.fixture
def owned_intent(test_user, db_session):
    test_user.stripe_customer_id = "cus_owner"
    db_session.commit()

    def _intent(**fields):
        values = dict(
            id="pi_123", amount=2999, currency="eur", status="succeeded", customer="cus_owner",
            receipt_email=None, created=1700000000, description=None, metadata={"orderId": "x"},
        )
        values.update(fields)
        return SimpleNamespace(**values)

    return _intent


class TestPaymentIntentDetails:
    def test_returns_details_for_owner(self, client, test_user, auth_headers, owned_intent, mocker):
        mocker.patch(f"{STRIPE}.PaymentIntent.retrieve", return_value=owned_intent())
        response = client.get("/api/stripe/payment-intent/pi_123", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["amount"] == 2999
        assert body["email"] == test_user.email
        assert body["metadata"] == {"orderId": "x"}

    def test_other_customer_is_forbidden(self, client, auth_headers, owned_intent, mocker):
        mocker.patch(f"{STRIPE}.PaymentIntent.retrieve", return_value=owned_intent(customer="cus_other"))
        response = client.get("/api/stripe/payment-intent/pi_123", headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PAYMENT_FORBIDDEN"

    def test_unknown_intent(self, client, auth_headers, owned_intent, mocker):
        mocker.patch(
            f"{STRIPE}.PaymentIntent.retrieve",
            side_effect=stripe.InvalidRequestError("No such payment_intent: 'pi_nope'", "id")
        )
        response = client.get("/api/stripe/payment-intent/pi_nope", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PAYMENT_NOT_FOUND"


class TestCreatePaymentIntent:
    @pytest.fixture
    def stripe_calls(self, mocker):
        mocker.patch(f"{STRIPE}.Customer.create", return_value=SimpleNamespace(id="cus_new"))
        mocker.patch(f"{STRIPE}.PaymentIntent.create", return_value=SimpleNamespace(
            id="pi_again", client_secret="pi_again_secret", amount=2999, currency="eur",
            status="requires_payment_method",
        ))
        mocker.patch(f"{STRIPE}.EphemeralKey.create", return_value=SimpleNamespace(id="ephkey_2", secret="ek_2"))

    def request(self, order, user, amount=2999):
        return {"amount": amount, "order_id": str(order.id), "user_id": str(user.id)}

    def test_new_intent_for_own_order(self, client, db_session, test_user, auth_headers, product, make_order,
                                      stripe_calls):
        order = make_order(test_user, [(product, 1)])
        response = client.post("/api/stripe/create-payment-intent", headers=auth_headers,
                               json=self.request(order, test_user))
        assert response.status_code == 200
        assert response.json()["payment_intent"]["id"] == "pi_again"
        db_session.refresh(order)
        assert order.payment_id == "pi_again"

    def test_amount_must_match_order_total(self, client, test_user, auth_headers, product, make_order,
                                           stripe_calls):
        order = make_order(test_user, [(product, 1)])
        response = client.post("/api/stripe/create-payment-intent", headers=auth_headers,
                               json=self.request(order, test_user, amount=100))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Incorrect amount"

    def test_other_user_id_is_forbidden(self, client, test_user, make_user, auth_headers, product, make_order,
                                        stripe_calls):
        stranger = make_user(email="stranger@example.com")
        order = make_order(stranger, [(product, 1)])
        response = client.post("/api/stripe/create-payment-intent", headers=auth_headers,
                               json=self.request(order, stranger))
        assert response.status_code == 403

    def test_someone_elses_order_is_not_found(self, client, test_user, make_user, auth_headers, product,
                                              make_order, stripe_calls):
        stranger = make_user(email="stranger@example.com")
        order = make_order(stranger, [(product, 1)])
        response = client.post("/api/stripe/create-payment-intent", headers=auth_headers,
                               json=self.request(order, test_user))
        assert response.status_code == 404
