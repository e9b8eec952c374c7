import asyncio

import pytest

from storefront import email_service


@pytest.fixture
def delivered(mocker):
    """Messages handed to delivery, in order."""
    messages = []

    async def capture(message, description, dev_detail=""):
        messages.append(message)

    mocker.patch("storefront.email_service._deliver", side_effect=capture)
    return messages


def test_verification_email_escapes_the_name(delivered):
    asyncio.run(email_service.send_verification_otp_email("zoe@example.com", "123456", '<img src=x onerror="x">'))
    body = delivered[0].body
    assert "<img" not in body
    assert "&lt;img src=x onerror=&quot;x&quot;&gt;" in body
    assert "123456" in body


def test_reset_email_escapes_name_and_link(delivered):
    asyncio.run(email_service.send_password_reset_email(
        "zoe@example.com", 'https://shop.example.com/reset-password?token=a"b', "<b>Zoé</b>"
    ))
    body = delivered[0].body
    assert "&lt;b&gt;Zoé&lt;/b&gt;" in body
    assert 'href="https://shop.example.com/reset-password?token=a&quot;b"' in body


def test_order_confirmation_escapes_customer_and_products(delivered):
    asyncio.run(email_service.send_order_confirmation_email("zoe@example.com", {
        "order_number": "ORD-1-ABC",
        "customer_name": "Zoé <script>",
        "total": 12.5,
        "items": [{"name": "Savon & <i>huile</i>", "quantity": 2, "price": 6.25}],
    }))
    body = delivered[0].body
    assert "<script>" not in body
    assert "Zoé &lt;script&gt;" in body
    assert "Savon &amp; &lt;i&gt;huile&lt;/i&gt;" in body
    assert "12.50 €" in body


def test_disabled_email_is_only_logged(mocker):
    send = mocker.patch("storefront.email_service.FastMail.send_message")
    mocker.patch.object(email_service.settings, "EMAIL_ENABLED", False)
    asyncio.run(email_service.send_verification_otp_email("zoe@example.com", "123456", "Zoé"))
    send.assert_not_called()
