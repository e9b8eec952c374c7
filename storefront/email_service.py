# storefront/email_service.py

from html import escape
from typing import Dict

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType

from .core.config import settings
from .logging import logger

conf = ConnectionConfig(
    MAIL_USERNAME=settings.MAIL_USERNAME,
    MAIL_PASSWORD=settings.MAIL_PASSWORD,
    MAIL_FROM=settings.MAIL_FROM,
    MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
    MAIL_PORT=settings.MAIL_PORT,
    MAIL_SERVER=settings.MAIL_SERVER,
    MAIL_STARTTLS=settings.MAIL_STARTTLS,
    MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
    USE_CREDENTIALS=True,
    VALIDATE_CERTS=True
)

BASE_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 20px auto; padding: 20px; border: 1px solid #ddd; border-radius: 5px; }
    .code { font-size: 28px; letter-spacing: 6px; font-weight: bold; }
    .button { display: inline-block; padding: 12px 24px; margin: 20px 0; background-color: #1d4ed8;
              color: #ffffff !important; text-decoration: none; border-radius: 5px; }
    .footer { margin-top: 20px; font-size: 12px; color: #777; }
"""


def _wrap(title: str, content: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html lang="fr">
    <head><meta charset="UTF-8"><title>{title}</title><style>{BASE_STYLE}</style></head>
    <body>
        <div class="container">
            {content}
            <div class="footer"><p>Immo1</p></div>
        </div>
    </body>
    </html>
    """


async def _deliver(message: MessageSchema, description: str, dev_detail: str = "") -> None:
    # In development, don't attempt to send real emails; just log
    if not settings.EMAIL_ENABLED:
        logger.info(
            "EMAIL_ENABLED is false; skipping real email send. %s for %s %s",
            description,
            ", ".join(str(recipient) for recipient in message.recipients),
            dev_detail,
        )
        return

    fm = FastMail(conf)
    await fm.send_message(message)
    logger.info(f"{description} sent to {message.recipients}")


async def send_verification_otp_email(recipient_email: str, otp: str, name: str):
    """
    Sends the one-time code that confirms a new account's email address.

    Args:
        recipient_email (str): The email address of the recipient.
        otp (str): The numeric code the user types back.
        name (str): The user's display name, for personalization.
    """
    minutes = settings.OTP_EXPIRE_SECONDS // 60
    body = _wrap("Vérifiez votre adresse email", f"""
        <h2>Bienvenue {escape(name or "")} !</h2>
        <p>Votre code de vérification :</p>
        <p class="code">{otp}</p>
        <p>Ce code expire dans {minutes} minutes.</p>
    """)
    message = MessageSchema(
        subject="Votre code de vérification Immo1",
        recipients=[recipient_email],
        body=body,
        subtype=MessageType.html
    )

    try:
        await _deliver(message, "Verification code", dev_detail=otp)
    except Exception as e:
        # Do not break registration on email failure. Log and continue.
        logger.error(f"Failed to send verification code to {recipient_email}: {e}")


async def send_password_reset_email(recipient_email: str, reset_link: str, name: str):
    """Sends a password reset link. Failures are logged, never surfaced."""
    body = _wrap("Réinitialisation du mot de passe", f"""
        <h2>Bonjour {escape(name or "")},</h2>
        <p>Cliquez sur le bouton ci-dessous pour choisir un nouveau mot de passe.</p>
        <a href="{escape(reset_link)}" class="button">Réinitialiser mon mot de passe</a>
        <p>Si vous n'êtes pas à l'origine de cette demande, ignorez cet email.</p>
    """)
    message = MessageSchema(
        subject="Réinitialisation de votre mot de passe",
        recipients=[recipient_email],
        body=body,
        subtype=MessageType.html
    )

    try:
        await _deliver(message, "Password reset link", dev_detail=reset_link)
    except Exception as e:
        logger.error(f"Failed to send password reset email to {recipient_email}: {e}")


async def send_order_confirmation_email(recipient_email: str, order_data: Dict):
    """
    Sends the order confirmation once a payment has succeeded.

    Args:
        recipient_email (str): The email address of the recipient.
        order_data (Dict): order_number, customer_name, total and items (name, quantity, price).
    """
    rows = "".join(
        f"<tr><td>{escape(str(item['name']))}</td><td>{item['quantity']}</td><td>{item['price']:.2f} €</td></tr>"
        for item in order_data.get("items", [])
    )
    body = _wrap("Confirmation de commande", f"""
        <h2>Merci pour votre commande, {escape(order_data.get('customer_name') or '')} !</h2>
        <p>Commande <strong>{escape(order_data['order_number'])}</strong></p>
        <table>{rows}</table>
        <p>Total : <strong>{order_data['total']:.2f} €</strong></p>
    """)
    message = MessageSchema(
        subject=f"Confirmation de commande {order_data['order_number']}",
        recipients=[recipient_email],
        body=body,
        subtype=MessageType.html
    )

    try:
        await _deliver(message, f"Order confirmation {order_data['order_number']}")
    except Exception as e:
        logger.error(f"Failed to send order confirmation to {recipient_email}: {e}")
