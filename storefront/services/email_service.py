"""
Email service for order notifications.
Uses Flask-Mail for SMTP integration with UTF-8 support.
"""
import logging
from typing import List, Optional

from flask import current_app
from flask_mail import Mail, Message

from storefront.utils.formatters import money_tr, order_status_label

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Keeps dev and test environments from trying to reach an SMTP server.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def _store_name() -> str:
    return current_app.config.get('STORE_NAME', 'Solar Market')


def _deliver(msg: Message) -> None:
    """Hand a message to Flask-Mail. Split out so tests can observe outgoing mail."""
    mail.send(msg)


def send_order_status_email(
    to_email: Optional[str],
    customer_name: Optional[str],
    order_no: str,
    status: str,
    grand_total=None,
    tracking_number: Optional[str] = None,
) -> bool:
    """
    Tell a customer their order moved to ``status``.

    Returns:
        True if sent (or mail is disabled), False otherwise
    """
    if not to_email:
        logger.warning(f"[EMAIL] Order {order_no} has no customer email, status mail skipped")
        return False

    try:
        if not _mail_enabled():
            logger.info(f"[MAIL DISABLED] Status email skipped for {to_email}")
            return True

        label = order_status_label(status)
        tracking_html = (
            f"<p><strong>Kargo Takip No:</strong> {tracking_number}</p>" if tracking_number else ""
        )
        total_html = (
            f"<p><strong>Tutar:</strong> {money_tr(grand_total)} TL</p>" if grand_total is not None else ""
        )

        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; color: #333;">
            <h2>Merhaba {customer_name or ''},</h2>
            <p><strong>#{order_no}</strong> numaralı siparişinizin durumu güncellendi.</p>
            <p>Yeni durum: <strong>{label}</strong></p>
            {tracking_html}
            {total_html}
            <p>{_store_name()}</p>
        </body>
        </html>
        """

        text_body = (
            f"Merhaba {customer_name or ''},\n\n"
            f"#{order_no} numaralı siparişinizin yeni durumu: {label}\n"
            + (f"Kargo Takip No: {tracking_number}\n" if tracking_number else "")
        )

        msg = Message(
            subject=f"Siparişiniz #{order_no} - {label}",
            recipients=[to_email],
            body=text_body,
            html=html_body,
        )
        _deliver(msg)
        logger.info(f"[EMAIL] ✓ Status email for {order_no} sent to {to_email}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] ✗ Error sending status email for {order_no}: {e}")
        return False


def send_new_order_admin_email(
    to_emails: List[str],
    order_no: str,
    customer_name: Optional[str],
    grand_total,
) -> bool:
    """Alert administrators about a freshly placed order."""
    if not to_emails:
        logger.warning(f"[EMAIL] No admin recipients for new order {order_no}")
        return False

    try:
        if not _mail_enabled():
            logger.info("[MAIL DISABLED] New order alert skipped")
            return True

        admin_url = current_app.config.get('STORE_ADMIN_URL', '')
        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; color: #333;">
            <h2>YENİ SİPARİŞ VAR! 🚀</h2>
            <p>Yönetim paneline yeni bir sipariş düştü.</p>
            <p><strong>Sipariş No:</strong> #{order_no}</p>
            <p><strong>Müşteri:</strong> {customer_name or '-'}</p>
            <p><strong>Tutar:</strong> {money_tr(grand_total)} TL</p>
            <p><a href="{admin_url}">Yönetim Paneline Git</a></p>
        </body>
        </html>
        """

        msg = Message(
            subject=f"Yeni Sipariş: #{order_no} - {customer_name or '-'}",
            recipients=to_emails,
            html=html_body,
        )
        _deliver(msg)
        logger.info(f"[EMAIL] ✓ New order alert for {order_no} sent to {len(to_emails)} admins")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] ✗ Error sending new order alert for {order_no}: {e}")
        return False
