"""
Outbound notifications.

Listens to the app's EventBus and sends the matching emails after the
state change has been committed. Work runs on a small thread pool inside
an app context; a failing mailer is logged and never reaches the code
that emitted the event.
"""
import atexit
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from flask import Flask

from storefront.models import Profile

logger = logging.getLogger(__name__)


class OrderNotifier:
    """Connects email senders to order events."""

    def __init__(self, app: Flask, events, run_async: bool = True, max_workers: int = 2):
        self.app = app
        self.events = events
        self.run_async = run_async
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='notify') if run_async else None
        )
        self._unsubscribers: List[Callable[[], None]] = [
            events.on_order_status_changed(self._on_status_changed),
            events.on_order_placed(self._on_order_placed),
        ]

    def _submit(self, job: Callable[..., bool], *args) -> None:
        if self._executor is not None:
            self._executor.submit(self._run, job, *args)
        else:
            # Inline: the emitter already runs inside an app context
            self._call(job, *args)

    def _run(self, job: Callable[..., bool], *args) -> None:
        with self.app.app_context():
            self._call(job, *args)

    @staticmethod
    def _call(job: Callable[..., bool], *args) -> None:
        try:
            if not job(*args):
                logger.warning(f"[NOTIFY] {job.__name__} reported failure")
        except Exception as e:
            logger.exception(f"[NOTIFY] {job.__name__} raised: {e}")

    def _on_status_changed(self, order_id, payload=None, **kwargs) -> None:
        self._submit(_send_status_mail, payload or {})

    def _on_order_placed(self, order_id, payload=None, **kwargs) -> None:
        self._submit(_send_admin_alert, payload or {})

    def close(self) -> None:
        """Disconnect receivers and drain pending jobs."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


def _send_status_mail(payload: dict) -> bool:
    from storefront.services import email_service
    return email_service.send_order_status_email(
        to_email=payload.get('customerEmail'),
        customer_name=payload.get('customerName'),
        order_no=payload.get('orderNo'),
        status=payload.get('status'),
        grand_total=payload.get('grandTotal'),
        tracking_number=payload.get('trackingNumber'),
    )


def admin_recipients() -> List[str]:
    """Configured admin addresses, else the emails of admin profiles."""
    from flask import current_app
    from storefront.database import session_scope

    configured = current_app.config.get('ADMIN_NOTIFY_EMAILS') or []
    if configured:
        return list(configured)
    admin_role = current_app.config.get('ADMIN_ROLE', 'admin')
    with session_scope() as session:
        rows = session.query(Profile.email).filter(Profile.role == admin_role, Profile.email.isnot(None)).all()
        return [row.email for row in rows]


def _send_admin_alert(payload: dict) -> bool:
    from storefront.services import email_service
    return email_service.send_new_order_admin_email(
        to_emails=admin_recipients(),
        order_no=payload.get('orderNo'),
        customer_name=payload.get('customerName'),
        grand_total=payload.get('grandTotal'),
    )


def init_notifications(app: Flask) -> OrderNotifier:
    """Attach the order notifier to the app's event bus."""
    notifier = OrderNotifier(
        app,
        app.extensions['events'],
        run_async=app.config.get('NOTIFY_ASYNC', True),
        max_workers=app.config.get('NOTIFY_WORKERS', 2),
    )
    app.extensions['notifier'] = notifier
    if notifier.run_async:
        atexit.register(notifier.close)
    return notifier
