"""
Application event bus.

Domain signals live on an EventBus instance owned by the Flask app
(``app.extensions['events']``) instead of module-level globals, so each
app (and each test) gets an isolated set of receivers.
"""
import logging
from typing import Any, Callable, Optional

from blinker import Namespace, Signal
from flask import current_app

logger = logging.getLogger(__name__)


class EventBus:
    """
    Holds the domain signals.

    Signals:
        cart_changed: sender=cart_id. Lets views such as the cart badge refresh.
        order_placed: sender=order_id, kwargs payload=dict.
        order_status_changed: sender=order_id, kwargs payload=dict. Sent after commit.
    """

    def __init__(self):
        signals = Namespace()
        self.cart_changed = signals.signal('cart-changed')
        self.order_placed = signals.signal('order-placed')
        self.order_status_changed = signals.signal('order-status-changed')

    @staticmethod
    def _subscribe(signal: Signal, receiver: Callable[..., Any]) -> Callable[[], None]:
        # Strong reference: receivers are often closures that would be collected otherwise
        signal.connect(receiver, weak=False)

        def unsubscribe() -> None:
            signal.disconnect(receiver)
        return unsubscribe

    def on_cart_changed(self, receiver: Callable[..., Any]) -> Callable[[], None]:
        """Subscribe to cart changes. Returns an unsubscribe callable."""
        return self._subscribe(self.cart_changed, receiver)

    def on_order_placed(self, receiver: Callable[..., Any]) -> Callable[[], None]:
        return self._subscribe(self.order_placed, receiver)

    def on_order_status_changed(self, receiver: Callable[..., Any]) -> Callable[[], None]:
        return self._subscribe(self.order_status_changed, receiver)

    def notify_cart_changed(self, cart_id: Optional[str]) -> None:
        """Emit the cart-changed signal; receiver errors never reach the caller."""
        self._send(self.cart_changed, cart_id)

    def notify_order_placed(self, order_id: str, payload: dict) -> None:
        self._send(self.order_placed, order_id, payload=payload)

    def notify_order_status_changed(self, order_id: str, payload: dict) -> None:
        self._send(self.order_status_changed, order_id, payload=payload)

    @staticmethod
    def _send(signal: Signal, sender: Any, **kwargs) -> None:
        for receiver in list(signal.receivers_for(sender)):
            try:
                receiver(sender, **kwargs)
            except Exception as e:
                logger.exception(f"[EVENTS] Receiver for '{signal.name}' failed: {e}")


def init_events(app) -> EventBus:
    """Create the app's event bus."""
    bus = EventBus()
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['events'] = bus
    return bus


def get_events(events: Optional[EventBus] = None) -> Optional[EventBus]:
    """Return the explicit bus, or the current app's bus, or None outside an app."""
    if events is not None:
        return events
    try:
        return current_app.extensions.get('events')
    except RuntimeError:
        return None
