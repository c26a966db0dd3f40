"""
Currency presentation layer.

Canonical prices are USD; shoppers see TL. The USD rate lives in the
``settings`` table, is cached in Redis as ``{rate, timestamp}`` for up to
an hour, and changes are pushed to every process over a Redis pub/sub
channel so no one has to poll.
"""
import atexit
import json
import logging
import threading
import time
from decimal import Decimal
from typing import Callable, List, Optional

from flask import Flask, current_app

from storefront.exceptions import BusinessLogicError
from storefront.models import Setting
from storefront.utils.formatters import money_tr, quantize_money, to_decimal
from storefront.utils.number_format import parse_tr_number

logger = logging.getLogger(__name__)

USD_RATE_KEY = 'usd_rate'
CACHE_MODULE = 'currency'
DEFAULT_RATE = Decimal('35.00')
DEFAULT_TTL = 3600
DEFAULT_CHANNEL = 'settings:usd_rate'


def _parse_rate(value) -> Optional[Decimal]:
    """Positive Decimal rate or None."""
    try:
        rate = to_decimal(value)
    except ValueError:
        return None
    if not rate.is_finite() or rate <= 0:
        return None
    return rate


class ExchangeRateHolder:
    """
    Reactive USD→TL rate.

    The constructor never touches the network beyond one cache read, so
    callers always have a usable rate (cached or the fallback). ``start()``
    kicks off the authoritative fetch and the push subscription; ``close()``
    tears the subscription down.
    """

    def __init__(
        self,
        session_factory: Callable,
        cache=None,
        redis_client=None,
        channel: str = DEFAULT_CHANNEL,
        default_rate=DEFAULT_RATE,
        cache_ttl: int = DEFAULT_TTL,
        label: str = 'TL',
        clock: Callable[[], float] = time.time,
    ):
        self._session_factory = session_factory
        self._cache = cache
        self._redis = redis_client
        self.channel = channel
        self.default_rate = to_decimal(default_rate)
        self.cache_ttl = cache_ttl
        self.label = label
        self._clock = clock

        self._lock = threading.RLock()
        self._listeners: List[Callable[[Decimal], None]] = []
        self._pubsub = None
        self._listener_thread = None
        self.loading = True
        self._rate = self._cached_rate() or self.default_rate

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def rate(self) -> Decimal:
        with self._lock:
            return self._rate

    def _cached_rate(self) -> Optional[Decimal]:
        """Cached rate if younger than the freshness window."""
        if self._cache is None:
            return None
        entry = self._cache.get(CACHE_MODULE, USD_RATE_KEY)
        if not isinstance(entry, dict):
            return None
        timestamp = entry.get('timestamp')
        if timestamp is None or self._clock() - float(timestamp) >= self.cache_ttl:
            return None
        return _parse_rate(entry.get('rate'))

    def _store_cache(self, rate: Decimal) -> None:
        if self._cache is None:
            return
        self._cache.set(
            CACHE_MODULE, USD_RATE_KEY,
            {'rate': rate, 'timestamp': self._clock()},
            ttl=self.cache_ttl,
        )

    def set_rate(self, rate, cache: bool = True) -> bool:
        """Apply a new rate locally, re-cache it and notify listeners."""
        parsed = _parse_rate(rate)
        if parsed is None:
            logger.warning(f"[CURRENCY] Ignoring invalid rate {rate!r}")
            return False
        with self._lock:
            changed = parsed != self._rate
            self._rate = parsed
            listeners = list(self._listeners)
        if cache:
            self._store_cache(parsed)
        if changed:
            logger.info(f"[CURRENCY] USD rate is now {parsed}")
            for listener in listeners:
                try:
                    listener(parsed)
                except Exception as e:
                    logger.exception(f"[CURRENCY] Rate listener failed: {e}")
        return True

    def subscribe(self, listener: Callable[[Decimal], None]) -> Callable[[], None]:
        """Register a rate-change listener; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert(self, usd_amount) -> Decimal:
        """USD → TL, unrounded."""
        return to_decimal(usd_amount) * self.rate

    def to_settlement(self, usd_unit_price) -> Decimal:
        """
        TL unit price as charged: convert the exact USD price, then round
        to cents. Line and order totals are built from this figure.
        """
        return quantize_money(self.convert(usd_unit_price))

    def format(self, usd_amount) -> str:
        """USD amount rendered in TL, e.g. '1.234,50 TL'."""
        return self.format_local(self.convert(usd_amount))

    def format_local(self, amount) -> str:
        """Amount already in TL, rendered with the currency label."""
        return f"{money_tr(amount)} {self.label}"

    # ------------------------------------------------------------------
    # Authoritative source
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Fetch the rate from settings. Failures keep the current rate."""
        try:
            with self._session_factory() as session:
                row = session.query(Setting).filter(Setting.key == USD_RATE_KEY).first()
                value = row.value if row else None
            if value is not None:
                self.set_rate(value)
        except Exception as e:
            logger.error(f"[CURRENCY] Error fetching currency rate: {e}")
        finally:
            self.loading = False

    def _on_message(self, message) -> None:
        data = message.get('data') if isinstance(message, dict) else None
        if data is None:
            return
        if isinstance(data, bytes):
            data = data.decode('utf-8')
        try:
            payload = json.loads(data)
            value = payload.get('value') if isinstance(payload, dict) else payload
        except (TypeError, ValueError):
            value = data
        self.set_rate(value)

    def start(self, background: bool = True) -> None:
        """Fetch the authoritative rate and subscribe to pushed updates."""
        if background:
            threading.Thread(target=self.refresh, name='usd-rate-refresh', daemon=True).start()
        else:
            self.refresh()

        if self._redis is None or self._pubsub is not None:
            return
        try:
            self._pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
            self._pubsub.subscribe(**{self.channel: self._on_message})
            self._listener_thread = self._pubsub.run_in_thread(sleep_time=1.0, daemon=True)
            logger.info(f"[CURRENCY] Subscribed to '{self.channel}'")
        except Exception as e:
            logger.warning(f"[CURRENCY] Push subscription unavailable: {e}")
            self._pubsub = None
            self._listener_thread = None

    def close(self) -> None:
        """Stop the subscription thread and release the pub/sub connection."""
        thread, pubsub = self._listener_thread, self._pubsub
        self._listener_thread = None
        self._pubsub = None
        try:
            if thread is not None:
                thread.stop()
            if pubsub is not None:
                pubsub.close()
        except Exception as e:
            logger.warning(f"[CURRENCY] Error closing subscription: {e}")


# =====================================================
# ADMIN: UPDATE RATE
# =====================================================

def update_usd_rate(session, new_rate, cache=None, redis_client=None, channel: str = DEFAULT_CHANNEL, rates: Optional[ExchangeRateHolder] = None) -> Decimal:
    """
    Persist a new USD rate, then broadcast it.

    The settings row is committed first; cache refresh and the pub/sub
    publish happen afterwards and are best-effort.
    """
    try:
        rate = parse_tr_number(new_rate)
    except ValueError as e:
        raise BusinessLogicError(str(e))
    if rate <= 0:
        raise BusinessLogicError('Exchange rate must be greater than 0')

    try:
        row = session.get(Setting, USD_RATE_KEY)
        if row:
            row.value = str(rate)
        else:
            session.add(Setting(key=USD_RATE_KEY, value=str(rate)))
        session.commit()
    except Exception:
        session.rollback()
        raise

    if rates is not None:
        rates.set_rate(rate)
    elif cache is not None:
        cache.set(CACHE_MODULE, USD_RATE_KEY, {'rate': rate, 'timestamp': time.time()}, ttl=DEFAULT_TTL)

    if redis_client is not None:
        try:
            redis_client.publish(channel, json.dumps({'key': USD_RATE_KEY, 'value': str(rate)}))
        except Exception as e:
            logger.warning(f"[CURRENCY] Could not publish rate change: {e}")

    logger.info(f"[CURRENCY] USD rate updated to {rate}")
    return rate


def init_currency(app: Flask) -> ExchangeRateHolder:
    """Create the app's rate holder and start it (subscription only when Redis is up)."""
    from storefront.database import session_scope
    from storefront.services.cache_service import get_cache

    with app.app_context():
        cache = get_cache()
    redis_client = cache.client if cache.is_available() else None

    holder = ExchangeRateHolder(
        session_factory=session_scope,
        cache=cache,
        redis_client=redis_client,
        channel=app.config.get('USD_RATE_CHANNEL', DEFAULT_CHANNEL),
        default_rate=app.config.get('DEFAULT_USD_RATE', DEFAULT_RATE),
        cache_ttl=app.config.get('USD_RATE_CACHE_TTL', DEFAULT_TTL),
        label=app.config.get('DISPLAY_CURRENCY_LABEL', 'TL'),
    )
    app.extensions['rates'] = holder
    if not app.config.get('TESTING'):
        holder.start()
        atexit.register(holder.close)
    return holder


def get_rates() -> ExchangeRateHolder:
    """Get the current app's rate holder."""
    rates = current_app.extensions.get('rates')
    if rates is None:
        raise RuntimeError("Currency layer not initialized.")
    return rates
