import threading
from datetime import datetime, timezone

import requests
from requests import RequestException

from standpos.domain.schemas import StoreHealth
from standpos.utils.retry import http_retry
from standpos.utils.settings import STORE_HEALTH_URL, REMOTE_TIMEOUT_SECONDS, HEALTH_CHECK_INTERVAL_SECONDS
from standpos.utils.logging import get_logger

logger = get_logger(__name__)


class StoreClient:
    """HTTP health check of the hosted store."""

    def __init__(self, health_url: str | None = None, timeout: float = REMOTE_TIMEOUT_SECONDS):
        self.health_url = health_url or STORE_HEALTH_URL
        self.timeout = timeout

    @http_retry()
    def _get(self) -> requests.Response:
        logger.debug(f"StoreClient GET {self.health_url}")
        resp = requests.get(self.health_url, timeout=self.timeout)
        resp.raise_for_status()
        return resp

    def ping(self) -> bool:
        try:
            self._get()
        except RequestException as e:
            logger.warning(f"Store health check failed: {e}")
            return False
        return True


class ConnectivityMonitor:
    """
    Background health check on a fixed interval.
    -status starts as "checking" until the first check finishes
    -last_sync is the time of the last successful check
    -stop() ends the loop, the thread never outlives its owner
    """

    def __init__(self, client: StoreClient, interval: float = HEALTH_CHECK_INTERVAL_SECONDS):
        self.client = client
        self.interval = interval
        self._state = StoreHealth()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> StoreHealth:
        with self._state_lock:
            return self._state.model_copy()

    def check_now(self) -> StoreHealth:
        ok = self.client.ping()
        with self._state_lock:
            if ok:
                self._state = StoreHealth(status="connected", last_sync=datetime.now(timezone.utc))
            else:
                self._state = StoreHealth(status="disconnected", last_sync=self._state.last_sync)
            return self._state.model_copy()

    def _run(self):
        logger.info(f"Connectivity monitor started, every {self.interval}s")
        while not self._stop_event.is_set():
            try:
                self.check_now()
            except Exception as e:
                logger.error(f"Connectivity check crashed: {e}")
            self._stop_event.wait(self.interval)
        logger.info("Connectivity monitor stopped")

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="store-monitor", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
