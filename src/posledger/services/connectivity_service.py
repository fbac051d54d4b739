from __future__ import annotations

import logging
from typing import Optional

import requests

from posledger.domain.models import Connectivity

log = logging.getLogger("posledger.connectivity")


class ConnectivityService:
    """Best-effort online/offline probe for callers of ``record_sale``.

    The ledger itself never probes; callers pass the state in.
    """

    def __init__(
        self,
        probe_url: str = "https://www.google.com/generate_204",
        timeout: float = 3.0,
        forced_state: Connectivity | str | None = None,
    ):
        self.probe_url = probe_url
        self.timeout = timeout
        self.forced_state = Connectivity(forced_state) if forced_state is not None else None
        self._last_state: Optional[Connectivity] = None

    def _probe(self) -> bool:
        r = requests.head(self.probe_url, timeout=self.timeout, allow_redirects=True)
        return r.status_code < 500

    def is_online(self) -> bool:
        return self.current_state() is Connectivity.ONLINE

    def current_state(self) -> Connectivity:
        if self.forced_state is not None:
            return self.forced_state
        try:
            state = Connectivity.ONLINE if self._probe() else Connectivity.OFFLINE
        except requests.RequestException as e:
            log.warning("connectivity_probe_failed url=%s error=%s", self.probe_url, e)
            state = Connectivity.OFFLINE

        if state is not self._last_state:
            log.info("connectivity_changed from=%s to=%s", getattr(self._last_state, "value", None), state.value)
            self._last_state = state
        return state
