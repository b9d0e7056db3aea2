"""A provider that caches certificates of other providers and refreshes them."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Iterable

from kubeingress.certs.provider import CertificatesProvider, CertificateSummary

log = logging.getLogger(__name__)


class CertificateCacheError(RuntimeError):
    """The initial load of certificates failed."""


class CachingProvider:
    """Collect certificates from several providers and keep them in memory.

    After the initial load the cache is refreshed every ``update_interval``
    in the background; if a refresh fails the last values stay current.
    """

    def __init__(
        self,
        update_interval: timedelta | float,
        blacklisted_arns: Iterable[str],
        *args: CertificatesProvider,
    ) -> None:
        if isinstance(update_interval, timedelta):
            update_interval = update_interval.total_seconds()
        self._interval = float(update_interval)
        self._providers = list(args)
        self._blacklist = frozenset(blacklisted_arns)
        self._lock = threading.Lock()
        self._certs: list[CertificateSummary] = []
        self._stop = threading.Event()
        try:
            self.refresh()
        except Exception as err:
            raise CertificateCacheError(
                f"initial load of certificates failed: {err}"
            ) from err
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def get_certificates(self) -> list[CertificateSummary]:
        """Return a copy of the cached certificates."""
        with self._lock:
            return list(self._certs)

    def refresh(self) -> None:
        """Reload from all providers; the cache changes only if all succeed."""
        if self._providers:
            with ThreadPoolExecutor(max_workers=len(self._providers)) as pool:
                futures = [pool.submit(p.get_certificates) for p in self._providers]
                results = [f.result() for f in futures]
        else:
            results = []
        fresh = [
            cert
            for certs in results
            for cert in certs
            if cert.id not in self._blacklist
        ]
        with self._lock:
            self._certs = fresh

    def close(self) -> None:
        """Stop the background refresh."""
        self._stop.set()

    def __enter__(self) -> "CachingProvider":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.refresh()
            except Exception as err:  # keep the last known values
                log.error("certificate cache background update failed: %s", err)