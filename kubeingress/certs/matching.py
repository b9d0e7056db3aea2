"""Find the certificate that best matches a host name."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable

from kubeingress.certs.provider import CertificateSummary

log = logging.getLogger(__name__)

# NotAfter must lie at least this far in the future for a cert to be preferred
MINIMAL_CERT_VALIDITY_PERIOD = timedelta(days=7)
GLOB = "*"


class NoMatchingCertificateError(LookupError):
    """No matching certificate was found."""

    def __init__(self, message: str = "no matching certificate found") -> None:
        super().__init__(message)


def find_best_matching_certificates(
    certs: list[CertificateSummary],
    hostnames: Iterable[str],
    now: datetime | None = None,
) -> list[CertificateSummary]:
    """Return the distinct best certificates for the given host names."""
    found: dict[str, CertificateSummary] = {}
    for hostname in hostnames:
        try:
            cert = find_best_matching_certificate(certs, hostname, now)
        except NoMatchingCertificateError as err:
            log.error("Failed to find certificate for hostname %s: %s", hostname, err)
            continue
        found[cert.id] = cert
    return list(found.values())


def find_best_matching_certificate(
    certs: list[CertificateSummary],
    hostname: str,
    now: datetime | None = None,
) -> CertificateSummary:
    """Suffix search for the best matching, verifiable certificate."""
    now = now or datetime.now(timezone.utc)
    period = MINIMAL_CERT_VALIDITY_PERIOD
    candidate: CertificateSummary | None = None
    longest = -1

    for cert in certs:
        not_after = cert.not_after
        not_before = cert.not_before
        try:
            cert.verify(hostname, now)
        except ValueError:
            continue

        for alt_name in cert.domain_names:
            if not prefix_glob(alt_name, hostname):
                continue
            length = len(alt_name)
            if candidate is None or longest < 0:
                longest, candidate = length, cert
            elif longest < length:
                if not_before < now and not_after - period > now:
                    longest, candidate = length, cert
            elif longest == length:
                if not_before > candidate.not_before and not (not_after - period < now):
                    longest, candidate = length, cert
                elif not_before == candidate.not_before and not (
                    candidate.not_after > not_after
                ):
                    longest, candidate = length, cert
                elif (
                    not_before < candidate.not_before
                    and candidate.not_after - period < now
                    and not_after > candidate.not_after
                ):
                    longest, candidate = length, cert
            elif (
                candidate.not_after - period < now
                and now < candidate.not_before
                and not_before < now
                and now < not_after - period
            ):
                longest, candidate = length, cert

    if candidate is None:
        raise NoMatchingCertificateError()
    return candidate


def prefix_glob(pattern: str, subject: str) -> bool:
    """Match ``subject`` against a pattern that may start with a glob."""
    if pattern == "":
        return subject == ""
    if pattern == GLOB:
        return True
    if not pattern.startswith(GLOB):
        return subject == pattern
    return "." not in subject.removesuffix(pattern[1:])