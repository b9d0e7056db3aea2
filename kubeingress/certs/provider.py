"""Certificate summaries and the provider protocol.

Providers collect ACM, IAM or local certificates; a summary carries what is
needed to verify a certificate for TLS and to match it to host names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Protocol, runtime_checkable

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

_MAX_CHAIN_DEPTH = 10


@runtime_checkable
class CertificatesProvider(Protocol):
    """Something that can list certificates."""

    def get_certificates(self) -> list["CertificateSummary"]:
        ...


class CertificateSummary:
    """A certificate with its chain and the names it protects."""

    def __init__(
        self,
        cert_id: str,
        certificate: x509.Certificate,
        chain: Iterable[x509.Certificate] = (),
        domain_names: Iterable[str] = (),
    ) -> None:
        self.id = cert_id
        self.certificate = certificate
        self.chain = list(chain)
        self.roots: list[x509.Certificate] | None = None
        self.domain_names = list(domain_names)

    def __repr__(self) -> str:
        return f"CertificateSummary(id={self.id!r}, domain_names={self.domain_names!r})"

    def with_roots(self, roots: Iterable[x509.Certificate]) -> "CertificateSummary":
        """Override the trusted root certificates; meant for tests."""
        self.roots = list(roots)
        return self

    @property
    def not_before(self) -> datetime:
        return self.certificate.not_valid_before_utc

    @property
    def not_after(self) -> datetime:
        return self.certificate.not_valid_after_utc

    def verify(self, hostname: str, now: datetime | None = None) -> None:
        """Verify the certificate for TLS server use of ``hostname``.

        Raises ValueError when it cannot be verified. Without roots nothing
        is trusted.
        """
        now = now or datetime.now(timezone.utc)
        cert = self.certificate
        if not _time_ok(cert, now):
            raise ValueError("certificate has expired or is not yet valid")
        if not _has_server_auth(cert):
            raise ValueError("certificate specifies an incompatible key usage")
        if not _matches_hostname(cert, hostname):
            raise ValueError(f"certificate is not valid for {hostname}")
        if not _chain_ok(cert, self.chain, self.roots or [], now, 0):
            raise ValueError("certificate signed by unknown authority")


def new_certificate(
    cert_id: str,
    certificate: x509.Certificate,
    chain: Iterable[x509.Certificate] | None,
) -> CertificateSummary:
    """Build a summary; domain names are the common name, then the SAN DNS names."""
    names: list[str] = []
    for attr in certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME):
        if attr.value:
            names.append(str(attr.value))
            break
    names.extend(_dns_names(certificate))
    return CertificateSummary(cert_id, certificate, chain or (), names)


def _dns_names(cert: x509.Certificate) -> list[str]:
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)


def _time_ok(cert: x509.Certificate, now: datetime) -> bool:
    return cert.not_valid_before_utc <= now <= cert.not_valid_after_utc


def _has_server_auth(cert: x509.Certificate) -> bool:
    try:
        eku = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    except x509.ExtensionNotFound:
        return True
    return ExtendedKeyUsageOID.SERVER_AUTH in eku or (
        ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE in eku
    )


def _is_ca(cert: x509.Certificate) -> bool:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        return False


def _match_name(pattern: str, host: str) -> bool:
    pattern = pattern.lower().rstrip(".")
    host = host.lower().rstrip(".")
    if not pattern or not host:
        return False
    if pattern.startswith("*."):
        first, sep, rest = host.partition(".")
        return bool(first) and bool(sep) and rest == pattern[2:]
    return pattern == host


def _matches_hostname(cert: x509.Certificate, hostname: str) -> bool:
    return any(_match_name(name, hostname) for name in _dns_names(cert))


def _issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    try:
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _chain_ok(
    cert: x509.Certificate,
    intermediates: list[x509.Certificate],
    roots: list[x509.Certificate],
    now: datetime,
    depth: int,
) -> bool:
    if any(cert == root for root in roots):
        return True
    if any(_issued_by(cert, root) and _time_ok(root, now) for root in roots):
        return True
    if depth >= _MAX_CHAIN_DEPTH:
        return False
    return any(
        candidate != cert
        and _is_ca(candidate)
        and _time_ok(candidate, now)
        and _has_server_auth(candidate)
        and _issued_by(cert, candidate)
        and _chain_ok(candidate, intermediates, roots, now, depth + 1)
        for candidate in intermediates
    )