"""Certificate providers and finders for tests."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Iterable

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from kubeingress.certs.provider import CertificateSummary, new_certificate

_TEN_YEARS = timedelta(days=365 * 10)
_CA_START = datetime(2000, 1, 1, tzinfo=timezone.utc)


def _key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _ca_usage() -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True, content_commitment=False, key_encipherment=True,
        data_encipherment=False, key_agreement=False, key_cert_sign=True,
        crl_sign=False, encipher_only=False, decipher_only=False,
    )


def _ca_cert(org: str, serial: int, public_key, issuer_name, signing_key) -> x509.Certificate:
    subject = x509.Name([x509.NameAttribute(NameOID.ORGANIZATION_NAME, org)])
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name or subject)
        .public_key(public_key)
        .serial_number(serial)
        .not_valid_before(_CA_START)
        .not_valid_after(datetime.now(timezone.utc) + _TEN_YEARS)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(_ca_usage(), critical=True)
        .sign(signing_key, hashes.SHA256())
    )


class FakeCertificateProvider:
    """Issues a fresh certificate for foo.bar.org from a test CA chain."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ca: tuple[x509.Certificate, x509.Certificate, rsa.RSAPrivateKey] | None = None

    def _authority(self) -> tuple[x509.Certificate, x509.Certificate, rsa.RSAPrivateKey]:
        with self._lock:
            if self._ca is None:
                ca_key = _key()
                root = _ca_cert("Testing CA", 1, ca_key.public_key(), None, ca_key)
                chain_key = _key()
                chain = _ca_cert(
                    "Testing Sub-CA", 2, chain_key.public_key(), root.subject, ca_key
                )
                self._ca = (root, chain, chain_key)
            return self._ca

    def get_certificates(self) -> list[CertificateSummary]:
        root, chain, chain_key = self._authority()
        now = datetime.now(timezone.utc).replace(microsecond=0)
        cert = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([]))
            .issuer_name(chain.subject)
            .public_key(_key().public_key())
            .serial_number(3)
            .not_valid_before(now)
            .not_valid_after(now + timedelta(hours=24))
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName("foo.bar.org")]), critical=True
            )
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
            )
            .sign(chain_key, hashes.SHA256())
        )
        return [new_certificate("DUMMY", cert, [chain]).with_roots([root])]


class FakeCert:
    """A certificate finder over fixed summaries, matching names exactly."""

    def __init__(self, summaries: Iterable[CertificateSummary]) -> None:
        self._summaries = list(summaries)

    def certificate_summaries(self) -> list[CertificateSummary]:
        return list(self._summaries)

    def certificate_exists(self, certificate_arn: str) -> bool:
        return any(c.id == certificate_arn for c in self._summaries)

    def find_matching_certificate_ids(self, hostnames: Iterable[str]) -> list[str]:
        wanted = set(hostnames)
        return [c.id for c in self._summaries if wanted.intersection(c.domain_names)]