"""
Verification Checker

Answers "does this domain currently present this token?" through an ordered
list of probe strategies:

  http_file   GET https://<domain>/<file>, falling back once to http:// on
              transport failure; body must equal the token (trimmed)
  dns_txt     TXT _cmms-verification.<domain> containing cmms-verify=<token>
  dns_cname   CNAME _cmms-verification.<domain> pointing at <token>.<target>

Probes report outcomes as data. Nothing here raises for a domain that is
down, misconfigured or simply not proven yet.
"""
import enum
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

import dns.exception
import dns.resolver
import httpx

from app.config import settings
from app.services import verification_token

logger = logging.getLogger("cmms.domain_verification.checker")


class ProbeOutcome(str, enum.Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class VerificationTarget:
    domain: str
    token: str
    file_name: str


@dataclass(frozen=True)
class ProbeResult:
    channel: str
    outcome: ProbeOutcome
    detail: str

    @property
    def matched(self) -> bool:
        return self.outcome == ProbeOutcome.MATCH


@dataclass
class CheckResult:
    results: List[ProbeResult] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return any(r.matched for r in self.results)

    @property
    def matched_channel(self) -> Optional[str]:
        for r in self.results:
            if r.matched:
                return r.channel
        return None

    @property
    def failure_reason(self) -> Optional[str]:
        if self.verified:
            return None
        if not self.results:
            return "No verification channel was checked"
        return "; ".join(r.detail for r in self.results)


# ═══════════════════════════════════════════
#  Probe strategies
# ═══════════════════════════════════════════

class HttpFileProbe:
    channel = "http_file"
    # A proof file holds a 32-char token; never read more than this
    max_body_bytes = 4096

    def __init__(
        self,
        timeout: float = 5.0,
        max_redirects: int = 5,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self._transport,
        )

    def _fetch(self, client: httpx.Client, url: str):
        """GET ``url`` and return (status, body) with the body capped at max_body_bytes."""
        with client.stream("GET", url) as response:
            if response.status_code != 200:
                return response.status_code, ""
            body = b""
            for chunk in response.iter_bytes():
                body += chunk
                if len(body) >= self.max_body_bytes:
                    break
        return response.status_code, body[: self.max_body_bytes].decode("utf-8", errors="replace")

    def probe(self, target: VerificationTarget) -> ProbeResult:
        with self._client() as client:
            url = f"https://{target.domain}/{target.file_name}"
            logger.debug("Checking verification file at: %s", url)
            try:
                status, body = self._fetch(client, url)
            except httpx.RequestError as https_error:
                logger.debug("HTTPS failed for %s (%s), trying HTTP", target.domain, https_error)
                url = f"http://{target.domain}/{target.file_name}"
                try:
                    status, body = self._fetch(client, url)
                except httpx.RequestError as http_error:
                    return ProbeResult(
                        self.channel,
                        ProbeOutcome.ERROR,
                        f"HTTP request failed: {type(http_error).__name__}: {http_error}",
                    )

        if status != 200:
            return ProbeResult(
                self.channel,
                ProbeOutcome.NOT_FOUND,
                f"Verification file not found at {url} (HTTP {status})",
            )

        if body.strip() != target.token.strip():
            return ProbeResult(
                self.channel,
                ProbeOutcome.MISMATCH,
                f"Verification file at {url} does not contain the expected token",
            )
        return ProbeResult(self.channel, ProbeOutcome.MATCH, f"Verification file found at {url}")


class _DnsProbe:
    channel = ""
    rdtype = ""

    def __init__(self, timeout: float = 5.0, resolver: Optional[dns.resolver.Resolver] = None):
        if resolver is None:
            resolver = dns.resolver.Resolver()
            resolver.timeout = timeout
            resolver.lifetime = timeout
        self.resolver = resolver

    def expected_value(self, target: VerificationTarget) -> str:
        raise NotImplementedError

    def record_values(self, answers) -> List[str]:
        raise NotImplementedError

    def probe(self, target: VerificationTarget) -> ProbeResult:
        name = verification_token.dns_record_name(target.domain)
        expected = self.expected_value(target)
        logger.debug("Looking up %s record for: %s", self.rdtype, name)
        try:
            answers = self.resolver.resolve(name, self.rdtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return ProbeResult(
                self.channel, ProbeOutcome.NOT_FOUND, f"{self.rdtype} record {name} not found"
            )
        except dns.exception.DNSException as e:
            return ProbeResult(
                self.channel,
                ProbeOutcome.ERROR,
                f"DNS lookup failed for {name}: {type(e).__name__}: {e}",
            )

        for value in self.record_values(answers):
            logger.debug("Found %s record: %s", self.rdtype, value)
            if value == expected or expected in value:
                return ProbeResult(
                    self.channel, ProbeOutcome.MATCH, f"{self.rdtype} record {name} matches"
                )
        return ProbeResult(
            self.channel,
            ProbeOutcome.MISMATCH,
            f"{self.rdtype} record {name} does not contain {expected}",
        )


class DnsTxtProbe(_DnsProbe):
    channel = "dns_txt"
    rdtype = "TXT"

    def expected_value(self, target: VerificationTarget) -> str:
        return verification_token.txt_record_value(target.token)

    def record_values(self, answers) -> List[str]:
        # A TXT record may be split into several character-strings
        return [
            b"".join(rdata.strings).decode("utf-8", errors="replace")
            for rdata in answers
        ]


class DnsCnameProbe(_DnsProbe):
    channel = "dns_cname"
    rdtype = "CNAME"

    def expected_value(self, target: VerificationTarget) -> str:
        return verification_token.cname_target(target.token)

    def record_values(self, answers) -> List[str]:
        return [str(rdata.target).rstrip(".").lower() for rdata in answers]


# ═══════════════════════════════════════════
#  Checker
# ═══════════════════════════════════════════

# Probe order per verification method; the first channel is the primary one.
CHANNELS_BY_METHOD: Dict[str, Sequence[str]] = {
    "file": ("http_file", "dns_txt"),
    "txt_record": ("dns_txt", "http_file"),
    "cname_record": ("dns_cname",),
}


class VerificationChecker:
    def __init__(self, probes: Sequence):
        self.probes = {p.channel: p for p in probes}

    def check(self, target: VerificationTarget, method: str = "file") -> CheckResult:
        """Try the method's channels in order until one matches."""
        result = CheckResult()
        for channel in CHANNELS_BY_METHOD.get(method, CHANNELS_BY_METHOD["file"]):
            probe = self.probes.get(channel)
            if probe is None:
                continue
            probe_result = probe.probe(target)
            result.results.append(probe_result)
            if probe_result.matched:
                logger.info("Domain %s proven via %s", target.domain, channel)
                break
        return result


@lru_cache(maxsize=1)
def build_default_checker() -> VerificationChecker:
    timeout = settings.DOMAIN_VERIFICATION_TIMEOUT_SECONDS
    return VerificationChecker([
        HttpFileProbe(timeout=timeout, max_redirects=settings.DOMAIN_VERIFICATION_MAX_REDIRECTS),
        DnsTxtProbe(timeout=timeout),
        DnsCnameProbe(timeout=timeout),
    ])
