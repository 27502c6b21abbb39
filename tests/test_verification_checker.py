"""Unit tests for the HTTP / DNS verification probes and the checker."""
import dns.exception
import dns.resolver
import httpx
import pytest

from app.services.verification_checker import (
    DnsCnameProbe,
    DnsTxtProbe,
    HttpFileProbe,
    ProbeOutcome,
    ProbeResult,
    VerificationChecker,
    VerificationTarget,
)

TOKEN = "0123456789abcdef0123456789abcdef"
FILE_NAME = f"company-verification-{TOKEN}.txt"
TARGET = VerificationTarget(domain="acmecorp.com", token=TOKEN, file_name=FILE_NAME)


def _http_probe(handler, max_redirects=5):
    return HttpFileProbe(timeout=1.0, max_redirects=max_redirects, transport=httpx.MockTransport(handler))


# --- HTTP file probe ---

def test_http_probe_matches_over_https():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text=f"{TOKEN}\n")

    result = _http_probe(handler).probe(TARGET)
    assert result.outcome == ProbeOutcome.MATCH
    assert seen == [f"https://acmecorp.com/{FILE_NAME}"]


def test_http_probe_falls_back_to_http_on_transport_error():
    seen = []

    def handler(request):
        seen.append(request.url.scheme)
        if request.url.scheme == "https":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text=TOKEN)

    result = _http_probe(handler).probe(TARGET)
    assert result.matched
    assert seen == ["https", "http"]


def test_http_probe_does_not_fall_back_on_404():
    seen = []

    def handler(request):
        seen.append(request.url.scheme)
        return httpx.Response(404)

    result = _http_probe(handler).probe(TARGET)
    assert result.outcome == ProbeOutcome.NOT_FOUND
    assert "HTTP 404" in result.detail
    assert seen == ["https"]


def test_http_probe_reports_mismatch():
    result = _http_probe(lambda request: httpx.Response(200, text="something-else")).probe(TARGET)
    assert result.outcome == ProbeOutcome.MISMATCH


def test_http_file_reads_at_most_a_few_kilobytes():
    consumed = []

    def huge_body():
        for _ in range(10_000):
            consumed.append(1)
            yield b"x" * 1024

    result = _http_probe(lambda request: httpx.Response(200, content=huge_body())).probe(TARGET)

    assert result.outcome == ProbeOutcome.MISMATCH
    assert len(consumed) <= HttpFileProbe.max_body_bytes // 1024 + 1


def test_http_file_matches_token_sent_in_small_chunks():
    def body():
        yield TOKEN[:10].encode()
        yield TOKEN[10:].encode()
        yield b"\r\n"

    result = _http_probe(lambda request: httpx.Response(200, content=body())).probe(TARGET)
    assert result.matched


def test_http_probe_both_schemes_fail():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    result = _http_probe(handler).probe(TARGET)
    assert result.outcome == ProbeOutcome.ERROR
    assert result.detail.startswith("HTTP request failed")


def test_http_probe_follows_redirects():
    def handler(request):
        if request.url.host == "acmecorp.com":
            return httpx.Response(301, headers={"Location": f"https://www.acmecorp.com/{FILE_NAME}"})
        return httpx.Response(200, text=TOKEN)

    assert _http_probe(handler).probe(TARGET).matched


def test_http_probe_redirect_loop_is_an_error():
    def handler(request):
        return httpx.Response(302, headers={"Location": str(request.url)})

    result = _http_probe(handler, max_redirects=3).probe(TARGET)
    assert result.outcome == ProbeOutcome.ERROR


# --- DNS probes ---

class _TxtRdata:
    def __init__(self, *chunks):
        self.strings = tuple(c.encode() for c in chunks)


class _CnameRdata:
    def __init__(self, target):
        self.target = target


class _FakeResolver:
    def __init__(self, answers=None, error=None):
        self.answers = answers or []
        self.error = error
        self.queries = []

    def resolve(self, name, rdtype):
        self.queries.append((name, rdtype))
        if self.error is not None:
            raise self.error
        return self.answers


def test_txt_probe_matches_record():
    resolver = _FakeResolver([_TxtRdata("v=spf1 -all"), _TxtRdata(f"cmms-verify={TOKEN}")])
    result = DnsTxtProbe(resolver=resolver).probe(TARGET)
    assert result.matched
    assert resolver.queries == [("_cmms-verification.acmecorp.com", "TXT")]


def test_txt_probe_joins_split_strings():
    resolver = _FakeResolver([_TxtRdata("cmms-verify=", TOKEN[:16], TOKEN[16:])])
    assert DnsTxtProbe(resolver=resolver).probe(TARGET).matched


def test_txt_probe_mismatch():
    resolver = _FakeResolver([_TxtRdata("cmms-verify=somebodyelse")])
    assert DnsTxtProbe(resolver=resolver).probe(TARGET).outcome == ProbeOutcome.MISMATCH


@pytest.mark.parametrize("error", [dns.resolver.NXDOMAIN(), dns.resolver.NoAnswer()])
def test_txt_probe_missing_record(error):
    result = DnsTxtProbe(resolver=_FakeResolver(error=error)).probe(TARGET)
    assert result.outcome == ProbeOutcome.NOT_FOUND


def test_txt_probe_timeout_is_an_error():
    result = DnsTxtProbe(resolver=_FakeResolver(error=dns.exception.Timeout())).probe(TARGET)
    assert result.outcome == ProbeOutcome.ERROR


def test_cname_probe_matches_target():
    resolver = _FakeResolver([_CnameRdata(f"{TOKEN}.Verify.CMMS.app.")])
    result = DnsCnameProbe(resolver=resolver).probe(TARGET)
    assert result.matched
    assert resolver.queries == [("_cmms-verification.acmecorp.com", "CNAME")]


# --- Checker ---

class _FakeProbe:
    def __init__(self, channel, outcome):
        self.channel = channel
        self.outcome = outcome
        self.calls = 0

    def probe(self, target):
        self.calls += 1
        return ProbeResult(self.channel, self.outcome, f"{self.channel}: {self.outcome.value}")


def test_checker_stops_at_first_match():
    http = _FakeProbe("http_file", ProbeOutcome.MATCH)
    txt = _FakeProbe("dns_txt", ProbeOutcome.MATCH)
    result = VerificationChecker([http, txt]).check(TARGET, "file")
    assert result.verified
    assert result.matched_channel == "http_file"
    assert result.failure_reason is None
    assert txt.calls == 0


def test_checker_falls_through_to_dns_for_file_method():
    http = _FakeProbe("http_file", ProbeOutcome.NOT_FOUND)
    txt = _FakeProbe("dns_txt", ProbeOutcome.MATCH)
    result = VerificationChecker([http, txt]).check(TARGET, "file")
    assert result.matched_channel == "dns_txt"


def test_checker_txt_method_tries_dns_first():
    http = _FakeProbe("http_file", ProbeOutcome.MATCH)
    txt = _FakeProbe("dns_txt", ProbeOutcome.MATCH)
    result = VerificationChecker([http, txt]).check(TARGET, "txt_record")
    assert result.matched_channel == "dns_txt"
    assert http.calls == 0


def test_checker_failure_reason_lists_every_channel():
    http = _FakeProbe("http_file", ProbeOutcome.NOT_FOUND)
    txt = _FakeProbe("dns_txt", ProbeOutcome.ERROR)
    result = VerificationChecker([http, txt]).check(TARGET, "file")
    assert not result.verified
    assert result.failure_reason == "http_file: not_found; dns_txt: error"
