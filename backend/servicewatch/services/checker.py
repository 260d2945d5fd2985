"""Checker service - performs HTTP/HTTPS, TCP and UDP reachability checks."""
import asyncio
import logging
import socket
import ssl
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from urllib.parse import urlsplit

import httpx
from cryptography import x509
from cryptography.x509.oid import NameOID

from ..schemas.endpoint import CheckType, MonitoredEndpoint, ServiceStatus
from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10
UDP_READ_TIMEOUT_SECONDS = 2.0
UDP_PROBE_PAYLOAD = b"ping"
UDP_NO_REPLY_NOTE = "UDP port is open (no response received, which is normal)"


@dataclass
class TLSInfo:
    """Peer certificate details read from an HTTPS endpoint."""
    expiry: datetime
    issuer: str
    days_left: int


@dataclass
class CheckResult:
    """Result of one check. Consumed once by the monitor engine."""
    service_id: str
    status: ServiceStatus
    response_time: int = 0  # milliseconds
    error_message: str = ""
    checked_at: datetime = field(default_factory=utcnow)
    tls: Optional[TLSInfo] = None


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _describe(e: BaseException) -> str:
    """Error text that is never empty (some timeouts stringify to '')."""
    return str(e) or e.__class__.__name__


class CheckerService:
    """Runs one protocol-specific check against one endpoint.

    ``check`` never raises: every failure becomes a ``down`` result with
    error text.
    """

    def __init__(
        self,
        default_timeout: int = DEFAULT_TIMEOUT_SECONDS,
        udp_read_timeout: float = UDP_READ_TIMEOUT_SECONDS,
        verify_tls: bool = True,
    ):
        self.default_timeout = default_timeout
        self.udp_read_timeout = udp_read_timeout
        self.verify_tls = verify_tls

    async def check(self, endpoint: MonitoredEndpoint) -> CheckResult:
        """Perform a check based on the endpoint's protocol."""
        timeout = endpoint.timeout or self.default_timeout
        try:
            if endpoint.check_type == CheckType.TCP:
                result = await self._check_tcp(endpoint, timeout)
            elif endpoint.check_type == CheckType.UDP:
                result = await self._check_udp(endpoint, timeout)
            else:
                result = await self._check_http(endpoint, timeout)
        except Exception as e:
            logger.exception(f"Unexpected error checking {endpoint.name}")
            result = CheckResult(
                service_id=endpoint.id,
                status=ServiceStatus.DOWN,
                error_message=f"Check failed: {_describe(e)}",
            )
        logger.debug(f"Checked {endpoint.name}: {result.status.value} ({result.response_time}ms)")
        return result

    async def _check_http(self, endpoint: MonitoredEndpoint, timeout: float) -> CheckResult:
        """GET the URL; 2xx/3xx is up. HTTPS endpoints also get certificate info."""
        result = CheckResult(service_id=endpoint.id, status=ServiceStatus.DOWN)
        url = endpoint.url or ""

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, verify=self.verify_tls) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            result.response_time = _elapsed_ms(start)
            result.error_message = f"Request timeout after {timeout}s"
            return result
        except httpx.ConnectError as e:
            result.response_time = _elapsed_ms(start)
            result.error_message = f"Connection error: {_describe(e)}"
            return result
        except (httpx.HTTPError, httpx.InvalidURL, ssl.SSLError, OSError) as e:
            result.response_time = _elapsed_ms(start)
            result.error_message = f"Request failed: {_describe(e)}"
            return result

        result.response_time = _elapsed_ms(start)
        if 200 <= response.status_code < 400:
            result.status = ServiceStatus.UP
        else:
            result.error_message = f"HTTP status code: {response.status_code}"

        # Certificate lookup runs after the verdict and is not timed
        if url.lower().startswith("https://"):
            result.tls = await self._get_tls_info(url, timeout)

        return result

    async def _check_tcp(self, endpoint: MonitoredEndpoint, timeout: float) -> CheckResult:
        """Up when a TCP connection can be established within the timeout."""
        result = CheckResult(service_id=endpoint.id, status=ServiceStatus.DOWN)

        start = time.perf_counter()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(endpoint.host, endpoint.port),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            result.response_time = _elapsed_ms(start)
            result.error_message = f"TCP connection failed: timed out after {timeout}s"
            return result
        except OSError as e:
            result.response_time = _elapsed_ms(start)
            result.error_message = f"TCP connection failed: {_describe(e)}"
            return result

        result.response_time = _elapsed_ms(start)
        result.status = ServiceStatus.UP
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return result

    async def _check_udp(self, endpoint: MonitoredEndpoint, timeout: float) -> CheckResult:
        """Send a probe datagram; a read timeout still counts as up."""
        start = time.perf_counter()
        loop = asyncio.get_running_loop()
        status, message = await loop.run_in_executor(
            None, self._probe_udp, endpoint.host, endpoint.port, timeout
        )
        return CheckResult(
            service_id=endpoint.id,
            status=status,
            response_time=_elapsed_ms(start),
            error_message=message,
        )

    def _probe_udp(self, host: str, port: int, timeout: float) -> Tuple[ServiceStatus, str]:
        """Blocking UDP probe, run in the default executor."""
        try:
            family, socktype, proto, _, address = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)[0]
        except (socket.gaierror, UnicodeError) as e:
            return ServiceStatus.DOWN, f"UDP address resolution failed: {_describe(e)}"

        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as e:
            return ServiceStatus.DOWN, f"UDP connection failed: {_describe(e)}"

        with sock:
            sock.settimeout(timeout)
            try:
                sock.connect(address)
            except OSError as e:
                return ServiceStatus.DOWN, f"UDP connection failed: {_describe(e)}"

            try:
                sock.send(UDP_PROBE_PAYLOAD)
            except OSError as e:
                return ServiceStatus.DOWN, f"UDP write failed: {_describe(e)}"

            sock.settimeout(self.udp_read_timeout)
            try:
                sock.recv(1024)
            except socket.timeout:
                return ServiceStatus.UP, UDP_NO_REPLY_NOTE
            except OSError as e:
                return ServiceStatus.DOWN, f"UDP check failed: {_describe(e)}"

        return ServiceStatus.UP, ""

    async def _get_tls_info(self, url: str, timeout: float) -> Optional[TLSInfo]:
        """Read the peer certificate of an HTTPS URL. Any failure yields None."""
        parts = urlsplit(url)
        host = parts.hostname
        if not host:
            return None
        try:
            port = parts.port or 443
        except ValueError:
            return None

        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self._read_certificate, host, port, timeout),
                timeout=timeout,
            )
        except Exception:
            return None

    def _read_certificate(self, host: str, port: int, timeout: float) -> Optional[TLSInfo]:
        """Get certificate expiry and issuer (blocking operation)."""
        try:
            # We just want to read the expiry date, not validate trust
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

            with socket.create_connection((host, port), timeout=timeout) as sock:
                with context.wrap_socket(sock, server_hostname=host) as ssock:
                    # getpeercert() returns an empty dict when not validating
                    cert_der = ssock.getpeercert(binary_form=True)
        except (OSError, ValueError):
            return None

        if not cert_der:
            return None
        try:
            return certificate_info(x509.load_der_x509_certificate(cert_der))
        except ValueError:
            return None


def certificate_info(cert: x509.Certificate, now: Optional[datetime] = None) -> TLSInfo:
    """Expiry, issuer common name and whole days remaining for *cert*."""
    now = now or datetime.now(timezone.utc)
    expiry = cert.not_valid_after_utc
    common_names = cert.issuer.get_attributes_for_oid(NameOID.COMMON_NAME)
    issuer = str(common_names[0].value) if common_names else cert.issuer.rfc4514_string()
    # Whole days, truncated toward zero
    days_left = int((expiry - now).total_seconds() / 86400)
    return TLSInfo(expiry=expiry, issuer=issuer, days_left=days_left)
