"""
Cliente SOAP de cartera: sobre (envelope) SOAP 1.1 y transporte HTTP con
timeout y un unico reintento cuando el primer intento vence por timeout.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import TimeoutError as Urllib3TimeoutError
from urllib3.util.retry import Retry
from xml.sax.saxutils import escape

from .cartera_config import DEFAULT_SOAP_NS, CarteraConfig


logger = logging.getLogger(__name__)

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(value) -> str:
    if value is None:
        return ""
    return escape(str(value), _XML_ENTITIES)


def build_envelope(method: str, params: dict, namespace: str = DEFAULT_SOAP_NS) -> str:
    body_params = "".join(
        f"\n      <{name}>{escape_xml(value)}</{name}>" for name, value in (params or {}).items()
    )
    return f"""<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
               xmlns:xsd="http://www.w3.org/2001/XMLSchema"
               xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body>
    <{method} xmlns="{escape_xml(namespace)}">{body_params}
    </{method}>
  </soap:Body>
</soap:Envelope>"""


def cartera_params(config: CarteraConfig, query) -> dict:
    """Parametros de EstadoDeCuentaCartera, en el orden que espera el servicio."""
    return {
        "strPar_Basedatos": config.database,
        "strPar_Token": config.token,
        "datPar_Fecha": f"{query.fecha_iso}T00:00:00",
        "strPar_Cedula": query.customer_id,
        "strPar_Vended": query.vendedor or "",
    }


def mask_envelope(envelope_xml: str, token: str) -> str:
    if not token:
        return envelope_xml
    return envelope_xml.replace(escape_xml(token), "***")


@dataclass(frozen=True)
class SoapSuccess:
    http_status: int
    body_text: str


@dataclass(frozen=True)
class SoapTimeout:
    elapsed_budget_ms: int

    @property
    def message(self) -> str:
        return f"SOAP timeout ({self.elapsed_budget_ms}ms)"


@dataclass(frozen=True)
class SoapTransportError:
    message: str


SoapCallResult = Union[SoapSuccess, SoapTimeout, SoapTransportError]

READ_CHUNK_BYTES = 8192


def is_timeout_error(exc: BaseException) -> bool:
    """
    requests reporta un read timeout durante la lectura del cuerpo como
    ConnectionError(ReadTimeoutError); se busca el timeout en la cadena.
    """
    if isinstance(exc, requests.exceptions.Timeout):
        return True
    pending = [exc]
    seen = set()
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, (Urllib3TimeoutError, TimeoutError)):
            return True
        if isinstance(current, BaseException):
            pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
            pending.extend([current.__cause__, current.__context__, getattr(current, "reason", None)])
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    backoff_seconds: float = 0.8
    retry_on: tuple = field(default=(SoapTimeout,))

    def should_retry(self, result: SoapCallResult, attempt: int) -> bool:
        return attempt < self.max_attempts and isinstance(result, self.retry_on)


class SoapTransport:
    def __init__(
        self,
        timeout_ms: int = 28000,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.timeout_ms = timeout_ms
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic

    @classmethod
    def from_config(cls, config: CarteraConfig) -> "SoapTransport":
        return cls(
            timeout_ms=config.timeout_ms,
            retry_policy=RetryPolicy(backoff_seconds=config.retry_backoff_ms / 1000.0),
        )

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        # Los reintentos los decide RetryPolicy, no urllib3.
        adapter = HTTPAdapter(max_retries=Retry(total=0, connect=0, read=0, redirect=0, status=0))
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        session.headers.update(
            {
                "User-Agent": "CarteraSoapClient/1.0",
                "Content-Type": "text/xml; charset=utf-8",
            }
        )
        return session

    def _read_body(self, response, deadline: float) -> str | None:
        """Lee el cuerpo por bloques; None si se agota el presupuesto del intento."""
        chunks = []
        for chunk in response.iter_content(chunk_size=READ_CHUNK_BYTES):
            chunks.append(chunk)
            if self._clock() > deadline:
                return None
        return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")

    def send_once(self, url: str, soap_action: str, envelope_xml: str) -> SoapCallResult:
        session = self._create_session()
        headers = {"Content-Type": "text/xml; charset=utf-8", "SOAPAction": f'"{soap_action}"'}
        deadline = self._clock() + self.timeout_ms / 1000.0
        try:
            response = session.post(
                url,
                data=envelope_xml.encode("utf-8"),
                headers=headers,
                timeout=self.timeout_ms / 1000.0,
                stream=True,
            )
            try:
                body_text = self._read_body(response, deadline)
            finally:
                response.close()
            if body_text is None:
                return SoapTimeout(elapsed_budget_ms=self.timeout_ms)
            return SoapSuccess(http_status=response.status_code, body_text=body_text)
        except requests.exceptions.RequestException as exc:
            if is_timeout_error(exc):
                return SoapTimeout(elapsed_budget_ms=self.timeout_ms)
            return SoapTransportError(message=f"Error en request SOAP: {exc}")
        finally:
            session.close()

    def send(self, url: str, soap_action: str, envelope_xml: str) -> SoapCallResult:
        attempt = 0
        while True:
            attempt += 1
            started = self._clock()
            result = self.send_once(url, soap_action, envelope_xml)
            elapsed_ms = int((self._clock() - started) * 1000)

            if isinstance(result, SoapSuccess):
                logger.info("SOAP %s intento=%s status=%s %sms", url, attempt, result.http_status, elapsed_ms)
            else:
                logger.warning("SOAP %s intento=%s fallo=%s %sms", url, attempt, result.message, elapsed_ms)

            if not self.retry_policy.should_retry(result, attempt):
                return result
            self._sleep(self.retry_policy.backoff_seconds)
