"""
Orquestacion de la consulta de estado de cartera:

    Validating -> BuildingRequest -> AwaitingUpstream
        -> {ExtractingPayload | Degraded} -> Aggregating -> Responding

Los errores de validacion y configuracion se detectan antes de cualquier
llamada de red. Timeout y errores de transporte se devuelven como 504; una
respuesta sin JSON extraible se devuelve como 200 con saldos en cero y un
``warning``, porque "sin documentos" es un resultado valido del negocio.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime

from django.utils import timezone

from .cartera_config import CarteraConfig, CarteraError
from .cartera_extract import ExtractionFailure, PayloadExtractor, get_extractor
from .cartera_normalize import (
    CarteraSummary,
    aggregate,
    filter_prefixes,
    find_seller,
    reconcile,
)
from .cartera_soap import (
    SoapSuccess,
    SoapTimeout,
    SoapTransport,
    build_envelope,
    cartera_params,
    mask_envelope,
)


logger = logging.getLogger(__name__)


class CarteraValidationError(CarteraError):
    pass


def normalize_customer_id(value) -> str:
    return re.sub(r"\D+", "", str(value if value is not None else ""))


def _parse_fecha(value, today: date) -> date:
    if value in (None, ""):
        return today
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()[:10]
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError as exc:
        raise CarteraValidationError(f"fecha invalida: {value} (usa YYYY-MM-DD)") from exc


@dataclass(frozen=True)
class CarteraQuery:
    customer_id: str
    fecha: date
    vendedor: str = ""

    @property
    def fecha_iso(self) -> str:
        return self.fecha.isoformat()

    def as_dict(self) -> dict:
        return {"customer_id": self.customer_id, "fecha": self.fecha_iso, "vendedor": self.vendedor}

    @classmethod
    def build(cls, customer_id, fecha=None, vendedor="", today: date | None = None) -> "CarteraQuery":
        normalized = normalize_customer_id(customer_id)
        if not normalized:
            if str(customer_id if customer_id is not None else "").strip():
                raise CarteraValidationError("customer_id debe contener digitos")
            raise CarteraValidationError("Falta customer_id")
        return cls(
            customer_id=normalized,
            fecha=_parse_fecha(fecha, today or timezone.localdate()),
            vendedor=str(vendedor or "").strip(),
        )


@dataclass(frozen=True)
class CarteraResponse:
    status_code: int
    payload: dict
    raw_xml: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.payload.get("ok"))


def error_response(status_code: int, message: str, **extra) -> CarteraResponse:
    payload = {"ok": False, "message": message}
    payload.update(extra)
    return CarteraResponse(status_code=status_code, payload=payload)


def build_payload(
    query: CarteraQuery,
    config: CarteraConfig,
    summary: CarteraSummary,
    lines: list,
    mode: str,
    raw_snippet: str = "",
    warning: str = "",
    seller: str = "",
) -> dict:
    payload = {
        "ok": True,
        "request": query.as_dict(),
        "source": {"url": config.service_url, "soapAction": config.action},
        "parser": {"mode": mode},
        "summary": summary.as_dict(),
        "result": summary.formatted(),
        "items": [line.as_item() for line in lines],
        "data": [line.as_data() for line in lines],
        "rawSnippet": raw_snippet,
    }
    if warning:
        payload["warning"] = warning
    if seller:
        payload["vendedor_asignado"] = seller
    return payload


class CarteraService:
    def __init__(
        self,
        config: CarteraConfig,
        transport: SoapTransport | None = None,
        extractor: PayloadExtractor | None = None,
    ):
        self.config = config
        self.transport = transport or SoapTransport.from_config(config)
        self.extractor = extractor or get_extractor(config.extractor)

    @property
    def result_element(self) -> str:
        return f"{self.config.method}Result"

    def _source(self) -> dict:
        return {"url": self.config.service_url, "soapAction": self.config.action}

    def consultar(self, query: CarteraQuery) -> CarteraResponse:
        logger.debug("cartera %s: BuildingRequest", query.customer_id)
        envelope = build_envelope(self.config.method, cartera_params(self.config, query), self.config.soap_ns)
        if self.config.log_xml:
            logger.debug("--- SOAP REQUEST ---\n%s", mask_envelope(envelope, self.config.token))

        logger.debug("cartera %s: AwaitingUpstream", query.customer_id)
        soap = self.transport.send(self.config.service_url, self.config.action, envelope)
        if not isinstance(soap, SoapSuccess):
            timed_out = isinstance(soap, SoapTimeout)
            logger.warning(
                "cartera %s: %s (%s)",
                query.customer_id,
                "timeout" if timed_out else "error de transporte",
                soap.message,
            )
            return error_response(
                504,
                "SOAP timeout" if timed_out else "Error llamando a SOAP",
                error=soap.message,
                source=self._source(),
            )

        if self.config.log_xml:
            logger.debug("--- SOAP RESPONSE status=%s ---\n%s", soap.http_status, soap.body_text[:5000])

        extracted = self.extractor.extract(soap.body_text, self.result_element)
        if isinstance(extracted, ExtractionFailure):
            logger.warning("cartera %s: Degraded (%s)", query.customer_id, extracted.reason)
            recon = reconcile([], extracted.document)
            summary = aggregate(recon.contributions, recon.cupo, documentos=0)
            payload = build_payload(
                query,
                self.config,
                summary,
                [],
                self.extractor.mode,
                raw_snippet=extracted.raw_snippet,
                warning=extracted.reason,
            )
            return CarteraResponse(status_code=200, payload=payload, raw_xml=soap.body_text)

        logger.debug("cartera %s: Aggregating %s documentos", query.customer_id, len(extracted.items))
        rows = filter_prefixes(extracted.items, self.config.allow_prefixes)
        recon = reconcile(rows, extracted.document)
        summary = aggregate(recon.contributions, recon.cupo, documentos=len(recon.lines))
        payload = build_payload(
            query,
            self.config,
            summary,
            recon.lines,
            self.extractor.mode,
            raw_snippet=extracted.raw_snippet,
            seller=find_seller(rows, extracted.document),
        )
        logger.info(
            "cartera %s: saldo_total=%s documentos=%s", query.customer_id, summary.saldo_total, summary.documentos
        )
        return CarteraResponse(status_code=200, payload=payload, raw_xml=soap.body_text)


def consultar_cartera(query: CarteraQuery, config: CarteraConfig, **kwargs) -> CarteraResponse:
    """Punto de entrada del pipeline: valida configuracion y ejecuta la consulta."""
    try:
        config.validate()
    except CarteraError as exc:
        logger.error("cartera: configuracion incompleta: %s", exc)
        return error_response(500, str(exc))
    return CarteraService(config, **kwargs).consultar(query)
