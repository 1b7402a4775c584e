"""
Configuracion del servicio SOAP de cartera (Fomplus CXC).

Se construye una sola vez al arrancar el proceso (ver ``ApiConfig.ready``) y se
pasa explicitamente al pipeline; ninguna funcion del pipeline lee el entorno.
"""

import logging
from dataclasses import dataclass, field

import requests
from zeep import Client, Settings
from zeep.exceptions import Error as ZeepError
from zeep.transports import Transport


logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://cartera.fomplus.com"
DEFAULT_SOAP_PATH = "/srvCxcPed.asmx"
DEFAULT_SOAP_NS = "http://tempuri.org/"
CARTERA_METHOD = "EstadoDeCuentaCartera"


class CarteraError(Exception):
    pass


class CarteraConfigError(CarteraError):
    pass


def soap_action_for(method: str, namespace: str = DEFAULT_SOAP_NS) -> str:
    if not namespace:
        return method
    base = namespace if namespace.endswith("/") else f"{namespace}/"
    return f"{base}{method}"


def _to_int(value, default: int) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _split_csv(value) -> tuple:
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value or "").split(",")
    return tuple(s.strip() for s in items if str(s).strip())


def resolve_wsdl_endpoint(wsdl_url: str, operation: str, timeout: int = 30) -> tuple[str, str]:
    """
    Lee del WSDL la direccion del servicio y el SOAPAction de ``operation``.
    Devuelve cadenas vacias para lo que no se pueda resolver.
    """
    session = requests.Session()
    try:
        transport = Transport(session=session, timeout=timeout)
        client = Client(wsdl_url, transport=transport, settings=Settings(strict=False))
    finally:
        session.close()

    services = list(client.wsdl.services.values())
    if not services:
        return "", ""
    ports = list(services[0].ports.values())
    if not ports:
        return "", ""
    port = ports[0]
    address = port.binding_options.get("address", "") or ""
    try:
        action = port.binding.get(operation).soapaction or ""
    except ValueError:
        action = ""
    return address, action


@dataclass(frozen=True)
class CarteraConfig:
    host: str = DEFAULT_HOST
    soap_path: str = DEFAULT_SOAP_PATH
    soap_action: str = ""
    soap_ns: str = DEFAULT_SOAP_NS
    database: str = ""
    token: str = field(default="", repr=False)
    timeout_ms: int = 28000
    retry_backoff_ms: int = 800
    allow_prefixes: tuple = ()
    extractor: str = "bracket"
    wsdl_url: str = ""
    address: str = ""
    log_xml: bool = False
    method: str = CARTERA_METHOD

    @property
    def service_url(self) -> str:
        if self.address:
            return self.address
        path = self.soap_path or ""
        if path and not path.startswith("/"):
            path = f"/{path}"
        return f"{(self.host or '').rstrip('/')}{path}"

    @property
    def action(self) -> str:
        return self.soap_action or soap_action_for(self.method, self.soap_ns)

    def missing(self) -> list[str]:
        missing = []
        if not self.host and not self.address:
            missing.append("CARTERA_HOST")
        if not self.database:
            missing.append("CARTERA_DB")
        if not self.token:
            missing.append("CARTERA_TOKEN")
        return missing

    def validate(self) -> None:
        missing = self.missing()
        if missing:
            raise CarteraConfigError(f"Variables de entorno requeridas no configuradas: {', '.join(missing)}")

    @classmethod
    def from_settings(cls, raw: dict) -> "CarteraConfig":
        raw = raw or {}
        soap_path = str(raw.get("SOAP_PATH") or "").strip()
        soap_action = str(raw.get("SOAP_ACTION") or "").strip()
        wsdl_url = str(raw.get("WSDL_URL") or "").strip()
        address = ""

        if wsdl_url and (not soap_path or not soap_action):
            try:
                address, wsdl_action = resolve_wsdl_endpoint(wsdl_url, CARTERA_METHOD)
            except (ZeepError, requests.exceptions.RequestException, OSError) as exc:
                logger.warning("No se pudo resolver el WSDL de cartera %s: %s", wsdl_url, exc)
            else:
                soap_action = soap_action or wsdl_action
                if soap_path:
                    address = ""
                logger.info("Endpoint de cartera resuelto desde WSDL: %s", address or soap_path)

        extractor = str(raw.get("EXTRACTOR") or "bracket").strip().lower()
        if extractor not in ("bracket", "xml"):
            logger.warning("CARTERA_EXTRACTOR desconocido (%s), se usa 'bracket'", extractor)
            extractor = "bracket"

        return cls(
            host=str(raw.get("HOST") or "").strip(),
            soap_path=soap_path or DEFAULT_SOAP_PATH,
            soap_action=soap_action,
            soap_ns=str(raw.get("SOAP_NS") or DEFAULT_SOAP_NS).strip(),
            database=str(raw.get("DB") or "").strip(),
            token=str(raw.get("TOKEN") or "").strip(),
            timeout_ms=_to_int(raw.get("TIMEOUT_MS"), 28000),
            retry_backoff_ms=_to_int(raw.get("RETRY_BACKOFF_MS"), 800),
            allow_prefixes=_split_csv(raw.get("ALLOW_PREFIXES")),
            extractor=extractor,
            wsdl_url=wsdl_url,
            address=address,
            log_xml=bool(raw.get("LOG_XML")),
        )


def get_cartera_config() -> CarteraConfig:
    from django.apps import apps

    return apps.get_app_config("api").get_cartera_config()
