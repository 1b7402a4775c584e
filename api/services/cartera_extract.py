"""
Extraccion del JSON que el servicio de cartera incrusta dentro del elemento
``<MetodoResult>`` de la respuesta SOAP.

El servicio no devuelve XML limpio ni JSON: devuelve un arreglo JSON como texto
(a veces con comillas escapadas como entidades HTML) dentro del resultado SOAP.
``BracketScanExtractor`` replica lo que hoy funciona contra ese servicio;
``XmlResultExtractor`` es la alternativa estricta para cuando el proveedor
entregue un documento bien formado.
"""

import json
import re
import unicodedata
from dataclasses import dataclass, field

from lxml import etree


SNIPPET_CHARS = 500

# Orden fijo: &amp; al final para no desescapar dos veces.
_ENTITY_ORDER = (
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
)

_WRAPPER_KEYS = ("table", "data", "result", "rows", "items", "documentos")


@dataclass(frozen=True)
class ExtractionSuccess:
    items: list
    raw_snippet: str = ""
    document: dict | None = None
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class ExtractionFailure:
    reason: str
    raw_snippet: str = ""
    document: dict | None = None
    ok: bool = field(default=False, init=False)


def unescape_entities(text: str) -> str:
    for entity, char in _ENTITY_ORDER:
        text = text.replace(entity, char)
    return text


def _has_entities(text: str) -> bool:
    return any(entity in text for entity, _ in _ENTITY_ORDER)


def _snippet(text: str) -> str:
    return (text or "")[:SNIPPET_CHARS]


def _result_pattern(element: str) -> re.Pattern:
    name = re.escape(element)
    return re.compile(
        rf"<(?:[\w.-]+:)?{name}(?:\s[^>]*)?>(.*?)</(?:[\w.-]+:)?{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


def is_function_inactive(text: str) -> bool:
    plain = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    return "funcion no activa" in plain.lower()


def _as_document(text: str) -> dict | None:
    stripped = (text or "").strip()
    if not stripped.startswith("{"):
        return None
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def unwrap_items(payload) -> list | None:
    """Busca el arreglo de documentos dentro de un objeto envoltorio."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None
    for key, value in payload.items():
        if isinstance(value, list) and str(key).lower() in _WRAPPER_KEYS:
            return value
    for value in payload.values():
        if isinstance(value, list) and value:
            return value
        if isinstance(value, dict):
            nested = unwrap_items(value)
            if nested:
                return nested
    return None


class PayloadExtractor:
    mode = "base"

    def extract(self, text: str, result_element: str):
        raise NotImplementedError


class BracketScanExtractor(PayloadExtractor):
    """Toma del primer ``[`` al ultimo ``]`` del resultado y lo parsea como JSON."""

    mode = "json_bracket_extract_with_retry"

    def extract(self, text: str, result_element: str):
        text = text or ""
        match = _result_pattern(result_element).search(text)
        candidate = match.group(1) if match else ""
        if candidate and _has_entities(candidate):
            candidate = unescape_entities(candidate)

        document = _as_document(candidate)
        to_scan = candidate if "[" in candidate else text

        start = to_scan.find("[")
        end = to_scan.rfind("]")
        if start == -1 or end == -1 or end <= start:
            reason = "No se encontró array JSON en la respuesta SOAP"
            if is_function_inactive(text):
                reason = "Función no activa en el proveedor"
            return ExtractionFailure(reason=reason, raw_snippet=_snippet(text) or "(vacio)", document=document)

        json_str = to_scan[start : end + 1]
        try:
            parsed = json.loads(json_str)
        except ValueError:
            return ExtractionFailure(
                reason="No se pudo parsear el array JSON", raw_snippet=_snippet(json_str), document=document
            )
        if not isinstance(parsed, list):
            return ExtractionFailure(
                reason="Respuesta JSON pero no es array", raw_snippet=_snippet(json_str), document=document
            )
        return ExtractionSuccess(items=parsed, raw_snippet=_snippet(json_str), document=document)


class XmlResultExtractor(PayloadExtractor):
    """Parsea el SOAP con lxml y exige que el resultado sea un JSON completo."""

    mode = "xml_result_json"

    def extract(self, text: str, result_element: str):
        text = text or ""
        try:
            parser = etree.XMLParser(huge_tree=True, resolve_entities=False)
            root = etree.fromstring(text.encode("utf-8"), parser=parser)
        except (etree.XMLSyntaxError, ValueError):
            return ExtractionFailure(reason="Respuesta SOAP no es XML valido", raw_snippet=_snippet(text) or "(vacio)")

        target = result_element.lower()
        nodes = root.xpath(
            "//*[translate(local-name(), 'ABCDEFGHIJKLMNOPQRSTUVWXYZ', 'abcdefghijklmnopqrstuvwxyz')=$name]",
            name=target,
        )
        if not nodes:
            return ExtractionFailure(
                reason=f"No se encontro {result_element} en el SOAP envelope", raw_snippet=_snippet(text)
            )

        inner = "".join(nodes[0].itertext()).strip()
        try:
            parsed = json.loads(inner)
        except ValueError:
            reason = "Resultado SOAP no es JSON"
            if is_function_inactive(inner):
                reason = "Función no activa en el proveedor"
            return ExtractionFailure(reason=reason, raw_snippet=_snippet(inner) or "(vacio)")

        document = parsed if isinstance(parsed, dict) else None
        items = unwrap_items(parsed)
        if items is None:
            return ExtractionFailure(
                reason="Respuesta JSON sin arreglo de documentos", raw_snippet=_snippet(inner), document=document
            )
        return ExtractionSuccess(items=items, raw_snippet=_snippet(inner), document=document)


def get_extractor(name: str) -> PayloadExtractor:
    if name == "xml":
        return XmlResultExtractor()
    return BracketScanExtractor()
