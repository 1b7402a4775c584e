"""
Normalizacion de la cartera: una sola tabla de alias para los nombres de campo
que han usado las distintas versiones del servicio, parseo numerico tolerante
y agregacion de saldos.
"""

import math
import re
from dataclasses import dataclass


#* TABLA UNICA DE ALIAS (SE COMPARAN SOLO MINUSCULAS Y ALFANUMERICOS)
CARTERA_ALIASES = {
    "saldo": ["saldo", "saldo_total", "saldototal", "total", "total_cartera", "cartera_total", "SALDO"],
    "por_vencer": [
        "por_vencer",
        "porvencer",
        "saldo_por_vencer",
        "no_vencido",
        "saldo_no_vencido",
        "por_vencer_total",
    ],
    "vencido": ["vencido", "saldo_vencido", "vencido_total", "cartera_vencida"],
    "dias": [
        "daiaven",
        "diasvenc",
        "dias_venc",
        "dias_vencimiento",
        "diasvencido",
        "dias_vencido",
        "dias_vencidos",
        "DAIAVEN",
    ],
    "cupo": [
        "cupo",
        "cupo_credito",
        "credito",
        "creditolimit",
        "cli_cupcre",
        "cli_cupcred",
        "limite_credito",
        "limitecredito",
        "limite",
        "cupo_aprobado",
    ],
    "documento": ["numdoc", "num_documento", "numero_documento", "documento", "nrodoc"],
    "fecha": ["fecha", "fecha_documento", "fecdoc"],
    "fecha_vencimiento": ["fecven", "fecha_vencimiento", "vencimiento"],
    "prefijo": ["prefij", "prefijo", "prefix"],
    "vendedor": [
        "vendedor",
        "strpar_vended",
        "strpar_vendedor",
        "strcli_vendedor",
        "cli_vended",
        "cli_nomven",
        "vendedor_asignado",
        "asesor",
    ],
}


def normalize_key(value) -> str:
    return re.sub(r"[^a-z0-9]", "", str(value or "").lower())


_TARGETS = {name: {normalize_key(alias) for alias in aliases} for name, aliases in CARTERA_ALIASES.items()}


def parse_number(value) -> float:
    """
    "1500" -> 1500.0, "$1.234 COP" -> 1.234, "" / "abc" / None -> 0.0.
    Nunca lanza excepcion.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    raw = re.sub(r"[^\d.\-]", "", str(value or ""))
    if not raw:
        return 0.0
    # parseFloat toma el prefijo numerico valido mas largo
    match = re.match(r"-?(\d+\.?\d*|\.\d+)", raw)
    if not match:
        return 0.0
    try:
        parsed = float(match.group(0))
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def truncate(value) -> int:
    return int(math.trunc(parse_number(value)))


def format_cop(value) -> str:
    """1234567 -> "$1.234.567 COP" (sin decimales, punto como separador de miles)."""
    amount = truncate(value)
    return f"${amount:,} COP".replace(",", ".")


def find_value(obj, field_name: str, deep: bool = False) -> str:
    """Primer valor no vacio del objeto cuyo nombre coincide con algun alias."""
    targets = _TARGETS[field_name]

    def walk(node) -> str:
        if isinstance(node, list):
            if not deep:
                return ""
            for child in node:
                found = walk(child)
                if found:
                    return found
            return ""
        if not isinstance(node, dict):
            return ""
        for key, value in node.items():
            if normalize_key(key) in targets and value is not None and not isinstance(value, (dict, list)):
                text = str(value).strip()
                if text:
                    return text
        if deep:
            for value in node.values():
                if isinstance(value, (dict, list)):
                    found = walk(value)
                    if found:
                        return found
        return ""

    return walk(obj)


@dataclass(frozen=True)
class NormalizedLineItem:
    num_documento: str
    saldo: int
    dias_vencidos: int
    vencido: int
    por_vencer: int
    fecha: str = ""
    fecha_vencimiento: str = ""
    prefijo: str = ""
    cupo: int = 0

    def as_data(self) -> dict:
        return {
            "num_documento": self.num_documento,
            "saldo": self.saldo,
            "dias_vencidos": self.dias_vencidos,
            "fecha": self.fecha,
            "fecha_vencimiento": self.fecha_vencimiento,
            "prefijo": self.prefijo,
        }

    def as_item(self) -> dict:
        return {
            "num_documento": self.num_documento,
            "saldo": format_cop(self.saldo),
            "dias_vencidos": self.dias_vencidos,
        }


@dataclass(frozen=True)
class CarteraSummary:
    saldo_total: int = 0
    saldo_por_vencer: int = 0
    saldo_vencido: int = 0
    cupo: int = 0
    disponible: int = 0
    documentos: int = 0

    def as_dict(self) -> dict:
        return {
            "saldo_total": self.saldo_total,
            "saldo_por_vencer": self.saldo_por_vencer,
            "saldo_vencido": self.saldo_vencido,
            "cupo": self.cupo,
            "disponible": self.disponible,
            "documentos": self.documentos,
        }

    def formatted(self) -> dict:
        return {
            "saldo": format_cop(self.saldo_total),
            "saldo_por_vencer": format_cop(self.saldo_por_vencer),
            "saldo_vencido": format_cop(self.saldo_vencido),
            "cupo": format_cop(self.cupo),
            "disponible": format_cop(self.disponible),
        }


def normalize_item(raw, deep: bool = False) -> NormalizedLineItem:
    if not isinstance(raw, dict):
        raw = {}

    por_vencer = parse_number(find_value(raw, "por_vencer", deep))
    vencido = parse_number(find_value(raw, "vencido", deep))
    dias_raw = parse_number(find_value(raw, "dias", deep))
    dias = int(math.trunc(dias_raw))

    if por_vencer > 0 or vencido > 0:
        overdue = int(math.trunc(max(0.0, vencido)))
        current = int(math.trunc(max(0.0, por_vencer)))
    else:
        saldo = truncate(find_value(raw, "saldo", deep))
        overdue, current = (saldo, 0) if dias_raw > 0 else (0, saldo)

    cupo = truncate(find_value(raw, "cupo", deep))
    return NormalizedLineItem(
        num_documento=find_value(raw, "documento", deep),
        saldo=overdue + current,
        dias_vencidos=dias,
        vencido=overdue,
        por_vencer=current,
        fecha=find_value(raw, "fecha", deep),
        fecha_vencimiento=find_value(raw, "fecha_vencimiento", deep),
        prefijo=find_value(raw, "prefijo", deep),
        cupo=max(0, cupo),
    )


def filter_prefixes(items: list, allow_prefixes) -> list:
    if not allow_prefixes:
        return list(items)
    allowed = set(allow_prefixes)
    return [item for item in items if find_value(item, "prefijo") in allowed]


@dataclass(frozen=True)
class Reconciliation:
    lines: list
    contributions: list
    cupo: int = 0
    from_document: bool = False


def reconcile(items: list, document: dict | None = None) -> Reconciliation:
    """
    Normaliza cada documento. Si ninguno aporta saldo y el proveedor entrego un
    objeto JSON completo, ese objeto se usa como un unico pseudo-documento para
    los totales (las lineas de detalle no cambian).
    """
    lines = [normalize_item(item) for item in items]
    cupo = 0
    for line in lines:
        if line.cupo > 0:
            cupo = line.cupo

    if document and not any(line.saldo for line in lines):
        pseudo = normalize_item(document, deep=True)
        if pseudo.saldo or pseudo.cupo:
            return Reconciliation(lines=lines, contributions=[pseudo], cupo=pseudo.cupo or cupo, from_document=True)
    return Reconciliation(lines=lines, contributions=lines, cupo=cupo)


def aggregate(lines: list[NormalizedLineItem], cupo: int = 0, documentos: int | None = None) -> CarteraSummary:
    vencido = sum(line.vencido for line in lines)
    por_vencer = sum(line.por_vencer for line in lines)
    total = vencido + por_vencer
    cupo = int(cupo or 0)
    return CarteraSummary(
        saldo_total=total,
        saldo_por_vencer=por_vencer,
        saldo_vencido=vencido,
        cupo=cupo,
        disponible=max(0, cupo - total),
        documentos=len(lines) if documentos is None else documentos,
    )


def find_seller(items: list, document: dict | None = None) -> str:
    for item in items:
        seller = find_value(item, "vendedor")
        if seller:
            return seller
    return find_value(document, "vendedor", deep=True) if document else ""
