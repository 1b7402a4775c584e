import json
import logging

from django.http import HttpResponse
from rest_framework import status
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import CarteraStatusSerializer, CarteraSummaryQuerySerializer
from .services.cartera_config import get_cartera_config
from .services.cartera_service import consultar_cartera


logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "content-type,x-api-key",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}


def _first_error(errors) -> str:
    """Primer mensaje legible de los errores de un serializer DRF."""
    if isinstance(errors, dict):
        for value in errors.values():
            message = _first_error(value)
            if message:
                return message
        return ""
    if isinstance(errors, (list, tuple)):
        for value in errors:
            message = _first_error(value)
            if message:
                return message
        return ""
    return str(errors)


def _unwrap_payload(payload) -> dict:
    """
    Acepta el cuerpo directo o envuelto como { "data": {...}, "tool_name": "cartera" };
    ``data`` tambien puede llegar como texto JSON (GET del cliente Lambda).
    """
    if not isinstance(payload, dict):
        raise ParseError("Body JSON inválido")
    inner = payload.get("data")
    if isinstance(inner, str) and inner.strip():
        try:
            inner = json.loads(inner)
        except ValueError as exc:
            raise ParseError("Parametro data no es JSON válido") from exc
    if isinstance(inner, dict):
        return inner
    return payload


def _wants_xml(request) -> bool:
    return request.query_params.get("as_xml") in ("1", "true", "True", "yes")


class CarteraBaseView(APIView):
    authentication_classes = []
    permission_classes = []

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        for header, value in CORS_HEADERS.items():
            response[header] = value
        return response

    def options(self, request, *args, **kwargs):
        return Response({"ok": True}, status=status.HTTP_200_OK)


class CarteraStatusView(CarteraBaseView):
    """
    Estado de cartera de un cliente:
        1 - Valida el payload (directo o envuelto en ``data``)
        2 - Consulta el SOAP EstadoDeCuentaCartera
        3 - Devuelve resumen, totales formateados y documentos
    """

    def get(self, request):
        return self._handle(request, request.query_params.dict())

    def post(self, request):
        try:
            raw = request.data
        except (ParseError, UnsupportedMediaType):
            return Response({"ok": False, "message": "Body JSON inválido"}, status=status.HTTP_400_BAD_REQUEST)
        if hasattr(raw, "dict"):
            raw = raw.dict()
        return self._handle(request, raw)

    def _handle(self, request, raw):
        try:
            data = _unwrap_payload(raw)
        except ParseError as exc:
            return Response({"ok": False, "message": str(exc.detail)}, status=status.HTTP_400_BAD_REQUEST)

        ser = CarteraStatusSerializer(data=data)
        if not ser.is_valid():
            logger.info("CarteraStatusView: payload invalido %s", ser.errors)
            return Response(
                {"ok": False, "message": _first_error(ser.errors), "errors": ser.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = consultar_cartera(ser.validated_data["query"], get_cartera_config())
        if _wants_xml(request) and result.ok and result.raw_xml is not None:
            return HttpResponse(result.raw_xml, content_type="application/xml")
        return Response(result.payload, status=result.status_code)


class CarteraSummaryView(CarteraBaseView):
    """Resumen compacto que consume la app movil (cupo y saldos)."""

    def get(self, request):
        ser = CarteraSummaryQuerySerializer(data=request.query_params.dict())
        if not ser.is_valid():
            return Response({"error": _first_error(ser.errors)}, status=status.HTTP_400_BAD_REQUEST)

        result = consultar_cartera(ser.validated_data["query"], get_cartera_config())
        if not result.ok:
            return Response(
                {
                    "error": "No se pudo consultar estado de cartera",
                    "details": result.payload.get("error") or result.payload.get("message"),
                },
                status=result.status_code,
            )

        summary = result.payload["summary"]
        body = {
            "cupoCredito": summary["cupo"],
            "saldoCartera": summary["saldo_total"],
            "saldoPorVencer": summary["saldo_por_vencer"],
            "saldoVencido": summary["saldo_vencido"],
        }
        if result.payload.get("warning"):
            body["warning"] = result.payload["warning"]
        return Response(body, status=status.HTTP_200_OK)
