"""Fixtures compartidos: configuracion de cartera y respuestas SOAP falsas."""

import json
from unittest import mock

import pytest
import requests
from rest_framework.test import APIClient

from api.services.cartera_config import CarteraConfig


def soap_body(result_text: str, method: str = "EstadoDeCuentaCartera") -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        "<soap:Body>"
        f'<{method}Response xmlns="http://tempuri.org/">'
        f"<{method}Result>{result_text}</{method}Result>"
        f"</{method}Response>"
        "</soap:Body>"
        "</soap:Envelope>"
    )


def soap_json_body(rows) -> str:
    escaped = json.dumps(rows).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return soap_body(escaped)


def fake_http_response(text: str, status_code: int = 200, chunks=None) -> mock.Mock:
    """Respuesta de ``session.post(..., stream=True)``: el cuerpo sale por ``iter_content``."""
    body = text.encode("utf-8")
    parts = chunks if chunks is not None else [body]
    response = mock.Mock()
    response.status_code = status_code
    response.encoding = "utf-8"
    response.iter_content.side_effect = lambda *args, **kwargs: iter(parts)
    return response


@pytest.fixture
def cartera_config() -> CarteraConfig:
    return CarteraConfig(
        host="https://cartera.example.com",
        soap_path="/srvCxcPed.asmx",
        database="FOMDB",
        token="secret-token",
        timeout_ms=1000,
        retry_backoff_ms=1,
    )


@pytest.fixture
def use_config(cartera_config):
    """Inyecta ``cartera_config`` en las vistas y el comando."""
    with mock.patch("api.views.get_cartera_config", return_value=cartera_config), mock.patch(
        "api.management.commands.cartera_status.get_cartera_config", return_value=cartera_config
    ):
        yield cartera_config


@pytest.fixture
def soap_post():
    """Reemplaza ``requests.Session.post``; cada test define return_value/side_effect."""
    with mock.patch.object(requests.Session, "post") as post, mock.patch(
        "api.services.cartera_soap.time.sleep"
    ):
        yield post


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()
