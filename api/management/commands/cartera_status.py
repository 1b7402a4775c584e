import json

from django.core.management.base import BaseCommand, CommandError

from api.services.cartera_config import get_cartera_config
from api.services.cartera_service import CarteraQuery, CarteraValidationError, consultar_cartera


class Command(BaseCommand):
    help = "Consulta el estado de cartera de un cliente contra el SOAP de Fomplus e imprime el resultado."

    def add_arguments(self, parser):
        parser.add_argument("customer_id", help="Cedula/NIT del cliente")
        parser.add_argument("--fecha", default="", help="Fecha de corte YYYY-MM-DD (por defecto hoy)")
        parser.add_argument("--vendedor", default="", help="Filtro por vendedor (vacio = todos)")
        parser.add_argument("--raw", action="store_true", help="Imprime el XML SOAP recibido en vez del JSON")

    def handle(self, *args, **options):
        try:
            query = CarteraQuery.build(
                customer_id=options["customer_id"],
                fecha=options["fecha"],
                vendedor=options["vendedor"],
            )
        except CarteraValidationError as exc:
            raise CommandError(str(exc)) from exc

        result = consultar_cartera(query, get_cartera_config())

        if options["raw"] and result.raw_xml is not None:
            self.stdout.write(result.raw_xml)
        else:
            self.stdout.write(json.dumps(result.payload, ensure_ascii=False, indent=2))

        if not result.ok:
            raise CommandError(f"HTTP {result.status_code}: {result.payload.get('message')}")
        if result.payload.get("warning"):
            self.stderr.write(self.style.WARNING(f"Advertencia: {result.payload['warning']}"))
        else:
            summary = result.payload["summary"]
            self.stdout.write(
                self.style.SUCCESS(
                    f"Done. documentos={summary['documentos']}, saldo_total={result.payload['result']['saldo']}"
                )
            )
