from rest_framework import serializers

from .services.cartera_service import CarteraQuery, CarteraValidationError


SUPPORTED_ACTIONS = ("status",)


class CarteraStatusSerializer(serializers.Serializer):
    """
    Contrato de entrada compatible con el cliente Lambda/Apex:
    { "action": "status", "customer_id": "901188568", "fecha": "2026-02-04", "vendedor": "" }
    """

    action = serializers.CharField(default="status", required=False, allow_blank=True)
    customer_id = serializers.CharField(
        error_messages={
            "required": "Falta customer_id",
            "blank": "Falta customer_id",
            "null": "Falta customer_id",
        }
    )
    fecha = serializers.CharField(default="", required=False, allow_blank=True, allow_null=True)
    vendedor = serializers.CharField(default="", required=False, allow_blank=True, allow_null=True)
    tool_name = serializers.CharField(default="", required=False, allow_blank=True)

    def validate_action(self, value):
        action = (value or "status").strip().lower()
        if action not in SUPPORTED_ACTIONS:
            raise serializers.ValidationError("Falta action (status)")
        return action

    def validate(self, attrs):
        try:
            attrs["query"] = CarteraQuery.build(
                customer_id=attrs.get("customer_id"),
                fecha=attrs.get("fecha"),
                vendedor=attrs.get("vendedor"),
            )
        except CarteraValidationError as exc:
            raise serializers.ValidationError(str(exc)) from exc
        return attrs


class CarteraSummaryQuerySerializer(serializers.Serializer):
    cedula = serializers.CharField(
        error_messages={
            "required": "cedula es requerida",
            "blank": "cedula es requerida",
        }
    )
    vendedor = serializers.CharField(default="", required=False, allow_blank=True)

    def validate(self, attrs):
        try:
            attrs["query"] = CarteraQuery.build(customer_id=attrs["cedula"], vendedor=attrs.get("vendedor"))
        except CarteraValidationError as exc:
            raise serializers.ValidationError(str(exc)) from exc
        return attrs
