"""Extraccion del arreglo JSON incrustado en la respuesta SOAP."""

from api.services.cartera_extract import (
    BracketScanExtractor,
    ExtractionFailure,
    ExtractionSuccess,
    XmlResultExtractor,
    get_extractor,
    is_function_inactive,
    unescape_entities,
    unwrap_items,
)

from .conftest import soap_body, soap_json_body

RESULT = "EstadoDeCuentaCarteraResult"


class TestUnescapeEntities:
    def test_ampersand_is_unescaped_last(self):
        # &amp;quot; debe quedar como &quot; literal, no como comilla.
        assert unescape_entities("&amp;quot;") == "&quot;"

    def test_all_entities(self):
        assert unescape_entities("&quot;&apos;&lt;&gt;&amp;") == "\"'<>&"


class TestBracketScanExtractor:
    def test_plain_json_inside_result_element(self):
        text = '<FooResult>[{"SALDO":"1500","DAIAVEN":"5"}]</FooResult>'
        result = BracketScanExtractor().extract(text, "FooResult")
        assert isinstance(result, ExtractionSuccess)
        assert result.ok is True
        assert result.items == [{"SALDO": "1500", "DAIAVEN": "5"}]

    def test_entity_escaped_quotes_are_unescaped_before_scanning(self):
        text = "<FooResult>[{&quot;SALDO&quot;:&quot;1500&quot;,&quot;DAIAVEN&quot;:&quot;5&quot;}]</FooResult>"
        result = BracketScanExtractor().extract(text, "FooResult")
        assert result.ok
        assert result.items == [{"SALDO": "1500", "DAIAVEN": "5"}]

    def test_element_match_ignores_case_and_namespace_prefix(self):
        text = '<s:Body><ns1:fooresult xmlns:ns1="urn:x">[{"a":1}]</ns1:fooresult></s:Body>'
        result = BracketScanExtractor().extract(text, "FooResult")
        assert result.ok
        assert result.items == [{"a": 1}]

    def test_full_soap_envelope(self):
        rows = [{"NUMDOC": "FV-1", "SALDO": 100000, "DAIAVEN": 0}]
        result = BracketScanExtractor().extract(soap_json_body(rows), RESULT)
        assert result.ok
        assert result.items == rows
        assert result.raw_snippet.startswith("[")

    def test_missing_element_falls_back_to_whole_text(self):
        text = 'garbage before [{"SALDO": 10}] garbage after'
        result = BracketScanExtractor().extract(text, RESULT)
        assert result.ok
        assert result.items == [{"SALDO": 10}]

    def test_empty_array_is_success(self):
        result = BracketScanExtractor().extract(soap_body("[]"), RESULT)
        assert result.ok
        assert result.items == []

    def test_no_brackets_is_failure_with_bounded_snippet(self):
        text = soap_body("No hay registros para el cliente " + "x" * 1000)
        result = BracketScanExtractor().extract(text, RESULT)
        assert isinstance(result, ExtractionFailure)
        assert result.ok is False
        assert result.reason
        assert 0 < len(result.raw_snippet) <= 500

    def test_empty_body_is_failure_with_snippet(self):
        result = BracketScanExtractor().extract("", RESULT)
        assert not result.ok
        assert result.raw_snippet

    def test_malformed_json_is_failure(self):
        result = BracketScanExtractor().extract(soap_body("[{SALDO: 1500"), RESULT)
        assert not result.ok

        result = BracketScanExtractor().extract(soap_body("[{SALDO: 1500]"), RESULT)
        assert not result.ok
        assert result.reason == "No se pudo parsear el array JSON"

    def test_function_inactive_marker(self):
        result = BracketScanExtractor().extract(soap_body("Función no activa"), RESULT)
        assert not result.ok
        assert result.reason == "Función no activa en el proveedor"

    def test_json_object_is_kept_as_document(self):
        text = soap_body('{"saldo": "2500", "data": [{"SALDO": "2500"}]}'.replace('"', "&quot;"))
        result = BracketScanExtractor().extract(text, RESULT)
        assert result.ok
        assert result.items == [{"SALDO": "2500"}]
        assert result.document == {"saldo": "2500", "data": [{"SALDO": "2500"}]}

    def test_json_object_without_array_is_failure_with_document(self):
        text = soap_body("{&quot;saldo_total&quot;: &quot;9000&quot;}")
        result = BracketScanExtractor().extract(text, RESULT)
        assert not result.ok
        assert result.document == {"saldo_total": "9000"}

    def test_never_raises_on_odd_input(self):
        for text in ("]", "][", "<FooResult>]</FooResult>", "[1, 2", None):
            result = BracketScanExtractor().extract(text, "FooResult")
            assert result.ok in (True, False)


class TestXmlResultExtractor:
    def test_extracts_json_array(self):
        rows = [{"NUMDOC": "1", "SALDO": "5"}]
        result = XmlResultExtractor().extract(soap_json_body(rows), RESULT)
        assert result.ok
        assert result.items == rows

    def test_unwraps_object_with_table(self):
        text = soap_body("{&quot;Table&quot;: [{&quot;SALDO&quot;: 1}]}")
        result = XmlResultExtractor().extract(text, RESULT)
        assert result.ok
        assert result.items == [{"SALDO": 1}]
        assert result.document == {"Table": [{"SALDO": 1}]}

    def test_invalid_xml_is_failure(self):
        result = XmlResultExtractor().extract("not xml at all", RESULT)
        assert not result.ok
        assert result.raw_snippet

    def test_missing_result_element(self):
        result = XmlResultExtractor().extract(soap_body("[]", method="OtroMetodo"), RESULT)
        assert not result.ok

    def test_plain_text_result_is_failure(self):
        result = XmlResultExtractor().extract(soap_body("Sin datos"), RESULT)
        assert not result.ok
        assert result.reason == "Resultado SOAP no es JSON"


class TestHelpers:
    def test_get_extractor(self):
        assert isinstance(get_extractor("xml"), XmlResultExtractor)
        assert isinstance(get_extractor("bracket"), BracketScanExtractor)
        assert isinstance(get_extractor("otro"), BracketScanExtractor)

    def test_is_function_inactive_ignores_accents_and_case(self):
        assert is_function_inactive("FUNCION NO ACTIVA")
        assert is_function_inactive("la función no activa")
        assert not is_function_inactive("ok")

    def test_unwrap_items(self):
        assert unwrap_items([1]) == [1]
        assert unwrap_items({"rows": []}) == []
        assert unwrap_items({"meta": {"documentos": [{"a": 1}]}}) == [{"a": 1}]
        assert unwrap_items({"saldo": 1}) is None
