"""Response decoding across the SOAP prefix conventions and payload shapes."""

import base64
import json
from xml.sax.saxutils import escape

import pytest

from fusion_sql.decoder import decode_payload, decode_response, extract_report_bytes
from fusion_sql.errors import EmptyReportError, PayloadDecodeError, SoapFaultError
from fusion_sql.shapes import PayloadShape, detect_shape
from fusion_sql.shapes.data_ds import zip_columns
from fusion_sql.shapes.table import build_table, normalize_cell

ROWSET_XML = "<ROWSET><ROW><A>1</A><B>x</B></ROW><ROW><A>2</A><B>y</B></ROW></ROWSET>"


# ── Outer envelope ──


class TestEnvelopeUnwrapping:
    def test_rowset_round_trip(self, build_report) -> None:
        report = decode_response(build_report(ROWSET_XML))
        assert report.shape == PayloadShape.ROWSET.value
        assert report.table.rows == [{"A": "1", "B": "x"}, {"A": "2", "B": "y"}]
        assert report.table.columns == ["A", "B"]

    @pytest.mark.parametrize("prefix", ["soap", "soapenv", "env"])
    @pytest.mark.parametrize("response_prefix", ["ns2", ""])
    def test_prefix_conventions(self, build_report, prefix: str, response_prefix: str) -> None:
        body = build_report(ROWSET_XML, prefix=prefix, response_prefix=response_prefix)
        assert decode_response(body).table.rows[0] == {"A": "1", "B": "x"}

    def test_soap12_fault(self, build_fault) -> None:
        with pytest.raises(SoapFaultError) as exc_info:
            extract_report_bytes(build_fault("ORA-00942: table or view does not exist"))
        assert exc_info.value.fault_text == "ORA-00942: table or view does not exist"

    def test_soap11_fault(self, build_fault) -> None:
        with pytest.raises(SoapFaultError) as exc_info:
            extract_report_bytes(build_fault("Report not found", version="1.1"))
        assert exc_info.value.fault_text == "Report not found"

    def test_no_report_bytes_no_fault(self) -> None:
        body = (
            '<env:Envelope xmlns:env="http://www.w3.org/2003/05/soap-envelope">'
            "<env:Body><runReportResponse/></env:Body></env:Envelope>"
        )
        with pytest.raises(EmptyReportError):
            extract_report_bytes(body)

    def test_outer_not_xml(self) -> None:
        with pytest.raises(PayloadDecodeError):
            decode_response("<html><body>oops")

    def test_bad_base64(self) -> None:
        body = (
            '<env:Envelope xmlns:env="http://www.w3.org/2003/05/soap-envelope"><env:Body>'
            "<reportBytes>***not base64***</reportBytes></env:Body></env:Envelope>"
        )
        with pytest.raises(PayloadDecodeError):
            decode_response(body)

    def test_inner_not_xml(self, build_report) -> None:
        with pytest.raises(PayloadDecodeError):
            decode_response(build_report("<ROWSET><ROW>"))

    def test_wrapped_base64(self, build_report) -> None:
        encoded = base64.b64encode(ROWSET_XML.encode()).decode()
        wrapped = "\n".join(encoded[i:i + 20] for i in range(0, len(encoded), 20))
        body = (
            '<env:Envelope xmlns:env="http://www.w3.org/2003/05/soap-envelope"><env:Body>'
            f"<reportBytes>{wrapped}</reportBytes></env:Body></env:Envelope>"
        )
        assert len(decode_response(body).table.rows) == 2


# ── Shapes ──


class TestShapeDetection:
    @pytest.mark.parametrize(
        ("doc", "shape"),
        [
            ({"json_doc": "[]"}, PayloadShape.JSON_DOC),
            ({"DATA_DS": {"G_DATA": {"RESULT": "<ROWSET/>"}}}, PayloadShape.EMBEDDED_ROWSET),
            ({"DATA_DS": {"G_DATA": {"r": ""}}}, PayloadShape.EMBEDDED_ROWSET),
            ({"DATA_DS": {"G_DATA": {"X": "1"}}}, PayloadShape.COLUMNAR),
            ({"DATA_DS": ""}, PayloadShape.COLUMNAR),
            ({"ROWSET": {"ROW": {"A": "1"}}}, PayloadShape.ROWSET),
            ({"ROWSET": ""}, PayloadShape.ROWSET),
            ({"SOMETHING": {"ELSE": "1"}}, PayloadShape.RAW),
            ({"DATA_DS": {"G_DATA": "loose text"}}, PayloadShape.RAW),
        ],
    )
    def test_detect(self, doc, shape) -> None:
        assert detect_shape(doc) is shape


class TestColumnarGData:
    def test_single_row(self) -> None:
        report = decode_payload("<DATA_DS><G_DATA><X>1</X><Y>a</Y></G_DATA></DATA_DS>")
        assert report.table.rows == [{"X": "1", "Y": "a"}]

    def test_parallel_arrays(self) -> None:
        report = decode_payload(
            "<DATA_DS><G_DATA><X>1</X><X>2</X><Y>a</Y><Y>b</Y></G_DATA></DATA_DS>"
        )
        assert report.table.rows == [{"X": "1", "Y": "a"}, {"X": "2", "Y": "b"}]

    def test_repeated_groups(self) -> None:
        report = decode_payload(
            "<DATA_DS><P_ROWS>5</P_ROWS>"
            "<G_DATA><X>1</X></G_DATA><G_DATA><X>2</X></G_DATA></DATA_DS>"
        )
        assert report.table.rows == [{"X": "1"}, {"X": "2"}]

    def test_empty_data_ds(self) -> None:
        report = decode_payload("<DATA_DS><P_ROWS>5</P_ROWS></DATA_DS>")
        assert report.table.rows == []
        assert report.table.columns == []

    def test_zip_columns_pads_and_repeats(self) -> None:
        rows = zip_columns({"X": ["1", "2", "3"], "Y": ["a"], "K": "const"})
        assert rows == [
            {"X": "1", "Y": "a", "K": "const"},
            {"X": "2", "Y": None, "K": "const"},
            {"X": "3", "Y": None, "K": "const"},
        ]

    def test_end_to_end_shape(self, build_report) -> None:
        report = decode_response(build_report("<DATA_DS><G_DATA><X>1</X></G_DATA></DATA_DS>"))
        assert report.results == [{"X": "1"}]


class TestEmbeddedRowset:
    def test_escaped_result_text(self) -> None:
        inner = f"<DATA_DS><G_DATA><RESULT>{escape(ROWSET_XML)}</RESULT></G_DATA></DATA_DS>"
        assert decode_payload(inner).table.rows == [{"A": "1", "B": "x"}, {"A": "2", "B": "y"}]

    def test_cdata_r_field(self) -> None:
        inner = f"<DATA_DS><G_DATA><r><![CDATA[{ROWSET_XML}]]></r></G_DATA></DATA_DS>"
        report = decode_payload(inner)
        assert report.shape == PayloadShape.EMBEDDED_ROWSET.value
        assert len(report.table.rows) == 2

    def test_unescaped_child_document(self) -> None:
        inner = f"<DATA_DS><G_DATA><RESULT>{ROWSET_XML}</RESULT></G_DATA></DATA_DS>"
        assert decode_payload(inner).table.columns == ["A", "B"]

    def test_empty_result(self) -> None:
        assert decode_payload("<DATA_DS><G_DATA><RESULT/></G_DATA></DATA_DS>").table.rows == []

    def test_broken_embedded_xml(self) -> None:
        inner = f"<DATA_DS><G_DATA><RESULT>{escape('<ROWSET><ROW>')}</RESULT></G_DATA></DATA_DS>"
        with pytest.raises(PayloadDecodeError):
            decode_payload(inner)


class TestJsonDoc:
    def test_json_array(self) -> None:
        payload = json.dumps([{"A": 1, "B": None}, {"A": 2, "B": "y"}])
        report = decode_payload(f"<json_doc>{escape(payload)}</json_doc>")
        assert report.table.rows == [{"A": "1", "B": None}, {"A": "2", "B": "y"}]

    def test_invalid_json_is_raw(self) -> None:
        report = decode_payload("<json_doc>not json</json_doc>")
        assert report.table is None
        assert report.results == {"raw": "not json"}

    def test_nested_json_not_tabular(self) -> None:
        payload = json.dumps({"items": [{"A": 1}], "count": 1})
        report = decode_payload(f"<json_doc>{escape(payload)}</json_doc>")
        assert report.table is None
        assert report.results == {"items": [{"A": 1}], "count": 1}


def test_raw_fallback() -> None:
    report = decode_payload("<REPORT><TITLE>t</TITLE></REPORT>")
    assert report.shape == PayloadShape.RAW.value
    assert report.table is None
    assert report.results == {"REPORT": {"TITLE": "t"}}


def test_empty_inner_document() -> None:
    with pytest.raises(EmptyReportError):
        decode_payload("   ")


# ── Cells and columns ──


class TestCells:
    def test_nil_cell_dict(self) -> None:
        assert normalize_cell({"@_xsi:nil": "true"}) is None

    def test_nil_cell_from_xml(self) -> None:
        report = decode_payload(
            '<ROWSET xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">'
            '<ROW><A>1</A><B xsi:nil="true"/></ROW></ROWSET>'
        )
        assert report.table.rows == [{"A": "1", "B": None}]

    def test_text_with_attributes(self) -> None:
        assert normalize_cell({"@_type": "n", "#text": "5"}) == "5"

    def test_empty_element_is_empty_string(self) -> None:
        assert decode_payload("<ROWSET><ROW><A/></ROW></ROWSET>").table.rows == [{"A": ""}]

    def test_scalars(self) -> None:
        assert normalize_cell(3) == "3"
        assert normalize_cell(True) == "true"
        assert normalize_cell(None) is None

    def test_nested_structure_becomes_json(self) -> None:
        assert normalize_cell({"X": "1"}) == '{"X":"1"}'

    def test_row_attributes_dropped(self) -> None:
        report = decode_payload('<ROWSET><ROW num="1"><A>1</A></ROW></ROWSET>')
        assert report.table.rows == [{"A": "1"}]


def test_heterogeneous_rows_padded() -> None:
    table = build_table([{"A": "1", "B": "2"}, {"B": "3", "C": "4"}])
    assert table.columns == ["A", "B", "C"]
    assert table.rows == [
        {"A": "1", "B": "2", "C": None},
        {"A": None, "B": "3", "C": "4"},
    ]
    assert all(list(row) == table.columns for row in table.rows)
