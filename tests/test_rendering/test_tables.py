"""Tests for record tables, the more-records message and the download button."""

from __future__ import annotations

from notify_templates.datasource.models import CodedValue, FieldDomain, FieldMetadata
from notify_templates.rendering.tables import (
    download_button,
    more_records_message,
    render_record_table,
    render_sample_table,
)
from notify_templates.template.models import DisplayField, Theme


class TestRecordTable:
    def test_metadata_aware_formatting(self):
        records = [{"STATUS": 1, "amount": 1234.5}]
        fields = [DisplayField(field="status", label="Status"), DisplayField(field="Amount")]
        metadata = [
            FieldMetadata(
                name="Status",
                type="esriFieldTypeSmallInteger",
                domain=FieldDomain(coded_values=[CodedValue(name="Open", code=1)]),
            ),
            FieldMetadata(name="amount", type="esriFieldTypeDouble"),
        ]
        out = render_record_table(records, fields, metadata=metadata)
        assert ">Open<" in out
        assert ">1,234.5<" in out
        assert ">Status<" in out
        assert ">Amount<" in out

    def test_limit(self):
        records = [{"name": f"row-{i}"} for i in range(15)]
        out = render_record_table(records, [DisplayField(field="name")], limit=10)
        assert out.count("<tr>") == 11
        assert "row-9" in out
        assert "row-10" not in out

    def test_cells_escaped(self):
        out = render_record_table([{"note": "<script>x</script>"}], [DisplayField(field="note")])
        assert "<script>" not in out

    def test_sample_table_defaults(self):
        out = render_sample_table([])
        assert ">Address<" in out
        assert "123 Main Street" in out

    def test_sample_table_first_three_fields(self):
        fields = [DisplayField(field=f"f{i}") for i in range(5)]
        out = render_sample_table(fields)
        assert ">f2<" in out
        assert ">f3<" not in out


class TestMoreRecords:
    def test_hidden_when_all_shown(self):
        assert more_records_message(5, 10) == ""
        assert more_records_message(10, 10) == ""

    def test_message(self):
        out = more_records_message(1234, 10, Theme(muted_text_color="#777777"))
        assert "Showing first 10 of 1,234 records." in out
        assert "#777777" in out


class TestDownloadButton:
    def test_placeholder_url(self):
        out = download_button()
        assert 'href="{{downloadUrl}}"' in out
        assert "Download Full CSV Report" in out

    def test_url_escaped(self):
        assert "&quot;" in download_button(url='https://x.test/"a"')
