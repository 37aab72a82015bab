from datetime import date, datetime

import pytest

from erp_insights.core.errors import InvalidMonthError, MalformedValueError, NegativeValueError
from erp_insights.models.records import Channel, ProductKey
from erp_insights.services.ingestion import (
    auto_map_columns,
    coerce_number,
    extract_product_type,
    get_dataset_schemas,
    missing_required,
    normalize_rows,
    parse_date,
    parse_month,
    parse_number,
    to_metric_tons,
)


class TestColumnMapping:

    def test_export_order_erp_headers(self):
        cols = ["SOE_PINUMBER", "SOE_PRODUCTDESC", "SOE_CONSIGNEE", "SOE_COUNTRY",
                "SOE_QTY", "SOE_WUNIT", "SOE_TOTALAMOUNT", "SOE_PIDATE"]
        mapping = auto_map_columns(cols, "export_orders")
        assert mapping["SOE_QTY"] == "quantity"
        assert mapping["SOE_CONSIGNEE"] == "customer"
        assert mapping["SOE_PRODUCTDESC"] == "product_description"
        assert mapping["SOE_PIDATE"] == "date"
        assert missing_required(mapping, "export_orders") == []

    def test_local_order_quantity_alias(self):
        mapping = auto_map_columns(["SOL_QTY", "Product"], "local_orders")
        assert mapping == {"SOL_QTY": "quantity", "Product": "product_id"}

    def test_demand_and_box_headers(self):
        demand = auto_map_columns(["Product ID", "Period", "Market_Demand_MT"], "demand")
        assert demand == {"Product ID": "product_id", "Period": "month", "Market_Demand_MT": "demand_quantity"}
        boxes = auto_map_columns(["PRODUCTCODE", "NETWT", "FGWLOCATION", "GRADECODE"], "stock_boxes")
        assert boxes["NETWT"] == "net_weight"
        assert boxes["FGWLOCATION"] == "location"
        assert boxes["GRADECODE"] == "grade"
        assert boxes["PRODUCTCODE"] == "product_code"

    def test_orders_need_a_product_column(self):
        assert "product_id" in missing_required({"qty": "quantity"}, "export_orders")

    def test_missing_required(self):
        assert missing_required({"a": "product_id"}, "inventory") == ["month", "closing_stock"]


class TestNumbers:

    def test_parse_number(self):
        assert parse_number("1,250.5") == 1250.5
        assert parse_number(7) == 7.0
        assert parse_number("  ") is None
        assert parse_number(float("nan")) is None

    @pytest.mark.parametrize("raw", ["abc", "12kg", True, "inf"])
    def test_parse_number_malformed(self, raw):
        with pytest.raises(MalformedValueError):
            parse_number(raw, "quantity")

    def test_zero_policy(self):
        assert coerce_number("abc", "quantity", policy="zero") == (0.0, True)
        assert coerce_number(None, "quantity", required=True, policy="zero") == (0.0, True)
        assert coerce_number(None, "value", policy="zero") == (0.0, False)
        assert coerce_number("12", "value", policy="zero") == (12.0, False)

    def test_reject_policy(self):
        with pytest.raises(MalformedValueError):
            coerce_number("abc", "quantity", policy="reject")
        with pytest.raises(MalformedValueError):
            coerce_number("", "quantity", required=True, policy="reject")
        assert coerce_number("", "value", policy="reject") == (0.0, False)

    def test_negative_quantities(self):
        assert coerce_number("-5", "closing_stock", policy="zero", non_negative=True) == (0.0, True)
        assert coerce_number("-5", "value", policy="zero") == (-5.0, False)
        with pytest.raises(NegativeValueError):
            coerce_number("-5", "closing_stock", policy="reject", non_negative=True)

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            coerce_number("1", "quantity", policy="guess")

    def test_units(self):
        assert to_metric_tons(2500, "KG") == 2.5
        assert to_metric_tons(2500, " kgs ") == 2.5
        assert to_metric_tons(2.5, "MT") == 2.5
        assert to_metric_tons(2.5, None) == 2.5


class TestTextFields:

    @pytest.mark.parametrize("desc, expected", [
        ("POLYESTER DTY 150D/48F", "DTY"),
        ("Polyester Staple Fiber 1.4D", "PSF"),
        ("FULLY DRAWN YARN 75/36", "FDY"),
        ("poy 250/48", "POY"),
        ("Nylon chips", "Other"),
        ("", "Unknown"),
        (None, "Unknown"),
    ])
    def test_product_type(self, desc, expected):
        assert extract_product_type(desc) == expected

    def test_parse_date(self):
        assert parse_date("14-MAY-24") == date(2024, 5, 14)
        assert parse_date("03-jun-2024") == date(2024, 6, 3)
        assert parse_date("2024-06-03") == date(2024, 6, 3)
        assert parse_date(datetime(2024, 6, 3, 10, 30)) == date(2024, 6, 3)
        assert parse_date("31-FEB-24") is None
        assert parse_date("soon") is None
        assert parse_date("") is None

    def test_parse_month(self):
        assert parse_month("2024-6") == "2024-06"
        assert parse_month("2024-06-15") == "2024-06"
        assert parse_month(date(2024, 6, 1)) == "2024-06"

    @pytest.mark.parametrize("raw", ["June", "2024-13", "", None, "06-2024"])
    def test_parse_month_invalid(self, raw):
        with pytest.raises(InvalidMonthError):
            parse_month(raw)


class TestNormalizeRows:

    def test_export_orders_in_kg(self):
        rows = [{"SOE_PINUMBER": "PI-1", "SOE_PRODUCTDESC": "POLYESTER DTY 150D", "SOE_QTY": "95,000",
                 "SOE_WUNIT": "KG", "SOE_TOTALAMOUNT": "109250", "SOE_PIDATE": "03-JUN-24"}]
        result = normalize_rows(rows, "export_orders")
        (order,) = result.records
        assert order.product_id == "DTY"
        assert order.quantity == 95.0
        assert order.channel is Channel.EXPORT
        assert order.date == date(2024, 6, 3)
        assert order.customer == "Unknown"

    def test_local_orders_tagged_by_source(self):
        result = normalize_rows([{"product_id": "P1", "quantity": 5}], "local_orders")
        assert result.records[0].channel is Channel.LOCAL

    def test_zero_policy_counts_coerced_fields(self):
        rows = [{"product_id": "P1", "quantity": "n/a", "value": "100"}]
        result = normalize_rows(rows, "local_orders", policy="zero")
        assert result.records[0].quantity == 0.0
        assert result.coerced_fields == 1
        assert result.errors == []

    def test_reject_policy_reports_row(self):
        rows = [
            {"product_id": "P1", "quantity": "10"},
            {"product_id": "P2", "quantity": "n/a"},
        ]
        result = normalize_rows(rows, "local_orders", policy="reject")
        assert len(result.records) == 1
        assert result.errors[0]["row"] == 2
        assert result.errors[0]["field"] == "quantity"
        assert result.error_rows == 1

    def test_inventory_bad_month_and_missing_product(self):
        rows = [
            {"product_id": "P1", "month": "June", "closing_stock": 5},
            {"product_id": "", "month": "2024-06", "closing_stock": 5},
            {"product_id": "P1", "month": "2024-06", "closing_stock": 5, "sales": 2},
        ]
        result = normalize_rows(rows, "inventory")
        assert [e["row"] for e in result.errors] == [1, 2]
        assert result.errors[0]["field"] == "month"
        (snap,) = result.records
        assert snap.closing_stock == 5
        assert snap.opening_stock == 0

    def test_negative_closing_stock_zero_policy(self):
        rows = [{"product_id": "P1", "month": "2024-06", "closing_stock": "-50", "sales": "10"}]
        result = normalize_rows(rows, "inventory", policy="zero")
        (snap,) = result.records
        assert snap.closing_stock == 0.0
        assert result.coerced_fields == 1

    def test_negative_closing_stock_reject_policy(self):
        rows = [
            {"product_id": "P1", "month": "2024-06", "closing_stock": "-50"},
            {"product_id": "P2", "month": "2024-06", "closing_stock": "40"},
        ]
        result = normalize_rows(rows, "inventory", policy="reject")
        assert [r.product_id for r in result.records] == ["P2"]
        assert result.errors[0]["row"] == 1
        assert result.errors[0]["field"] == "closing_stock"
        assert "negative" in result.errors[0]["error"]

    def test_box_weights_are_kilograms(self):
        rows = [{"BOXNUMBER": 1001, "PRODUCTCODE": 150.0, "SOE_DENIER": "75/36", "NETWT": "1180"}]
        (box,) = normalize_rows(rows, "stock_boxes").records
        assert box.net_weight == pytest.approx(1.18)
        assert box.product == ProductKey("150", "75/36")
        assert box.box_number == "1001"
        assert box.grade == "Unknown"

    def test_explicit_mapping(self):
        rows = [{"item": "P9", "when": "2024-06", "need": 40}]
        mapping = {"item": "product_id", "when": "month", "need": "demand_quantity"}
        (rec,) = normalize_rows(rows, "demand", column_mapping=mapping).records
        assert (rec.product_id, rec.month, rec.demand_quantity) == ("P9", "2024-06", 40.0)

    def test_unknown_dataset(self):
        with pytest.raises(ValueError):
            normalize_rows([], "invoices")


def test_dataset_schemas():
    schemas = get_dataset_schemas()
    assert set(schemas) == {"export_orders", "local_orders", "inventory", "demand", "stock_boxes"}
    assert schemas["demand"]["required_columns"] == ["product_id", "month", "demand_quantity"]
