import pytest

from erp_insights.models.records import Channel, InventorySnapshot, OrderRecord, ProductKey
from erp_insights.services.aggregation import BoxTotals
from erp_insights.services.classification import (
    NO_EXCESS_ACTION,
    PriceAction,
    Priority,
    StockLevel,
    Urgency,
)
from erp_insights.services.recommendations import (
    analyze_stock,
    box_stock_bands,
    calculate_production_needs,
    classify_stock,
    dashboard_summary,
    generate_sales_recommendations,
    only_with_excess,
    production_gap,
    sales_opportunities,
    sales_recommendation,
    summarize_production,
    summarize_sales,
)


class TestProductionGap:

    def test_shortfall(self):
        gap = production_gap("P1", demand=1000, stock=400)
        assert gap.production_needed == 600
        assert gap.gap_percentage == pytest.approx(60.0)
        assert gap.priority is Priority.HIGH
        assert gap.urgency_note == "Immediate production required"

    def test_zero_demand(self):
        gap = production_gap("P1", demand=0, stock=250)
        assert gap.production_needed == 0
        assert gap.gap_percentage == 0
        assert gap.priority is Priority.LOW

    def test_zero_stock(self):
        gap = production_gap("P1", demand=80, stock=0)
        assert gap.production_needed == 80
        assert gap.gap_percentage == 100
        assert gap.priority is Priority.HIGH

    def test_stock_covers_demand(self):
        gap = production_gap("P1", demand=100, stock=150)
        assert gap.production_needed == 0
        assert gap.priority is Priority.LOW

    def test_negative_stock_counts_as_zero(self):
        gap = production_gap("P1", demand=100, stock=-50)
        assert gap.current_stock == 0
        assert gap.production_needed == 100
        assert gap.gap_percentage == 100

    @pytest.mark.parametrize("demand, stock", [(0, 0), (1, 0), (10, 9.5), (500, 2000), (1e6, 1), (100, -50)])
    def test_gap_bounds(self, demand, stock):
        gap = production_gap("P1", demand, stock)
        assert gap.production_needed >= 0
        assert 0 <= gap.gap_percentage <= 100

    def test_to_dict_uses_plain_labels(self):
        data = production_gap("P1", 1000, 400).to_dict()
        assert data["priority"] == "high"
        assert data["product_id"] == "P1"


class TestCalculateProductionNeeds:

    def test_one_gap_per_demand_entry(self):
        gaps = calculate_production_needs({"P1": 1000, "P2": 0}, {"P1": 400, "P3": 700})
        assert [g.product_id for g in gaps] == ["P1", "P2"]
        assert gaps[1].production_needed == 0

    def test_missing_stock_counts_as_zero(self):
        (gap,) = calculate_production_needs({"P1": 50}, {})
        assert gap.current_stock == 0
        assert gap.production_needed == 50

    def test_idempotent(self):
        demand, stock = {"P1": 1000, "P2": 300}, {"P1": 400, "P2": 280}
        assert calculate_production_needs(demand, stock) == calculate_production_needs(demand, stock)

    def test_summary(self):
        gaps = calculate_production_needs({"P1": 1000, "P2": 300, "P3": 100}, {"P1": 400, "P2": 200, "P3": 100})
        summary = summarize_production(gaps)
        assert summary["total_production_needed"] == 700
        assert summary["high_priority_items"] == 1
        assert summary["medium_priority_items"] == 1
        assert summary["low_priority_items"] == 1


class TestSalesRecommendation:

    def test_excess_stock(self):
        rec = sales_recommendation("P1", stock=1000, demand=500)
        assert rec.safety_stock == pytest.approx(100)
        assert rec.recommended_sales == pytest.approx(600)
        assert rec.excess_stock == pytest.approx(400)
        assert rec.liquidation_needed == pytest.approx(400)
        assert rec.urgency is Urgency.MEDIUM
        assert rec.price_recommendation is PriceAction.DECREASE
        assert rec.recommended_action == "Promote sales with incentives"

    def test_no_excess(self):
        rec = sales_recommendation("P1", stock=400, demand=1000)
        assert rec.excess_stock == 0
        assert rec.recommended_sales == 400
        assert rec.recommended_action == NO_EXCESS_ACTION
        assert rec.urgency is Urgency.LOW
        assert rec.price_recommendation is PriceAction.INCREASE

    def test_zero_demand_is_all_excess(self):
        rec = sales_recommendation("P1", stock=100, demand=0)
        assert rec.excess_stock == 100
        assert rec.urgency is Urgency.HIGH
        assert rec.recommended_sales == 0

    def test_zero_stock(self):
        rec = sales_recommendation("P1", stock=0, demand=100)
        assert rec.excess_stock == 0
        assert rec.liquidation_needed == 0
        assert rec.urgency is Urgency.LOW

    def test_negative_stock_is_not_urgent(self):
        rec = sales_recommendation("P1", stock=-50, demand=100)
        assert rec.excess_stock == 0
        assert rec.urgency is Urgency.LOW
        assert rec.recommended_action == NO_EXCESS_ACTION

    def test_one_per_stocked_product(self):
        recs = generate_sales_recommendations({"P1": 1000, "P2": 100}, {"P1": 500, "P3": 900})
        assert [r.product_id for r in recs] == ["P1", "P2"]
        assert recs[1].demand == 0

    def test_only_with_excess_keeps_summary_separate(self):
        recs = generate_sales_recommendations({"P1": 1000, "P2": 100}, {"P1": 500, "P2": 500})
        summary = summarize_sales(recs)
        narrowed = only_with_excess(recs)
        assert [r.product_id for r in narrowed] == ["P1"]
        assert summary["total_excess_stock"] == pytest.approx(400)
        assert summary["total_liquidation_needed"] == pytest.approx(400)
        assert summary["high_urgency_items"] == 0


def test_sales_opportunities():
    recs = generate_sales_recommendations({"P1": 1000, "P2": 100}, {"P1": 500, "P2": 500})
    orders = [
        OrderRecord("1", "P1", "Acme", "TR", 10, 100, None, Channel.EXPORT),
        OrderRecord("2", "P1", "Acme", "TR", 10, 100, None, Channel.EXPORT),
        OrderRecord("3", "P1", "Borealis", "PT", 10, 100, None, Channel.LOCAL),
    ]
    (opp,) = sales_opportunities(recs, orders, {"P1": 10.0}, max_customers=5)
    assert opp["product_id"] == "P1"
    assert opp["potential_customers"] == ["Acme", "Borealis"]
    assert opp["estimated_value"] == pytest.approx(4000)


class TestStockStatus:

    def test_classify(self):
        status = classify_stock(InventorySnapshot("P1", "2024-06", 400, 400, 100))
        assert status.stock_turnover == pytest.approx(3.0)
        assert status.status is StockLevel.HIGH
        assert status.current_stock == 400

    def test_fast_mover(self):
        status = classify_stock(InventorySnapshot("P1", "2024-06", 100, 100, 1000))
        assert status.days_of_inventory < 30
        assert status.status is StockLevel.LOW

    def test_analyze_filters_month(self):
        snaps = [
            InventorySnapshot("P1", "2024-06", 400, 400, 100),
            InventorySnapshot("P1", "2024-05", 400, 400, 100),
        ]
        assert len(analyze_stock(snaps, "2024-06")) == 1
        assert len(analyze_stock(snaps)) == 2


def test_box_stock_bands():
    bands = box_stock_bands({
        ProductKey("P1", "150"): BoxTotals(boxes=2, weight=2.0),
        ProductKey("P2"): BoxTotals(boxes=30, weight=30.0),
    }, threshold_multiplier=10)
    assert bands[0]["product"] == "P1-150"
    assert bands[0]["threshold"] == pytest.approx(10.0)
    assert bands[0]["status"] == "low"
    assert bands[1]["status"] == "high"


def test_dashboard_summary():
    demand_rows = [
        {"revenue": 100.0, "pending_orders": 5.0},
        {"revenue": 50.0, "pending_orders": 0.0},
    ]
    stock = [classify_stock(InventorySnapshot("P1", "2024-06", 100, 100, 1000))]
    gaps = calculate_production_needs({"P1": 1000}, {"P1": 100})
    recs = generate_sales_recommendations({"P1": 1000}, {"P1": 0})
    summary = dashboard_summary(demand_rows, stock, gaps, recs)
    assert summary["total_revenue"] == 150
    assert summary["total_pending_orders"] == 5
    assert summary["low_stock_items"] == 1
    assert summary["high_priority_production"] == 1
    assert summary["urgent_sales"] == 1
    assert summary["overall_status"] == "orange"
