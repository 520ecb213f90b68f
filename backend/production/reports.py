"""
Production reports.

partner_quality_ranking
    Revision outcomes aggregated per partner, with defect rate, average
    lead time of the partner's shipments and a 0-100 quality score.

production_funnel
    Piece counts at each stage: planned, returned from sewing, approved
    in revision, packed.
"""

import json
from collections.abc import Iterable

import pandas as pd

from production.models import ProductionOrder, Shipment

QUALITY_COLUMNS = [
    "partner",
    "orders",
    "total_qty",
    "approved",
    "rework",
    "rejected",
    "defect_rate",
    "avg_lead_time_days",
    "score",
]


def _revision_frame(orders: Iterable[ProductionOrder]) -> pd.DataFrame:
    rows = [
        {
            "op_id": o.id,
            "partner": o.subcontractor,
            "approved": o.revision_details.approved_qty,
            "rework": o.revision_details.rework_qty,
            "rejected": o.revision_details.rejected_qty,
        }
        for o in orders
        if o.subcontractor and o.revision_details is not None and o.revision_details.is_finalized
    ]
    return pd.DataFrame(rows, columns=["op_id", "partner", "approved", "rework", "rejected"])


def _lead_time_frame(shipments: Iterable[Shipment]) -> pd.DataFrame:
    rows = [
        {"op_id": s.op_id, "sent_date": s.sent_date, "return_date": s.return_date}
        for s in shipments
        if s.sent_date is not None and s.return_date is not None
    ]
    frame = pd.DataFrame(rows, columns=["op_id", "sent_date", "return_date"])
    elapsed = pd.to_datetime(frame["return_date"]) - pd.to_datetime(frame["sent_date"])
    # Same-day returns count as one day.
    frame["lead_time_days"] = (elapsed.dt.total_seconds() / 86400).clip(lower=1.0)
    return frame[["op_id", "lead_time_days"]]


def partner_quality_ranking(orders: Iterable[ProductionOrder], shipments: Iterable[Shipment]) -> pd.DataFrame:
    """
    Rank partners by revision quality.

    Only orders with a finalized revision and a named partner count.
    Lead time is averaged over every returned shipment of those orders.

    Returns one row per partner, best score first:
      defect_rate = (rework + rejected) / total_qty * 100
      score       = max(0, 100 - 2 * defect_rate)
    """
    revisions = _revision_frame(orders)
    if revisions.empty:
        return pd.DataFrame(columns=QUALITY_COLUMNS)

    lead = _lead_time_frame(shipments).merge(revisions[["op_id", "partner"]], on="op_id")
    avg_lead = lead.groupby("partner")["lead_time_days"].mean()

    ranking = revisions.groupby("partner").agg(
        orders=("op_id", "nunique"),
        approved=("approved", "sum"),
        rework=("rework", "sum"),
        rejected=("rejected", "sum"),
    )
    ranking["total_qty"] = ranking["approved"] + ranking["rework"] + ranking["rejected"]
    defects = ranking["rework"] + ranking["rejected"]
    ranking["defect_rate"] = (defects / ranking["total_qty"].where(ranking["total_qty"] > 0) * 100).fillna(0.0)
    ranking["avg_lead_time_days"] = avg_lead.reindex(ranking.index).fillna(0.0)
    ranking["score"] = (100 - 2 * ranking["defect_rate"]).clip(lower=0).round().astype(int)
    ranking["defect_rate"] = ranking["defect_rate"].round(1)
    ranking["avg_lead_time_days"] = ranking["avg_lead_time_days"].round(1)

    ranking = ranking.reset_index().sort_values(["score", "partner"], ascending=[False, True])
    return ranking[QUALITY_COLUMNS].reset_index(drop=True)


def production_funnel(orders: Iterable[ProductionOrder], shipments: Iterable[Shipment]) -> pd.DataFrame:
    orders = list(orders)
    planned = sum(o.quantity_total for o in orders)
    order_ids = {o.id for o in orders}
    returned = sum(s.received_quantity for s in shipments if s.op_id in order_ids)
    approved = sum(
        o.revision_details.approved_qty for o in orders if o.revision_details and o.revision_details.is_finalized
    )
    packed = sum(
        o.packing_details.total_packed_qty for o in orders if o.packing_details and o.packing_details.is_finalized
    )

    funnel = pd.DataFrame(
        {
            "stage": ["planned", "returned", "approved", "packed"],
            "quantity": [planned, returned, approved, packed],
        }
    )
    funnel["pct_of_planned"] = (funnel["quantity"] / planned * 100).round(1) if planned else 0.0
    return funnel


def to_records(frame: pd.DataFrame) -> list[dict]:
    """JSON-native rows (plain ints and floats, no numpy scalars)."""
    return json.loads(frame.to_json(orient="records"))
