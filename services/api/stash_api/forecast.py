from __future__ import annotations

from typing import Dict, List, Tuple
import logging
import sqlite3

from sklearn.linear_model import Ridge

logger = logging.getLogger(__name__)


def _weighted_forecast(series: List[float]) -> float:
    if not series:
        return 0.0
    if len(series) == 1:
        return series[0]
    if len(series) == 2:
        return 0.6 * series[-1] + 0.4 * series[-2]
    # 50% last, 30% previous, 20% mean of earlier points
    last, prev, rest = series[-1], series[-2], series[:-2]
    base = sum(rest)/len(rest) if rest else prev
    return 0.5 * last + 0.3 * prev + 0.2 * base


def extrapolate(series: List[float]) -> Tuple[float, str]:
    """Next value of a series: Ridge over t -> value with 3+ points, weighted blend otherwise."""
    if len(series) >= 3:
        X = [[i] for i in range(len(series))]
        model = Ridge(alpha=1.0)
        model.fit(X, series)
        pred = float(model.predict([[len(series)]])[0])
        return max(0.0, pred), "ridge"
    return _weighted_forecast(series), "weighted"


def _monthly_category_spend(conn: sqlite3.Connection, user_id: str) -> Tuple[List[str], Dict[str, Dict[str, float]]]:
    rows = conn.execute(
        """
        SELECT substr(date, 1, 7) AS ym,
               COALESCE(category, 'uncategorized') AS category,
               SUM(amount) AS spend
        FROM transactions
        WHERE user_id = ?
        GROUP BY ym, category
        ORDER BY ym ASC
        """,
        (user_id,),
    ).fetchall()
    months: List[str] = []
    out: Dict[str, Dict[str, float]] = {}
    for r in rows:
        if r["ym"] not in months:
            months.append(r["ym"])
        out.setdefault(r["category"], {})[r["ym"]] = float(r["spend"] or 0.0)
    return months, out


def forecast_categories(conn: sqlite3.Connection, user_id: str, months_history: int = 6, top_k: int = 8) -> Dict:
    months, data = _monthly_category_spend(conn, user_id)
    if not months:
        return {"last_month": None, "forecasts": []}
    window = months[-months_history:]
    results = []
    for cat, by_month in data.items():
        series = [by_month.get(m, 0.0) for m in window]
        hist = [v for v in series if v > 0]
        if len(hist) < 2:
            continue
        pred, method = extrapolate(hist)
        results.append({
            "category": cat,
            "forecast_next_month": round(pred, 2),
            "history_months": window,
            "history_values": series,
            "model": method,
        })
    results.sort(key=lambda x: x["forecast_next_month"], reverse=True)
    logger.debug("Forecast %d categories for %s", len(results), user_id)
    return {"last_month": months[-1], "forecasts": results[:top_k]}
