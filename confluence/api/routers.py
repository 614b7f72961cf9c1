"""Internal API routers — /status, /signal, /indicators, /series, /candles, /analysis, /risk.

No business logic beyond calling the risk calculator. Reads the shared
state the engine publishes after every pipeline run.
"""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from confluence.risk.position_sizer import (
    RISK_PROFILES,
    calculate_position,
    calculate_risk_profile_position,
    to_quote,
)
from confluence.strategy.sentiment import sentiment_label, sentiment_score

router = APIRouter()

# ── Shared state (updated by the engine) ─────────────────────────────────

_DEFAULT_STATUS: dict = {
    "running": False,
    "source": None,
    "pair": "BTC/USD",
    "usd_brl_rate": None,
    "candle_count": 0,
    "tick_count": 0,
    "started_at": None,
    "last_tick_at": None,
    "last_error": None,
}

_status: dict = {**_DEFAULT_STATUS}
_snapshot = None  # DashboardSnapshot, replaced whole by update_snapshot()
_candles: list = []
_analysis = None  # AnalysisResult
_analysis_error: Optional[str] = None


def reset_state() -> None:
    """Clear all published state (startup and tests)."""
    global _snapshot, _candles, _analysis, _analysis_error, _status  # noqa: PLW0603
    _status = {**_DEFAULT_STATUS}
    _snapshot = None
    _candles = []
    _analysis = None
    _analysis_error = None


def update_dashboard_status(**fields) -> None:
    """Update individual fields of the status dict."""
    _status.update(fields)


def update_snapshot(snapshot, candles: list) -> None:
    """Publish a complete pipeline result."""
    global _snapshot, _candles  # noqa: PLW0603
    _snapshot = snapshot
    _candles = candles


def update_analysis(result, error: Optional[str]) -> None:
    """Publish the latest advisory analysis (or the error that replaced it)."""
    global _analysis, _analysis_error  # noqa: PLW0603
    _analysis = result
    _analysis_error = error


def _signal_payload(signal) -> Optional[dict]:
    if signal is None:
        return None
    return {**asdict(signal), "actionable": signal.actionable}


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return engine status."""
    return dict(_status)


@router.get("/signal")
async def get_signal():
    """Return the current signal with entry, stop-loss, take-profit and reasons."""
    if _snapshot is None:
        return {"price": None, "signal": None, "updated_at": None}
    return {
        "price": _snapshot.price,
        "signal": _signal_payload(_snapshot.signal),
        "updated_at": _snapshot.updated_at,
    }


@router.get("/indicators")
async def get_indicators():
    """Return the latest indicator snapshot (RSI, HA, pivots, VWAP, Fibonacci, EMAs)."""
    if _snapshot is None:
        return {"indicators": None}
    return {"indicators": asdict(_snapshot.indicators)}


@router.get("/series")
async def get_series(limit: int = Query(default=200, ge=1, le=5000)):
    """Return the trailing EMA-50 / EMA-200 / Heikin-Ashi series for charting."""
    if _snapshot is None:
        return {"ema50": [], "ema200": [], "heikin_ashi": []}
    series = _snapshot.series
    return {
        "ema50": series.ema50[-limit:],
        "ema200": series.ema200[-limit:],
        "heikin_ashi": [asdict(c) for c in series.heikin_ashi[-limit:]],
    }


@router.get("/candles")
async def get_candles(limit: int = Query(default=200, ge=1, le=5000)):
    """Return the trailing candles, oldest-first."""
    return {"candles": [asdict(c) for c in _candles[-limit:]], "total": len(_candles)}


@router.get("/analysis")
async def get_analysis():
    """Return the advisory analysis with its sentiment gauge reading."""
    if _analysis is None:
        return {"analysis": None, "error": _analysis_error}
    score = sentiment_score(_analysis.sentiment)
    return {
        "analysis": asdict(_analysis),
        "sentiment_score": score,
        "sentiment_label": sentiment_label(score),
        "error": _analysis_error,
    }


@router.get("/risk")
async def get_risk(
    bankroll: float = Query(default=1000.0),
    leverage: float = Query(default=1.0),
    target_price: Optional[float] = Query(default=None),
    target_currency: str = Query(default="usd", pattern="^(usd|brl)$"),
):
    """Project a leveraged position for the current signal.

    ``target_currency=brl`` interprets *target_price* in BRL using the
    engine's USD/BRL rate.
    """
    signal = _snapshot.signal if _snapshot else None
    if signal is None:
        return {"calculation": None, "reason": "no_signal"}

    rate = _status.get("usd_brl_rate") or 0.0
    quote_rate = None
    if target_price is not None and target_currency == "brl":
        if rate <= 0:
            return {"calculation": None, "reason": "no_exchange_rate"}
        quote_rate = rate

    plan = calculate_position(
        bankroll, leverage, signal,
        target_price=target_price, quote_rate=quote_rate,
    )
    if plan is None:
        return {"calculation": None, "reason": "degenerate_input"}

    return {
        "calculation": asdict(plan),
        "actionable": signal.actionable,
        "brl": {
            "risk_amount": to_quote(plan.risk_amount, rate),
            "profit_amount": to_quote(plan.profit_amount, rate),
        },
    }


@router.get("/risk/profile")
async def get_risk_profile(
    bankroll: float = Query(default=1000.0),
    profile: str = Query(default="conservative"),
):
    """Size a position risking a fixed share of the bankroll."""
    if profile not in RISK_PROFILES:
        raise HTTPException(status_code=400, detail=f"Unknown risk profile: {profile}")
    signal = _snapshot.signal if _snapshot else None
    if signal is None:
        return {"calculation": None, "reason": "no_signal"}
    plan = calculate_risk_profile_position(bankroll, profile, signal)
    if plan is None:
        return {"calculation": None, "reason": "degenerate_input"}
    return {"calculation": asdict(plan), "actionable": signal.actionable}
