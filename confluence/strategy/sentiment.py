"""Sentiment gauge — maps free-text market sentiment to a 0-100 score."""

import re

# Ordered: the first matching group wins.
_SENTIMENT_GROUPS: tuple[tuple[int, re.Pattern], ...] = (
    (85, re.compile(
        r"\b(otimismo|otimista|alta|subir|bullish|compra forte|rompimento de alta|"
        r"macro bullish|optimistic|strong buy)\b"
    )),
    (65, re.compile(
        r"\b(positivo|viés de alta|potencial de alta|acima da vwap|positive|"
        r"upside|above vwap)\b"
    )),
    (15, re.compile(
        r"\b(pessimismo|pessimista|baixa|cair|bearish|venda forte|rompimento de baixa|"
        r"macro bearish|pessimistic|strong sell)\b"
    )),
    (35, re.compile(
        r"\b(negativo|viés de baixa|risco de queda|abaixo da vwap|negative|"
        r"downside|below vwap)\b"
    )),
    (50, re.compile(
        r"\b(cautela|neutro|indecisão|lateralizado|consolidado|equilíbrio|"
        r"caution|neutral|sideways|consolidation)\b"
    )),
)

NEUTRAL_SCORE = 50


def sentiment_score(text: str) -> int:
    """Keyword-based score: 85 strong bullish … 15 strong bearish, 50 neutral."""
    lowered = text.lower()
    for score, pattern in _SENTIMENT_GROUPS:
        if pattern.search(lowered):
            return score
    return NEUTRAL_SCORE


def sentiment_label(score: int) -> str:
    if score > 75:
        return "Very bullish"
    if score > 60:
        return "Bullish"
    if score > 40:
        return "Neutral"
    if score > 25:
        return "Bearish"
    return "Very bearish"
