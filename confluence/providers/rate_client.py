"""USD/BRL exchange-rate client (AwesomeAPI)."""

from confluence.providers.http import request_with_retry

_RATE_URL = "https://economia.awesomeapi.com.br/json/last/{pair}"


class ExchangeRateClient:
    """Fetches the quote-per-base multiplier for a currency pair."""

    def __init__(self, base: str = "USD", quote: str = "BRL") -> None:
        self._base = base
        self._quote = quote

    async def fetch_rate(self) -> float:
        """Return the current bid rate (quote currency per one base unit).

        Raises ``ValueError`` on a malformed or non-positive rate.
        """
        pair = f"{self._base}-{self._quote}"
        resp = await request_with_retry("get", _RATE_URL.format(pair=pair))
        data = resp.json()
        entry = data.get(f"{self._base}{self._quote}") or {}
        try:
            rate = float(entry["bid"])
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"Invalid exchange-rate response for {pair}") from None
        if rate <= 0:
            raise ValueError(f"Exchange rate for {pair} must be positive, got {rate}")
        return rate
