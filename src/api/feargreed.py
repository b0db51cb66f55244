"""
Alternative.me Crypto Fear & Greed Index client.

The index is a 0-100 sentiment score published once a day:
0 means extreme fear, 100 means extreme greed.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from config import FEAR_GREED_BASE_URL, TTL_FEAR_GREED, TTL_FEAR_GREED_HISTORY
from data.errors import UpstreamError
from data.governor import FetchGovernor, build_cache_key, normalize_params


@dataclass
class FearGreedReading:
    """A single day's index value."""

    value: int
    classification: str
    timestamp: datetime
    time_until_update: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FearGreedReading":
        until_update = data.get("time_until_update")
        return cls(
            value=int(data["value"]),
            classification=data["value_classification"],
            timestamp=datetime.fromtimestamp(int(data["timestamp"]), tz=timezone.utc),
            time_until_update=int(until_update) if until_update else None,
        )


def _validate_envelope(payload: Any) -> None:
    """Reject payloads without a non-empty 'data' list or with an API error."""
    if not isinstance(payload, dict):
        raise UpstreamError(f"Expected a JSON object, got {type(payload).__name__}")

    error = (payload.get("metadata") or {}).get("error")
    if error:
        raise UpstreamError(f"API error: {error}")

    data = payload.get("data")
    if not isinstance(data, list) or not data:
        raise UpstreamError("Fear & Greed response has no data")


def _parse_readings(payload: dict[str, Any]) -> list[FearGreedReading]:
    return [FearGreedReading.from_api(record) for record in payload["data"]]


class FearGreedClient:
    """
    Fear & Greed index client.

    Usage:
        client = MarketDataClient().sentiment
        reading = client.get_index()
        df = client.get_history_df(days=30)
    """

    def __init__(self, governor: FetchGovernor, base_url: str = FEAR_GREED_BASE_URL):
        self.governor = governor
        self.base_url = base_url.rstrip("/")

    def _get_fng(self, limit: int, ttl: float) -> list[FearGreedReading]:
        params = normalize_params({"limit": limit, "format": "json"})
        return self.governor.fetch_json(
            build_cache_key("feargreed:/fng/", params),
            f"{self.base_url}/fng/",
            ttl,
            params=params,
            validate=_validate_envelope,
            parse=_parse_readings,
        )

    def get_index(self) -> FearGreedReading:
        """Fetch today's index value."""
        return self._get_fng(1, TTL_FEAR_GREED)[0]

    def get_history(self, days: int = 30) -> list[FearGreedReading]:
        """
        Fetch the last N daily values, newest first.

        Args:
            days: Number of days; 0 fetches the whole history
        """
        return list(self._get_fng(days, TTL_FEAR_GREED_HISTORY))

    def get_history_df(self, days: int = 30) -> pd.DataFrame:
        """
        Fetch the last N daily values as a DataFrame.

        Returns:
            DataFrame with daily DatetimeIndex (oldest first) and
            'value' and 'classification' columns
        """
        readings = self.get_history(days)
        df = pd.DataFrame(
            {
                "value": [r.value for r in readings],
                "classification": [r.classification for r in readings],
            },
            index=pd.DatetimeIndex([r.timestamp for r in readings], name="date"),
        )
        return df.sort_index()
