"""
Trade journal helpers.

Statistics over saved trades and defaults for trades saved from an analysis.
"""

from dataclasses import asdict, dataclass
from typing import Iterable, Optional


@dataclass
class TradeStats:
    """Aggregate statistics for a user's journal."""

    total: int = 0
    wins: int = 0
    losses: int = 0
    unknown: int = 0
    win_rate: float = 0.0
    avg_rr: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def compute_trade_stats(trades: Iterable[dict]) -> TradeStats:
    """
    Compute journal statistics.

    Win rate only counts decided trades (wins + losses), as a percentage.
    Average R:R only counts trades with a recorded rr_numeric.
    """
    trades = list(trades)
    stats = TradeStats(total=len(trades))
    stats.wins = sum(1 for t in trades if t.get("outcome") == "win")
    stats.losses = sum(1 for t in trades if t.get("outcome") == "loss")
    stats.unknown = sum(1 for t in trades if t.get("outcome") == "unknown")

    completed = stats.wins + stats.losses
    if completed > 0:
        stats.win_rate = stats.wins / completed * 100

    rr_values = [float(t["rr_numeric"]) for t in trades if t.get("rr_numeric") is not None]
    if rr_values:
        stats.avg_rr = sum(rr_values) / len(rr_values)

    return stats


def summarize_narrative(narrative: Optional[str], max_chars: int = 100) -> str:
    """First line of an analysis narrative, truncated, for a trade's default notes."""
    if not narrative:
        return ""
    first_line = narrative.strip().split("\n")[0]
    if len(first_line) <= max_chars:
        return first_line
    return first_line[:max_chars] + "..."
