# tradesight/services/chat.py
"""
Trading assistant chat.

A reply is built from the user's own journal stats, the live market
snapshot, recent finance-news search hits and the state of the major
exchanges. The user always gets a reply: a failed model call turns into a
canned apology instead of an error.
"""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from tradesight.core.exceptions import RepositoryError, ValidationError
from tradesight.core.gemini_client import GenerativeModel, TextPart
from tradesight.core.retry import RetryScheduler, is_rate_limited
from tradesight.models.chat_message import ChatMessage
from tradesight.repositories.chat import ChatMessageRepository
from tradesight.repositories.session import TradingSessionRepository
from tradesight.repositories.trade import TradeRepository
from tradesight.services.market_data import MarketDataAggregator, render_snapshot_context
from tradesight.services.web_search import WebSearchClient, render_search_context
from tradesight.utils.logger import get_logger, log_execution_time

logger = get_logger(__name__)

HIGH_DEMAND_REPLIES = [
    "I'm experiencing high demand right now. Let me help you with your trading analysis in a moment! 📊",
    "My systems are busy processing other requests. Meanwhile, feel free to add your trades manually! 💪",
    "I'm temporarily unavailable, but your trading data is safe. Try again in a few moments! 🔄",
    "High traffic detected! While I recover, you can still use all other features of the platform! ⚡",
]
GENERIC_APOLOGY = "I'm having trouble processing your message right now. Please try again in a moment! 🤖"

GREETING_TEMPLATES = [
    "{salutation}{name}! How's your trading going today?",
    "{salutation}{name}! Ready to analyze some trades?",
    "{salutation}{name}! What's on your trading radar today?",
    "{salutation}{name}! Any exciting market moves catching your eye?",
    "{salutation}{name}! I'm here to help with your trading analysis!",
]

# name -> (time zone, local open, local close); weekdays only
EXCHANGE_HOURS: Dict[str, tuple] = {
    "NYSE": ("America/New_York", time(9, 30), time(16, 0)),
    "LSE": ("Europe/London", time(8, 0), time(16, 30)),
    "TSE": ("Asia/Tokyo", time(9, 0), time(15, 0)),
    "ASX": ("Australia/Sydney", time(10, 0), time(16, 0)),
}

MAX_REPLY_WORDS = 150


def _aware(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


def greeting(now: datetime, user_name: Optional[str] = None) -> str:
    """Time-of-day greeting; the wording rotates once a day."""
    hour = now.hour
    if 5 <= hour < 12:
        salutation = "Good morning"
    elif 12 <= hour < 17:
        salutation = "Good afternoon"
    else:
        salutation = "Good evening"

    name = f" {user_name}" if user_name else ""
    day_of_year = now.timetuple().tm_yday
    return GREETING_TEMPLATES[day_of_year % len(GREETING_TEMPLATES)].format(salutation=salutation, name=name)


def market_status(now: Optional[datetime] = None) -> Dict[str, bool]:
    """Open/closed per exchange at `now`, judged in each exchange's local time."""
    now = _aware(now)
    status: Dict[str, bool] = {}
    for exchange, (tz_name, opens, closes) in EXCHANGE_HOURS.items():
        local = now.astimezone(ZoneInfo(tz_name))
        if local.weekday() >= 5:
            status[exchange] = False
            continue
        status[exchange] = opens <= local.time() < closes
    return status


def render_market_hours(now: datetime) -> str:
    lines = [f"Market hours at {now.isoformat()}:"]
    for exchange, is_open in market_status(now).items():
        tz_name = EXCHANGE_HOURS[exchange][0]
        local = now.astimezone(ZoneInfo(tz_name))
        lines.append(f"- {exchange} ({local.strftime('%a %I:%M %p')} local): {'Open' if is_open else 'Closed'}")
    return "\n".join(lines)


@dataclass
class TradingStats:
    total_sessions: int = 0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_profit: float = 0.0

    @property
    def win_rate(self) -> float:
        return (self.winning_trades / self.total_trades) * 100 if self.total_trades else 0.0

    def render(self) -> str:
        return (
            f"User stats: {self.total_sessions} sessions, {self.total_trades} trades, "
            f"{self.win_rate:.1f}% win rate ({self.winning_trades}W/{self.losing_trades}L), "
            f"${self.total_profit:.2f} total P/L"
        )


class ChatService:
    def __init__(
        self,
        model: GenerativeModel,
        *,
        db: Optional[Session] = None,
        aggregator: Optional[MarketDataAggregator] = None,
        search: Optional[WebSearchClient] = None,
        retry: Optional[RetryScheduler] = None,
        choose: Callable[[Sequence[str]], str] = random.choice,
    ):
        self.model = model
        self.db = db
        self.aggregator = aggregator
        self.search = search
        self.retry = retry or RetryScheduler()
        self._choose = choose

    # --- Journal context ---

    def trading_stats(self, user_id: str) -> TradingStats:
        if self.db is None:
            return TradingStats()

        sessions = TradingSessionRepository(self.db).recent_for_user(user_id)
        trades = TradeRepository(self.db).recent_for_user(user_id)
        pnl = [float(t.profit_loss) for t in trades if t.profit_loss is not None]
        return TradingStats(
            total_sessions=len(sessions),
            total_trades=len(trades),
            winning_trades=sum(1 for p in pnl if p > 0),
            losing_trades=sum(1 for p in pnl if p < 0),
            total_profit=sum(pnl),
        )

    # --- Prompt ---

    async def _market_context(self, message: str, now: datetime) -> tuple:
        snapshot_task = self.aggregator.fetch_snapshot() if self.aggregator else None
        search_task = self.search.search_market_context(message, now=now) if self.search else None

        snapshot, results = await asyncio.gather(
            snapshot_task or _none(),
            search_task or _none(),
        )
        return snapshot, results or []

    def build_prompt(self, message: str, stats: TradingStats, now: datetime, snapshot=None, results=None) -> str:
        sections = [
            "You are a friendly AI trading assistant. Be conversational and helpful.",
            stats.render(),
            render_market_hours(now),
        ]
        if snapshot is not None:
            sections.append("Live market snapshot:\n" + render_snapshot_context(snapshot))
        search_block = render_search_context(results or [])
        if search_block:
            sections.append(search_block)
            sections.append(
                "Use the market information above where it is relevant to the user's question: "
                "key trends, price moves and news that could affect trading decisions."
            )
        sections.append(f'User message: "{message}"')
        sections.append(f"Keep responses under {MAX_REPLY_WORDS} words. Use emojis sparingly.")
        return "\n\n".join(sections)

    @log_execution_time(level="INFO")
    async def process_message(self, user_id: str, message: str, *, now: Optional[datetime] = None) -> str:
        """
        Never raises for provider or storage trouble; an empty message is a
        ValidationError.
        """
        if not message or not message.strip():
            raise ValidationError("Message cannot be empty")

        now = _aware(now)
        try:
            stats = self.trading_stats(user_id)
            snapshot, results = await self._market_context(message, now)
            prompt = self.build_prompt(message, stats, now, snapshot, results)

            reply = await self.retry.run(
                lambda: self.model.generate([TextPart(prompt)]),
                name="chat",
            )
        except Exception as e:
            if is_rate_limited(e):
                logger.warning(f"[Chat] model rate limited for user {user_id}: {e}")
                return self._choose(HIGH_DEMAND_REPLIES)
            logger.error(f"[Chat] processing failed for user {user_id}: {e}")
            return GENERIC_APOLOGY

        reply = (reply or "").strip()
        return reply or GENERIC_APOLOGY

    # --- History ---

    def save_exchange(self, user_id: str, message: str, reply: str) -> bool:
        """Persist both sides of an exchange. Returns False (logged) on failure."""
        if self.db is None:
            return False
        try:
            ChatMessageRepository(self.db).add_exchange(user_id, message, reply)
            return True
        except RepositoryError as e:
            logger.error(f"[Chat] could not save exchange for user {user_id}: {e.message}")
            return False

    def history(self, user_id: str, limit: int = 20) -> List[ChatMessage]:
        if self.db is None:
            return []
        try:
            return ChatMessageRepository(self.db).history(user_id, limit=limit)
        except RepositoryError as e:
            logger.error(f"[Chat] could not load history for user {user_id}: {e.message}")
            return []


async def _none():
    return None
