"""Repository layer on in-memory SQLite."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tradesight.core.exceptions import NotFoundError, RepositoryError
from tradesight.repositories.chat import ChatMessageRepository
from tradesight.repositories.session import TradingSessionRepository
from tradesight.repositories.trade import TradeRepository
from tradesight.schemas.extraction import ExtractedTradeRecord, ExtractionVariant


@pytest.fixture
def sessions(db_session):
    return TradingSessionRepository(db_session)


@pytest.fixture
def trades(db_session):
    return TradeRepository(db_session)


class TestTradingSessions:
    def test_recent_for_user_is_scoped_and_ordered(self, sessions):
        first = sessions.create({"user_id": "u-1", "name": "Week 1"})
        second = sessions.create({"user_id": "u-1", "name": "Week 2"})
        sessions.create({"user_id": "u-2", "name": "Other user"})

        recent = sessions.recent_for_user("u-1")
        assert [s.id for s in recent] == [second.id, first.id]
        assert len(sessions.recent_for_user("u-1", limit=1)) == 1
        assert sessions.get(first.id).name == "Week 1"

    def test_where_operators(self, sessions):
        sessions.create({"user_id": "u-1", "name": "Alpha", "initial_capital": Decimal("500")})
        sessions.create({"user_id": "u-1", "name": "Beta", "initial_capital": Decimal("5000")})

        assert sessions.count({"user_id": "u-1"}) == 2
        big = sessions.find(where={"initial_capital": {">=": 1000}})
        assert [s.name for s in big] == ["Beta"]
        either = sessions.find(where={"or": [{"name": "Alpha"}, {"name": {"like": "Bet%"}}]})
        assert len(either) == 2
        assert sessions.find(where={"not": {"name": "Alpha"}})[0].name == "Beta"

    def test_unknown_column_is_rejected(self, sessions):
        with pytest.raises(ValueError):
            sessions.create({"user_id": "u-1", "name": "x", "colour": "red"})
        with pytest.raises(ValueError):
            sessions.find(where={"colour": "red"})

    def test_update_and_delete(self, sessions):
        s = sessions.create({"user_id": "u-1", "name": "Draft"})
        sessions.update(s, {"name": "Final", "current_capital": Decimal("1200.50")})
        assert sessions.get(s.id).name == "Final"
        assert sessions.delete({"user_id": "u-1"}) == 1
        assert sessions.get(s.id) is None

    def test_integrity_errors_become_repository_errors(self, sessions):
        with pytest.raises(RepositoryError):
            sessions.create({"user_id": "u-1", "name": None})
        # the session is usable again after the rollback
        assert sessions.create({"user_id": "u-1", "name": "ok"}).name == "ok"


class TestTrades:
    def test_create_from_extracted_record(self, sessions, trades):
        journal = sessions.create({"user_id": "u-1", "name": "Journal"})
        record = ExtractedTradeRecord(
            variant=ExtractionVariant.CRYPTO,
            symbol="BTCUSDT Perpetual",
            side="Sell",
            direction="Short",
            volume=548.5579,
            open_price=108045.3,
            close_price=107128.9,
            open_time=datetime(2024, 5, 28, 18, 57, 22, tzinfo=timezone.utc),
            status="Closed",
            profit_loss_usd=4881.0,
            margin_mode="Cross",
            margin_history_note="View History",
        )

        trade = trades.create_from_extracted(journal.id, record)

        assert trade.session_id == journal.id
        assert trade.source == "AI"
        assert trade.variant == "crypto"
        assert trade.side == "Sell" and trade.direction == "Short"
        assert trade.profit_loss == Decimal("4881.0")
        assert trade.open_time == datetime(2024, 5, 28, 18, 57, 22)
        assert trade.take_profit is None
        assert trades.recent_for_session(journal.id)[0].id == trade.id

    def test_create_from_extracted_needs_a_session(self, trades):
        with pytest.raises(NotFoundError):
            trades.create_from_extracted(uuid.uuid4(), ExtractedTradeRecord(symbol="EUR/USD"))

    def test_empty_record_is_stored_as_all_null(self, sessions, trades):
        journal = sessions.create({"user_id": "u-1", "name": "Journal"})
        trade = trades.create_from_extracted(journal.id, ExtractedTradeRecord())
        assert trade.symbol is None and trade.variant is None and trade.profit_loss is None

    def test_recent_for_user_spans_sessions(self, sessions, trades):
        a = sessions.create({"user_id": "u-1", "name": "A"})
        b = sessions.create({"user_id": "u-1", "name": "B"})
        other = sessions.create({"user_id": "u-2", "name": "C"})
        for session_id in (a.id, b.id, other.id):
            trades.create({"session_id": session_id, "symbol": "EUR/USD"})

        assert len(trades.recent_for_user("u-1")) == 2
        assert trades.recent_for_user("nobody") == []


def test_chat_history_newest_first(db_session):
    repo = ChatMessageRepository(db_session)
    repo.add_exchange("u-1", "hello", "hi there")
    history = repo.history("u-1")
    assert [(m.message_type, m.message) for m in history] == [("ai", "hi there"), ("user", "hello")]
