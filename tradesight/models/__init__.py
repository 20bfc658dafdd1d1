# tradesight/models/__init__.py
from tradesight.models.base import Base

# Import every module that defines mapped classes
from tradesight.models.session import TradingSession
from tradesight.models.trade import Trade
from tradesight.models.chat_message import ChatMessage
