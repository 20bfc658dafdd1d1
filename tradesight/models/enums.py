from sqlalchemy import Enum

TradeStatus     = Enum("Open", "Closed", name="trade_status", native_enum=False)
CloseReason     = Enum("TP", "SL", "EarlyClose", "Other", name="close_reason", native_enum=False)
TradeSide       = Enum("Buy", "Sell", name="trade_side", native_enum=False)
TradeDirection  = Enum("Long", "Short", name="trade_direction", native_enum=False)
MarginMode      = Enum("Cross", "Isolated", name="margin_mode", native_enum=False)
TradeSource     = Enum("AI", "MANUAL", name="trade_source", native_enum=False)
MessageType     = Enum("user", "ai", name="message_type", native_enum=False)
