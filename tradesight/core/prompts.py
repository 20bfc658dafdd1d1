# tradesight/core/prompts.py
from tradesight.schemas.extraction import ExtractionVariant

FOREX_TABLE_PROMPT = """
Analyze this forex trading history table screenshot and extract ALL visible data for one trade row.

TABLE FORMAT (columns, left to right):
1. Symbol (e.g. XAU/USD, EUR/USD)
2. Type (Buy/Sell, often with a colored marker)
3. Volume / lot size (0.01, 0.1 ...)
4. Open Price
5. Close Price
6. T/P (Take Profit) - always column 6, extract the number
7. S/L (Stop Loss) - always column 7, extract the number
8. Trade status - text such as "Open", "Closed", "All Closed", "Completed"
9. Open Time (e.g. "Jun 16, 8:50:55 PM")
10. Close Time (e.g. "Jun 16, 11:41:00 PM")
11. Additional columns (Swap, Reason, P/L)

RULES:
- Numbers may contain thousands separators (3,401.188); return them as numbers.
- Keep the +/- sign of the P/L column.
- Times may be copied exactly as printed; ISO-8601 is also accepted.
- Trade status must be status TEXT. Never put a position/order ID number there; use null instead.

Return ONLY this JSON object:
{
  "symbol": "...",
  "type": "Buy or Sell",
  "volumeLot": number,
  "openPrice": number,
  "closePrice": number,
  "tp": number,
  "sl": number,
  "position": "Open, Closed, All Closed or Completed",
  "openTime": "...",
  "closeTime": "...",
  "reason": "reason if visible",
  "pnlUsd": number
}
""".strip()


CRYPTO_TABLE_PROMPT = """
Analyze this CRYPTO futures trading history table screenshot and extract ALL visible data for one trade row.

TABLE FORMAT (columns, left to right):
1. Futures symbol (e.g. "BTCUSDT Perpetual"), keep "Perpetual" if printed
2. Margin Mode - "Cross" or "Isolated"
3. Avg Close Price (e.g. 107,128.9)
4. Direction - "Long" or "Short"
5. Margin Adjustment History - usually "View History"
6. Close Time (e.g. "2024-05-28 21:11:47")
7. Closing Quantity (e.g. "548.5579 USDT")
8. Trade status - "Open", "Closed", "All Closed", "Completed"
9. Realized PNL (e.g. "4,881 USDT", "+2,144 USD")
10. Open Time
11. Avg Entry Price (e.g. 108,045.3)

RULES:
- Return numbers without thousands separators or unit suffixes; keep the sign of the PNL.
- Trade status must be status TEXT. Never put a position/order ID number there; use null instead.
- Do not return null for a field that is visible in the table.

Return ONLY this JSON object:
{
  "futuresSymbol": "...",
  "marginMode": "Cross or Isolated",
  "avgClosePrice": number,
  "direction": "Long or Short",
  "marginAdjustmentHistory": "... or null",
  "closeTime": "...",
  "closingQuantity": number,
  "status": "Open, Closed, All Closed or Completed",
  "realizedPnl": number,
  "openTime": "...",
  "avgEntryPrice": number
}
""".strip()


def table_prompt(variant: ExtractionVariant) -> str:
    if ExtractionVariant(variant) is ExtractionVariant.CRYPTO:
        return CRYPTO_TABLE_PROMPT
    return FOREX_TABLE_PROMPT
