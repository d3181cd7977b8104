from typing import Optional

# Differences below one cent are treated as settled
MONEY_TOLERANCE = 0.01


def round_money(value: Optional[float]) -> float:
    return round(float(value or 0), 2)


def format_currency(amount: Optional[float], symbol: str = "$", position: str = "before") -> str:
    """Format an amount with the shop's currency symbol ('before' or 'after')"""
    text = f"{round_money(amount):,.2f}"
    if position == "after":
        return f"{text} {symbol}"
    return f"{symbol}{text}"
