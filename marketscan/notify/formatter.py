"""Telegram message formatting (Markdown)."""

from marketscan.lifecycle.models import LONG, LOSS, TIMEOUT, WIN, Signal

_MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def format_price(price: float) -> str:
    if price is None or price != price:
        return "N/A"
    if price < 10:
        return f"{price:.5f}"
    if price < 1000:
        return f"{price:.2f}"
    return f"{price:.0f}"


def escape_markdown(text: str) -> str:
    """Backslash-escape characters that legacy Telegram Markdown treats as markup."""
    for ch in _MARKDOWN_SPECIAL:
        text = text.replace(ch, "\\" + ch)
    return text


def format_distance(distance: float, reference_price: float) -> str:
    """Pips below a price of 10, points otherwise."""
    if not distance or distance != distance:
        return "N/A"
    if reference_price < 10:
        return f"{distance * 10000:.1f} pips"
    if reference_price < 1000:
        return f"{distance:.2f} pts"
    return f"{distance:.0f} pts"


def _arrow(direction: str) -> str:
    return "📈" if direction == LONG else "📉"


def format_created(signal: Signal) -> str:
    risk = abs(signal.entry - signal.stop_loss)
    tp_lines = []
    for i, tp in enumerate(signal.take_profits):
        r_multiple = abs(tp - signal.entry) / risk if risk else 0.0
        tp_lines.append(
            f"  TP{i + 1}: {format_price(tp)} "
            f"({r_multiple:.1f}R / {format_distance(abs(tp - signal.entry), signal.entry)})"
        )

    message = (
        "🟢 *New Setup*\n\n"
        f"*Symbol:* {signal.symbol}\n"
        f"*Timeframe:* {signal.timeframe}\n"
        f"*Mode:* {signal.mode.capitalize()}\n"
        f"*Direction:* {signal.direction.upper()} {_arrow(signal.direction)}\n\n"
        f"*Entry:* {format_price(signal.entry)}\n"
        f"*Stop Loss:* {format_price(signal.stop_loss)} "
        f"({format_distance(risk, signal.entry)})\n"
        "*Take Profits:*\n"
        + "\n".join(tp_lines)
        + f"\n\n*Confidence:* {round(signal.confidence * 100)}%\n\n"
        f"*Setup:* {escape_markdown(signal.candidate_reason)}\n\n"
        f"*Analysis:* {escape_markdown(signal.reason)}"
    )
    if signal.management_hint.strip():
        message += f"\n\n*Management:* {escape_markdown(signal.management_hint)}"
    return message


def format_triggered(signal: Signal) -> str:
    return (
        "⚡ *Trade Triggered*\n\n"
        f"*Symbol:* {signal.symbol} ({signal.timeframe})\n"
        f"*Direction:* {signal.direction.upper()} {_arrow(signal.direction)}\n"
        f"*Entry:* {format_price(signal.entry)} filled\n\n"
        "Trade is now active and being monitored."
    )


def format_expired(signal: Signal) -> str:
    return (
        "⚪ *Setup Expired*\n\n"
        f"*Symbol:* {signal.symbol} ({signal.timeframe})\n"
        f"*Direction:* {signal.direction.upper()}\n"
        f"*Entry:* {format_price(signal.entry)} was not hit\n\n"
        "Price did not reach entry level within expiration threshold."
    )


def format_closed(signal: Signal) -> str:
    detail = signal.outcome_detail
    if detail is None:
        raise ValueError(f"Signal {signal.id} has no outcome detail")

    if signal.outcome == WIN:
        emoji, title, result = "✅", "Trade Won", f"{detail.hit.upper()} Hit"
    elif signal.outcome == LOSS:
        emoji, title, result = "❌", "Stop Loss Hit", "SL Hit"
    elif signal.outcome == TIMEOUT:
        emoji, title, result = "⏱️", "Trade Timeout", "No TP/SL Hit"
    else:
        emoji, title, result = "⚫", "Trade Closed", signal.outcome

    r = detail.risk_multiple
    sign = "+" if r >= 0 else ""
    return (
        f"{emoji} *{title}*\n\n"
        f"*Symbol:* {signal.symbol} ({signal.timeframe})\n"
        f"*Direction:* {signal.direction.upper()} {_arrow(signal.direction)}\n"
        f"*Entry:* {format_price(signal.entry)}\n"
        f"*Exit:* {format_price(detail.hit_price)} ({result})\n"
        f"*R-Multiple:* {sign}{r:.2f}R\n\n"
        f"*Profit/Loss:* "
        f"{format_distance(abs(detail.hit_price - signal.entry), signal.entry)}"
    )
