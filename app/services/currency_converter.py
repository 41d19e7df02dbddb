from typing import Dict, Optional

# 1単位あたりのINR（固定レート）
DEFAULT_INR_RATES = {
    "USD": 83.25,
    "EUR": 89.5,
    "GBP": 105.2,
    "JPY": 0.55,
}

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}

# 小数桁数（未登録通貨は2桁）
CURRENCY_DECIMALS = {
    "JPY": 0,
}


class CurrencyConverter:
    """固定レートテーブルによる通貨換算

    レートはINR建て（1 USD = 83.25 INR 等）で保持し、
    換算はUSDを経由する: from → USD → to。
    """

    def __init__(self, inr_rates: Optional[Dict[str, float]] = None):
        rates = dict(DEFAULT_INR_RATES if inr_rates is None else inr_rates)
        if "USD" not in rates:
            raise ValueError("レートテーブルにUSDが必要です")

        # USD 1単位あたりの各通貨量
        usd_in_inr = rates["USD"]
        self.per_usd: Dict[str, float] = {"INR": usd_in_inr}
        for currency, inr_rate in rates.items():
            self.per_usd[currency.upper()] = usd_in_inr / inr_rate

    def _rate(self, currency: str) -> float:
        try:
            return self.per_usd[currency]
        except KeyError:
            raise ValueError(f"未対応の通貨です: {currency}") from None

    def convert(self, amount: float, from_currency: str = "USD", to_currency: str = "INR") -> float:
        """通貨換算"""
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return amount

        amount_in_usd = amount if from_currency == "USD" else amount / self._rate(from_currency)
        return amount_in_usd if to_currency == "USD" else amount_in_usd * self._rate(to_currency)

    def format(self, amount: float, currency: str = "INR") -> str:
        """通貨表記（INRはインド式の桁区切り）"""
        currency = currency.upper()
        decimals = CURRENCY_DECIMALS.get(currency, 2)
        number = f"{abs(amount):.{decimals}f}"
        integer_part, _, fraction = number.partition(".")

        if currency == "INR":
            grouped = _group_indian(integer_part)
        else:
            grouped = f"{int(integer_part):,}"

        body = f"{grouped}.{fraction}" if fraction else grouped
        symbol = CURRENCY_SYMBOLS.get(currency)
        text = f"{symbol}{body}" if symbol else f"{currency} {body}"
        return f"-{text}" if amount < 0 and float(number) != 0 else text


def _group_indian(digits: str) -> str:
    """12345678 → 1,23,45,678"""
    if len(digits) <= 3:
        return digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])
