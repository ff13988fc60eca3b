from warehouse.config import DEFAULT_CURRENCY

def format_currency(amount: float, currency: str = DEFAULT_CURRENCY) -> str:
    """金額を小数点以下2桁の表示用文字列にする（例: '12.50 ₾'）"""
    return f"{amount:.2f} {currency}"
