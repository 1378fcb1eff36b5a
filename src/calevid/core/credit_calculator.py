"""
결제 금액 → 크레딧 환산

Paystack 금액은 최소 통화 단위(kobo/cent)로 전달된다.
credits = floor(amount / 100 / price), 정수 연산으로 계산
"""
from decimal import Decimal
from typing import Union


MINOR_UNITS_PER_MAJOR = 100


class CreditCalculator:
    """최소 통화 단위 금액을 크레딧 수로 환산"""

    def __init__(self, price_per_credit: Union[Decimal, int, str]):
        price = Decimal(str(price_per_credit))
        if not price.is_finite() or price <= 0:
            raise ValueError("price_per_credit는 0보다 커야 합니다")
        self.price_per_credit = price

    def credits_for(self, amount_minor_units: int) -> int:
        """0 이하의 결과는 호출 측에서 무효 처리한다

        가격을 정확한 분수(numerator/denominator)로 바꿔 정수 나눗셈만 사용한다.
        """
        if isinstance(amount_minor_units, bool) or not isinstance(amount_minor_units, int):
            raise TypeError("amount_minor_units는 정수여야 합니다")
        if amount_minor_units <= 0:
            return 0

        numerator, denominator = self.price_per_credit.as_integer_ratio()
        return (amount_minor_units * denominator) // (MINOR_UNITS_PER_MAJOR * numerator)

    def amount_for(self, credits: int) -> int:
        """크레딧 수에 해당하는 최소 통화 단위 금액 (체크아웃 금액 산정용)"""
        numerator, denominator = self.price_per_credit.as_integer_ratio()
        return (int(credits) * MINOR_UNITS_PER_MAJOR * numerator) // denominator
