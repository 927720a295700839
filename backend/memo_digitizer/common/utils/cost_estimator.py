from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ...core.config import settings


COST_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class CostMeta:
    model: str
    input_tokens: int
    output_tokens: int
    input_cost_usd: Decimal
    output_cost_usd: Decimal
    total_cost_usd: Decimal

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def formatted_total(self) -> str:
        """小数点以下4桁の文字列（レスポンス用）"""
        return f"{self.total_cost_usd:.4f}"


def estimate_cost_usd(
    model: str,
    input_tokens: int,
    output_tokens: int,
    in_rate: Decimal | None = None,
    out_rate: Decimal | None = None,
) -> CostMeta:
    """
    プロバイダが報告した使用トークン数からコストを算出する。
    単価はトークンあたりのUSD。未指定なら設定値を使う。
    """
    in_rate = settings.input_cost_per_token if in_rate is None else in_rate
    out_rate = settings.output_cost_per_token if out_rate is None else out_rate
    input_tokens = max(int(input_tokens or 0), 0)
    output_tokens = max(int(output_tokens or 0), 0)

    input_cost = Decimal(input_tokens) * in_rate
    output_cost = Decimal(output_tokens) * out_rate
    total = (input_cost + output_cost).quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)
    return CostMeta(
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        input_cost_usd=input_cost,
        output_cost_usd=output_cost,
        total_cost_usd=total,
    )
