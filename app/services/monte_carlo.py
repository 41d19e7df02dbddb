from dataclasses import dataclass
from typing import Optional, Sequence
import logging
import math

import numpy as np

from app.schemas.analytics import MonteCarloPercentiles, MonteCarloResult

logger = logging.getLogger(__name__)


@dataclass
class MonteCarloSettings:
    """モンテカルロ設定"""
    simulations: int = 10000
    starting_balance: float = 10000.0
    ruin_threshold: float = 0.5  # 初期資金に対する比率


class MonteCarloSimulator:
    """損益プールからの復元抽出によるブートストラップシミュレーション

    乱数源は ``integers(low, high, size=...)`` を持つオブジェクト
    （``numpy.random.Generator`` 互換）を注入できる。
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def run(self, returns: Sequence[float], config: MonteCarloSettings) -> MonteCarloResult:
        pool = np.asarray(returns, dtype=float)
        simulations = int(config.simulations)
        starting_balance = float(config.starting_balance)

        if pool.size == 0 or simulations <= 0:
            return MonteCarloResult(
                simulations=0,
                percentiles=MonteCarloPercentiles(
                    p10=starting_balance, p50=starting_balance, p90=starting_balance
                ),
                ruin_probability=0.0,
            )

        logger.debug(f"モンテカルロ開始: {simulations}回 × {pool.size}トレード")

        # 全シミュレーションの残高を1本のバッファで並行して進める
        balances = np.full(simulations, starting_balance, dtype=float)
        for _ in range(pool.size):
            draws = self.rng.integers(0, pool.size, size=simulations)
            balances += pool[draws]
            np.maximum(balances, 0.0, out=balances)

        balances.sort()

        ruin_count = np.count_nonzero(balances < starting_balance * config.ruin_threshold)

        return MonteCarloResult(
            simulations=simulations,
            percentiles=MonteCarloPercentiles(
                p10=float(balances[_percentile_index(simulations, 0.1)]),
                p50=float(balances[_percentile_index(simulations, 0.5)]),
                p90=float(balances[_percentile_index(simulations, 0.9)]),
            ),
            ruin_probability=ruin_count / simulations,
        )


def _percentile_index(simulations: int, p: float) -> int:
    return int(math.floor(simulations * p))
