"""AMM pool runner: deploy a token pair and a constant-product pool, then exercise it."""

from amm_runner.amm.constant_product import ConstantProductPool, PoolReserves, quote
from amm_runner.pipeline import run_collectibles_pipeline, run_pool_pipeline

__version__ = "0.1.0"
__all__ = [
    "quote",
    "PoolReserves",
    "ConstantProductPool",
    "run_pool_pipeline",
    "run_collectibles_pipeline",
    "__version__",
]
