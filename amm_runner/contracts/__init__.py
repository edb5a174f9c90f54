"""Contract sources and artifact providers."""

from amm_runner.contracts.compiler import (
    ArtifactProvider,
    SolcCompiler,
    StaticArtifactProvider,
    compile_all,
)
from amm_runner.contracts.sources import CONTRACT_SOURCES

__all__ = [
    "CONTRACT_SOURCES",
    "ArtifactProvider",
    "SolcCompiler",
    "StaticArtifactProvider",
    "compile_all",
]
