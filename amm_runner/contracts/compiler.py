"""Contract artifact providers.

An artifact provider turns a contract name into {abi, bytecode}. The solc
provider compiles the bundled Solidity sources through py-solc-x using the
standard-JSON interface; the static provider serves artifacts that were
compiled elsewhere (e.g. a Hardhat/Foundry output directory).
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

import structlog

from amm_runner.constants import DEFAULT_SOLC_VERSION
from amm_runner.contracts.sources import CONTRACT_SOURCES
from amm_runner.errors import CompilationError
from amm_runner.models.records import ContractArtifact

logger = structlog.get_logger()

CompileFn = Callable[[dict[str, Any]], dict[str, Any]]


class ArtifactProvider(Protocol):
    """Anything that can hand out a compiled contract by name."""

    def get_artifact(self, name: str) -> ContractArtifact:
        """Return the artifact for `name`.

        Raises:
            CompilationError: If the contract cannot be produced
        """
        ...


def build_standard_input(name: str, source: str) -> dict[str, Any]:
    """Build a solc standard-JSON input selecting only abi and bytecode."""
    return {
        "language": "Solidity",
        "sources": {f"{name}.sol": {"content": source}},
        "settings": {"outputSelection": {"*": {"*": ["abi", "evm.bytecode.object"]}}},
    }


def collect_diagnostics(output: Mapping[str, Any]) -> tuple[list[str], list[str]]:
    """Split compiler diagnostics into (errors, warnings).

    Only diagnostics with severity "error" block deployment.
    """
    errors: list[str] = []
    warnings: list[str] = []
    for diagnostic in output.get("errors", []):
        message = diagnostic.get("formattedMessage") or diagnostic.get("message", "")
        if diagnostic.get("severity") == "error":
            errors.append(message.strip())
        else:
            warnings.append(message.strip())
    return errors, warnings


def extract_artifact(name: str, output: Mapping[str, Any]) -> ContractArtifact:
    """Pull `name` out of a standard-JSON compiler output."""
    try:
        contract = output["contracts"][f"{name}.sol"][name]
        abi = contract["abi"]
        bytecode = contract["evm"]["bytecode"]["object"]
    except KeyError as err:
        raise CompilationError(name, [f"Contract missing from compiler output: {err}"]) from err

    if not bytecode:
        raise CompilationError(name, ["Empty bytecode (abstract contract or interface?)"])
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode
    return ContractArtifact(name=name, abi=abi, bytecode=bytecode)


class SolcCompiler:
    """Compile bundled Solidity sources with solc via py-solc-x.

    Results are cached per contract name for the lifetime of the instance.
    """

    def __init__(
        self,
        sources: Mapping[str, str] | None = None,
        solc_version: str = DEFAULT_SOLC_VERSION,
        install: bool = True,
        compile_fn: CompileFn | None = None,
    ) -> None:
        """Initialize the compiler.

        Args:
            sources: Contract name -> Solidity source (default: bundled contracts)
            solc_version: solc release to compile with
            install: Download solc_version if it is not installed yet
            compile_fn: Replacement for solcx.compile_standard (used in tests)
        """
        self.sources = dict(sources if sources is not None else CONTRACT_SOURCES)
        self.solc_version = solc_version
        self.install = install
        self._compile_fn = compile_fn
        self._cache: dict[str, ContractArtifact] = {}

    def _ensure_solc(self) -> None:
        import solcx

        installed = {str(v) for v in solcx.get_installed_solc_versions()}
        if self.solc_version in installed:
            return
        if not self.install:
            raise CompilationError("*", [f"solc {self.solc_version} is not installed"])
        logger.info("installing_solc", version=self.solc_version)
        solcx.install_solc(self.solc_version)

    def _run_solc(self, name: str, standard_input: dict[str, Any]) -> dict[str, Any]:
        if self._compile_fn is not None:
            return self._compile_fn(standard_input)

        import solcx
        from solcx.exceptions import SolcError

        self._ensure_solc()
        try:
            return solcx.compile_standard(standard_input, solc_version=self.solc_version)
        except SolcError as err:
            error_dict = getattr(err, "error_dict", None) or []
            diagnostics = [
                (e.get("formattedMessage") or e.get("message", "")).strip()
                for e in error_dict
                if e.get("severity") == "error"
            ]
            raise CompilationError(name, diagnostics or [str(err)]) from err

    def get_artifact(self, name: str) -> ContractArtifact:
        if name in self._cache:
            return self._cache[name]
        if name not in self.sources:
            raise CompilationError(name, [f"No source registered for {name}"])

        output = self._run_solc(name, build_standard_input(name, self.sources[name]))

        errors, warnings = collect_diagnostics(output)
        for warning in warnings:
            logger.warning("compiler_warning", contract=name, message=warning)
        if errors:
            for error in errors:
                logger.error("compiler_error", contract=name, message=error)
            raise CompilationError(name, errors)

        artifact = extract_artifact(name, output)
        self._cache[name] = artifact
        logger.info("contract_compiled", contract=name, bytecode_size=(len(artifact.bytecode) - 2) // 2)
        return artifact


class StaticArtifactProvider:
    """Serve artifacts that were compiled ahead of time."""

    def __init__(self, artifacts: Mapping[str, ContractArtifact]) -> None:
        self.artifacts = dict(artifacts)

    @classmethod
    def from_directory(cls, directory: Path) -> StaticArtifactProvider:
        """Load every `<Name>.json` file holding {"abi": [...], "bytecode": "0x..."}.

        Hardhat-style files where bytecode sits under "bytecode" and
        Foundry-style files where it sits under "bytecode.object" are both
        accepted.
        """
        artifacts: dict[str, ContractArtifact] = {}
        for path in sorted(Path(directory).glob("*.json")):
            with open(path) as f:
                data = json.load(f)
            bytecode = data.get("bytecode", "")
            if isinstance(bytecode, dict):
                bytecode = bytecode.get("object", "")
            if "abi" not in data or not bytecode:
                logger.warning("artifact_file_skipped", path=str(path))
                continue
            if not bytecode.startswith("0x"):
                bytecode = "0x" + bytecode
            artifacts[path.stem] = ContractArtifact(name=path.stem, abi=data["abi"], bytecode=bytecode)
        return cls(artifacts)

    def get_artifact(self, name: str) -> ContractArtifact:
        try:
            return self.artifacts[name]
        except KeyError as err:
            raise CompilationError(name, [f"No precompiled artifact for {name}"]) from err


def compile_all(provider: ArtifactProvider, names: Iterable[str]) -> dict[str, ContractArtifact]:
    """Fetch every named artifact up front so a failure aborts before deployment."""
    return {name: provider.get_artifact(name) for name in names}


__all__ = [
    "ArtifactProvider",
    "SolcCompiler",
    "StaticArtifactProvider",
    "build_standard_input",
    "collect_diagnostics",
    "extract_artifact",
    "compile_all",
]
