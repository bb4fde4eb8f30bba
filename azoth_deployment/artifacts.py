"""Foundry build output lookup."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Union

from azoth_deployment.constants import BUILD_OUTPUT_DIR
from azoth_deployment.exceptions import ArtifactMalformed, ArtifactNotFound


@dataclass(frozen=True)
class ContractArtifact:
    """ABI and creation bytecode of a compiled contract."""

    name: str
    abi: List[Dict[str, Any]]
    bytecode: str


def _parse_bytecode(name: str, raw: Any) -> str:
    # forge emits {"object": "0x..", "sourceMap": .., "linkReferences": ..}
    if isinstance(raw, dict):
        raw = raw.get("object")
    if not isinstance(raw, str) or not raw:
        raise ArtifactMalformed(f"Artifact for {name} has no bytecode.")
    if not raw.startswith("0x"):
        raw = "0x" + raw
    if len(raw) == 2:
        raise ArtifactMalformed(f"Artifact for {name} has empty bytecode (abstract contract?).")
    if "__$" in raw:
        raise ArtifactMalformed(f"Artifact for {name} has unlinked library references.")
    return raw


class ArtifactLoader:
    """Loads contract artifacts from a foundry `out/` directory."""

    def __init__(self, build_dir: Union[Path, str] = BUILD_OUTPUT_DIR):
        self.build_dir = Path(build_dir)
        self._cache: Dict[str, ContractArtifact] = {}

    def artifact_filepath(self, name: str) -> Path:
        return self.build_dir / f"{name}.sol" / f"{name}.json"

    def load(self, name: str) -> ContractArtifact:
        """
        Returns the artifact for `name`.

        Raises:
            ArtifactNotFound: If there is no build output for the contract
            ArtifactMalformed: If the build output lacks an ABI or bytecode
        """
        if name in self._cache:
            return self._cache[name]

        filepath = self.artifact_filepath(name)
        try:
            with open(filepath, "r") as file:
                data = json.load(file)
        except FileNotFoundError as e:
            raise ArtifactNotFound(
                f"No build output for {name} at {filepath}. Run 'forge build' first."
            ) from e
        except json.JSONDecodeError as e:
            raise ArtifactMalformed(
                f"Artifact for {name} at {filepath} is not valid JSON: {e}"
            ) from e

        if not isinstance(data, dict):
            raise ArtifactMalformed(f"Artifact for {name} at {filepath} is not a JSON object.")

        abi = data.get("abi")
        if not isinstance(abi, list):
            raise ArtifactMalformed(f"Artifact for {name} at {filepath} has no ABI.")

        artifact = ContractArtifact(
            name=name,
            abi=abi,
            bytecode=_parse_bytecode(name, data.get("bytecode")),
        )
        self._cache[name] = artifact
        return artifact
