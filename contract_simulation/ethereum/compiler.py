# ethereum/compiler.py
"""
Compiler front end over the `solc` executable.

Produces `Metadata` (ABI, bytecode, documentation, AST) for the main
contract of a Solidity source file.
"""

import asyncio
import json
import os
import tempfile
from dataclasses import replace
from typing import Any, Dict, List, Tuple

import structlog

from ..core.states import Method
from ..errors import CompileError
from .metadata import Metadata, SourceInfo

COMBINED_OUTPUTS = "abi,bin,ast,userdoc,devdoc"


def _maybe_json(value: Any) -> Any:
    # solc < 0.8 emits the combined-json fields as encoded strings
    if isinstance(value, str):
        return json.loads(value) if value else {}
    return value


def _source_unit(output: Dict[str, Any], path: str) -> Tuple[str, Dict[str, Any]]:
    sources = output.get("sources", {})
    for key, unit in sources.items():
        if os.path.abspath(key) == os.path.abspath(path) or os.path.basename(key) == os.path.basename(path):
            return key, unit.get("AST", {})
    raise ValueError(f"No AST for {path} in compiler output")


def _contract_definitions(ast: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [n for n in ast.get("nodes", []) if n.get("nodeType") == "ContractDefinition"]


def select_contract(ast: Dict[str, Any], path: str) -> Dict[str, Any]:
    """The contract named after the file, else the last contract defined in it."""
    definitions = _contract_definitions(ast)
    if not definitions:
        raise ValueError(f"No contract defined in {path}")

    stem = os.path.splitext(os.path.basename(path))[0]
    for definition in definitions:
        if definition.get("name") == stem:
            return definition
    return definitions[-1]


def load_combined_output(output: Dict[str, Any], path: str, content: str) -> Metadata:
    """Build Metadata from `solc --combined-json` output for the file at `path`."""
    source_key, ast = _source_unit(output, path)
    definition = select_contract(ast, path)
    name = definition["name"]

    contracts = output.get("contracts", {})
    entry = contracts.get(f"{source_key}:{name}")
    if entry is None:
        candidates = [v for k, v in contracts.items() if k.rsplit(":", 1)[-1] == name]
        if not candidates:
            raise ValueError(f"Contract {name} not found in compilation output")
        entry = candidates[0]

    abi = _maybe_json(entry.get("abi", []))
    bytecode = entry.get("bin", "")
    if bytecode and not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    return Metadata(
        name=name,
        source=SourceInfo(path=path, content=content),
        abi=tuple(Method.from_abi(e) for e in abi if e.get("type") in ("function", "constructor")),
        bytecode=bytecode,
        userdoc=_maybe_json(entry.get("userdoc", {})),
        devdoc=_maybe_json(entry.get("devdoc", {})),
        ast=ast,
        members=list(definition.get("nodes", [])),
    )


class Compiler:
    def __init__(self, solc_binary: str = "solc", logger=None):
        self.solc_binary = solc_binary
        self.logger = logger or structlog.get_logger(__name__)

    async def compile_from_file(self, path: str) -> Metadata:
        path = os.path.abspath(path)
        if not os.path.exists(path):
            raise FileNotFoundError(f"Contract file not found: {path}")

        with open(path, "r") as f:
            content = f.read()

        output = await self._run_solc(path, os.path.dirname(path), path)
        return load_combined_output(output, path, content)

    async def compile_from_source(self, path: str, content: str) -> Metadata:
        """Compile `content` as if it were the file at `path`; imports resolve next to `path`."""
        path = os.path.abspath(path)
        base = os.path.dirname(path)

        with tempfile.TemporaryDirectory() as tmp:
            staged = os.path.join(tmp, os.path.basename(path))
            with open(staged, "w") as f:
                f.write(content)
            output = await self._run_solc(staged, base, path)

        metadata = load_combined_output(output, staged, content)
        return replace(metadata, source=SourceInfo(path=path, content=content))

    async def _run_solc(self, file_path: str, base_path: str, reported_path: str) -> Dict[str, Any]:
        self.logger.info("Compiling contract", path=reported_path)
        solc_cmd = [
            self.solc_binary,
            "--combined-json", COMBINED_OUTPUTS,
            "--base-path", base_path,
            "--allow-paths", base_path,
            file_path,
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *solc_cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            self.logger.error("Solidity compiler not found", solc=self.solc_binary)
            raise

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            diagnostics = stderr.decode(errors="replace")
            self.logger.error("Compilation failed", path=reported_path, diagnostics=diagnostics)
            raise CompileError(reported_path, diagnostics)

        return json.loads(stdout.decode())
