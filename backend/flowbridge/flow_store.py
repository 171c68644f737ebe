# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Repository - flow definitions keyed by id.

Definitions live in memory; load_directory reads JSON graphs and YAML
files (graph form or step-list form) at start-up. When a directory is
given, save_flow/delete_flow also write through to it.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from flowbridge.core.errors import ConfigurationError, FlowBridgeError, NotFoundError, ValidationError
from flowbridge.core.logging import get_service_logger
from flowbridge.flow_dsl import compile_flow, is_step_document
from flowbridge.models.flow import FlowDefinition

logger = get_service_logger("flows")


class FlowRepository:
    """In-memory flow definitions with optional write-through to disk."""

    def __init__(self, flows_dir: Optional[Path] = None):
        self.flows_dir = Path(flows_dir) if flows_dir else None
        self._flows: Dict[str, FlowDefinition] = {}

    def list_flows(self) -> List[FlowDefinition]:
        return sorted(self._flows.values(), key=lambda f: f.name.lower())

    def get_flow(self, flow_id: str) -> FlowDefinition:
        flow = self._flows.get(flow_id)
        if flow is None:
            raise NotFoundError("Flow", flow_id)
        return flow

    def save_flow(self, flow: FlowDefinition, persist: bool = True) -> FlowDefinition:
        if persist and self.flows_dir is not None:
            self._validate_flow_id(flow.id)
            self.flows_dir.mkdir(parents=True, exist_ok=True)
            (self.flows_dir / f"{flow.id}.json").write_text(flow.model_dump_json(indent=2))
        self._flows[flow.id] = flow
        logger.info(f"Saved flow: {flow.id} ({flow.name})")
        return flow

    def delete_flow(self, flow_id: str) -> None:
        if flow_id not in self._flows:
            raise NotFoundError("Flow", flow_id)
        del self._flows[flow_id]
        if self.flows_dir is not None:
            self._validate_flow_id(flow_id)
            file_path = self.flows_dir / f"{flow_id}.json"
            if file_path.exists():
                file_path.unlink()
        logger.info(f"Deleted flow: {flow_id}")

    def load_file(self, file_path: Path) -> FlowDefinition:
        """
        Load one flow file.

        Raises:
            ConfigurationError: Unreadable file or invalid definition
        """
        file_path = Path(file_path)
        try:
            text = file_path.read_text()
            if file_path.suffix == ".json":
                document = json.loads(text)
            else:
                document = yaml.safe_load(text)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read flow file: {e}", config_file=str(file_path))

        if not isinstance(document, dict):
            raise ConfigurationError("Flow file must contain a mapping", config_file=str(file_path))

        try:
            if is_step_document(document):
                document.setdefault("id", file_path.stem)
                flow = compile_flow(document)
            else:
                flow = FlowDefinition(**document)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid flow definition: {e}", config_file=str(file_path))

        return self.save_flow(flow, persist=False)

    def load_directory(self, flows_dir: Optional[Path] = None) -> int:
        """
        Load every *.json, *.yaml and *.yml file in a directory.

        Invalid files are skipped with a warning. Returns the number of
        flows loaded.
        """
        directory = Path(flows_dir) if flows_dir else self.flows_dir
        if directory is None or not directory.exists():
            logger.info(f"Flow directory not found, nothing loaded: {directory}")
            return 0

        loaded = 0
        for file_path in sorted(directory.iterdir()):
            if file_path.suffix not in (".json", ".yaml", ".yml"):
                continue
            try:
                self.load_file(file_path)
                loaded += 1
            except FlowBridgeError as e:
                logger.warning(f"Skipping invalid flow file {file_path.name}: {e.message}")

        logger.info(f"Loaded {loaded} flows from {directory}")
        return loaded

    def _validate_flow_id(self, flow_id: str) -> None:
        """Flow ids become file names; refuse path separators."""
        if not flow_id or "/" in flow_id or "\\" in flow_id or ".." in flow_id:
            raise ValidationError(
                "Flow id cannot contain path separators or '..'",
                field="id"
            )
