# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Run Store - persistence sink for flow runs and their traces.

The orchestrator creates a run, appends one NodeExecutionRecord per
attempted node and writes the terminal state once. Readers only ever get
copies.

FileRunStore layout:
    runs/
    └── {YYYY-MM-DD}/
        ├── run_20250101_120000_ab12cd34.json
        └── ...
"""

import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
from pydantic import ValidationError as PydanticValidationError

from flowbridge.core.errors import NotFoundError
from flowbridge.core.logging import get_service_logger
from flowbridge.models.flow import FlowRun, NodeExecutionRecord, RunStatus

logger = get_service_logger("run-store")


class RunStore(ABC):
    """Persistence contract used by the orchestrator and the API."""

    @abstractmethod
    async def create(self, run: FlowRun) -> None:
        pass

    @abstractmethod
    async def append_node_execution(self, run_id: str, record: NodeExecutionRecord) -> None:
        pass

    @abstractmethod
    async def update(self, run: FlowRun) -> None:
        pass

    @abstractmethod
    async def get(self, run_id: str) -> FlowRun:
        pass

    @abstractmethod
    async def list(
        self,
        flow_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[FlowRun]:
        pass


def _matches(run: FlowRun, flow_id: Optional[str], status: Optional[str]) -> bool:
    if flow_id and run.flow_id != flow_id:
        return False
    if status and run.status.value != status:
        return False
    return True


class InMemoryRunStore(RunStore):
    """Process-local store; the default and what tests use."""

    def __init__(self):
        self._runs: Dict[str, FlowRun] = {}

    async def create(self, run: FlowRun) -> None:
        self._runs[run.id] = run.model_copy(deep=True)

    async def append_node_execution(self, run_id: str, record: NodeExecutionRecord) -> None:
        stored = self._runs.get(run_id)
        if stored is None:
            raise NotFoundError("Run", run_id)
        stored.node_executions.append(record.model_copy(deep=True))

    async def update(self, run: FlowRun) -> None:
        if run.id not in self._runs:
            raise NotFoundError("Run", run.id)
        self._runs[run.id] = run.model_copy(deep=True)

    async def get(self, run_id: str) -> FlowRun:
        run = self._runs.get(run_id)
        if run is None:
            raise NotFoundError("Run", run_id)
        return run.model_copy(deep=True)

    async def list(
        self,
        flow_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[FlowRun]:
        runs = [r for r in self._runs.values() if _matches(r, flow_id, status)]
        runs.sort(key=lambda r: r.started_at, reverse=True)
        return [r.model_copy(deep=True) for r in runs[offset:offset + limit]]


class FileRunStore(RunStore):
    """
    One JSON file per run under date directories.

    Writes go through aiofiles under a per-file asyncio.Lock so concurrent
    appends from the same run never interleave.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, file_path: str) -> asyncio.Lock:
        """Get or create lock for a specific file"""
        if file_path not in self._locks:
            self._locks[file_path] = asyncio.Lock()
        return self._locks[file_path]

    def _path_for(self, run_id: str) -> Path:
        # run_YYYYMMDD_HHMMSS_hash -> YYYY-MM-DD
        try:
            date = datetime.strptime(run_id.split("_")[1], "%Y%m%d").strftime("%Y-%m-%d")
        except (IndexError, ValueError):
            date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return self.base_dir / date / f"{run_id}.json"

    def _find(self, run_id: str) -> Optional[Path]:
        path = self._path_for(run_id)
        if path.exists():
            return path
        for candidate in self.base_dir.glob(f"*/{run_id}.json"):
            return candidate
        return None

    async def _write(self, path: Path, run: FlowRun) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w") as f:
            await f.write(run.model_dump_json(indent=2))

    async def _read(self, path: Path) -> FlowRun:
        async with aiofiles.open(path, "r") as f:
            return FlowRun.model_validate_json(await f.read())

    async def create(self, run: FlowRun) -> None:
        path = self._path_for(run.id)
        async with self._get_lock(str(path)):
            await self._write(path, run)

    async def append_node_execution(self, run_id: str, record: NodeExecutionRecord) -> None:
        path = self._find(run_id)
        if path is None:
            raise NotFoundError("Run", run_id)
        async with self._get_lock(str(path)):
            run = await self._read(path)
            run.node_executions.append(record)
            await self._write(path, run)

    async def update(self, run: FlowRun) -> None:
        path = self._find(run.id) or self._path_for(run.id)
        async with self._get_lock(str(path)):
            await self._write(path, run)
        if run.status != RunStatus.RUNNING:
            # Terminal runs are never written again
            self._locks.pop(str(path), None)

    async def get(self, run_id: str) -> FlowRun:
        path = self._find(run_id)
        if path is None:
            raise NotFoundError("Run", run_id)
        lock = self._locks.get(str(path))
        if lock is None:
            return await self._read(path)
        async with lock:
            return await self._read(path)

    async def list(
        self,
        flow_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[FlowRun]:
        runs: List[FlowRun] = []
        for date_dir in sorted(self.base_dir.glob("*"), reverse=True):
            if not date_dir.is_dir():
                continue
            for run_file in sorted(date_dir.glob("run_*.json"), reverse=True):
                try:
                    run = await self._read(run_file)
                except (OSError, ValueError, PydanticValidationError) as e:
                    logger.warning(f"Skipping unreadable run file {run_file}: {e}")
                    continue
                if _matches(run, flow_id, status):
                    runs.append(run)
                if len(runs) >= limit + offset:
                    return runs[offset:offset + limit]
        return runs[offset:offset + limit]
