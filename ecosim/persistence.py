"""
Simulation Persistence

Full object graph checkpointing of a Simulation using dill, with a JSON
sidecar of metadata for inspection and rotating backups.

Failures are logged and reported through the return value (False / None);
pass strict=True to get a PersistenceError instead.

USAGE:
    save_simulation(sim, "runs/world.ecosim")
    sim = load_simulation("runs/world.ecosim")

    checkpoints = SimulationPersistence("./checkpoints", interval=5000)
    sim.run(100000, callback=checkpoints.maybe_save)
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import dill

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
CHECKPOINT_SUFFIX = ".ecosim"


class PersistenceError(Exception):
    """A checkpoint could not be written or read."""


def _python_version() -> str:
    return f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"


def _fail(message: str, strict: bool, cause: Optional[BaseException] = None):
    logger.warning(message)
    if strict:
        raise PersistenceError(message) from cause


def rotate_backups(filepath: Path, max_backups: int):
    """Shift file.backup1..N up by one and move the current file to .backup1."""
    if max_backups <= 0:
        return
    oldest = filepath.with_suffix(f'.backup{max_backups}')
    if oldest.exists():
        oldest.unlink()
    for i in range(max_backups - 1, 0, -1):
        backup = filepath.with_suffix(f'.backup{i}')
        if backup.exists():
            backup.rename(filepath.with_suffix(f'.backup{i + 1}'))
    if filepath.exists():
        filepath.rename(filepath.with_suffix('.backup1'))


def save_simulation(simulation, filepath, strict: bool = False,
                    max_backups: int = 0) -> bool:
    """Write the whole simulation to `filepath`. Returns True on success."""
    filepath = Path(filepath)
    save_data = {
        'version': FORMAT_VERSION,
        'saved_at': datetime.now().isoformat(),
        'python_version': _python_version(),
        'tick': simulation.tick,
        'population': len(simulation.organisms),
        'simulation': simulation,
    }

    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        rotate_backups(filepath, max_backups)
        with open(filepath, 'wb') as f:
            dill.dump(save_data, f, protocol=dill.HIGHEST_PROTOCOL)

        meta_path = filepath.with_suffix('.meta.json')
        with open(meta_path, 'w') as f:
            json.dump({
                'version': save_data['version'],
                'saved_at': save_data['saved_at'],
                'python_version': save_data['python_version'],
                'tick': save_data['tick'],
                'population': save_data['population'],
                'file_size_bytes': os.path.getsize(filepath),
            }, f, indent=2)
    except (OSError, dill.PicklingError, TypeError) as e:
        _fail(f"Failed to save simulation to {filepath}: {e}", strict, e)
        return False

    logger.info("Saved simulation at tick %d to %s", simulation.tick, filepath)
    return True


def load_simulation(filepath, strict: bool = False):
    """Read a simulation written by save_simulation. Returns None on failure."""
    filepath = Path(filepath)
    if not filepath.exists():
        _fail(f"Checkpoint not found: {filepath}", strict)
        return None

    try:
        with open(filepath, 'rb') as f:
            save_data = dill.load(f)
    except (OSError, EOFError, dill.UnpicklingError, AttributeError, ImportError) as e:
        _fail(f"Failed to load simulation from {filepath}: {e}", strict, e)
        return None

    if not isinstance(save_data, dict) or 'simulation' not in save_data:
        _fail(f"Not a simulation checkpoint: {filepath}", strict)
        return None

    version = save_data.get('version')
    if version != FORMAT_VERSION:
        logger.warning("Checkpoint %s has format version %s, expected %s",
                       filepath, version, FORMAT_VERSION)

    simulation = save_data['simulation']
    logger.info("Loaded simulation at tick %d from %s", simulation.tick, filepath)
    return simulation


def read_metadata(filepath) -> Dict[str, Any]:
    meta_path = Path(filepath).with_suffix('.meta.json')
    if not meta_path.exists():
        return {}
    try:
        with open(meta_path) as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Unreadable checkpoint metadata %s: %s", meta_path, e)
        return {}


class SimulationPersistence:
    """
    Periodic checkpointing into one directory.

    maybe_save() is shaped as a Simulation.run() callback: it writes
    `autosave.ecosim` every `interval` ticks, keeping `max_backups` older copies.
    """

    def __init__(self, save_directory: str = "./ecosim_saves", interval: int = 5000,
                 max_backups: int = 3):
        self.save_directory = Path(save_directory)
        self.interval = interval
        self.max_backups = max_backups
        self.save_count = 0

    @property
    def autosave_path(self) -> Path:
        return self.save_directory / f"autosave{CHECKPOINT_SUFFIX}"

    def save(self, simulation, name: Optional[str] = None) -> Optional[Path]:
        if name is None:
            name = f"sim_{datetime.now().strftime('%Y%m%d_%H%M%S')}_t{simulation.tick}"
        path = self.save_directory / f"{name}{CHECKPOINT_SUFFIX}"
        if not save_simulation(simulation, path, max_backups=self.max_backups):
            return None
        self.save_count += 1
        return path

    def maybe_save(self, simulation) -> bool:
        if self.interval <= 0 or simulation.tick % self.interval != 0:
            return False
        if save_simulation(simulation, self.autosave_path, max_backups=self.max_backups):
            self.save_count += 1
            return True
        return False

    def list_saves(self) -> List[Dict[str, Any]]:
        """Checkpoints in the directory, newest first."""
        saves = []
        for path in self.save_directory.glob(f"*{CHECKPOINT_SUFFIX}"):
            saves.append({'path': str(path), 'name': path.stem, 'meta': read_metadata(path)})
        return sorted(saves, key=lambda s: s['meta'].get('saved_at', ''), reverse=True)

    def get_latest_save(self) -> Optional[str]:
        saves = self.list_saves()
        return saves[0]['path'] if saves else None
