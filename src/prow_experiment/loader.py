"""Load job configurations from a checked-out tree."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

from . import jobconfig, log
from .models import Config

ConfigSnapshot = dict[str, Config]
LoadFn = Callable[[Path, Path], Config]


def load_configs(
    tree_root: Path,
    ci_config_path: str,
    job_config_paths: Sequence[str],
    *,
    load: LoadFn = jobconfig.load_config,
    logger: log.Logger | None = None,
) -> ConfigSnapshot:
    """Load each job-config path at ``tree_root``.

    A path that fails to load is logged and skipped; the rest of the batch is
    still loaded. Results are keyed by the repo-relative job-config path.
    """
    logger = logger or log.get_logger("loader")
    ci_config_in_tree = tree_root / ci_config_path
    snapshot: ConfigSnapshot = {}
    for path in job_config_paths:
        job_config_in_tree = tree_root / path
        try:
            config = load(ci_config_in_tree, job_config_in_tree)
        except jobconfig.ConfigLoadError as exc:
            logger.error(f"Failed to load config at {job_config_in_tree}: {exc.detail}")
            continue
        snapshot[path] = config.model_copy(update={"path": path})
        logger.info(f"Loaded config: {path}")
    return snapshot
