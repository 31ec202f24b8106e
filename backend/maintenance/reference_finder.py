"""
Reference model finder.

Walks the model-reference graph below a root model depth first and
collects every referenced model name once, in order of first discovery.
Each model is expanded at most once per run, so cycles and diamond-shaped
reference graphs terminate.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import config
from engine.host import ModelHost

logger = logging.getLogger(__name__)


@dataclass
class ReferenceSearch:
    """State of one finder run."""
    root: str
    reference_models: list[str] = field(default_factory=list)
    visited: set[str] = field(default_factory=set)
    failures: dict[str, str] = field(default_factory=dict)
    recorded: set[str] = field(default_factory=set, repr=False)

    def record(self, model_name: str) -> None:
        # The root is the starting point, never one of its own references
        if model_name != self.root and model_name not in self.recorded:
            self.recorded.add(model_name)
            self.reference_models.append(model_name)

    def to_dict(self) -> dict:
        return {
            'model': self.root,
            'reference_models': list(self.reference_models),
            'count': len(self.reference_models),
            'failures': dict(self.failures),
        }


def referenced_model_name(host: ModelHost, block_path: str) -> Optional[str]:
    """Target of a Model block, or None when the block is unconfigured."""
    name = host.get_param(block_path, 'ModelName')
    if not name or name == config.PLACEHOLDER_MODEL_NAME:
        return None
    return name


class ReferenceModelFinder:

    def __init__(self, host: ModelHost, search_dirs=None,
                 extensions=config.MODEL_EXTENSIONS):
        self.host = host
        self.search_dirs = [Path(d) for d in (search_dirs or [Path.cwd()])]
        self.extensions = tuple(extensions)

    def find(self, model_name: str) -> ReferenceSearch:
        search = ReferenceSearch(root=model_name)
        self._walk(model_name, search)
        return search

    def _walk(self, model_name: str, search: ReferenceSearch) -> None:
        if model_name in search.visited:
            return
        search.visited.add(model_name)

        try:
            if not self.host.is_loaded(model_name):
                logger.info("Loading model: %s", model_name)
                self.host.load_system(model_name)

            ref_blocks = self.host.find_blocks(model_name, 'ModelReference', recursive=True)
            logger.info("Found %d Model Reference blocks in: %s", len(ref_blocks), model_name)

            for block_path in ref_blocks:
                try:
                    ref_name = referenced_model_name(self.host, block_path)
                    if ref_name is None:
                        continue
                    logger.info("  -> Reference model: %s", ref_name)
                    search.record(ref_name)
                    self._walk(ref_name, search)
                except Exception as e:
                    logger.warning("  Warning: Could not process block %s: %s", block_path, e)

        except Exception as e:
            logger.error("Error processing model %s: %s", model_name, e)
            search.failures[model_name] = str(e)
            self._load_missing_references(model_name, search)

    def _load_missing_references(self, model_name: str, search: ReferenceSearch) -> None:
        """Best effort: probe the search directories for models that did not load."""
        if self.host.is_loaded(model_name):
            try:
                candidates = []
                for block_path in self.host.find_blocks(model_name, 'ModelReference', recursive=True):
                    try:
                        ref_name = referenced_model_name(self.host, block_path)
                    except Exception as e:
                        logger.debug("Skipping %s: %s", block_path, e)
                        continue
                    if ref_name is not None:
                        candidates.append(ref_name)
            except Exception as e:
                logger.debug("Could not list references of %s: %s", model_name, e)
                return
        else:
            candidates = [model_name]

        for ref_name in candidates:
            if self.host.is_loaded(ref_name):
                continue
            model_file = self.host.locate_model(ref_name) or self._probe(ref_name)
            if model_file is None:
                continue
            logger.info("Attempting to load missing model: %s from %s", ref_name, model_file)
            try:
                self.host.load_system(str(model_file))
            except Exception as e:
                logger.debug("Could not load %s: %s", model_file, e)
                continue

            # Loaded at last, so expand it like any other reference
            search.record(ref_name)
            search.visited.discard(ref_name)
            self._walk(ref_name, search)

    def _probe(self, model_name: str) -> Optional[Path]:
        for directory in self.search_dirs:
            for ext in self.extensions:
                candidate = directory / f"{model_name}{ext}"
                if candidate.is_file():
                    return candidate
        return None


def find_reference_models(host: ModelHost, model_name: str, search_dirs=None) -> list[str]:
    """Ordered, duplicate-free list of every model reachable from model_name."""
    return ReferenceModelFinder(host, search_dirs).find(model_name).reference_models
