#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tool Resolution Service Module
Locates SteamCMD and Wine across base images that install them in different
places. Each tool is resolved through an ordered list of search tiers; the
first tier that yields an executable wins.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, List

from ..handlers.filesystem_handler import FileSystemHandler
from ..models.configuration import RuntimeEnvironment, SupervisorSettings
from ..models.errors import ToolNotFound
from ...shared import paths

# Initialize logger
logger = logging.getLogger(__name__)

EXPLICIT_PATH = "explicit_path"
EXPLICIT_DIR = "explicit_dir"
SEARCH_PATH = "search_path"
COMMON_LOCATION = "common_location"
FILESYSTEM_WALK = "filesystem_walk"


@dataclass(frozen=True)
class SearchTier:
    """
    One step of tool resolution.

    For explicit_path, explicit_dir and common_location tiers the candidates
    are full paths checked for executability in order. For search_path and
    filesystem_walk tiers the candidates are executable names.
    """
    kind: str
    candidates: Tuple[str, ...]
    root: Optional[str] = None
    max_depth: int = 0

    def describe(self) -> str:
        if self.kind == FILESYSTEM_WALK:
            return f"{self.kind}({self.root}, depth<={self.max_depth})"
        return f"{self.kind}({', '.join(self.candidates)})"


def build_search_tiers(names: Sequence[str], path_override: Optional[str] = None,
                       dir_override: Optional[str] = None,
                       common_locations: Sequence[str] = (),
                       search_root: Optional[str] = "/",
                       max_depth: int = paths.SEARCH_MAX_DEPTH) -> List[SearchTier]:
    """
    Declare the tiers for one tool, most specific first. Tiers whose input
    is absent (no override set, no walk root) are left out.
    """
    tiers = []
    if path_override:
        tiers.append(SearchTier(EXPLICIT_PATH, (path_override,)))
    if dir_override:
        tiers.append(SearchTier(EXPLICIT_DIR, tuple(os.path.join(dir_override, n) for n in names)))
    tiers.append(SearchTier(SEARCH_PATH, tuple(names)))
    if common_locations:
        tiers.append(SearchTier(COMMON_LOCATION, tuple(common_locations)))
    if search_root:
        tiers.append(SearchTier(FILESYSTEM_WALK, tuple(names), root=search_root, max_depth=max_depth))
    return tiers


def resolve_tool(tiers: Sequence[SearchTier], probe) -> Optional[Tuple[str, SearchTier]]:
    """
    Walk the tiers in order and return (path, tier) for the first executable
    found, or None. The probe supplies is_executable_file, which and
    find_executable, so the same tiers can be evaluated against a simulated
    filesystem.
    """
    for tier in tiers:
        if tier.kind in (EXPLICIT_PATH, EXPLICIT_DIR, COMMON_LOCATION):
            for candidate in tier.candidates:
                if probe.is_executable_file(candidate):
                    return candidate, tier
        elif tier.kind == SEARCH_PATH:
            for name in tier.candidates:
                found = probe.which(name)
                if found:
                    return found, tier
        elif tier.kind == FILESYSTEM_WALK:
            found = probe.find_executable(tier.root, tier.candidates, tier.max_depth)
            if found:
                return found, tier
        else:
            raise ValueError(f"Unknown search tier: {tier.kind}")
    return None


class ToolResolutionService:
    """
    Builds the RuntimeEnvironment for a run.
    """

    def __init__(self, probe=None, search_root: Optional[str] = "/",
                 max_depth: int = paths.SEARCH_MAX_DEPTH):
        self.probe = probe or FileSystemHandler()
        self.search_root = search_root
        self.max_depth = max_depth

    def steamcmd_tiers(self, settings: SupervisorSettings) -> List[SearchTier]:
        return build_search_tiers(
            paths.STEAMCMD_NAMES,
            path_override=settings.steamcmd_path,
            dir_override=settings.steamcmd_dir,
            common_locations=paths.STEAMCMD_COMMON_LOCATIONS,
            search_root=self.search_root,
            max_depth=self.max_depth,
        )

    def wine_tiers(self, settings: SupervisorSettings) -> List[SearchTier]:
        return build_search_tiers(
            paths.WINE_NAMES,
            path_override=settings.wine_path,
            dir_override=settings.wine_dir,
            common_locations=paths.WINE_COMMON_LOCATIONS,
            search_root=self.search_root,
            max_depth=self.max_depth,
        )

    def resolve_tool(self, tool: str, tiers: Sequence[SearchTier]) -> str:
        """
        Resolve one tool or raise ToolNotFound.
        """
        result = resolve_tool(tiers, self.probe)
        if result is None:
            raise ToolNotFound(tool, [tier.describe() for tier in tiers])
        path, tier = result
        logger.debug(f"{tool} resolved via {tier.kind}: {path}")
        return path

    def find_wineserver(self, wine_path: str) -> Optional[str]:
        """wineserver normally sits beside the wine binary; fall back to PATH."""
        wine_dir = Path(os.path.realpath(wine_path)).parent
        for name in paths.WINESERVER_NAMES:
            candidate = wine_dir / name
            if self.probe.is_executable_file(str(candidate)):
                return str(candidate)
        for name in paths.WINESERVER_NAMES:
            found = self.probe.which(name)
            if found:
                return found
        return None

    def resolve(self, settings: SupervisorSettings, require_fetcher: Optional[bool] = None) -> RuntimeEnvironment:
        """
        Resolve every tool the run needs.

        Args:
            settings: Supervisor settings
            require_fetcher: Whether a missing SteamCMD is fatal. Defaults to
                settings.update_on_start.

        Raises:
            ToolNotFound: Wine is missing, or SteamCMD is missing and required
        """
        if require_fetcher is None:
            require_fetcher = settings.update_on_start

        wine_bin = self.resolve_tool("Wine", self.wine_tiers(settings))
        logger.debug(f"Wine available: {wine_bin}")

        fetcher_path = None
        try:
            fetcher_path = self.resolve_tool("SteamCMD", self.steamcmd_tiers(settings))
            logger.debug(f"SteamCMD available: {fetcher_path}")
        except ToolNotFound:
            if require_fetcher:
                logger.error("SteamCMD not found but UPDATE_ON_START=1")
                logger.error("Set STEAMCMD=/path/to/steamcmd.sh or STEAMCMD_DIR=/path/to/dir")
                raise
            logger.warning("SteamCMD not found; updates are disabled so continuing without it")

        wineserver = self.find_wineserver(wine_bin)
        if not wineserver:
            logger.warning("wineserver not found; prefix helper management will be skipped")

        return RuntimeEnvironment(
            fetcher_path=fetcher_path,
            compat_runtime_binary=wine_bin,
            prefix_path=settings.wine_prefix,
            display=settings.display,
            server_install_dir=settings.server_dir,
            config_dir=settings.config_dir,
            wineserver_path=wineserver,
        )
