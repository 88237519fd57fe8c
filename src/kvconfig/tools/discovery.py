"""
Configuration file discovery.

Given an ordered list of candidate paths, picks the first one that exists.
Only one file is ever selected; later candidates are not consulted once a
match is found.
"""

import os
import logging
from pathlib import Path
from typing import Iterable, List, Union

from ..errors import NoConfigFileFoundError


logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def normalize_candidates(candidates: Union[PathLike, Iterable[PathLike]]) -> List[Path]:
    """
    Turn a single path or an iterable of paths into a list of expanded Paths.

    Args:
        candidates: A path, or an ordered iterable of paths

    Returns:
        Candidate paths with ``~`` expanded, in the original order
    """
    if isinstance(candidates, (str, os.PathLike)):
        candidates = [candidates]
    return [Path(c).expanduser() for c in candidates]


def find_config_file(candidates: Union[PathLike, Iterable[PathLike]]) -> Path:
    """
    Return the first candidate that exists on the filesystem.

    Args:
        candidates: A path, or an ordered iterable of paths

    Returns:
        The selected configuration file path

    Raises:
        NoConfigFileFoundError: If none of the candidates exist
    """
    paths = normalize_candidates(candidates)

    for path in paths:
        if path.exists():
            logger.debug(f"Found configuration file: {path}")
            return path
        logger.debug(f"Configuration candidate not found: {path}")

    raise NoConfigFileFoundError(paths)
