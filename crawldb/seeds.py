r"""Seed list files.

One URL per line, optionally followed by TAB-separated key=value metadata:

    http://www.l3s.de/\tnutch.score=2.5\tnutch.fetchInterval=86400
    # comments and blank lines are skipped
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)


def parse_seed_line(line: str) -> Optional[Tuple[str, Dict[str, str]]]:
    """Parse one line of a seed file.

    Returns:
        (url, metadata), or None for blank and comment lines
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    url, *fields = line.split("\t")
    metadata: Dict[str, str] = {}
    for entry in fields:
        entry = entry.strip()
        if not entry:
            continue
        key, sep, value = entry.partition("=")
        if not sep or not key:
            logger.warning(f"Ignoring malformed metadata '{entry}' for seed {url}")
            continue
        metadata[key] = value
    return url.strip(), metadata


def read_seeds(seeds_file: str) -> Iterator[Tuple[str, Dict[str, str]]]:
    """Yield (url, metadata) pairs from a seed file.

    Raises:
        FileNotFoundError: if the file does not exist
    """
    path = Path(seeds_file)
    if not path.exists():
        raise FileNotFoundError(f"Seeds file not found: {seeds_file}")
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            seed = parse_seed_line(line)
            if seed is not None:
                yield seed
