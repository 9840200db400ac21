from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    # Default SQLite store used by the CLI.
    db_path: str = os.getenv("DOCGRAPH_DB_PATH", "./data/graph.db")

    # Query defaults
    neighborhood_depth: int = int(os.getenv("DOCGRAPH_NEIGHBORHOOD_DEPTH", "1"))
    traverse_depth: int = int(os.getenv("DOCGRAPH_TRAVERSE_DEPTH", "2"))
    path_max_depth: int = int(os.getenv("DOCGRAPH_PATH_MAX_DEPTH", "6"))
    node_limit: int = int(os.getenv("DOCGRAPH_NODE_LIMIT", "50"))
    min_cluster_size: int = int(os.getenv("DOCGRAPH_MIN_CLUSTER_SIZE", "3"))

    # Hard ceilings on what a caller may request.
    max_depth_cap: int = int(os.getenv("DOCGRAPH_MAX_DEPTH_CAP", "10"))
    node_limit_cap: int = int(os.getenv("DOCGRAPH_NODE_LIMIT_CAP", "1000"))

    log_level: str = os.getenv("DOCGRAPH_LOG_LEVEL", "WARNING")
