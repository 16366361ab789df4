"""
Task snapshot storage backend (JSON file).

The whole collection is written on every save; there is no partial update.
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class JsonFilePersistence:
    """Load and save the task collection as a pretty-printed JSON array."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[List[Dict[str, Any]]]:
        """Return the stored collection, or None if the file does not exist yet."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return data

    def save(self, tasks: List[Dict[str, Any]]) -> None:
        """Write the collection, replacing the previous snapshot."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(tasks, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)
