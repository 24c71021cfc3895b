import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

LOG = logging.getLogger("JiraQuery.export")


def write_results(data: Any, path: str) -> Path:
    """Write search results as pretty-printed JSON, creating parent directories."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return out_path


def write_action_outputs(outputs: Dict[str, str], output_path: Optional[str] = None) -> bool:
    """
    Append step outputs to the GitHub Actions output file.
    Returns False when not running under Actions (no GITHUB_OUTPUT).
    """
    output_path = output_path or os.getenv("GITHUB_OUTPUT")
    if not output_path:
        return False
    with open(output_path, "a", encoding="utf-8") as handle:
        for name, value in outputs.items():
            value = str(value)
            if "\n" in value:
                delimiter = f"ghadelimiter_{uuid.uuid4()}"
                handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                handle.write(f"{name}={value}\n")
    LOG.debug("Wrote %d outputs to %s", len(outputs), output_path)
    return True
