"""File writer for generated components."""
import json
from pathlib import Path
from typing import Any, Dict, List

from matura.generators.component_gen.types import GeneratedFile


def write_files(files: List[GeneratedFile], out_dir: Path) -> None:
    """
    Write generated files to the output directory.

    Args:
        files: List of GeneratedFile objects to write
        out_dir: Base output directory path
    """
    out_dir.mkdir(parents=True, exist_ok=True)

    for file in files:
        file_path = out_dir / file.path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(file.content, encoding="utf-8")


def write_generated_app(
    base_dir: Path,
    request_id: str,
    component_name: str,
    source: str,
    metadata: Dict[str, Any],
) -> Path:
    """Write ``{ComponentName}.tsx`` and ``metadata.json`` under ``base_dir/request_id``.

    Returns the component path.
    """
    out_dir = base_dir / request_id
    files = [
        GeneratedFile(path=f"{component_name}.tsx", content=source),
        GeneratedFile(path="metadata.json", content=json.dumps(metadata, ensure_ascii=False, indent=2, default=str)),
    ]
    write_files(files, out_dir)
    return out_dir / f"{component_name}.tsx"
