# JSONL reader/writer for findings handed between pipeline runs.
from pathlib import Path
from typing import Iterable, List
import json

from packages.schema.models import Finding


def write_jsonl(path: Path, findings: Iterable[Finding]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8") as f:
        for finding in findings:
            f.write(json.dumps(finding.model_dump(), ensure_ascii=False) + "\n")
            count += 1
    return count


def read_jsonl(path: Path) -> List[Finding]:
    findings: List[Finding] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                findings.append(Finding.model_validate_json(line))
    return findings
