from __future__ import annotations

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def test_doc_command_validator_passes() -> None:
    proc = subprocess.run(
        [sys.executable, str(ROOT / "scripts" / "validate_doc_commands.py")],
        capture_output=True,
        text=True,
        check=False,
        cwd=ROOT,
    )
    assert proc.returncode == 0, proc.stdout + proc.stderr
    assert "doc command validation passed" in proc.stdout
