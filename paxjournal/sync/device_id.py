"""Stable per-installation device identifier."""

import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

DEVICE_ID_FILENAME = "device-id"


def get_device_id(data_dir: str | Path) -> str:
    """Return this installation's device id, creating it on first use.

    Creation is atomic (O_EXCL), so two processes starting together agree
    on a single id.
    """
    data_dir = Path(data_dir).expanduser()
    data_dir.mkdir(parents=True, exist_ok=True)
    path = data_dir / DEVICE_ID_FILENAME

    if path.exists():
        device_id = path.read_text(encoding="utf-8").strip()
        if device_id:
            return device_id

    new_id = str(uuid.uuid4())
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        # Another process won the race, or an empty file was left behind
        existing = path.read_text(encoding="utf-8").strip()
        if existing:
            return existing
        path.write_text(new_id, encoding="utf-8")
        return new_id

    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(new_id)

    logger.info(f"Created device id {new_id}")
    return new_id
