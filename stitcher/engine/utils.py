import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def ensure_dir(path: Union[str, Path]) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def remove_quietly(path: Union[str, Path]) -> bool:
    """
    Best-effort unlink. A missing file is not an error; any other failure is
    logged and swallowed. Returns True if a file was actually removed.
    """
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to delete %s: %s", path, e)
        return False
