"""
Client identity bootstrap.

The identity is an opaque random handle the collector uses to group
reports from one installation. It is generated once and never rotated.
"""

import uuid
from pathlib import Path
from typing import Union

import structlog
from aiofiles import open as aio_open

from .exceptions import FileAccessError, InvalidTargetError

logger = structlog.get_logger(__name__)


async def load_or_create_identity(path: Union[str, Path]) -> str:
    """
    Return the persisted client identity, creating it on first run.

    Raises:
        InvalidTargetError: path is a directory
        FileAccessError: identity cannot be read or persisted
    """
    identity_path = Path(path)

    if identity_path.is_dir():
        raise InvalidTargetError(f"{identity_path} is a directory", path=str(identity_path))

    if identity_path.exists():
        try:
            async with aio_open(identity_path, 'r') as f:
                client_id = (await f.readline()).strip()
        except OSError as e:
            logger.error("Failed to open identity file", path=str(identity_path), error=str(e))
            raise FileAccessError(
                f"Failed to open {identity_path}",
                details={"path": str(identity_path), "error": str(e)},
            ) from e

        if client_id:
            return client_id
        logger.warning("Identity file is empty, generating new one", path=str(identity_path))

    client_id = str(uuid.uuid4())
    try:
        async with aio_open(identity_path, 'w') as f:
            await f.write(client_id)
    except OSError as e:
        logger.error("Failed to save new identity", path=str(identity_path), error=str(e))
        raise FileAccessError(
            f"Failed to save new identity to {identity_path}",
            details={"path": str(identity_path), "error": str(e)},
        ) from e

    logger.info("Generated new client identity", client_id=client_id[:8] + "...")
    return client_id
