"""Handlers mirroring local changes into remote storage."""

import logging

from ..exceptions import BlobNotFoundError, StorageError
from ..paths import SEPARATOR
from ..utils import compute_content_md5, format_size
from .registry import EventHandlerRegistry, HandlerContext, PathLike

logger = logging.getLogger(__name__)


def upload_file(path: PathLike, context: HandlerContext) -> str:
    """Upload the full current content of a file.

    Args:
        path: Local file to upload
        context: Handler collaborators

    Returns:
        Blob key the file was stored under

    Raises:
        PathOutsideRootError: If the path is not under the root folder
        LocalReadError: If the file cannot be read
        StorageError: If the upload fails
    """
    key = context.codec.blob_key_for(path)
    content = context.files.read_all(path)
    context.storage.put(key, content, checksum=compute_content_md5(content))
    logger.info("Uploaded %s -> %s (%s)", path, key, format_size(len(content)))
    return key


class CreatedHandler:
    """Uploads newly created files. Directories are skipped."""

    def handle(self, path: PathLike, context: HandlerContext) -> None:
        if context.files.is_dir(path):
            logger.debug("Skipping directory %s", path)
            return
        upload_file(path, context)


class UpdatedHandler:
    """Replaces the remote object with the file's current content."""

    def handle(self, path: PathLike, context: HandlerContext) -> None:
        upload_file(path, context)


class RemovedHandler:
    """Deletes the remote object, or every object under a removed directory.

    The remote store has no directories, so a delete that finds nothing
    means the removed path was a directory: every object under
    ``key + "/"`` is deleted instead. Storage failures are logged and never
    propagate.
    """

    def handle(self, path: PathLike, context: HandlerContext) -> None:
        key = context.codec.blob_key_for(path)
        try:
            context.storage.delete(key)
        except BlobNotFoundError:
            logger.debug("No blob at %s, sweeping %s%s", key, key, SEPARATOR)
            self._sweep(key, context)
            return
        except StorageError as e:
            logger.error("Failed to delete %s: %s", key, e)
            return
        logger.info("Deleted %s", key)

    def _sweep(self, key: str, context: HandlerContext) -> int:
        """Delete every object under a folder key.

        Returns:
            Number of objects deleted
        """
        prefix = key + SEPARATOR
        try:
            names = context.storage.list(prefix)
        except StorageError as e:
            logger.error("Failed to list %s: %s", prefix, e)
            return 0

        deleted = 0
        for name in names:
            child = context.codec.encode(name)
            try:
                context.storage.delete(child)
            except StorageError as e:
                logger.warning("Failed to delete %s: %s", child, e)
                continue
            deleted += 1

        if names:
            logger.info("Deleted %d of %d blob(s) under %s", deleted, len(names), prefix)
        else:
            logger.debug("Nothing to delete under %s", prefix)
        return deleted


def build_registry(context: HandlerContext) -> EventHandlerRegistry:
    """Create the frozen registry with the create, remove and update handlers."""
    registry = EventHandlerRegistry(context)
    registry.register("create", CreatedHandler())
    registry.register("remove", RemovedHandler())
    registry.register("update", UpdatedHandler())
    registry.freeze()
    return registry
