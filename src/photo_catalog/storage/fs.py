from __future__ import annotations

import io
import logging
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterable

from photo_catalog.errors import NotADirectoryPathError, PathNotFoundError
from photo_catalog.models import ContentReader, FolderNode, FolderTree

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png")


class FilesystemDatastore:
    """Access to the photo collection on disk.

    All paths handed in and out are POSIX-style and relative to ``root_folder``;
    the empty string denotes the root folder itself.
    """

    def __init__(self, root_folder: Path | str, allowed_extensions: Iterable[str] = ALLOWED_EXTENSIONS):
        self.root_folder = Path(root_folder)
        self.allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)

    def resolve(self, relative_path: str) -> Path:
        return self.root_folder.joinpath(*PurePosixPath(relative_path).parts)

    def walk_tree(self, relative_path: str) -> FolderTree:
        """Build the folder tree below ``relative_path``.

        Raises ``PathNotFoundError`` or ``NotADirectoryPathError`` when the
        starting point cannot be walked.
        """
        full_path = self.resolve(relative_path)
        if not full_path.exists():
            raise PathNotFoundError(relative_path)
        if not full_path.is_dir():
            raise NotADirectoryPathError(relative_path)

        tree = FolderTree(relative_path)
        self._populate(tree, tree.root, full_path)
        logger.debug(
            "walked %s: %d folders, %d media files",
            relative_path or "<root>",
            tree.total_folder_count(),
            tree.total_media_count(),
        )
        return tree

    def _populate(self, tree: FolderTree, node: FolderNode, directory: Path) -> None:
        subdirectories: list[Path] = []
        for entry in sorted(directory.iterdir(), key=lambda item: item.name):
            # Links are never followed; the tree only holds what is really below the root.
            if entry.is_symlink():
                logger.debug("skipping symlink %s", self._relative(node.path, entry.name))
                continue
            if entry.is_dir():
                subdirectories.append(entry)
            elif entry.is_file() and self._is_allowed_extension(entry):
                tree.add_media_file(node, self._relative(node.path, entry.name))

        for subdirectory in subdirectories:
            child = tree.add_node(self._relative(node.path, subdirectory.name), node)
            self._populate(tree, child, subdirectory)

    @staticmethod
    def _relative(parent_path: str, name: str) -> str:
        return f"{parent_path}/{name}" if parent_path else name

    def _is_allowed_extension(self, path: Path) -> bool:
        name = path.name.lower().strip()
        return any(name.endswith(ext) for ext in self.allowed_extensions)

    def read(self, relative_path: str) -> ContentReader:
        full_path = self.resolve(relative_path)

        def reader() -> BinaryIO:
            return io.BytesIO(full_path.read_bytes())

        return reader

    def create_folder(self, relative_path: str) -> None:
        """Create the folder and any missing parents. Existing folders are left alone."""
        full_path = self.resolve(relative_path)
        if full_path.exists() and not full_path.is_dir():
            raise NotADirectoryPathError(relative_path)
        full_path.mkdir(parents=True, exist_ok=True)
