from __future__ import annotations

import hashlib
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import BinaryIO, Callable, Iterator, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


ContentReader = Callable[[], BinaryIO]


def generate_id(path: str) -> str:
    clean_path = path.rstrip("/")
    return hashlib.sha256(clean_path.encode("utf-8")).hexdigest()[:12]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncRequest(BaseModel):
    path: str = Field(default="", description="Album path relative to the data root. Empty syncs the whole root.")

    @field_validator("path")
    @classmethod
    def normalize_path(cls, value: str) -> str:
        raw = value.strip()
        if raw.startswith("/"):
            raise ValueError("Path must be relative to the data root.")
        cleaned = posixpath.normpath(raw) if raw else ""
        if cleaned == ".":
            return ""
        if cleaned == ".." or cleaned.startswith("../"):
            raise ValueError("Path must not leave the data root.")
        return cleaned


@dataclass(slots=True)
class Album:
    id: str
    path: str
    parent_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def for_path(cls, path: str, parent: Optional["Album"] = None) -> "Album":
        return cls(id=generate_id(path), path=path, parent_id=parent.id if parent is not None else None)

    @property
    def is_data_root(self) -> bool:
        return self.path == ""


class MediaType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"


_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


@dataclass(slots=True)
class Media:
    id: str
    album: Album
    filename: str
    media_type: MediaType = MediaType.PHOTO
    hash: Optional[str] = None
    captured_at: Optional[datetime] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def create(cls, filename: str, album: Album) -> "Media":
        return cls(id=generate_id(f"{filename}{album.id}"), album=album, filename=filename)

    @property
    def filepath(self) -> str:
        return posixpath.join(self.album.path, self.filename)

    @property
    def content_type(self) -> str:
        ext = posixpath.splitext(self.filename.lower())[1]
        return _CONTENT_TYPES.get(ext, "image/unknown")


@dataclass(slots=True)
class FolderNode:
    """One directory found during discovery.

    ``parent`` and ``children`` are handles into the owning ``FolderTree``.
    """

    handle: int
    path: str
    media_files: list[str] = field(default_factory=list)
    children: list[int] = field(default_factory=list)
    parent: Optional[int] = None


class FolderTree:
    """Arena of ``FolderNode`` objects rooted at handle 0."""

    def __init__(self, root_path: str) -> None:
        self._nodes: list[FolderNode] = [FolderNode(handle=0, path=root_path)]
        self._by_path: dict[str, int] = {root_path: 0}

    @property
    def root(self) -> FolderNode:
        return self._nodes[0]

    def __len__(self) -> int:
        return len(self._nodes)

    def node(self, handle: int) -> FolderNode:
        return self._nodes[handle]

    def add_node(self, path: str, parent: FolderNode) -> FolderNode:
        if path in self._by_path:
            raise ValueError(f"folder {path!r} is already part of the tree")
        node = FolderNode(handle=len(self._nodes), path=path, parent=parent.handle)
        self._nodes.append(node)
        self._by_path[path] = node.handle
        parent.children.append(node.handle)
        return node

    def add_media_file(self, node: FolderNode, file_path: str) -> None:
        node.media_files.append(file_path)

    def find(self, path: str) -> Optional[FolderNode]:
        handle = self._by_path.get(path)
        return self._nodes[handle] if handle is not None else None

    def parent_of(self, node: FolderNode) -> Optional[FolderNode]:
        if node.parent is None:
            return None
        return self._nodes[node.parent]

    def children_of(self, node: FolderNode) -> list[FolderNode]:
        return [self._nodes[handle] for handle in node.children]

    def walk(self, start: Optional[FolderNode] = None) -> Iterator[FolderNode]:
        """Yield nodes depth-first, each folder before its children."""
        stack = [start or self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(self._nodes[handle] for handle in reversed(node.children))

    def total_media_count(self) -> int:
        return sum(len(node.media_files) for node in self._nodes)

    def total_folder_count(self) -> int:
        return len(self._nodes)


class ItemKind(str, Enum):
    ALBUM = "album"
    MEDIA = "media"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.STOPPED)


@dataclass(frozen=True, slots=True)
class TaskResult:
    kind: ItemKind
    name: str
    error: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime = field(default_factory=utcnow)

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class JobProgress:
    id: UUID
    path: str
    status: JobStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total: int = 0
    remaining: int = 0
    results: tuple[TaskResult, ...] = ()

    @property
    def failed_results(self) -> list[TaskResult]:
        return [result for result in self.results if result.failed]
