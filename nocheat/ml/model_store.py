"""
Binary persistence for trained forests.

Layout (little-endian):

    header   b"NCRF"  u16 version  u32 feature_count  u32 tree_count
    tree     pre-order node stream
    node     u8 tag
             tag 0 (internal): u32 feature_index, f64 threshold,
                               left subtree, right subtree
             tag 1 (leaf):     f64 probability

Trees are decoded with an explicit stack, so a hostile file cannot exhaust
the interpreter's recursion limit.
"""

from pathlib import Path
from typing import List, Optional, Union
import logging
import math
import os
import struct

from ..errors import (
    CorruptModelError,
    ModelIOError,
    ModelNotFoundError,
    TruncatedModelError,
)
from .forest import RandomForest
from .tree import DecisionTree, TreeArena

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = "models/cheat_model.bin"
MODEL_PATH_ENV = "NOCHEAT_MODEL_PATH"

MAGIC = b"NCRF"
FORMAT_VERSION = 1

TAG_INTERNAL = 0
TAG_LEAF = 1

_HEADER = struct.Struct("<4sHII")
_TAG = struct.Struct("<B")
_SPLIT = struct.Struct("<Id")
_LEAF = struct.Struct("<d")


def default_model_path() -> str:
    """Model location from NOCHEAT_MODEL_PATH, else DEFAULT_MODEL_PATH."""
    return os.getenv(MODEL_PATH_ENV) or DEFAULT_MODEL_PATH


class _Reader:
    """Cursor over a byte buffer that reports short reads as truncation."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def unpack(self, layout: struct.Struct, what: str) -> tuple:
        end = self.offset + layout.size
        if end > len(self.data):
            raise TruncatedModelError(
                f"model ends inside {what}",
                context={"offset": self.offset, "needed": layout.size, "size": len(self.data)},
            )
        values = layout.unpack_from(self.data, self.offset)
        self.offset = end
        return values

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset


def _encode_tree(tree: DecisionTree, out: List[bytes]) -> None:
    stack = [0]
    while stack:
        node = stack.pop()
        if tree.is_leaf(node):
            out.append(_TAG.pack(TAG_LEAF))
            out.append(_LEAF.pack(float(tree.value[node])))
        else:
            out.append(_TAG.pack(TAG_INTERNAL))
            out.append(_SPLIT.pack(int(tree.feature[node]), float(tree.threshold[node])))
            # Right is pushed first so the left subtree is written first.
            stack.append(int(tree.right[node]))
            stack.append(int(tree.left[node]))


def dumps(forest: RandomForest) -> bytes:
    """Encode a forest to bytes."""
    out = [_HEADER.pack(MAGIC, FORMAT_VERSION, forest.feature_count, forest.tree_count)]
    for tree in forest.trees:
        _encode_tree(tree, out)
    return b"".join(out)


def _decode_tree(reader: _Reader, feature_count: int, tree_index: int) -> DecisionTree:
    arena = TreeArena()
    # Internal nodes still waiting for children: [node, left_child or None].
    pending: List[List[Optional[int]]] = []

    while True:
        (tag,) = reader.unpack(_TAG, f"tree {tree_index} node tag")
        if tag == TAG_INTERNAL:
            feature, threshold = reader.unpack(_SPLIT, f"tree {tree_index} split")
            if feature >= feature_count:
                raise CorruptModelError(
                    f"tree {tree_index} splits on feature {feature}",
                    context={"feature_count": feature_count},
                )
            if not math.isfinite(threshold):
                raise CorruptModelError(f"tree {tree_index} has a non-finite threshold")
            pending.append([arena.add_split(feature, threshold), None])
            continue
        if tag != TAG_LEAF:
            raise CorruptModelError(
                f"unknown node tag {tag} in tree {tree_index}",
                context={"offset": reader.offset - 1},
            )

        (probability,) = reader.unpack(_LEAF, f"tree {tree_index} leaf")
        if not 0.0 <= probability <= 1.0:
            raise CorruptModelError(f"tree {tree_index} leaf probability {probability} outside [0, 1]")
        finished = arena.add_leaf(probability)

        # Close every internal node whose right subtree just completed.
        while pending:
            parent = pending[-1]
            if parent[1] is None:
                parent[1] = finished
                break
            arena.set_children(parent[0], parent[1], finished)
            finished = parent[0]
            pending.pop()
        if not pending:
            return arena.freeze(feature_count)


def loads(data: bytes) -> RandomForest:
    """
    Decode a forest from bytes.

    Raises:
        CorruptModelError: bad magic, version, tag or field value, or trailing bytes
        TruncatedModelError: data ends mid-structure
    """
    reader = _Reader(data)
    magic, version, feature_count, tree_count = reader.unpack(_HEADER, "header")
    if magic != MAGIC:
        raise CorruptModelError(f"bad magic {magic!r}, expected {MAGIC!r}")
    if version != FORMAT_VERSION:
        raise CorruptModelError(
            f"unsupported model format version {version}",
            context={"supported": FORMAT_VERSION},
        )
    if feature_count == 0:
        raise CorruptModelError("model declares zero features")
    if tree_count == 0:
        raise CorruptModelError("model declares zero trees")

    trees = [_decode_tree(reader, feature_count, i) for i in range(tree_count)]
    if reader.remaining:
        raise CorruptModelError(
            f"{reader.remaining} trailing bytes after last tree",
            context={"offset": reader.offset},
        )
    return RandomForest(trees=tuple(trees), feature_count=feature_count)


def save_model(forest: RandomForest, path: Union[str, Path]) -> Path:
    """
    Write a forest to disk.

    The file is written beside the target and moved into place, so readers
    never observe a half-written model.

    Raises:
        ModelIOError: if the file cannot be written
    """
    path = Path(path)
    payload = dumps(forest)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "wb") as f:
            f.write(payload)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise ModelIOError(f"could not write model to {path}: {exc}", context={"path": str(path)}) from exc

    logger.info("Saved model with %d trees to %s (%d bytes)", forest.tree_count, path, len(payload))
    return path


def load_model(path: Union[str, Path]) -> RandomForest:
    """
    Read a forest from disk.

    Raises:
        ModelNotFoundError: file does not exist
        ModelIOError: any other OS error
        CorruptModelError, TruncatedModelError: invalid contents
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            data = f.read()
    except FileNotFoundError as exc:
        raise ModelNotFoundError(f"model file not found: {path}", context={"path": str(path)}) from exc
    except OSError as exc:
        raise ModelIOError(f"could not read model {path}: {exc}", context={"path": str(path)}) from exc

    forest = loads(data)
    logger.info(
        "Loaded model from %s: %d trees, %d features",
        path, forest.tree_count, forest.feature_count,
    )
    return forest
