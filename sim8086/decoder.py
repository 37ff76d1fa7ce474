"""
sim8086 — Decoder Trie

Every supported instruction form is written down as a DecodePath: the
sequence of byte matchers its bytes must satisfy. The paths are merged
into a prefix trie (shared matcher kinds at the same depth share a node),
and decoding walks it one byte per level:

  root ──REG_RM_HEAD──► n1 ──MOD_REG_RM_REG_MODE──► (terminal)
                          ├─MOD_REG_RM_DISP8──► n2 ──DISP_LO──► (terminal)
                          ├─MOD_REG_RM_DISP16─► ...
                          ├─MOD_REG_RM_DIRECT─► ...   (tried before _MEM)
                          └─MOD_REG_RM_MEM────► (terminal)

Edges out of a node are tried in rank order, where the rank of an edge is
the index of the first path that created it. The first accepting edge
wins and there is no backtracking, so DECODE_PATHS order is the match
priority.

Nodes live in a flat list and refer to each other by index; the built
trie is never mutated afterwards, so one instance serves every decode.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Sequence, Tuple

from .instruction import InstructionRecord
from .patterns import MATCHERS, ByteMatcher, MatcherKind, apply

log = logging.getLogger(__name__)

K = MatcherKind


# ──────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────

class DecodeError(Exception):
    """Decoding stopped at ``offset``; the stream cannot be resynchronised."""

    def __init__(self, offset: int, message: str):
        self.offset = offset
        super().__init__(message)


class NoMatch(DecodeError):
    def __init__(self, offset: int, byte: int):
        self.byte = byte
        super().__init__(offset, f"No decode path accepts byte 0b{byte:08b} (0x{byte:02X}) "
                                 f"at offset {offset}")


class OutOfBounds(DecodeError):
    def __init__(self, offset: int, length: int):
        self.length = length
        super().__init__(offset, f"Instruction stream truncated: byte {offset} needed, "
                                 f"only {length} available")


class TrieConstructionError(Exception):
    pass


# ──────────────────────────────────────────────
# Decode paths
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class DecodePath:
    name: str
    steps: Tuple[MatcherKind, ...]


def _path(name: str, *steps: MatcherKind) -> DecodePath:
    return DecodePath(name, steps)


def _rm_family(prefix: str, head: MatcherKind, reg_mode: MatcherKind, disp8: MatcherKind,
               disp16: MatcherKind, direct: MatcherKind, mem: MatcherKind,
               data: Tuple[MatcherKind, ...]) -> List[DecodePath]:
    """The five addressing forms behind one mod/rm head, direct before plain memory."""
    return [
        _path(f'{prefix}_reg', head, reg_mode, *data),
        _path(f'{prefix}_disp8', head, disp8, K.DISP_LO, *data),
        _path(f'{prefix}_disp16', head, disp16, K.DISP_LO, K.DISP_HI, *data),
        _path(f'{prefix}_direct', head, direct, K.DISP_LO, K.DISP_HI, *data),
        _path(f'{prefix}_mem', head, mem, *data),
    ]


_MOD_REG_RM = (K.MOD_REG_RM_REG_MODE, K.MOD_REG_RM_DISP8, K.MOD_REG_RM_DISP16,
               K.MOD_REG_RM_DIRECT, K.MOD_REG_RM_MEM)
_MOD_000_RM = (K.MOD_000_RM_REG_MODE, K.MOD_000_RM_DISP8, K.MOD_000_RM_DISP16,
               K.MOD_000_RM_DIRECT, K.MOD_000_RM_MEM)
_MOD_OP_RM = (K.MOD_OP_RM_REG_MODE, K.MOD_OP_RM_DISP8, K.MOD_OP_RM_DISP16,
              K.MOD_OP_RM_DIRECT, K.MOD_OP_RM_MEM)

_BYTE_DATA = (K.DATA_LO,)
_WORD_DATA = (K.DATA_LO, K.DATA_HI)

_JUMPS = (
    K.JNZ, K.JE, K.JL, K.JLE, K.JB, K.JBE, K.JP, K.JO, K.JS, K.JNE, K.JNL,
    K.JG, K.JNB, K.JA, K.JNP, K.JNO, K.JNS, K.LOOP, K.LOOPZ, K.LOOPNZ, K.JCXZ,
)

DECODE_PATHS: Tuple[DecodePath, ...] = tuple(
    _rm_family('reg_rm', K.REG_RM_HEAD, *_MOD_REG_RM, data=())
    + _rm_family('mov_immed_rm_byte', K.MOV_IMMED_RM_BYTE, *_MOD_000_RM, data=_BYTE_DATA)
    + _rm_family('mov_immed_rm_word', K.MOV_IMMED_RM_WORD, *_MOD_000_RM, data=_WORD_DATA)
    + [
        _path('mov_immed_reg_byte', K.MOV_IMMED_REG_BYTE, K.DATA_LO),
        _path('mov_immed_reg_word', K.MOV_IMMED_REG_WORD, K.DATA_LO, K.DATA_HI),
        _path('mov_acc_mem', K.MOV_ACC_MEM, K.DISP_LO, K.DISP_HI),
    ]
    + _rm_family('immed_rm_byte', K.IMMED_RM_HEAD_BYTE, *_MOD_OP_RM, data=_BYTE_DATA)
    + _rm_family('immed_rm_word', K.IMMED_RM_HEAD_WORD, *_MOD_OP_RM, data=_WORD_DATA)
    + [
        _path('immed_acc_byte', K.IMMED_ACC_HEAD_BYTE, K.DATA_LO),
        _path('immed_acc_word', K.IMMED_ACC_HEAD_WORD, K.DATA_LO, K.DATA_HI),
    ]
    + [_path(kind.value, kind, K.DISP_LO) for kind in _JUMPS]
)


# ──────────────────────────────────────────────
# Trie
# ──────────────────────────────────────────────

class Edge(NamedTuple):
    matcher: ByteMatcher
    child: int
    rank: int

    @property
    def kind(self) -> MatcherKind:
        return self.matcher.kind


@dataclass
class DecoderNode:
    edges: List[Edge] = field(default_factory=list)
    terminal: bool = False
    path: Optional[str] = None      # name of the path ending here


class ShadowedEdge(NamedTuple):
    node: int
    kind: MatcherKind
    by: MatcherKind


ROOT = 0


class DecoderTrie:
    """Arena-backed prefix trie over DecodePaths."""

    def __init__(self):
        self.nodes: List[DecoderNode] = [DecoderNode()]

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @classmethod
    def build(cls, paths: Sequence[DecodePath]) -> 'DecoderTrie':
        trie = cls()
        for rank, path in enumerate(paths):
            trie._insert(path, rank)
        for node in trie.nodes:
            node.edges.sort(key=lambda e: e.rank)

        log.debug("Decoder trie: %d paths, %d nodes", len(paths), trie.node_count)
        # jne and jnz share 0x75, so one shadowed edge is expected
        for shadow in trie.shadowed_edges():
            log.debug("Decode edge %s at node %d is unreachable (shadowed by %s)",
                      shadow.kind.name, shadow.node, shadow.by.name)
        return trie

    def _insert(self, path: DecodePath, rank: int):
        if not path.steps:
            raise TrieConstructionError(f"Decode path '{path.name}' has no steps")

        index = ROOT
        for kind in path.steps:
            node = self.nodes[index]
            if node.terminal:
                raise TrieConstructionError(
                    f"Decode path '{path.name}' extends path '{node.path}', "
                    f"which is already complete")
            for edge in node.edges:
                if edge.kind is kind:
                    index = edge.child
                    break
            else:
                self.nodes.append(DecoderNode())
                child = len(self.nodes) - 1
                node.edges.append(Edge(MATCHERS[kind], child, rank))
                index = child

        node = self.nodes[index]
        if node.terminal:
            raise TrieConstructionError(
                f"Decode path '{path.name}' duplicates path '{node.path}'")
        if node.edges:
            raise TrieConstructionError(
                f"Decode path '{path.name}' is a prefix of a longer path")
        node.terminal = True
        node.path = path.name

    def decode(self, data: bytes, offset: int, record: InstructionRecord) -> int:
        """Decode one instruction starting at ``offset`` into ``record``.

        Returns the offset of the first byte after the instruction.
        Raises OutOfBounds / NoMatch; ``record`` is then partially filled.
        """
        length = len(data)
        node = self.nodes[ROOT]
        index = offset
        while not node.terminal:
            if index >= length:
                raise OutOfBounds(index, length)
            byte = data[index]
            for edge in node.edges:
                if edge.matcher.matches(byte):
                    apply(edge.matcher, byte, record)
                    node = self.nodes[edge.child]
                    break
            else:
                raise NoMatch(index, byte)
            index += 1
        return index

    def shadowed_edges(self) -> List[ShadowedEdge]:
        """Edges that lose every byte they accept to a higher-priority sibling."""
        shadowed = []
        for index, node in enumerate(self.nodes):
            winners = {}
            for byte in range(256):
                for edge in node.edges:
                    if edge.matcher.matches(byte):
                        winners[byte] = edge
                        break
            for edge in node.edges:
                accepted = [b for b in range(256) if edge.matcher.matches(b)]
                if accepted and all(winners[b] is not edge for b in accepted):
                    shadowed.append(ShadowedEdge(index, edge.kind, winners[accepted[0]].kind))
        return shadowed


# ──────────────────────────────────────────────
# Shared instance
# ──────────────────────────────────────────────

_decoder: Optional[DecoderTrie] = None


def get_decoder() -> DecoderTrie:
    """Build the trie over DECODE_PATHS on first use, then reuse it."""
    global _decoder
    if _decoder is None:
        _decoder = DecoderTrie.build(DECODE_PATHS)
    return _decoder
