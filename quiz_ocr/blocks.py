from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional

from .models import SELECTED_MARKER, Block, BlockType, Relationship


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def block_from_dict(raw: dict) -> Optional[Block]:
    """Build a Block from one Textract JSON block. Blocks without an Id are dropped."""
    bid = raw.get("Id")
    if not bid:
        return None
    rels = tuple(
        Relationship(type=str(r.get("Type") or ""), ids=tuple(str(i) for i in (r.get("Ids") or [])))
        for r in (raw.get("Relationships") or [])
        if isinstance(r, dict)
    )
    return Block(
        id=str(bid),
        block_type=BlockType.from_raw(raw.get("BlockType")),
        row_index=_int_or_none(raw.get("RowIndex")),
        column_index=_int_or_none(raw.get("ColumnIndex")),
        text=raw.get("Text"),
        selection_status=raw.get("SelectionStatus"),
        entity_types=tuple(raw.get("EntityTypes") or ()),
        relationships=rels,
    )


def blocks_from_json(data: Any) -> List[Block]:
    """Accept either a bare list of blocks or an AnalyzeDocument response."""
    if isinstance(data, dict):
        data = data.get("Blocks") or []
    out: List[Block] = []
    for raw in data or []:
        if isinstance(raw, dict):
            b = block_from_dict(raw)
            if b is not None:
                out.append(b)
    return out


class BlockGraph:
    """Read-only index over one page's blocks."""

    def __init__(self, blocks: Iterable[Block]):
        self._by_id: Dict[str, Block] = {}
        self._order: List[Block] = []
        for b in blocks:
            if not b.id:
                continue
            self._by_id[b.id] = b
            self._order.append(b)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Block]:
        return iter(self._order)

    def get(self, block_id: str) -> Optional[Block]:
        return self._by_id.get(block_id)

    def of_type(self, block_type: BlockType) -> List[Block]:
        return [b for b in self._order if b.block_type == block_type]

    def children(self, block: Block) -> List[Block]:
        out: List[Block] = []
        for cid in block.related_ids("CHILD"):
            child = self._by_id.get(cid)
            if child is not None:
                out.append(child)
        return out

    def resolve_text(self, block: Optional[Block]) -> str:
        """Join the text of a block's WORD children; a selected checkbox becomes "[X]"."""
        if block is None:
            return ""
        runs: List[str] = []
        for child in self.children(block):
            if child.block_type == BlockType.WORD and child.text:
                runs.append(child.text)
            elif child.block_type == BlockType.SELECTION and child.selected:
                runs.append(SELECTED_MARKER)
        return " ".join(runs).strip()
