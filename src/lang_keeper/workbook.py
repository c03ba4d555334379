from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter

KEY_COL_WIDTH = 24
VALUE_COL_WIDTH = 48


@dataclass
class Sheet:
    name: str
    rows: List[List[Any]] = field(default_factory=list)

    @property
    def header(self) -> List[str]:
        if not self.rows:
            return []
        return ["" if x is None else str(x).strip() for x in self.rows[0]]

    @property
    def body(self) -> List[List[Any]]:
        return self.rows[1:]


def cell_text(row: List[Any], idx: Optional[int]) -> str:
    if idx is None or idx < 0 or idx >= len(row) or row[idx] is None:
        return ""
    return str(row[idx])


def read_workbook(path: Path) -> List[Sheet]:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        out: List[Sheet] = []
        for ws in wb.worksheets:
            rows = [list(r) for r in ws.iter_rows(values_only=True)]
            # 去掉尾部全空行
            while rows and all(c is None or str(c).strip() == "" for c in rows[-1]):
                rows.pop()
            out.append(Sheet(name=ws.title, rows=rows))
        return out
    finally:
        wb.close()


def write_workbook(path: Path, sheets: List[Sheet]) -> None:
    wb = Workbook()
    wb.remove(wb.active)
    for sheet in sheets:
        ws = wb.create_sheet(title=sheet.name[:31])
        for row in sheet.rows:
            ws.append(list(row))
        width = max((len(r) for r in sheet.rows), default=0)
        for i in range(1, width + 1):
            ws.column_dimensions[get_column_letter(i)].width = KEY_COL_WIDTH if i == 1 else VALUE_COL_WIDTH
    if not sheets:
        wb.create_sheet(title="Sheet1")
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
