from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict

from ..schema import Lead

Column = str  # name | phone | address | rank | website | maps | rating | distance


class TableLayout(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    columns: Tuple[Column, ...]
    min_cells: int

    def index_of(self, column: Column) -> int:
        return self.columns.index(column)

    @property
    def min_pipes(self) -> int:
        # A row without outer pipes still has (cells - 1) separators
        return self.min_cells - 1


_SEVEN_COLUMNS = ("name", "phone", "rank", "website", "maps", "rating", "distance")

LAYOUTS: Dict[str, TableLayout] = {
    "basic": TableLayout(name="basic", columns=_SEVEN_COLUMNS, min_cells=5),
    "with_distance": TableLayout(
        name="with_distance", columns=_SEVEN_COLUMNS, min_cells=7
    ),
    "with_address": TableLayout(
        name="with_address",
        columns=(
            "name",
            "phone",
            "address",
            "rank",
            "website",
            "maps",
            "rating",
            "distance",
        ),
        min_cells=7,
    ),
}


def get_layout(name: str) -> TableLayout:
    return LAYOUTS[name]


class RowRejection(BaseModel):
    line_number: int
    line: str
    reason: str


class TableParseResult(BaseModel):
    leads: List[Lead]
    rejected: List[RowRejection]
