"""I-Ching casting and hexagram resolution."""

from .catalog import (
    CatalogCache,
    HexagramRecord,
    fetch_catalog,
    find_by_number,
    find_by_signature,
    load_catalog,
    normalize_row,
    parse_catalog,
)
from .lines import Line, LineValue, ManualCastForm, line_from_manual, line_from_roll, random_line
from .narrator import ChangingLine, narrate_all_lines, narrate_changing_lines
from .reading import CastingSession, CastState, Reading, assemble_reading, manual_reading
from .resolver import derive_resulting_lines, signature_key

__version__ = "0.1.0"
