"""
Lightweight data loading helpers.

Important: Keep imports light at module import time (Streamlit Cloud startup).
We import pandas only inside functions.
"""

from pathlib import Path
from typing import Any, Optional

MEMBER_COLUMNS = ["Name", "Designation", "Cell", "ID_Number", "Mobile", "Valid_Upto", "Issue_Date", "Zone", "Photo"]

# canonical column -> (exact names tried first, substring groups tried next)
_COLUMN_CANDIDATES = {
    "Name": (["Name", "Full Name", "Member Name"], [("full", "name"), ("name",)]),
    "Designation": (["Designation", "Role", "Position"], [("designation",), ("role",)]),
    "Cell": (["Cell", "Department", "Wing"], [("cell",), ("wing",)]),
    "ID_Number": (["ID_Number", "ID Number", "ID No", "Card No", "Member ID"], [("id", "no"), ("card", "no"), ("member", "id")]),
    "Mobile": (["Mobile", "Contact No", "Phone", "Mobile Number"], [("mobile",), ("contact",), ("phone",)]),
    "Valid_Upto": (["Valid_Upto", "Valid Upto", "Valid Till", "Expiry"], [("valid",), ("expir",)]),
    "Issue_Date": (["Issue_Date", "Issue Date", "Issued On"], [("issue",)]),
    "Zone": (["Zone", "Region", "State"], [("zone",), ("region",)]),
    "Photo": (["Photo", "Photo URL", "Profile Photo", "Image"], [("photo",), ("image",)]),
}


def _find_column(df: Any, exact: Optional[str], *subs) -> Optional[str]:
    """Find column by exact name or by substrings (all must match, case-insensitive)."""
    df_cols = [str(c).strip() for c in df.columns]
    if exact and exact in df_cols:
        return exact
    low = exact.lower() if exact else ""
    for c in df.columns:
        cs = str(c).strip()
        if exact and cs.lower() == low:
            return c
        if subs and all(s.lower() in cs.lower() for s in subs):
            return c
    return None


def _resolve_columns(df: Any) -> dict:
    """Map each canonical column to a source column (or None). Each source column is used once."""
    used = set()
    mapping = {}
    for canonical, (exact_names, sub_groups) in _COLUMN_CANDIDATES.items():
        found = None
        for name in exact_names:
            col = _find_column(df, name)
            if col is not None and col not in used:
                found = col
                break
        if found is None:
            for subs in sub_groups:
                col = _find_column(df, None, *subs)
                if col is not None and col not in used:
                    found = col
                    break
        if found is not None:
            used.add(found)
        mapping[canonical] = found
    return mapping


def _clean(v) -> str:
    if v is None or (isinstance(v, float) and str(v) == "nan"):
        return ""
    s = str(v).strip()
    if s.lower() == "nan":
        return ""
    # Excel hands back phone numbers / IDs as floats
    if s.endswith(".0") and s[:-2].isdigit():
        s = s[:-2]
    return s


def load_members_dataframe(path: str, sheet: str = "Sheet1") -> Any:
    """
    Load members from Excel or CSV into a DataFrame with columns:
    Name, Designation, Cell, ID_Number, Mobile, Valid_Upto, Issue_Date, Zone, Photo.

    Rows without a name or an ID number are skipped; duplicate IDs keep the
    first row. Counts are recorded in df.attrs["load_stats"].
    """
    import pandas as pd

    p = Path(path)
    suf = p.suffix.lower()
    if suf in (".xlsx", ".xls"):
        try:
            df = pd.read_excel(path, sheet_name=sheet)
        except ImportError as e:
            if "openpyxl" in str(e).lower():
                raise ImportError(
                    "Reading Excel requires openpyxl. Install it with:\n  pip install openpyxl\n"
                    "Or: pip install -e ."
                ) from e
            raise
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)

    df.columns = [str(c).strip() for c in df.columns]
    cols = _resolve_columns(df)
    if cols["Name"] is None:
        raise ValueError(f"Could not find a Name column. Columns: {list(df.columns)}")
    if cols["ID_Number"] is None:
        raise ValueError(
            "Could not find an ID number column. "
            "Expected something like 'ID No' or 'Member ID'. "
            f"Columns: {list(df.columns)}"
        )

    total_rows = len(df)
    missing_name = 0
    missing_id = 0
    rows = []
    for _, r in df.iterrows():
        rec = {k: (_clean(r.get(src, "")) if src else "") for k, src in cols.items()}
        if not rec["Name"]:
            missing_name += 1
            continue
        if not rec["ID_Number"]:
            missing_id += 1
            continue
        rows.append(rec)

    out = pd.DataFrame(rows, columns=MEMBER_COLUMNS)
    before_dedup = len(out)
    out = out.drop_duplicates(subset=["ID_Number"]).reset_index(drop=True)
    out.attrs["load_stats"] = {
        "source_rows": total_rows,
        "kept_rows_before_dedup": before_dedup,
        "loaded_rows": len(out),
        "skipped_missing_name": missing_name,
        "skipped_missing_id": missing_id,
        "dropped_duplicate_id": before_dedup - len(out),
    }
    return out
