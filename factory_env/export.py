"""Collapse the trial log into the tabular upload format."""

import numpy as np
import pandas as pd


HEADER = [
    "Prolific ID", "Age", "Sex", "Machine Order (L->R)",
    "Slot Layout Order (L->R)", "Color Order (L->R)", "Phase",
    "Trial", "Machine", "Slot Size", "Star Type",
    "Reaction Time (ms)", "Correct Machine", "Explanation",
]
EXPLANATION_COLUMN = HEADER.index("Explanation")
EXPLANATION_JOINER = " | "


def convert_numpy_types(obj):
    """Convert NumPy types to JSON-serializable Python types"""
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.str_):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: convert_numpy_types(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy_types(item) for item in obj]
    else:
        return obj


def to_table(records, profile):
    """Data rows (no header) with explanation-only records folded into the row before them."""
    rows = []
    for record in records:
        if record.is_explanation_only:
            if not rows:
                print(f"⚠️ Dropping explanation with no preceding row: {record.explanation!r}")
                continue
            previous = rows[-1]
            if previous[EXPLANATION_COLUMN]:
                previous[EXPLANATION_COLUMN] += EXPLANATION_JOINER + record.explanation
            else:
                previous[EXPLANATION_COLUMN] = record.explanation
        else:
            rows.append(record.as_row())

    if not rows:
        rows = [profile.identity_fields() + [""] * (len(HEADER) - 3)]
    return rows


def build_payload(profile, records):
    return convert_numpy_types({
        "participantID": profile.id,
        "data": [list(HEADER)] + to_table(records, profile),
    })


def to_dataframe(table) -> pd.DataFrame:
    """DataFrame from a ``[header, *rows]`` table as found in an upload payload."""
    header, rows = table[0], table[1:]
    return pd.DataFrame(rows, columns=header)


def summarize_choices(df: pd.DataFrame) -> pd.DataFrame:
    """Number of interactions per phase and machine (drops and choices alike)."""
    used = df[df["Machine"].astype(str).str.len() > 0]
    if used.empty:
        return pd.DataFrame()
    return (
        used.groupby(["Phase", "Machine"]).size()
        .unstack(fill_value=0)
        .sort_index()
    )
