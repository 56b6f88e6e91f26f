"""
Summarize exported star factory sessions: which machines children used in each phase.
Input is a directory of upload payloads (*.json, {"participantID", "data"}) and/or
session tables saved as CSV with the export header.
"""

import argparse
import json
from pathlib import Path

import matplotlib as mpl
import matplotlib.pyplot as plt
import pandas as pd

from factory_env.export import HEADER, summarize_choices, to_dataframe

mpl.rcParams["font.family"] = "sans-serif"
mpl.rcParams["font.sans-serif"] = ["DejaVu Sans", "Arial", "Liberation Sans", "sans-serif"]

MACHINE_COLORS = {"Exploiter": "#1e88e5", "Empowerment": "#43a047", "Entropy": "#8e24aa"}
PHASE_ORDER = ["Demo", "Comprehension", "Extrasmall", "Question", "Lightness", "Verbalquestion", "Exploration"]


def load_sessions(data_dir: Path) -> pd.DataFrame:
    """Concatenate every session table found in data_dir."""
    frames = []
    for path in sorted(data_dir.glob("*.json")):
        try:
            with open(path) as f:
                payload = json.load(f)
            frames.append(to_dataframe(payload["data"]))
        except (json.JSONDecodeError, KeyError, IOError) as e:
            print(f"Warning: Could not read {path}: {e}")
    for path in sorted(data_dir.glob("*.csv")):
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        if list(df.columns) != HEADER:
            print(f"Warning: {path} does not have the session header, skipping")
            continue
        frames.append(df)
    if not frames:
        return pd.DataFrame(columns=HEADER)
    return pd.concat(frames, ignore_index=True)


def comprehension_accuracy(df: pd.DataFrame) -> pd.Series:
    """Fraction of comprehension answers tagged Correct, per participant."""
    comp = df[(df["Phase"] == "Comprehension") & (df["Correct Machine"] != "")]
    if comp.empty:
        return pd.Series(dtype=float)
    return (comp["Correct Machine"] == "Correct").groupby(comp["Prolific ID"]).mean()


def plot_machine_use(counts: pd.DataFrame, output_path: Path):
    phases = [p for p in PHASE_ORDER if p in counts.index]
    counts = counts.loc[phases]
    machines = [m for m in MACHINE_COLORS if m in counts.columns]
    ax = counts[machines].plot(
        kind="bar",
        color=[MACHINE_COLORS[m] for m in machines],
        figsize=(9, 4.5),
        width=0.8,
    )
    ax.set_xlabel("")
    ax.set_ylabel("Interactions")
    ax.set_title("Machine use by phase")
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    plt.xticks(rotation=30, ha="right")
    fig = ax.get_figure()
    fig.tight_layout()
    fig.savefig(output_path, dpi=300, bbox_inches="tight", pad_inches=0.05)
    plt.close(fig)
    print(f"Saved {output_path}")


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("data_dir", help="Directory with exported session payloads / CSVs")
    parser.add_argument("--output", default=None, help="Optional PNG for the machine-use bar chart")
    parser.add_argument("--csv", default=None, help="Optional CSV path for the combined session table")
    args = parser.parse_args()

    df = load_sessions(Path(args.data_dir))
    print(f"Loaded {len(df)} rows from {df['Prolific ID'].nunique()} participants")
    if df.empty:
        return

    counts = summarize_choices(df)
    print("\nMachine use by phase:")
    print(counts)

    accuracy = comprehension_accuracy(df)
    if not accuracy.empty:
        print(f"\nComprehension accuracy (mean over participants): {accuracy.mean():.2f}")

    if args.csv:
        df.to_csv(args.csv, index=False)
        print(f"Saved {args.csv}")
    if args.output and not counts.empty:
        plot_machine_use(counts, Path(args.output))


if __name__ == "__main__":
    main()
