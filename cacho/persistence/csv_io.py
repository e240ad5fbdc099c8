"""
csv_io.py
Persistence utilities for writing simulated Cacho game summaries and event trails to CSV files.
"""

import os
import csv
from typing import Any, Dict, Iterable, List

SUMMARY_HEADER = [
    "game_id", "game_index", "timestamp", "seats", "winner_seat", "winner_agent",
    "rounds", "steps", "bets", "doubts", "spot_ons", "salpicons", "bonus_lives_used",
    "error", "end_reason",
]
EVENT_HEADER = [
    "game_id", "round", "event_type", "player", "player_type", "payload",
]


def append_rows_to_csv(rows: Iterable[Dict[str, Any]], csv_path: str, header: List[str]) -> int:
    """
    Append rows to a CSV file, writing the header first when the file is new.
    Keys missing from a row are left blank; keys outside the header are dropped.
    Returns:
        int: Number of rows written.
    """
    folder = os.path.dirname(csv_path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    is_new = not os.path.exists(csv_path) or os.path.getsize(csv_path) == 0
    written = 0
    with open(csv_path, "a", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
        if is_new:
            writer.writeheader()
        for row in rows:
            writer.writerow(row)
            written += 1
    return written


def append_row_to_csv(row: Dict[str, Any], csv_path: str, header: List[str]) -> None:
    append_rows_to_csv([row], csv_path, header)


def get_summary_header():
    return SUMMARY_HEADER.copy()


def get_event_header():
    return EVENT_HEADER.copy()
