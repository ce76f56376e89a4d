# ABOUTME: Chooses the next placement word from a lexeme bank for the current staircase theta.
# ABOUTME: Prefers unseen words in the matching CEFR band and falls back to any unseen word.

from __future__ import annotations

from typing import Dict, Optional

import pandas as pd

from src.common.config import PlacementConfig
from src.common.schemas import PlacementState

from .staircase import DEFAULT_CONFIG, difficulty_for_theta, pick_difficulty


def next_placement_item(
    state: PlacementState,
    lexemes: pd.DataFrame,
    config: PlacementConfig = DEFAULT_CONFIG,
) -> Optional[Dict]:
    """
    Return the most frequent unseen lexeme at the current difficulty.

    ``lexemes`` needs 'lexeme_id' and 'freq_rank'. Candidates are tried in
    order: words tagged with the target CEFR band (when a 'cefr' column
    exists), words inside the band's frequency-rank window, then any unseen
    word. Returns None once every lexeme has been shown.
    """

    if lexemes is None or lexemes.empty:
        return None

    window = difficulty_for_theta(pick_difficulty(state, config=config))
    unseen = lexemes[~lexemes["lexeme_id"].astype(str).isin(set(state.seen_item_ids))]
    if unseen.empty:
        return None

    unseen = unseen.sort_values("freq_rank", kind="mergesort")
    in_band = unseen[unseen["cefr"] == window.band] if "cefr" in unseen.columns else unseen.iloc[0:0]
    in_window = unseen[unseen["freq_rank"].between(window.min_freq_rank, window.max_freq_rank)]
    for candidates in (in_band, in_window):
        if not candidates.empty:
            unseen = candidates
            break

    row = unseen.iloc[0].to_dict()
    row["lexeme_id"] = str(row["lexeme_id"])
    row["target_band"] = window.band
    return row
