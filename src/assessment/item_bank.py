# ABOUTME: Normalizes the external lexeme bank and builds screening and CAT item sets from it.
# ABOUTME: Derives Zipf and default difficulty from frequency rank when items are uncalibrated.

from __future__ import annotations

import math
import random
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from src.common.schemas import (
    KIND_MC4,
    KIND_YESNO_PSEUDO,
    KIND_YESNO_REAL,
    AssessmentItem,
)

BANK_COLUMNS = ["lexeme_id", "lemma", "freq_rank", "zipf", "b", "cefr", "pos", "exposure"]
CONSONANTS = "bcdfghjklmnpqrstvwxyz"
VOWELS = "aeiou"


def compute_zipf(freq_rank: float) -> float:
    """Approximate Zipf frequency from rank: 7 - log10(rank), clamped to [1, 7]."""

    z = 7.0 - math.log10(max(1.0, float(freq_rank)))
    return max(1.0, min(7.0, z))


def default_difficulty(zipf: float) -> float:
    """Rank-to-difficulty fallback for uncalibrated words: b = 3 - zipf."""

    return 3.0 - float(zipf)


def prepare_item_bank(bank: pd.DataFrame) -> pd.DataFrame:
    """
    Return a normalized copy of the lexeme bank sorted by frequency rank.

    Required columns: 'lexeme_id', 'freq_rank'. Optional: 'lemma', 'zipf',
    'b_init' (calibrated recognition difficulty), 'cefr', 'pos', 'exposure'.
    Missing Zipf values are derived from rank and missing difficulties from Zipf.
    """

    missing = {"lexeme_id", "freq_rank"} - set(bank.columns)
    if missing:
        raise ValueError(f"Item bank is missing required columns: {', '.join(sorted(missing))}.")

    df = bank.copy()
    df["lexeme_id"] = df["lexeme_id"].astype(str)
    if df["lexeme_id"].duplicated().any():
        raise ValueError("Item bank contains duplicate lexeme_id values.")
    df["freq_rank"] = pd.to_numeric(df["freq_rank"], errors="raise").astype(int)

    derived_zipf = df["freq_rank"].map(compute_zipf)
    zipf = pd.to_numeric(df["zipf"], errors="coerce").fillna(derived_zipf) if "zipf" in df.columns else derived_zipf
    df["zipf"] = zipf.astype(float)

    fallback_b = df["zipf"].map(default_difficulty)
    if "b_init" in df.columns:
        df["b"] = pd.to_numeric(df["b_init"], errors="coerce").fillna(fallback_b)
    else:
        df["b"] = fallback_b

    for column in ("lemma", "cefr", "pos"):
        if column not in df.columns:
            df[column] = None
    df["exposure"] = pd.to_numeric(df["exposure"], errors="coerce").fillna(0).astype(int) if "exposure" in df.columns else 0

    df = df.sort_values("freq_rank", kind="mergesort").reset_index(drop=True)
    return df[BANK_COLUMNS]


def load_item_bank(path: Path) -> pd.DataFrame:
    """Load a lexeme bank from CSV or parquet and normalize it."""

    path = Path(path)
    if path.suffix == ".parquet":
        raw = pd.read_parquet(path, engine="pyarrow")
    elif path.suffix == ".csv":
        raw = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported item bank format '{path.suffix}'. Expected .csv or .parquet.")
    return prepare_item_bank(raw)


def generate_pseudoword(seed: int, length: int = 6) -> str:
    """Consonant-vowel alternating non-word from a small linear congruential generator."""

    letters = []
    for i in range(length):
        pool = VOWELS if i % 2 == 1 else CONSONANTS
        seed = (seed * 9301 + 49297) % 233280
        letters.append(pool[int(seed / 233280 * len(pool))])
    return "".join(letters)


def _real_item(row: pd.Series, guess: float) -> AssessmentItem:
    return AssessmentItem(
        item_id=f"real-{row['lexeme_id']}",
        kind=KIND_YESNO_REAL,
        b=float(row["b"]),
        g=guess,
        lexeme_id=str(row["lexeme_id"]),
        lemma=None if pd.isna(row["lemma"]) else str(row["lemma"]),
        zipf=float(row["zipf"]),
        exposure=int(row["exposure"]),
    )


def build_screening_items(
    bank: pd.DataFrame,
    real_count: int = 60,
    pseudo_ratio: float = 0.25,
    bands: Sequence[int] = (7, 6, 5, 4, 3),
    guess: float = 0.05,
    seed: Optional[int] = None,
) -> List[AssessmentItem]:
    """
    Sample real words across Zipf strata and interleave pseudowords.

    floor(real_count / len(bands)) words are drawn from each rounded-Zipf
    band, most common band first, then the sample is topped up at random
    from the remaining bank. round(real_count * pseudo_ratio) pseudowords
    (b=0) are added and the combined list is shuffled.
    """

    rng = random.Random(seed)
    df = prepare_item_bank(bank)
    real_count = min(real_count, len(df))

    remaining = list(range(len(df)))
    zipf_round = np.rint(df["zipf"].to_numpy(dtype=float)).astype(int)
    per_band = max(1, real_count // max(1, len(bands)))

    sampled: List[int] = []
    for band in bands:
        pool = [idx for idx in remaining if zipf_round[idx] == band]
        picks = rng.sample(pool, min(per_band, len(pool), real_count - len(sampled)))
        sampled.extend(picks)
        chosen = set(picks)
        remaining = [idx for idx in remaining if idx not in chosen]
    if len(sampled) < real_count:
        sampled.extend(rng.sample(remaining, real_count - len(sampled)))

    items = [_real_item(df.iloc[idx], guess) for idx in sampled]

    pseudo_count = int(round(real_count * pseudo_ratio))
    base_seed = rng.randrange(233280)
    words = set()
    for i in range(pseudo_count):
        word = generate_pseudoword(base_seed + i)
        offset = pseudo_count
        while word in words:
            word = generate_pseudoword(base_seed + i + offset)
            offset += pseudo_count
        words.add(word)
        items.append(
            AssessmentItem(item_id=f"pseudo-{i}", kind=KIND_YESNO_PSEUDO, b=0.0, g=guess, pseudoword=word)
        )

    rng.shuffle(items)
    return items


def build_cat_pool(bank: pd.DataFrame, size: int = 200, guess: float = 0.25) -> List[AssessmentItem]:
    """The ``size`` most frequent lexemes as four-option multiple-choice items."""

    df = prepare_item_bank(bank).head(size)
    return [
        AssessmentItem(
            item_id=f"mc4-{row.lexeme_id}",
            kind=KIND_MC4,
            b=float(row.b),
            g=guess,
            lexeme_id=str(row.lexeme_id),
            lemma=None if pd.isna(row.lemma) else str(row.lemma),
            zipf=float(row.zipf),
            exposure=int(row.exposure),
        )
        for row in df.itertuples(index=False)
    ]
