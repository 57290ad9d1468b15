from __future__ import annotations

import math

from .labels import LabelMap
from .types import CLEFT, NON_CLEFT, Prediction, RawScoreVector


def softmax(values: tuple[float, ...]) -> list[float]:
    peak = max(values)
    exps = [math.exp(value - peak) for value in values]
    total = sum(exps)
    return [value / total for value in exps]


def normalize(scores: RawScoreVector, labels: LabelMap) -> Prediction:
    """Convert raw scores into per-class probabilities and a decision.

    Scores are mapped to classes through the label list, never by fixed
    position. An exact tie goes to the class listed second in the label file.
    """
    if len(scores) != len(labels):
        raise ValueError(
            f"Score vector has {len(scores)} entries but label list has {len(labels)}"
        )
    probs = softmax(scores.values)
    cleft = probs[labels.index_of(CLEFT)]
    non_cleft = probs[labels.index_of(NON_CLEFT)]

    winner = 0 if probs[0] > probs[1] else 1
    label = labels.classes[winner]
    return Prediction(
        label=label,
        confidence=probs[winner],
        cleft=cleft,
        non_cleft=non_cleft,
    )


__all__ = ["normalize", "softmax"]
