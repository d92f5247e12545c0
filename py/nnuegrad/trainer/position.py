"""Training positions, seen from the side to move."""

import math


def sigmoid(x, k=1.0):
    z = k * x
    # exp() only ever sees a non-positive argument, so it cannot overflow
    if z >= 0:
        return 1 / (1 + math.exp(-z))
    e = math.exp(z)
    return e / (1 + e)


class Position:
    """A position as its occupied squares plus training labels.

    Args:
        pieces: sequence of (piece_code, square) pairs
        score: engine evaluation in centipawn-like units
        result: game outcome, 1.0 win, 0.5 draw, 0.0 loss
    """
    __slots__ = ('pieces', 'score', 'result')

    def __init__(self, pieces, score=0.0, result=0.5):
        self.pieces = tuple(pieces)
        self.score = float(score)
        self.result = float(result)

    def blended_result(self, blend, scale):
        """Training target: `blend` of the outcome, the rest from the scaled score."""
        return blend * self.result + (1 - blend) * sigmoid(self.score, 1 / scale)

    def __iter__(self):
        return iter(self.pieces)

    def __len__(self):
        return len(self.pieces)

    def __repr__(self):
        return f'Position({len(self.pieces)} pieces, score={self.score}, result={self.result})'
