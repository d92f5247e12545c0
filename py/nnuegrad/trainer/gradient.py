"""Per-position gradient accumulation over a mini-batch."""

import logging

import numpy as np

from .position import sigmoid
from .schedule import SigmoidMSE

logger = logging.getLogger(__name__)


class GradientAccumulator:
    """Runs the network over a batch, summing weight gradients in the graph.

    Gradients are added, never averaged: after accumulate() the weight
    gradient buffers hold the sum over every position that was not skipped.
    Scaling by the batch size is left to the optimiser's gradient factor.
    The caller zeroes the graph's gradients between optimisation steps.
    """

    def __init__(self, network, loss=None, skip_prop=0.0, scale=400.0, seed=None):
        if not 0.0 <= skip_prop < 1.0:
            raise ValueError(f'skip_prop must be in [0, 1), got {skip_prop}')
        self.network = network
        self.loss = loss if loss is not None else SigmoidMSE()
        self.skip_prop = skip_prop
        self.scale = scale
        self.rng = np.random.default_rng(seed)

    def accumulate(self, positions, blend):
        """Backpropagate every kept position. Returns (summed error, positions used)."""
        error = 0.0
        count = 0
        for pos in positions:
            if self.rng.random() < self.skip_prop:
                continue
            error += self._update_single(pos, blend)
            count += 1
        logger.debug('accumulated %d positions, error %.6f', count, error)
        return error, count

    def _update_single(self, pos, blend):
        evaluation = self.network.evaluate(pos)
        target = pos.blended_result(blend, self.scale)
        p = sigmoid(evaluation, 1.0)
        self.network.backprop(self.loss.derivative(p, target))
        return self.loss.error(p, target)
