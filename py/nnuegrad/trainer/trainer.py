"""One optimisation step over a batch of positions."""

import logging

logger = logging.getLogger(__name__)


class Trainer:
    def __init__(self, network, optimiser, schedule, accumulator):
        self.network = network
        self.optimiser = optimiser
        self.schedule = schedule
        self.accumulator = accumulator

    def train_batch(self, positions, superbatch):
        """zero_grad, accumulate the batch, then step. Returns the mean error."""
        positions = list(positions)
        self.optimiser.zero_grad()
        error, count = self.accumulator.accumulate(positions, self.schedule.wdl(superbatch))
        if count == 0:
            return 0.0
        lr = self.schedule.lr(superbatch)
        self.optimiser.step(1.0 / len(positions), lr)
        logger.debug('superbatch %d: %d/%d positions, lr %g, error %.6f',
                     superbatch, count, len(positions), lr, error / count)
        return error / count
