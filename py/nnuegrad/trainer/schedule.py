"""Learning-rate, WDL-blend and loss schedules for a training run.

Superbatches are numbered from 1.
"""

import logging
import math

from .logger import ansi

logger = logging.getLogger(__name__)


# ── Loss ────────────────────────────────────────────────────────────

class SigmoidMSE:
    """(sigmoid(eval) - target)^2"""

    def power(self):
        return 2.0

    def derivative(self, p, target):
        return (p - target) * p * (1 - p)

    def error(self, p, target):
        return (p - target) ** 2

    def __repr__(self):
        return 'SigmoidMSE()'


class SigmoidMPE(SigmoidMSE):
    """|sigmoid(eval) - target|^power"""

    def __init__(self, power):
        self._power = float(power)

    def power(self):
        return self._power

    def derivative(self, p, target):
        diff = p - target
        return math.copysign(abs(diff) ** (self._power - 1), diff) * p * (1 - p)

    def error(self, p, target):
        return abs(p - target) ** self._power

    def __repr__(self):
        return f'SigmoidMPE({self._power})'


# ── Learning rate ──────────────────────────────────────────────────

class ConstantLR:
    def __init__(self, value):
        self.value = value

    def lr(self, superbatch):
        return self.value

    def colourful(self):
        return f'constant {ansi(self.value, 31)}'


class DropLR:
    """Drop once, after superbatch `drop`, by a factor of `gamma`."""

    def __init__(self, start, gamma, drop):
        self.start = start
        self.gamma = gamma
        self.drop = drop

    def lr(self, superbatch):
        return self.start * self.gamma if superbatch > self.drop else self.start

    def colourful(self):
        return f'start {ansi(self.start, 31)} gamma {ansi(self.gamma, 31)} drop at {ansi(self.drop, 31)} superbatches'


class StepLR:
    """Drop every `step` superbatches by a factor of `gamma`."""

    def __init__(self, start, gamma, step):
        self.start = start
        self.gamma = gamma
        self.step = step

    def lr(self, superbatch):
        steps = max(superbatch - 1, 0) // self.step
        return self.start * self.gamma ** steps

    def colourful(self):
        return (f'start {ansi(self.start, 31)} gamma {ansi(self.gamma, 31)} '
                f'drop every {ansi(self.step, 31)} superbatches')


class StepLRWithWarmup(StepLR):
    """StepLR from `warmup_lr` for the first `warmup_batches` superbatches, then from `start`."""

    def __init__(self, start, gamma, step, warmup_batches, warmup_lr):
        super().__init__(start, gamma, step)
        self.warmup_batches = warmup_batches
        self.warmup_lr = warmup_lr

    def lr(self, superbatch):
        if superbatch <= self.warmup_batches:
            steps = max(superbatch - 1, 0) // self.step
            return self.warmup_lr * self.gamma ** steps
        steps = max(superbatch - self.warmup_batches - 1, 0) // self.step
        return self.start * self.gamma ** steps

    def colourful(self):
        return (f'warmup {ansi(self.warmup_lr, 31)} for {ansi(self.warmup_batches, 31)} superbatches, '
                f'start {ansi(self.start, 31)} gamma {ansi(self.gamma, 31)} '
                f'drop every {ansi(self.step, 31)} superbatches')


class CosineAnnealingLR(StepLR):
    """Cosine cycles whose length doubles: step, step, 2 step, 4 step, then 8 step.

    The rate is additionally decayed by gamma^superbatch and never reaches
    zero at the bottom of a cycle because of the 1e-5 added to the cosine.
    This is not the SGDR warm-restart formula.
    """
    MIN_VAL = 0.00001

    def cycle_length(self, superbatch):
        step = self.step
        if superbatch < step * 2:
            return step
        if superbatch < step * 4:
            return step * 2
        if superbatch < step * 8:
            return step * 4
        return step * 8

    def lr(self, superbatch):
        length = self.cycle_length(superbatch)
        decay = self.gamma ** superbatch
        cosine = math.cos(math.pi * (superbatch % length) / length)
        return 0.5 * self.start * decay * (1.0 + self.MIN_VAL + cosine)

    def colourful(self):
        return (f'start {ansi(self.start, 31)} gamma {ansi(self.gamma, 31)} '
                f'resets every {ansi(self.step, 31)} superbatches')


# ── WDL blend ──────────────────────────────────────────────────────

class ConstantWDL:
    def __init__(self, value):
        self.value = value

    def blend(self, superbatch, max_superbatch):
        return self.value

    def colourful(self):
        return f'constant {ansi(self.value, 31)}'


class LinearWDL:
    """Linear taper from `start` at superbatch 1 to `end` at the last superbatch."""

    def __init__(self, start, end):
        self.start = start
        self.end = end

    def blend(self, superbatch, max_superbatch):
        grad = (self.end - self.start) / max(max_superbatch - 1, 1)
        return self.start + grad * (superbatch - 1)

    def colourful(self):
        return f'linear taper start {ansi(self.start, 31)} end {ansi(self.end, 31)}'


# ── Schedule ───────────────────────────────────────────────────────

class TrainingSchedule:
    def __init__(self, net_id, *, eval_scale=400.0, ft_regularisation=0.0, batch_size=16384,
                 batches_per_superbatch=1, start_superbatch=1, end_superbatch=1,
                 wdl_scheduler=None, lr_scheduler=None, loss_function=None, save_rate=1):
        if save_rate < 1:
            raise ValueError(f'save_rate must be at least 1, got {save_rate}')
        if start_superbatch < 1 or end_superbatch < start_superbatch:
            raise ValueError(f'invalid superbatch range {start_superbatch}..{end_superbatch}')
        self.net_id = net_id
        self.eval_scale = eval_scale
        self.ft_regularisation = ft_regularisation
        self.batch_size = batch_size
        self.batches_per_superbatch = batches_per_superbatch
        self.start_superbatch = start_superbatch
        self.end_superbatch = end_superbatch
        self.wdl_scheduler = wdl_scheduler if wdl_scheduler is not None else ConstantWDL(0.5)
        self.lr_scheduler = lr_scheduler if lr_scheduler is not None else ConstantLR(0.001)
        self.loss_function = loss_function if loss_function is not None else SigmoidMSE()
        self.save_rate = save_rate

    def should_save(self, superbatch):
        return superbatch % self.save_rate == 0 or superbatch == self.end_superbatch

    def lr(self, superbatch):
        return self.lr_scheduler.lr(superbatch)

    def wdl(self, superbatch):
        return self.wdl_scheduler.blend(superbatch, self.end_superbatch)

    def power(self):
        return self.loss_function.power()

    def display(self, log=logger.info):
        log(f'Scale                  : {ansi(f"{self.eval_scale:.0f}", 31)}')
        inv_reg = 1 / self.ft_regularisation if self.ft_regularisation else math.inf
        log(f'1 / FT Regularisation  : {ansi(f"{inv_reg:.0f}", 31)}')
        log(f'Batch Size             : {ansi(self.batch_size, 31)}')
        log(f'Batches / Superbatch   : {ansi(self.batches_per_superbatch, 31)}')
        log(f'Positions / Superbatch : {ansi(self.batches_per_superbatch * self.batch_size, 31)}')
        log(f'Start Superbatch       : {ansi(self.start_superbatch, 31)}')
        log(f'End Superbatch         : {ansi(self.end_superbatch, 31)}')
        log(f'Save Rate              : {ansi(self.save_rate, 31)}')
        log(f'WDL Scheduler          : {self.wdl_scheduler.colourful()}')
        log(f'LR Scheduler           : {self.lr_scheduler.colourful()}')
