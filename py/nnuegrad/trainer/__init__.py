"""trainer -- Feature sets, schedules and gradient accumulation for NNUE training.

Data-file loading, checkpoint persistence and the top-level training loop
live with the caller; this package provides the pieces they drive.
"""

from .inputs import InputType, FeatureIter, Ataxx147, Chess768
from .position import Position, sigmoid
from .schedule import (
    SigmoidMSE, SigmoidMPE,
    ConstantLR, DropLR, StepLR, StepLRWithWarmup, CosineAnnealingLR,
    ConstantWDL, LinearWDL, TrainingSchedule,
)
from .gradient import GradientAccumulator
from .trainer import Trainer
from .config import TrainingConfig
from .logger import ansi

__all__ = [
    'InputType', 'FeatureIter', 'Ataxx147', 'Chess768',
    'Position', 'sigmoid',
    'SigmoidMSE', 'SigmoidMPE',
    'ConstantLR', 'DropLR', 'StepLR', 'StepLRWithWarmup', 'CosineAnnealingLR',
    'ConstantWDL', 'LinearWDL', 'TrainingSchedule',
    'GradientAccumulator', 'Trainer', 'TrainingConfig', 'ansi',
]
