"""
Configuration for NNUE training runs.

A TrainingConfig is a nested dict of defaults merged with user overrides,
read and written as JSON. Scheduler, loss, optimiser and input choices are
records with a `type` key that the build_* factories turn into objects.
"""

import copy
import json
from typing import Any, Dict, Optional

from ..kernels import Activation
from ..nn.modules import PerspectiveNetwork
from ..nn.optim import Adam, AdamW, Momentum
from .inputs import Ataxx147, Chess768
from .schedule import (
    ConstantLR, DropLR, StepLR, StepLRWithWarmup, CosineAnnealingLR,
    ConstantWDL, LinearWDL, SigmoidMSE, SigmoidMPE, TrainingSchedule,
)

LR_SCHEDULERS = {
    'constant': ConstantLR,
    'drop': DropLR,
    'step': StepLR,
    'step_with_warmup': StepLRWithWarmup,
    'cosine_annealing': CosineAnnealingLR,
}

WDL_SCHEDULERS = {
    'constant': ConstantWDL,
    'linear': LinearWDL,
}

OPTIMISERS = {
    'adam': Adam,
    'adamw': AdamW,
    'momentum': Momentum,
}

INPUTS = {
    'ataxx147': Ataxx147,
    'chess768': Chess768,
}


def _build(kind, registry, record):
    record = dict(record)
    name = record.pop('type', None)
    if name not in registry:
        raise ValueError(f'unknown {kind} type {name!r}, expected one of {sorted(registry)}')
    return registry[name](**record)


class TrainingConfig:
    """Configuration for a training run."""

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize training configuration.

        Args:
            config_dict: Dictionary containing configuration overrides
        """
        self.defaults = {
            'network': {
                'inputs': 'ataxx147',
                'hidden': 128,
                'activation': 'screlu',
                'seed': None,
            },

            'schedule': {
                'net_id': 'net',
                'eval_scale': 400.0,
                'ft_regularisation': 0.0,
                'batch_size': 16384,
                'batches_per_superbatch': 1024,
                'start_superbatch': 1,
                'end_superbatch': 10,
                'save_rate': 1,
                'lr_scheduler': {'type': 'step', 'start': 0.001, 'gamma': 0.1, 'step': 8},
                'wdl_scheduler': {'type': 'constant', 'value': 0.5},
                'loss': {'type': 'mse'},
            },

            'optimiser': {
                'type': 'adamw',
                'beta1': 0.9,
                'beta2': 0.999,
                'decay': 0.01,
                'min_weight': -1.98,
                'max_weight': 1.98,
            },

            'accumulator': {
                'skip_prop': 0.0,
                'seed': None,
            },
        }

        if config_dict:
            self.config = self._merge_configs(self.defaults, config_dict)
        else:
            self.config = copy.deepcopy(self.defaults)

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries."""
        result = copy.deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict) \
                    and 'type' not in value:
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = copy.deepcopy(value)

        return result

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'network.hidden')."""
        value = self.config
        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """Set configuration value using dot notation."""
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            config = config.setdefault(k, {})
        config[keys[-1]] = value

    def save(self, filepath: str):
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.config, f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'TrainingConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            config_dict = json.load(f)
        return cls(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.config)

    # ── Factories ────────────────────────────────────────────────────

    def build_loss(self):
        record = dict(self.config['schedule']['loss'])
        name = record.get('type')
        if name == 'mse':
            return SigmoidMSE()
        if name == 'mpe':
            return SigmoidMPE(record['power'])
        raise ValueError(f"unknown loss type {name!r}, expected 'mse' or 'mpe'")

    def build_schedule(self) -> TrainingSchedule:
        s = self.config['schedule']
        return TrainingSchedule(
            s['net_id'],
            eval_scale=s['eval_scale'],
            ft_regularisation=s['ft_regularisation'],
            batch_size=s['batch_size'],
            batches_per_superbatch=s['batches_per_superbatch'],
            start_superbatch=s['start_superbatch'],
            end_superbatch=s['end_superbatch'],
            wdl_scheduler=_build('wdl scheduler', WDL_SCHEDULERS, s['wdl_scheduler']),
            lr_scheduler=_build('lr scheduler', LR_SCHEDULERS, s['lr_scheduler']),
            loss_function=self.build_loss(),
            save_rate=s['save_rate'],
        )

    def build_input_type(self):
        name = self.config['network']['inputs']
        if name not in INPUTS:
            raise ValueError(f'unknown inputs {name!r}, expected one of {sorted(INPUTS)}')
        return INPUTS[name]()

    def build_network(self):
        n = self.config['network']
        return PerspectiveNetwork(self.build_input_type(), n['hidden'],
                                  activation=Activation(n['activation']), seed=n['seed'])

    def build_optimiser(self, graph):
        return _build('optimiser', OPTIMISERS, dict(self.config['optimiser'], graph=graph))
