"""nn -- Layers, optimisers and state dicts for nnuegrad graphs."""

from .modules import Linear, SparseLinear, PerspectiveNetwork
from .optim import Optimiser, Adam, AdamW, Momentum, adam, clip
from .state import get_state_dict, load_state_dict, get_parameters

__all__ = [
    'Linear', 'SparseLinear', 'PerspectiveNetwork',
    'Optimiser', 'Adam', 'AdamW', 'Momentum', 'adam', 'clip',
    'get_state_dict', 'load_state_dict', 'get_parameters',
]
