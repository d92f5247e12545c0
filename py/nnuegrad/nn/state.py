"""nn.state -- State dict utilities for graph weights."""

import numpy as np


def get_parameters(graph):
    """All weight tensors of a graph, in build order."""
    return [graph.weights(name) for name in graph.weight_names()]


def get_state_dict(graph):
    """Get a flat dict of name -> host copy of each weight's values."""
    return {name: graph.weights(name).values.to_numpy() for name in graph.weight_names()}


def load_state_dict(graph, state_dict, strict=True):
    """Load weight values from a state dict into a graph."""
    names = set(graph.weight_names())
    for key, val in state_dict.items():
        if key in names:
            graph.weights(key).load_dense(np.asarray(val, dtype=np.float32))
        elif strict:
            raise KeyError(f'Unexpected key: {key}')
    if strict:
        missing = names.difference(state_dict)
        if missing:
            raise KeyError(f'Missing keys: {", ".join(sorted(missing))}')
