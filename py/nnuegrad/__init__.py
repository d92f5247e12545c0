"""nnuegrad -- autograd graphs and device buffers for training NNUE evaluators."""

from .device import Device, DeviceBuffer, DeviceError, CapacityError, ExecutionContext

# Module-level default context
_default_ctx = ExecutionContext()


def default_context():
    return _default_ctx


from .dtype import dtypes  # noqa: E402
from .shape import Shape, ShapeError  # noqa: E402
from .tensor import Tensor  # noqa: E402
from .kernels import Activation  # noqa: E402
from .operations import Operation, Affine, SparseAffine, Activate, Concat, SubmatrixProduct  # noqa: E402
from .graph import Graph, Node, OpError  # noqa: E402

__all__ = [
    'Device', 'DeviceBuffer', 'DeviceError', 'CapacityError', 'ExecutionContext', 'default_context',
    'dtypes', 'Shape', 'ShapeError', 'Tensor', 'Activation',
    'Operation', 'Affine', 'SparseAffine', 'Activate', 'Concat', 'SubmatrixProduct',
    'Graph', 'Node', 'OpError',
]
__version__ = '0.1.0'
