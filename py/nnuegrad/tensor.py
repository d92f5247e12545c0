"""Tensor -- a value buffer paired with an optional gradient buffer."""

import numpy as np

from .device import DeviceBuffer
from .dtype import dtypes


class Tensor:
    """Values (and, when training through it, gradients) of one graph node.

    Dense tensors hold `shape.size()` float32 values. Sparse tensors describe a
    0/1 column vector by the indices of its ones: an int32 buffer of
    `max_active` slots plus the count `nnz` currently in use. Sparse tensors
    are graph inputs and never carry gradients.
    """

    def __init__(self, shape, requires_grad=False, *, max_active=None):
        self.shape = shape
        if max_active is not None:
            if requires_grad:
                raise ValueError('sparse tensors cannot require gradients')
            self.values = DeviceBuffer(max_active, dtypes.int32)
            self.nnz = 0
        else:
            self.values = DeviceBuffer(shape.size())
            self.nnz = None
        self.gradients = DeviceBuffer(shape.size()) if requires_grad else None

    @property
    def requires_grad(self):
        return self.gradients is not None

    @property
    def is_sparse(self):
        return self.nnz is not None

    def load_dense(self, data):
        if self.is_sparse:
            raise TypeError('load_dense() on a sparse tensor, use load_sparse()')
        arr = np.asarray(data, dtype=np.float32)
        if arr.ndim == 2:
            if arr.shape != (self.shape.rows, self.shape.cols):
                raise ValueError(f'expected a {self.shape} matrix, got {arr.shape[0]}x{arr.shape[1]}')
            # column-major, the layout kernels read
            arr = arr.reshape(-1, order='F')
        arr = arr.reshape(-1)
        if arr.size != self.shape.size():
            raise ValueError(f'expected {self.shape.size()} values for shape {self.shape}, got {arr.size}')
        self.values.load_from_slice(arr)

    def load_sparse(self, indices):
        if not self.is_sparse:
            raise TypeError('load_sparse() on a dense tensor, use load_dense()')
        arr = np.asarray(indices, dtype=np.int32).reshape(-1)
        self.values.load_from_slice(arr)
        self.nnz = int(arr.size)

    def numpy(self):
        """Host copy of the values, dense tensors as a (rows, cols) array."""
        if self.is_sparse:
            return self.values.to_numpy(self.nnz)
        return self.values.to_numpy().reshape(self.shape.cols, self.shape.rows).T

    def grad_numpy(self):
        if self.gradients is None:
            return None
        return self.gradients.to_numpy().reshape(self.shape.cols, self.shape.rows).T

    def zero_grad(self):
        if self.gradients is not None:
            self.gradients.set_zero()

    def __repr__(self):
        kind = f'sparse, nnz={self.nnz}' if self.is_sparse else f'requires_grad={self.requires_grad}'
        return f'Tensor({self.shape}, {kind})'
