"""Shape -- (rows, cols) extent of a 2-D tensor."""


class ShapeError(ValueError):
    """Structural error raised while building a graph."""


class Shape:
    __slots__ = ('rows', 'cols')

    def __init__(self, rows, cols=1):
        if rows < 0 or cols < 0:
            raise ShapeError(f'shape dimensions must be non-negative, got {rows}x{cols}')
        self.rows = int(rows)
        self.cols = int(cols)

    def size(self):
        return self.rows * self.cols

    def transpose(self):
        return Shape(self.cols, self.rows)

    @property
    def T(self):
        return self.transpose()

    def is_vector(self):
        return self.cols == 1

    def __mul__(self, other):
        """Shape of the matrix product self @ other."""
        if not isinstance(other, Shape):
            return NotImplemented
        if self.cols != other.rows:
            raise ShapeError(f'cannot multiply {self} by {other}')
        return Shape(self.rows, other.cols)

    def __iter__(self):
        yield self.rows
        yield self.cols

    def __eq__(self, other):
        if not isinstance(other, Shape):
            return NotImplemented
        return self.rows == other.rows and self.cols == other.cols

    def __hash__(self):
        return hash((self.rows, self.cols))

    def __str__(self):
        return f'{self.rows}x{self.cols}'

    def __repr__(self):
        return f'Shape({self.rows}, {self.cols})'
