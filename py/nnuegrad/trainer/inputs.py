"""Feature extraction: board -> (side-to-move index, opponent index) pairs.

Each occupied square of a position yields one feature index from each
perspective. Feature iterators are lazy and restart whenever they are
iterated again, but belong to the single position they were created for.
"""


class InputType:
    """Feature set interface consumed by the network builder."""

    def inputs(self):
        raise NotImplementedError

    def buckets(self):
        return 1

    def max_active(self):
        raise NotImplementedError

    def feature_iter(self, pos):
        raise NotImplementedError


class FeatureIter:
    def __init__(self, pieces, index):
        self._pieces = pieces
        self._index = index

    def __iter__(self):
        return (self._index(piece, square) for piece, square in self._pieces)


class Ataxx147(InputType):
    """7x7 ataxx board with three piece codes.

    Piece 0 is a stone of the side to move, 1 an opponent stone and 2 a gap.
    Gaps belong to neither side and index the same from both perspectives.
    """
    SQUARES = 49
    GAP = 2

    def inputs(self):
        return 3 * self.SQUARES

    def max_active(self):
        return self.SQUARES

    @classmethod
    def index(cls, piece, square):
        stm = cls.SQUARES * piece + square
        nstm = stm if piece == cls.GAP else cls.SQUARES * (piece ^ 1) + square
        return stm, nstm

    def feature_iter(self, pos):
        return FeatureIter(pos.pieces, self.index)


class Chess768(InputType):
    """Chess piece-square features, 2 colours x 6 pieces x 64 squares.

    Pieces are coded as `8 * colour + piece_type`, colour 0 being the side to
    move. The opponent's view swaps colours and mirrors the board vertically.
    """

    def inputs(self):
        return 768

    def max_active(self):
        return 32

    @staticmethod
    def index(piece, square):
        colour = 1 if piece & 8 else 0
        pc = 64 * (piece & 7)
        stm = 384 * colour + pc + square
        nstm = 384 * (colour ^ 1) + pc + (square ^ 56)
        return stm, nstm

    def feature_iter(self, pos):
        return FeatureIter(pos.pieces, self.index)
