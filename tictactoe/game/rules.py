"""
Game Rules for Tic-Tac-Toe

Pure functions computing win, draw and turn order from a board snapshot.
A board is a sequence of 9 cells, row-major, each holding a Role or None.
"""

from enum import Enum
from typing import List, Optional, Sequence


class Role(Enum):
    """A player's fixed mark for the lifetime of a room membership."""
    X = "X"
    O = "O"


BOARD_SIZE = 9

# Rows, columns, then the two diagonals
WINNING_LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)

Board = Sequence[Optional[Role]]


def create_empty_board() -> List[Optional[Role]]:
    """Create a board with every cell empty."""
    return [None] * BOARD_SIZE


def check_winner(board: Board) -> Optional[Role]:
    """
    Check whether some winning line is fully held by one role.

    Args:
        board: Current board state

    Returns:
        The role holding the first complete line found, or None
    """
    for a, b, c in WINNING_LINES:
        if board[a] is not None and board[a] == board[b] == board[c]:
            return board[a]
    return None


def is_board_full(board: Board) -> bool:
    """True iff no cell is empty."""
    return all(cell is not None for cell in board)


def is_valid_move(board: Board, index: int, current_turn: Role, requesting_role: Role) -> bool:
    """
    Validate that a move is legal.

    The index must already be range-checked by the caller.

    Args:
        board: Current board state
        index: Cell index (0-8)
        current_turn: Role whose turn it is
        requesting_role: Role attempting the move

    Returns:
        True if the cell is empty and it is the requester's turn
    """
    if board[index] is not None:
        return False
    return current_turn == requesting_role


def next_turn(role: Role) -> Role:
    """Strict alternation, X <-> O."""
    return Role.O if role == Role.X else Role.X
