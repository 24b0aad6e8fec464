"""
Room Session - one player's authoritative local view of one room.

Owns {board, turn, role, room code, game phase, waiting flag} and the realtime
channel for the current room. Local moves are validated and broadcast; remote
moves from the opponent are applied without re-validation.

State machine:
    LOBBY -> PLAYING            (create_room / join_room)
    PLAYING -> GAME_OVER        (win or draw)
    GAME_OVER -> PLAYING        (rematch, same room and role)
    PLAYING | GAME_OVER -> LOBBY (new_game, tears down the channel)
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from tictactoe.core.errors import ErrorCode, LogicConflict, ProtocolViolation
from tictactoe.core.game_phases import ConnectionStatus, GamePhase, Outcome
from tictactoe.game.room_codes import (
    DEFAULT_ROOM_CODE_LENGTH,
    generate_room_code,
    is_valid_room_code,
    normalize_room_code,
)
from tictactoe.game.rules import (
    BOARD_SIZE,
    Role,
    check_winner,
    create_empty_board,
    is_board_full,
    is_valid_move,
    next_turn,
)
from tictactoe.protocol.messages import (
    JoinRoomMessage,
    MoveMessage,
    RoomMessage,
    build_join,
    build_move,
)
from tictactoe.realtime.channel import RealtimeChannel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a session handed to observers."""
    phase: GamePhase
    board: Tuple[Optional[Role], ...]
    turn: Role
    role: Optional[Role]
    room_code: Optional[str]
    outcome: Optional[Outcome]
    waiting_for_opponent: bool
    connection: ConnectionStatus

    @property
    def is_my_turn(self) -> bool:
        return self.phase == GamePhase.PLAYING and not self.waiting_for_opponent and self.turn == self.role


StateHandler = Callable[[SessionSnapshot], None]


class RoomSession:
    """Room lifecycle and move application for a single player."""

    def __init__(
        self,
        player_id: str,
        channel_factory: Callable[[], RealtimeChannel],
        code_generator: Callable[[int], str] = generate_room_code,
        room_code_length: int = DEFAULT_ROOM_CODE_LENGTH,
    ):
        """Initialize the session in the lobby.

        Args:
            player_id: This device's stable player identity
            channel_factory: Builds a fresh channel for each room entry
            code_generator: Produces new room codes for create_room()
            room_code_length: Expected room code length
        """
        self.player_id = player_id
        self._channel_factory = channel_factory
        self._code_generator = code_generator
        self.room_code_length = room_code_length

        self._channel: Optional[RealtimeChannel] = None
        self._state_handlers: List[StateHandler] = []
        self._lock = threading.RLock()
        self._reset_to_lobby()

    # Read-only state

    @property
    def phase(self) -> GamePhase:
        return self._phase

    @property
    def board(self) -> Tuple[Optional[Role], ...]:
        return tuple(self._board)

    @property
    def turn(self) -> Role:
        return self._turn

    @property
    def role(self) -> Optional[Role]:
        return self._role

    @property
    def room_code(self) -> Optional[str]:
        return self._room_code

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome

    @property
    def waiting_for_opponent(self) -> bool:
        return self._waiting

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection

    @property
    def channel(self) -> Optional[RealtimeChannel]:
        return self._channel

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                phase=self._phase,
                board=tuple(self._board),
                turn=self._turn,
                role=self._role,
                room_code=self._room_code,
                outcome=self._outcome,
                waiting_for_opponent=self._waiting,
                connection=self._connection,
            )

    def on_state_change(self, handler: StateHandler) -> None:
        """Register an observer called with a snapshot after every state change."""
        with self._lock:
            self._state_handlers.append(handler)

    # Room lifecycle

    def create_room(self) -> str:
        """
        Create a room as X and wait for an opponent.

        Returns:
            The new room code
        """
        self._leave_current_room()
        code = self._code_generator(self.room_code_length)
        channel = self._enter_room(code, Role.X, waiting=True)
        logger.info(f"Created room {code} as X")
        self._connect(channel, code)
        return code

    def join_room(self, code: str) -> bool:
        """
        Join an existing room as O.

        Args:
            code: Room code shared by the creator

        Returns:
            False if the code is malformed, True otherwise
        """
        code = normalize_room_code(code)
        if not is_valid_room_code(code, self.room_code_length):
            logger.warning(f"Refusing to join malformed room code {code!r}")
            return False

        self._leave_current_room()
        channel = self._enter_room(code, Role.O, waiting=False)
        logger.info(f"Joining room {code} as O")
        self._connect(channel, code)
        return True

    def rematch(self) -> bool:
        """Start a fresh board in the same room with the same roles. Only valid from GAME_OVER."""
        with self._lock:
            if self._phase != GamePhase.GAME_OVER:
                logger.warning(f"Ignoring rematch from phase {self._phase.value}")
                return False
            self._board = create_empty_board()
            self._turn = Role.X
            self._outcome = None
            self._phase = GamePhase.PLAYING
            logger.info(f"Rematch started in room {self._room_code}")
        self._notify_state_change()
        return True

    def new_game(self) -> bool:
        """Return to the lobby and disconnect. Valid from PLAYING or GAME_OVER."""
        with self._lock:
            if self._phase == GamePhase.LOBBY:
                logger.debug("new_game called while already in the lobby")
                return False
            logger.info(f"Leaving room {self._room_code}")
            channel = self._channel
            self._reset_to_lobby()
        if channel is not None:
            channel.disconnect()
        self._notify_state_change()
        return True

    # Moves

    def apply_local_move(self, index: int) -> bool:
        """
        Play this player's mark at ``index`` and broadcast it.

        Rejected without side effects unless it is this player's turn, the
        cell is empty, and the opponent has arrived.

        Returns:
            True if the move was applied
        """
        with self._lock:
            if self._phase != GamePhase.PLAYING or self._waiting:
                return False
            if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < BOARD_SIZE:
                logger.warning(f"Ignoring out-of-range cell index {index!r}")
                return False
            if not is_valid_move(self._board, index, self._turn, self._role):
                return False

            self._board[index] = self._role
            self._turn = next_turn(self._role)
            message = build_move(self._room_code, self.player_id, index, self._role)
            channel = self._channel
            self._evaluate_terminal()

        if channel is not None:
            channel.send(message)
        self._notify_state_change()
        return True

    def apply_remote_move(self, message: MoveMessage) -> bool:
        """
        Apply the opponent's move. Own echoes are ignored; moves that conflict
        with the board are logged and dropped.

        Returns:
            True if the board changed
        """
        try:
            with self._lock:
                if message.player_id == self.player_id:
                    return False
                self._check_room(message)
                self._write_remote_move(message)
        except (ProtocolViolation, LogicConflict) as e:
            logger.warning(f"Dropping remote move in room {self._room_code} ({e.code.value}): {e.message}")
            return False

        self._notify_state_change()
        return True

    def apply_remote_join(self, message: JoinRoomMessage) -> bool:
        """
        Note the opponent's arrival. Duplicates and late joins are no-ops.

        Returns:
            True if the waiting flag was cleared
        """
        try:
            with self._lock:
                if message.player_id == self.player_id or not self._waiting:
                    return False
                self._check_room(message)
                self._waiting = False
                logger.info(f"Opponent {message.player_id} joined room {self._room_code}")
        except ProtocolViolation as e:
            logger.warning(f"Dropping join in room {self._room_code} ({e.code.value}): {e.message}")
            return False

        self._notify_state_change()
        return True

    # Internals

    def _reset_to_lobby(self) -> None:
        self._phase = GamePhase.LOBBY
        self._board = create_empty_board()
        self._turn = Role.X
        self._role: Optional[Role] = None
        self._room_code: Optional[str] = None
        self._outcome: Optional[Outcome] = None
        self._waiting = False
        self._connection = ConnectionStatus()
        self._channel = None

    def _leave_current_room(self) -> None:
        if self._phase != GamePhase.LOBBY:
            self.new_game()

    def _enter_room(self, code: str, role: Role, waiting: bool) -> RealtimeChannel:
        channel = self._channel_factory()
        with self._lock:
            self._room_code = code
            self._role = role
            self._board = create_empty_board()
            self._turn = Role.X
            self._outcome = None
            self._waiting = waiting
            self._phase = GamePhase.PLAYING
            self._channel = channel
        channel.on_message(lambda message: self._handle_message(channel, message))
        channel.on_connection_status(lambda status: self._handle_connection_status(channel, status))
        self._notify_state_change()
        return channel

    def _connect(self, channel: RealtimeChannel, code: str) -> None:
        # Blocking I/O happens outside the session lock
        if not channel.connect(code, self.player_id):
            logger.warning(f"Could not connect to room {code} ({channel.status.phase.name})")

    def _handle_message(self, channel: RealtimeChannel, message: RoomMessage) -> None:
        if channel is not self._channel:
            return
        if isinstance(message, MoveMessage):
            self.apply_remote_move(message)
        elif isinstance(message, JoinRoomMessage):
            self.apply_remote_join(message)

    def _handle_connection_status(self, channel: RealtimeChannel, status: ConnectionStatus) -> None:
        with self._lock:
            if channel is not self._channel:
                return
            self._connection = status
            announce = None
            if status.is_connected:
                announce = build_join(self._room_code, self.player_id, self._role)
        if announce is not None:
            # Re-sent on every (re)connect; receivers treat duplicates as no-ops
            channel.send(announce)
        self._notify_state_change()

    def _check_room(self, message: RoomMessage) -> None:
        if message.room != self._room_code:
            raise ProtocolViolation(
                f"Message for room {message.room} received in room {self._room_code}",
                ErrorCode.ROOM_MISMATCH,
            )

    def _write_remote_move(self, message: MoveMessage) -> None:
        if self._phase != GamePhase.PLAYING:
            raise LogicConflict(
                f"Move at {message.index} arrived in phase {self._phase.value}",
                ErrorCode.GAME_FINISHED,
            )
        if self._board[message.index] is not None:
            raise LogicConflict(f"Cell {message.index} is already taken", ErrorCode.CELL_OCCUPIED)

        self._board[message.index] = message.role
        self._turn = next_turn(message.role)
        self._evaluate_terminal()

    def _evaluate_terminal(self) -> None:
        winner = check_winner(self._board)
        if winner is not None:
            self._phase = GamePhase.GAME_OVER
            self._outcome = Outcome(winner.value)
            logger.info(f"Room {self._room_code}: {winner.value} wins")
        elif is_board_full(self._board):
            self._phase = GamePhase.GAME_OVER
            self._outcome = Outcome.DRAW
            logger.info(f"Room {self._room_code}: draw")

    def _notify_state_change(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            handlers = list(self._state_handlers)
        for handler in handlers:
            try:
                handler(snapshot)
            except Exception as e:
                logger.error(f"Error in session state handler: {e}")
