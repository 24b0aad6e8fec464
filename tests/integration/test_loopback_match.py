"""
Loopback Integration Tests

Two room sessions wired exactly as the client builds them, talking through an
in-memory hub: token broker, channel, transport, protocol and session together.
"""

from config_factory import AppConfig, Environment
from tictactoe.client import create_loopback_hub, create_room_session
from tictactoe.core.game_phases import ConnectionPhase, GamePhase, Outcome
from tictactoe.game.room_codes import room_group_name
from tictactoe.game.rules import Role
from tests.helpers.manual_scheduler import ManualScheduler


class LoopbackMatchBase:

    def setup_method(self):
        self.config = AppConfig(realtime_transport='loopback', environment=Environment.TESTING)
        self.hub = create_loopback_hub(self.config)
        self.scheduler = ManualScheduler()
        self.alice = create_room_session(self.config, player_id='player-alice0001',
                                         hub=self.hub, scheduler=self.scheduler)
        self.bob = create_room_session(self.config, player_id='player-bob000001',
                                       hub=self.hub, scheduler=self.scheduler)

    def start_match(self):
        code = self.alice.create_room()
        assert self.alice.waiting_for_opponent
        assert self.bob.join_room(code.lower())
        return code


class TestLoopbackMatch(LoopbackMatchBase):
    """Test a full game between two sessions"""

    def test_join_clears_waiting_for_creator(self):
        code = self.start_match()

        assert not self.alice.waiting_for_opponent
        assert self.bob.room_code == code
        assert self.alice.role == Role.X
        assert self.bob.role == Role.O
        assert self.hub.member_count(room_group_name(code)) == 2

    def test_moves_propagate_and_both_agree_on_winner(self):
        self.start_match()

        assert self.alice.apply_local_move(0)
        assert self.bob.board[0] == Role.X
        assert self.bob.turn == Role.O

        assert self.bob.apply_local_move(3)
        assert self.alice.apply_local_move(1)
        assert self.bob.apply_local_move(4)
        assert self.alice.apply_local_move(2)

        for session in (self.alice, self.bob):
            assert session.phase == GamePhase.GAME_OVER
            assert session.outcome == Outcome.X
        assert self.alice.board == self.bob.board

    def test_out_of_turn_move_does_not_propagate(self):
        self.start_match()

        assert self.bob.apply_local_move(4) is False
        assert self.alice.board[4] is None

    def test_rematch_is_local(self):
        self.start_match()
        for index, session in [(0, self.alice), (3, self.bob), (1, self.alice), (4, self.bob), (2, self.alice)]:
            assert session.apply_local_move(index)

        assert self.alice.rematch()
        assert self.alice.phase == GamePhase.PLAYING
        assert self.bob.phase == GamePhase.GAME_OVER

        assert self.bob.rematch()
        assert self.alice.apply_local_move(8)
        assert self.bob.board[8] == Role.X

    def test_new_game_leaves_group(self):
        code = self.start_match()

        self.bob.new_game()

        assert self.hub.member_count(room_group_name(code)) == 1
        assert self.bob.phase == GamePhase.LOBBY

    def test_sessions_in_different_rooms_are_isolated(self):
        carol = create_room_session(self.config, player_id='player-carol001',
                                    hub=self.hub, scheduler=self.scheduler)
        code = self.start_match()
        assert carol.join_room("WXYZ" if code != "WXYZ" else "ABCD")

        self.alice.apply_local_move(0)

        assert carol.board == (None,) * 9


class TestLoopbackReconnect(LoopbackMatchBase):
    """Test recovery after the hub drops a room's connections"""

    def test_drop_and_reconnect(self):
        code = self.start_match()
        self.alice.apply_local_move(0)

        self.hub.drop_group(room_group_name(code))

        assert self.alice.connection_status.phase == ConnectionPhase.RECONNECTING
        assert self.bob.connection_status.phase == ConnectionPhase.RECONNECTING
        assert [t.delay_ms for t in self.scheduler.pending] == [2000, 2000]

        self.scheduler.fire_all_pending()

        assert self.alice.connection_status.phase == ConnectionPhase.CONNECTED
        assert self.bob.connection_status.phase == ConnectionPhase.CONNECTED
        assert self.hub.member_count(room_group_name(code)) == 2

        # Game state survives the reconnect and play continues
        assert self.bob.board[0] == Role.X
        assert self.bob.apply_local_move(4)
        assert self.alice.board[4] == Role.O

    def test_move_during_outage_is_not_replayed(self):
        code = self.start_match()
        self.hub.drop_group(room_group_name(code))

        assert self.alice.apply_local_move(0)
        self.scheduler.fire_all_pending()

        assert self.alice.board[0] == Role.X
        assert self.bob.board[0] is None
        assert self.alice.channel.delivery_failures == 1
