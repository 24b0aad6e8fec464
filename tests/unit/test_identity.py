"""
Player Identity Tests
"""

import json
import re

from tictactoe.identity import PlayerIdentityStore, generate_player_id

PLAYER_ID_PATTERN = re.compile(r"^player-[0-9a-z]{9}$")


class TestGeneratePlayerId:

    def test_format(self):
        assert PLAYER_ID_PATTERN.match(generate_player_id())

    def test_ids_differ(self):
        assert len({generate_player_id() for _ in range(20)}) == 20


class TestPlayerIdentityStore:
    """Test persistence of the device identity"""

    def test_creates_and_persists(self, tmp_path):
        path = tmp_path / "identity.json"
        player_id = PlayerIdentityStore(str(path)).load_or_create()

        assert PLAYER_ID_PATTERN.match(player_id)
        assert json.loads(path.read_text()) == {"playerId": player_id}

    def test_stable_across_instances(self, tmp_path):
        path = str(tmp_path / "identity.json")
        first = PlayerIdentityStore(path).load_or_create()
        second = PlayerIdentityStore(path).load_or_create()
        assert first == second

    def test_cached_on_instance(self, tmp_path):
        store = PlayerIdentityStore(str(tmp_path / "identity.json"))
        assert store.load_or_create() == store.load_or_create()

    def test_corrupt_file_is_replaced(self, tmp_path):
        path = tmp_path / "identity.json"
        path.write_text("{not json")

        player_id = PlayerIdentityStore(str(path)).load_or_create()

        assert PLAYER_ID_PATTERN.match(player_id)
        assert json.loads(path.read_text())["playerId"] == player_id

    def test_file_without_player_id_is_replaced(self, tmp_path):
        path = tmp_path / "identity.json"
        path.write_text(json.dumps({"name": "someone"}))
        assert PLAYER_ID_PATTERN.match(PlayerIdentityStore(str(path)).load_or_create())

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "identity.json"
        PlayerIdentityStore(str(path)).load_or_create()
        assert path.exists()
