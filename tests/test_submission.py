"""
Tests for single-record submission.
"""

import threading

import pytest

from tierlist.exceptions import AggregationInconsistency, PersistenceError, ValidationError
from tierlist.ingestion.submission import (
    set_banned,
    submit,
    submit_results,
    validate_ign,
    validate_metadata,
)
from tierlist.models import PlayerMetadata
from tierlist.scoring.taxonomy import Gamemode, Tier


class TestValidateIgn:
    """Tests for validate_ign function."""

    def test_accepts_valid(self):
        assert validate_ign("Player_01") == "Player_01"

    def test_strips_whitespace(self):
        assert validate_ign("  Steve  ") == "Steve"

    def test_max_length(self):
        assert validate_ign("a" * 16) == "a" * 16
        with pytest.raises(ValidationError, match="too long"):
            validate_ign("a" * 17)

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            validate_ign("")
        with pytest.raises(ValidationError):
            validate_ign(None)

    def test_rejects_invalid_characters(self):
        for ign in ("bad name", "dash-name", "dot.name", "émile", "Bad*Name", "Pl`ayer"):
            with pytest.raises(ValidationError, match="invalid characters"):
                validate_ign(ign)

    def test_markdown_is_not_silently_removed(self, store):
        with pytest.raises(ValidationError):
            submit(store, "Bad*Name", "Crystal", "HT1")
        assert store.find_player_by_ign("BadName") is None
        assert store.list_all_players() == []


class TestValidateMetadata:
    """Tests for validate_metadata function."""

    def test_none_is_empty(self):
        assert validate_metadata(None).supplied() == {}

    def test_normalizes_case(self):
        metadata = validate_metadata({'region': 'eu', 'device': 'mobile'})
        assert metadata.region == "EU"
        assert metadata.device == "Mobile"

    def test_region_alias(self):
        assert validate_metadata({'region': 'Asia'}).region == "AS"

    def test_blank_fields_not_supplied(self):
        metadata = validate_metadata({'region': '', 'device': None, 'java_username': ' '})
        assert metadata.supplied() == {}

    def test_rejects_unknown_region(self):
        with pytest.raises(ValidationError, match="Unknown region"):
            validate_metadata({'region': 'MOON'})

    def test_rejects_unknown_device(self):
        with pytest.raises(ValidationError, match="Unknown device"):
            validate_metadata({'device': 'Toaster'})

    def test_rejects_bad_java_username(self):
        with pytest.raises(ValidationError, match="Java username"):
            validate_metadata(PlayerMetadata(java_username="not valid!"))


class TestSubmit:
    """Tests for submit function."""

    def test_creates_player(self, store):
        result = submit(store, "PlayerA", "Crystal", "HT1")

        assert result['created'] is True
        assert result['global_score'] == 50
        player = store.find_player_by_ign("PlayerA")
        assert player.player_id == result['player_id']
        assert player.global_score == 50

    def test_accumulates_across_gamemodes(self, store):
        submit(store, "PlayerA", "Crystal", "HT2")
        result = submit(store, "PlayerA", "Sword", "LT3")

        assert result['created'] is False
        assert result['global_score'] == 65

    def test_resubmission_updates_instead_of_duplicating(self, store):
        submit(store, "PlayerA", "Crystal", "HT1")
        result = submit(store, "PlayerA", "Crystal", "LT3")

        scores = store.list_gamemode_scores(result['player_id'])
        assert len(scores) == 1
        assert scores[0].tier is Tier.LT3
        assert scores[0].points == 25
        assert result['global_score'] == 25

    def test_identical_resubmission_is_idempotent(self, store):
        first = submit(store, "PlayerA", "Crystal", "HT1")
        second = submit(store, "PlayerA", "Crystal", "HT1")

        assert first == {**second, 'created': True}
        assert len(store.list_gamemode_scores(first['player_id'])) == 1
        assert len(store.list_all_players()) == 1

    def test_not_ranked_removes_record(self, store):
        submit(store, "PlayerA", "Crystal", "HT1")
        submit(store, "PlayerA", "Sword", "HT2")
        result = submit(store, "PlayerA", "Crystal", "Not Ranked")

        scores = store.list_gamemode_scores(result['player_id'])
        assert [r.gamemode for r in scores] == [Gamemode.SWORD]
        assert result['global_score'] == 40

    def test_not_ranked_for_new_player(self, store):
        result = submit(store, "Newbie", "Crystal", "Unranked")

        assert result['global_score'] == 0
        assert store.list_gamemode_scores(result['player_id']) == []

    def test_retired_record_kept_with_zero_points(self, store):
        submit(store, "Veteran", "Crystal", "HT1")
        result = submit(store, "Veteran", "Crystal", "Retired")

        scores = store.list_gamemode_scores(result['player_id'])
        assert len(scores) == 1
        assert scores[0].tier is Tier.RETIRED
        assert scores[0].points == 0
        assert result['global_score'] == 0

    def test_ign_lookup_is_case_sensitive(self, store):
        submit(store, "PlayerA", "Crystal", "HT1")
        result = submit(store, "playera", "Crystal", "LT5")

        assert result['created'] is True
        assert len(store.list_all_players()) == 2

    def test_raw_score_stored_but_not_summed(self, store):
        result = submit(store, "PlayerA", "Crystal", "HT1", raw_score="1234")

        scores = store.list_gamemode_scores(result['player_id'])
        assert scores[0].raw_score == 1234
        assert result['global_score'] == 50

    def test_metadata_on_create_and_update(self, store):
        submit(store, "PlayerA", "Crystal", "HT1",
               metadata={'region': 'NA', 'device': 'PC', 'java_username': 'JavaA'})
        submit(store, "PlayerA", "Sword", "HT1", metadata={'device': 'Mobile'})

        player = store.find_player_by_ign("PlayerA")
        assert player.region == "NA"
        assert player.device == "Mobile"
        assert player.java_username == "JavaA"

    @pytest.mark.parametrize("ign,gamemode,tier", [
        ("", "Crystal", "HT1"),
        ("way_too_long_name_", "Crystal", "HT1"),
        ("bad name", "Crystal", "HT1"),
        ("PlayerA", "Skywars", "HT1"),
        ("PlayerA", "Crystal", "HT9"),
        ("PlayerA", "Crystal", "Crystal2"),
    ])
    def test_validation_happens_before_mutation(self, store, ign, gamemode, tier):
        with pytest.raises(ValidationError):
            submit(store, ign, gamemode, tier)
        assert store.list_all_players() == []

    def test_legacy_tier_rejected_with_migration_hint(self, store):
        with pytest.raises(ValidationError, match="Legacy tier 'Crystal2'"):
            submit(store, "PlayerA", "Crystal", "crystal2")

    def test_validation_error_carries_ign(self, store):
        with pytest.raises(ValidationError) as exc_info:
            submit(store, "PlayerA", "Skywars", "HT1")
        assert exc_info.value.ign == "PlayerA"

    def test_invalid_raw_score(self, store):
        with pytest.raises(ValidationError, match="Invalid score"):
            submit(store, "PlayerA", "Crystal", "HT1", raw_score="lots")
        with pytest.raises(ValidationError, match="non-negative"):
            submit(store, "PlayerA", "Crystal", "HT1", raw_score=-3)

    def test_storage_failure_becomes_persistence_error(self, failing_store):
        with pytest.raises(PersistenceError) as exc_info:
            submit(failing_store, "Broken", "Crystal", "HT1")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_inconsistency_propagates(self, corrupting_store):
        submit(corrupting_store, "PlayerA", "Crystal", "HT1")
        corrupting_store.corrupt_next = True

        with pytest.raises(AggregationInconsistency):
            submit(corrupting_store, "PlayerA", "Sword", "HT1")

        assert corrupting_store.find_player_by_ign("PlayerA").global_score == 100


class TestSubmitResults:
    """Tests for multi-gamemode submission."""

    def test_applies_all_results(self, store):
        result = submit_results(store, "PlayerA", [("Crystal", "HT1"), ("Sword", "LT1", 45)])

        assert result['global_score'] == 95
        assert len(store.list_gamemode_scores(result['player_id'])) == 2

    def test_one_bad_entry_rejects_all(self, store):
        with pytest.raises(ValidationError):
            submit_results(store, "PlayerA", [("Crystal", "HT1"), ("Sword", "bogus")])
        assert store.list_all_players() == []

    def test_duplicate_gamemode_rejected(self, store):
        with pytest.raises(ValidationError, match="more than once"):
            submit_results(store, "PlayerA", [("Crystal", "HT1"), ("crystal", "LT2")])

    def test_empty_results_rejected(self, store):
        with pytest.raises(ValidationError, match="No gamemode results"):
            submit_results(store, "PlayerA", [])

    def test_malformed_entry_rejected(self, store):
        with pytest.raises(ValidationError, match="Expected"):
            submit_results(store, "PlayerA", [("Crystal",)])


class TestConcurrentSubmissions:
    """Concurrent submissions for the same player must not lose updates."""

    def test_no_lost_updates(self, store):
        barrier = threading.Barrier(len(Gamemode))
        errors = []

        def worker(mode):
            barrier.wait()
            try:
                submit(store, "Racer", mode, "HT1")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(mode,)) for mode in Gamemode]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        player = store.find_player_by_ign("Racer")
        assert len(store.list_all_players()) == 1
        assert len(store.list_gamemode_scores(player.player_id)) == 8
        assert player.global_score == 400


class TestSetBanned:
    """Tests for set_banned function."""

    def test_ban_and_unban(self, ranked_store):
        set_banned(ranked_store, "PlayerB")
        active = [p.ign for p in ranked_store.list_all_active_players()]
        assert "PlayerB" not in active

        set_banned(ranked_store, "PlayerB", banned=False)
        active = [p.ign for p in ranked_store.list_all_active_players()]
        assert "PlayerB" in active

    def test_ban_keeps_records(self, ranked_store):
        result = set_banned(ranked_store, "PlayerA")
        assert len(ranked_store.list_gamemode_scores(result['player_id'])) == 2

    def test_unknown_player(self, store):
        with pytest.raises(ValidationError, match="Unknown player"):
            set_banned(store, "Ghost")
