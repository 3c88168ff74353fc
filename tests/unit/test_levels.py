"""Level computation tests."""

from stemquiz.progression.levels import XP_PER_LEVEL, compute_level, level_for_xp, level_title


class TestLevelForXP:
    def test_zero_xp_is_level_one(self):
        assert level_for_xp(0) == 1

    def test_boundaries(self):
        assert level_for_xp(XP_PER_LEVEL - 1) == 1
        assert level_for_xp(XP_PER_LEVEL) == 2
        assert level_for_xp(363) == 4

    def test_monotonic(self):
        levels = [level_for_xp(xp) for xp in range(0, 10_000, 7)]
        assert levels == sorted(levels)


class TestTitles:
    def test_titles_by_level(self):
        assert level_title(1) == "Beginner"
        assert level_title(5) == "Apprentice"
        assert level_title(10) == "Intermediate"
        assert level_title(49) == "Expert"
        assert level_title(50) == "Master Scholar"
        assert level_title(120) == "Master Scholar"


class TestComputeLevel:
    def test_progress_within_level(self):
        info = compute_level(250)
        assert info["level"] == 3
        assert info["xp_into_level"] == 50
        assert info["xp_for_level"] == XP_PER_LEVEL
        assert info["next_level"] == 4
        assert info["title"] == "Beginner"

    def test_next_title_at_threshold(self):
        info = compute_level(400)
        assert info["level"] == 5
        assert info["title"] == "Apprentice"
        assert info["next_title"] == "Apprentice"
