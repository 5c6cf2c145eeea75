"""Tests for the curriculum table and distribution lookup."""

import pytest

from mathquiz.curriculum import (
    CURRICULUM,
    get_distribution,
    grades_for,
    resolve_topic,
    topics_for,
    validate_grade,
)
from mathquiz.models import QUIZ_SIZE, EducationLevel


class TestCurriculum:
    """Tests for grade and topic lookups."""

    def test_levels_cover_grades_one_to_twelve(self):
        assert grades_for(EducationLevel.PRIMARY) == [1, 2, 3, 4, 5]
        assert grades_for(EducationLevel.MIDDLE) == [6, 7, 8, 9]
        assert grades_for(EducationLevel.HIGH) == [10, 11, 12]

    def test_every_grade_has_topics(self):
        for grades in CURRICULUM.values():
            for topics in grades.values():
                assert topics
                assert all(t.strip() for t in topics)

    def test_topics_for_returns_copy(self):
        topics = topics_for(EducationLevel.PRIMARY, 1)
        topics.append("extra")
        assert "extra" not in CURRICULUM[EducationLevel.PRIMARY][1]

    def test_grade_must_match_level(self):
        with pytest.raises(ValueError):
            validate_grade(EducationLevel.HIGH, 9)
        with pytest.raises(ValueError):
            topics_for(EducationLevel.PRIMARY, 6)

    def test_level_accepts_string_value(self):
        assert topics_for("middle", 7) == CURRICULUM[EducationLevel.MIDDLE][7]


class TestResolveTopic:
    """Tests for choosing between curriculum and custom topics."""

    def test_selected_topic_used_without_custom(self):
        assert resolve_topic("Bảng nhân 2, 3, 4, 5") == "Bảng nhân 2, 3, 4, 5"

    def test_custom_topic_wins_and_is_trimmed(self):
        assert resolve_topic("Bảng nhân", "  Hình học phẳng  ") == "Hình học phẳng"

    def test_blank_custom_topic_is_ignored(self):
        assert resolve_topic("Bảng nhân", "   ") == "Bảng nhân"

    @pytest.mark.parametrize("custom", ["abcd", "x" * 101])
    def test_custom_topic_length_bounds(self, custom):
        with pytest.raises(ValueError):
            resolve_topic("Bảng nhân", custom)

    @pytest.mark.parametrize("custom", ["abcde", "x" * 100])
    def test_custom_topic_length_limits_inclusive(self, custom):
        assert resolve_topic("", custom) == custom

    def test_no_topic_at_all(self):
        with pytest.raises(ValueError):
            resolve_topic("  ", None)


class TestGetDistribution:
    """Tests for the per-level difficulty distribution."""

    @pytest.mark.parametrize(
        "level,grade,expected",
        [
            (EducationLevel.PRIMARY, 1, (12, 6, 2)),
            (EducationLevel.PRIMARY, 2, (12, 6, 2)),
            (EducationLevel.PRIMARY, 3, (10, 6, 4)),
            (EducationLevel.PRIMARY, 5, (10, 6, 4)),
            (EducationLevel.MIDDLE, 6, (6, 8, 6)),
            (EducationLevel.MIDDLE, 9, (6, 8, 6)),
            (EducationLevel.HIGH, 10, (4, 8, 8)),
            (EducationLevel.HIGH, 12, (4, 8, 8)),
        ],
    )
    def test_table(self, level, grade, expected):
        dist = get_distribution(level, grade)
        assert (dist.recognition, dist.understanding, dist.application) == expected

    def test_every_grade_sums_to_quiz_size(self):
        for level, grades in CURRICULUM.items():
            for grade in grades:
                assert get_distribution(level, grade).total == QUIZ_SIZE
