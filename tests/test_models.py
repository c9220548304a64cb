from quiz_ocr.models import CorrectionStats, question_number, sort_answers


def test_stats_add_sums_every_counter():
    total = CorrectionStats(fuzzy_corrections=1, shifted=2)
    total.add(CorrectionStats(fuzzy_corrections=2, removed=1, misplacements_detected=4))
    assert total == CorrectionStats(fuzzy_corrections=3, shifted=2, removed=1, misplacements_detected=4)
    assert total.total_changes == 6


def test_sort_answers_is_numeric():
    assert list(sort_answers({"Q10": "a", "Q2": "b", "Q1": "c"})) == ["Q1", "Q2", "Q10"]
    assert question_number("Q12") == 12
    assert question_number("name") == 0
