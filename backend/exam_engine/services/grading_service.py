from typing import Any, Dict, Iterable, List, NamedTuple


class GradeOutcome(NamedTuple):
    answers: List[Dict[str, Any]]
    score: int
    correct_count: int
    wrong_count: int
    total_marks: int


def score_percentage(score: int, total_marks: int) -> float:
    """Score as a percentage of total marks, two decimals. Display only, pass/fail uses pass_marks."""
    if not total_marks:
        return 0.0
    return round(score * 100 / total_marks, 2)


def collapse_answers(items: Iterable[Any]) -> Dict[str, int]:
    """
    Turn submitted {question_id, selected_option} items into a mapping.
    Items may be dicts or objects with those attributes. The last item for a
    question wins, matching the order the student made the selections in.
    """
    out: Dict[str, int] = {}
    for item in items:
        if isinstance(item, dict):
            qid, selected = item.get("question_id"), item.get("selected_option")
        else:
            qid, selected = item.question_id, item.selected_option
        if qid is None or selected is None:
            continue
        out[str(qid)] = selected
    return out


def grade_submission(answers: Dict[str, int], questions: List[Any]) -> GradeOutcome:
    """
    Grade the given answers against the provided questions.
    - answers: mapping question_id (str) -> selected option index
    - questions: ordered exam questions (must have id, correct_option, marks)

    The exam's own question list drives the loop, so an unanswered question
    counts as wrong and an answer for a question outside the exam is ignored.
    Only the selection comes from the client; marks and correctness are
    always taken from the questions.
    """
    graded: List[Dict[str, Any]] = []
    score = correct = wrong = total = 0

    for q in questions:
        qid = str(q.id)
        marks = int(q.marks or 0)
        total += marks
        selected = answers.get(qid)
        is_correct = selected is not None and selected == q.correct_option
        if is_correct:
            score += marks
            correct += 1
        else:
            wrong += 1
        if selected is not None:
            graded.append({"question_id": qid, "selected_option": selected, "is_correct": is_correct})

    return GradeOutcome(answers=graded, score=score, correct_count=correct, wrong_count=wrong, total_marks=total)
