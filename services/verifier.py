from typing import Iterable, List, Optional, Union

Answer = Union[str, List[str]]

SINGLE_ANSWER = "multiple_choice"
MULTI_ANSWER = "select_all"


def normalize(value: str) -> str:
    return value.strip().lower()


def verify_answer(correct_answers: Iterable[str], candidate: Answer, question_type: Optional[str] = None) -> bool:
    """
    Decide whether `candidate` answers a question whose accepted answers are `correct_answers`.

    The interaction mode comes from `question_type` when it is known:

    - ``select_all``: the candidate is a set (a bare string is a one-element set) and is
      correct only when it equals the accepted set exactly: no partial credit, order irrelevant.
    - ``multiple_choice``: the candidate is one answer (a list must hold exactly one
      distinct value) and is correct when it matches any accepted answer.

    Without a type the candidate's shape decides: a string is a single answer, a list
    is a multi-select answer. Matching ignores case and surrounding whitespace.
    """
    correct = {normalize(c) for c in correct_answers}

    if question_type == MULTI_ANSWER:
        chosen = [candidate] if isinstance(candidate, str) else candidate
        return {normalize(c) for c in chosen} == correct

    if question_type == SINGLE_ANSWER:
        if isinstance(candidate, str):
            return normalize(candidate) in correct
        chosen = {normalize(c) for c in candidate}
        return len(chosen) == 1 and chosen <= correct

    if isinstance(candidate, str):
        return normalize(candidate) in correct

    return {normalize(c) for c in candidate} == correct
