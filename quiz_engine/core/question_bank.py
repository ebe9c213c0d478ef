"""Load questions from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    Q: Question text (supports markdown). Additional lines until the next
       marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: Third option text      (optional)
    D: Fourth option text     (optional)
    CORRECT: A|B|C|D
    CATEGORY: category id     (optional when a default category is given)
    POINTS: point value       (optional, defaults to 1)
    DIFFICULTY: easy|medium|hard   (optional)

Example:

    Q: What is $2 + 2$?
    A: 3
    B: 4
    CORRECT: B
    CATEGORY: 1
    POINTS: 2
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from quiz_engine.constants.quiz_constants import DEFAULT_POINT_VALUE, MIN_OPTION_COUNT
from quiz_engine.core.models import Question


class QuestionBankError(Exception):
    """Raised when a question bank cannot be parsed."""


@dataclass(slots=True)
class QuestionBank:
    """Questions parsed from one bank file."""

    source_path: Path | None
    questions: list[Question]

    def category_ids(self) -> set[int]:
        return {question.category_id for question in self.questions}


_OPTION_ORDER = ["A", "B", "C", "D"]
_KEYED_FIELDS = ("CORRECT:", "CATEGORY:", "POINTS:", "DIFFICULTY:")


def load_question_bank(file_path: Path, default_category_id: int | None = None) -> QuestionBank:
    text = file_path.read_text(encoding="utf-8")
    bank = parse_question_bank(text, default_category_id=default_category_id)
    bank.source_path = file_path
    return bank


def parse_question_bank(text: str, default_category_id: int | None = None) -> QuestionBank:
    questions = [
        _parse_block(block, question_id, default_category_id)
        for question_id, block in enumerate(_split_blocks(text), start=1)
    ]
    if not questions:
        raise QuestionBankError("Question bank did not contain any questions.")
    return QuestionBank(source_path=None, questions=questions)


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_block(block: str, question_id: int, default_category_id: int | None) -> Question:
    prompt_lines: list[str] = []
    options: dict[str, str] = {}
    fields: dict[str, str] = {}
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()

        if upper.startswith("Q:"):
            prompt_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        keyed = next((name for name in _KEYED_FIELDS if upper.startswith(name)), None)
        if keyed is not None:
            fields[keyed[:-1]] = line.split(":", 1)[1].strip()
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            prompt_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuestionBankError(f"Encountered text outside of a known section: '{line}'.")

    prompt = "\n".join(prompt_lines).strip()
    if not prompt:
        raise QuestionBankError("Question text missing (Q: ...)")

    letters = _OPTION_ORDER[: len(options)]
    if len(options) < MIN_OPTION_COUNT or set(options) != set(letters):
        raise QuestionBankError("Each question needs two to four options labelled in order from A.")
    option_list = tuple(options[letter].strip() for letter in letters)
    if any(not opt for opt in option_list):
        raise QuestionBankError("Option text cannot be empty.")

    correct_letter = fields.get("CORRECT", "").upper()
    if correct_letter not in letters:
        raise QuestionBankError(f"CORRECT must be one of {', '.join(letters)}.")

    return Question(
        id=question_id,
        category_id=_parse_category(fields.get("CATEGORY"), default_category_id),
        prompt=prompt,
        options=option_list,
        correct_option_index=letters.index(correct_letter),
        point_value=_parse_points(fields.get("POINTS")),
        difficulty=fields.get("DIFFICULTY") or None,
    )


def _parse_category(raw_value: str | None, default_category_id: int | None) -> int:
    if not raw_value:
        if default_category_id is None:
            raise QuestionBankError("CATEGORY is required when no default category is set.")
        return default_category_id
    try:
        return int(raw_value)
    except ValueError as exc:
        raise QuestionBankError("CATEGORY must be an integer id.") from exc


def _parse_points(raw_value: str | None) -> float:
    if not raw_value:
        return DEFAULT_POINT_VALUE
    try:
        points = float(raw_value)
    except ValueError as exc:
        raise QuestionBankError("POINTS must be a number.") from exc
    if points <= 0:
        raise QuestionBankError("POINTS must be positive.")
    return int(points) if points.is_integer() else points
