"""
quizarena/questions.py - Counter-Strike question bank.

A room draws its questions when it starts. Clients only ever see the text
and options; the correct option stays on the server and answers are graded
by check_answer().
"""

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class Question:
    id: int
    text: str
    options: tuple[str, ...]
    correct_answer: int  # index into options
    difficulty: str = "medium"
    category: str = "general"


QUESTION_BANK: tuple[Question, ...] = (
    Question(1, "What is the most played Counter-Strike map?",
             ("Dust II", "Mirage", "Inferno", "Nuke"), 0, "easy", "maps"),
    Question(2, "Which weapon deals the most damage per shot in CS:GO?",
             ("AWP", "Desert Eagle", "AK-47", "M4A4"), 0, "medium", "weapons"),
    Question(3, "How many players make up a standard CS team?",
             ("4", "5", "6", "7"), 1, "easy", "general"),
    Question(4, "What is Valve's anti-cheat system called?",
             ("VAC", "Battleye", "EAC", "Punkbuster"), 0, "easy", "general"),
    Question(5, "How much does a defuse kit cost in CS:GO?",
             ("$200", "$400", "$600", "$800"), 1, "medium", "economy"),
    Question(6, "Which of these maps is NOT an official CS:GO map?",
             ("Cache", "Vertigo", "Aztec", "Overpass"), 2, "medium", "maps"),
    Question(7, "How long does defusing the bomb take without a kit?",
             ("5 seconds", "10 seconds", "15 seconds", "20 seconds"), 1, "medium", "gameplay"),
    Question(8, "Who created the original Counter-Strike?",
             ("Gabe Newell", "Minh Le", "Jess Cliffe", "Minh Le and Jess Cliffe"), 3,
             "hard", "history"),
    Question(9, "What is the default tick rate of CS:GO matchmaking servers?",
             ("64 tick", "128 tick", "32 tick", "256 tick"), 0, "hard", "technical"),
    Question(10, "Which rating system does CS:GO competitive matchmaking use?",
             ("ELO", "Glicko", "Glicko-2", "TrueSkill"), 2, "hard", "competitive"),
    Question(11, "What was the last CS:GO operation?",
             ("Hydra", "Shattered Web", "Broken Fang", "Riptide"), 3, "medium", "updates"),
    Question(12, "How much does an AK-47 cost in CS:GO?",
             ("$2500", "$2700", "$3000", "$3300"), 1, "medium", "economy"),
    Question(13, "Which map is set in a nuclear power plant?",
             ("Cache", "Nuke", "Overpass", "Vertigo"), 1, "easy", "maps"),
    Question(14, "Which grenade blinds players?",
             ("Flashbang", "Smoke", "HE Grenade", "Molotov"), 0, "easy", "weapons"),
    Question(15, "Which Brazilian team won the 2016 CS:GO Major (MLG Columbus)?",
             ("MIBR", "SK Gaming", "Luminosity Gaming", "FURIA"), 2, "hard", "esports"),
)

QUESTIONS_BY_ID: dict[int, Question] = {q.id: q for q in QUESTION_BANK}


def pick_questions(
    count: int,
    difficulty: str | None = None,
    category: str | None = None,
    rng: random.Random | None = None,
) -> list[Question]:
    """Draw up to `count` distinct questions in random order."""
    pool = [
        q for q in QUESTION_BANK
        if (difficulty is None or q.difficulty == difficulty)
        and (category is None or q.category == category)
    ]
    rng = rng or random.Random()
    return rng.sample(pool, min(max(count, 0), len(pool)))


def check_answer(question: Question, answer_index: int) -> bool:
    return answer_index == question.correct_answer
