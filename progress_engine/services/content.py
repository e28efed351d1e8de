"""Item sets for attempts.

``ContentProvider.items_for`` returns the ordered items for one attempt. With
``CONTENT_SERVICE_URL`` configured the items come from the remote content
service; otherwise a deterministic generator seeded per attempt builds them
from the subject's ``item_style``. The lifecycle freezes whatever comes back
into the attempt, expected answers included, and only ever hands clients the
``public_items`` view.
"""

import logging
import random
from typing import Any

import httpx

from progress_engine.catalog import GameConfig, QuestConfig, subject_categories
from progress_engine.catalog.quests import CHOICE_SCENARIO, REFLECTION
from progress_engine.core.errors import UpstreamUnavailableError
from progress_engine.db.models import SkillCategoryEnum
from progress_engine.services.grading import ITEM_TYPES
from progress_engine.services.service_clients import ContentServiceClient, get_content_client

logger = logging.getLogger(__name__)

_HIDDEN_FIELDS = ("expected",)


def public_items(items: list[dict]) -> list[dict]:
    """Items as shown to a client: everything except the expected answers."""
    return [{k: v for k, v in item.items() if k not in _HIDDEN_FIELDS} for item in items]


_CATEGORY_VALUES = frozenset(c.value for c in SkillCategoryEnum)


def _known_categories(item: dict) -> bool:
    """Missing categories fall back to the subject's; present ones must be known values."""
    if "categories" not in item:
        return True
    categories = item["categories"]
    return isinstance(categories, list) and all(
        isinstance(c, str) and c in _CATEGORY_VALUES for c in categories
    )


# ── Built-in generators ───────────────────────────────────────────────────────


def _number_pattern(rng: random.Random, i: int, difficulty: str) -> dict:
    start = rng.randint(1, 12)
    if difficulty != "easy" and i % 2 == 1:
        ratio = rng.choice((2, 3))
        seq = [start * ratio**k for k in range(5)]
    else:
        step = rng.randint(2, 9)
        seq = [start + step * k for k in range(5)]
    shown = ", ".join(str(n) for n in seq[:4])
    return {"type": "numeric", "prompt": f"What comes next? {shown}, ?", "expected": seq[4]}


_OPEN_IDEAS = (
    "List as many different uses for a paperclip as you can.",
    "How many ways could you get a message across the school without speaking?",
    "Invent three new games you could play with one ball and a chair.",
    "Describe different ways to measure the height of a tree.",
    "What could you build with ten cardboard boxes?",
    "Name ways a city could use less water.",
)


def _open_ideas(rng: random.Random, i: int, difficulty: str) -> dict:
    min_words = {"easy": 6, "medium": 10, "hard": 15}.get(difficulty, 10)
    return {"type": "text", "prompt": rng.choice(_OPEN_IDEAS), "min_words": min_words}


_STORY_STARTS = (
    "The lights went out just as the train entered the tunnel.",
    "Nobody had opened the attic door in fifty years.",
    "The new student arrived with a map nobody could read.",
    "The robot in the library started whispering answers.",
    "It rained upward for exactly one minute.",
)


def _story_prompt(rng: random.Random, i: int, difficulty: str) -> dict:
    min_words = {"easy": 15, "medium": 25, "hard": 35}.get(difficulty, 25)
    start = rng.choice(_STORY_STARTS)
    return {
        "type": "text",
        "prompt": f"Continue the story: \"{start}\"",
        "min_words": min_words,
    }


_SYMBOLS = ("circle", "square", "triangle", "star", "hexagon", "diamond", "arrow", "moon")


def _recall(rng: random.Random, i: int, difficulty: str) -> dict:
    length = 4 if difficulty == "easy" else 5
    shown = rng.sample(_SYMBOLS, length)
    position = rng.randrange(length)
    options = rng.sample(_SYMBOLS, 4)
    if shown[position] not in options:
        options[rng.randrange(4)] = shown[position]
    ordinal = ("first", "second", "third", "fourth", "fifth")[position]
    return {
        "type": "mcq",
        "prompt": f"You saw: {' - '.join(shown)}. Which shape was {ordinal}?",
        "options": options,
        "expected": options.index(shown[position]),
    }


_ODD_GROUPS = (
    (("apple", "banana", "mango", "grape"), ("carrot", "potato", "onion")),
    (("violin", "guitar", "cello", "harp"), ("drum", "cymbal", "tabla")),
    (("Mercury", "Venus", "Mars", "Saturn"), ("Moon", "Sun", "Comet")),
    (("2", "4", "8", "16"), ("7", "9", "15")),
    (("river", "lake", "ocean", "pond"), ("desert", "mountain", "valley")),
)


def _odd_one_out(rng: random.Random, i: int, difficulty: str) -> dict:
    members, strangers = rng.choice(_ODD_GROUPS)
    options = rng.sample(members, 3) + [rng.choice(strangers)]
    rng.shuffle(options)
    odd = next(o for o in options if o not in members)
    return {
        "type": "mcq",
        "prompt": "Which one does not belong?",
        "options": options,
        "expected": options.index(odd),
    }


_PLANS = (
    ("Pick a topic", "Find three sources", "Write a draft", "Check facts", "Submit the report"),
    ("Read the recipe", "Buy ingredients", "Prepare ingredients", "Cook", "Serve"),
    ("Choose a destination", "Check the weather", "Pack the bag", "Catch the bus", "Arrive"),
    ("Set a goal", "List the steps", "Do the first step", "Review progress", "Celebrate"),
)


def _ordering(rng: random.Random, i: int, difficulty: str) -> dict:
    steps = list(rng.choice(_PLANS))
    if difficulty == "easy":
        steps = steps[:4]
    shuffled = steps[:]
    while shuffled == steps:
        rng.shuffle(shuffled)
    return {
        "type": "sequence",
        "prompt": "Put these steps in the best order.",
        "options": shuffled,
        "expected": [shuffled.index(step) for step in steps],
    }


_DILEMMAS = (
    (
        "A classmate copies your homework and the teacher praises them.",
        ("Say nothing", "Tell everyone", "Talk to the classmate privately first", "Copy theirs next time"),
        2,
    ),
    (
        "You find a wallet with money and an ID card on the bus.",
        ("Keep the money", "Hand it to the driver or return it to the owner", "Leave it there", "Take only the card"),
        1,
    ),
    (
        "Your friend is left out of a group game at break.",
        ("Ignore it", "Invite them to join", "Laugh along", "Leave the game"),
        1,
    ),
    (
        "You promised to help a friend but a better plan comes up.",
        ("Cancel without telling them", "Keep your promise or explain honestly", "Pretend to be ill", "Send someone else"),
        1,
    ),
)


def _dilemma(rng: random.Random, i: int, difficulty: str) -> dict:
    prompt, options, best = rng.choice(_DILEMMAS)
    return {"type": "mcq", "prompt": prompt, "options": list(options), "expected": best}


_STRATEGIES = (
    (
        "You keep getting the same kind of maths problem wrong. What helps most?",
        ("Skip them", "Look at where your working went wrong", "Do them faster", "Guess"),
        1,
    ),
    (
        "You forget what you read after finishing a chapter. What helps most?",
        ("Read it faster", "Summarise each section in your own words", "Highlight everything", "Stop reading"),
        1,
    ),
    (
        "A test is in three days. Which plan works best?",
        ("Study all night before", "Short review sessions each day", "Only read notes once", "Wait and see"),
        1,
    ),
    (
        "You are stuck on a puzzle. What should you try first?",
        ("Give up", "Try a different approach", "Copy someone", "Keep doing the same thing"),
        1,
    ),
)


def _strategy_check(rng: random.Random, i: int, difficulty: str) -> dict:
    prompt, options, best = rng.choice(_STRATEGIES)
    return {"type": "mcq", "prompt": prompt, "options": list(options), "expected": best}


_GENERATORS = {
    "number_pattern": _number_pattern,
    "open_ideas": _open_ideas,
    "story_prompt": _story_prompt,
    "recall": _recall,
    "odd_one_out": _odd_one_out,
    "ordering": _ordering,
    "dilemma": _dilemma,
    "strategy_check": _strategy_check,
}


# ── Provider ──────────────────────────────────────────────────────────────────


class ContentProvider:
    def __init__(self, client: ContentServiceClient | None = None) -> None:
        self._client = client

    def items_for(
        self,
        subject: GameConfig | QuestConfig,
        grade: int,
        seed: str,
        count: int,
    ) -> list[dict[str, Any]]:
        if self._client is not None:
            return self._remote_items(subject, grade, seed, count)
        return self._generated_items(subject, grade, seed, count)

    def _remote_items(self, subject, grade: int, seed: str, count: int) -> list[dict]:
        kind = "ASSESSMENT" if isinstance(subject, GameConfig) else "QUEST"
        try:
            items = self._client.generate_items(subject.id, kind, grade=grade, seed=seed, count=count)
        except httpx.HTTPError as e:
            logger.warning("Content service failed for %s: %s", subject.id, e)
            raise UpstreamUnavailableError(
                "Content service unavailable, please try again", details={"subject_id": subject.id}
            ) from e
        bad = [it for it in items if it.get("type") not in ITEM_TYPES or not _known_categories(it)]
        if not items or bad:
            raise UpstreamUnavailableError(
                "Content service returned an unusable item set", details={"subject_id": subject.id}
            )
        categories = [c.value for c in subject_categories(subject)]
        return [
            {**item, "id": item.get("id") or f"{subject.id}-{i + 1}", "categories": item.get("categories", categories)}
            for i, item in enumerate(items)
        ]

    def _generated_items(self, subject, grade: int, seed: str, count: int) -> list[dict]:
        rng = random.Random(f"{subject.id}:{seed}")
        categories = [c.value for c in subject_categories(subject)]

        if isinstance(subject, QuestConfig) and subject.quest_type == REFLECTION:
            return [{
                "id": f"{subject.id}-1",
                "type": "reflection",
                "prompt": subject.prompt,
                "categories": [],
            }]
        if isinstance(subject, QuestConfig) and subject.quest_type == CHOICE_SCENARIO:
            return [{
                "id": f"{subject.id}-1",
                "type": "choice",
                "prompt": subject.prompt,
                "options": list(subject.choices),
                "categories": [],
            }]

        difficulty = subject.difficulty_for(grade) if isinstance(subject, GameConfig) else "easy"
        generate = _GENERATORS[subject.item_style]
        items = []
        for i in range(count):
            item = generate(rng, i, difficulty)
            item["id"] = f"{subject.id}-{i + 1}"
            item["categories"] = categories
            items.append(item)
        return items


def get_content_provider() -> ContentProvider:
    return ContentProvider(get_content_client())
