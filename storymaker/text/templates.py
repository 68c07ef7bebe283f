"""Prompt templates and deterministic local story templates.

Responsibilities:
- Build provider prompts for story generation and prompt enhancement.
- Generate the offline template story used when every text provider fails.
- Produce deterministic story titles from the prompt and genre.
"""

from __future__ import annotations

from dataclasses import dataclass
import hashlib

from ..models.datatypes import Genre, StoryLength


@dataclass(frozen=True, slots=True)
class GenreElements:
    """Narrative building blocks for one genre."""

    setting: str
    conflict: str
    resolution: str


GENRE_ELEMENTS: dict[Genre, GenreElements] = {
    Genre.FANTASY: GenreElements(
        setting="in a mystical realm where magic flows through ancient forests and forgotten kingdoms",
        conflict="an ancient prophecy unfolds, revealing a chosen one who must restore balance to the magical world",
        resolution="through courage and wisdom, the hero learns that true magic comes from within",
    ),
    Genre.ADVENTURE: GenreElements(
        setting="in a vast wilderness where every step brings new discoveries",
        conflict="unexpected challenges test the limits of courage and determination",
        resolution="perseverance and teamwork lead to an extraordinary discovery",
    ),
    Genre.MYSTERY: GenreElements(
        setting="in a town where secrets lurk beneath the surface",
        conflict="clues point to a truth more complex than anyone imagined",
        resolution="careful investigation reveals that understanding comes from seeing beyond appearances",
    ),
    Genre.ROMANCE: GenreElements(
        setting="in circumstances where hearts collide in unexpected ways",
        conflict="misunderstandings and distance test the strength of feelings",
        resolution="love conquers obstacles when two souls choose to understand each other",
    ),
    Genre.SCI_FI: GenreElements(
        setting="in a future where technology and humanity intersect in profound ways",
        conflict="advances in science raise questions about what it means to be human",
        resolution="innovation serves humanity when guided by compassion and wisdom",
    ),
    Genre.HORROR: GenreElements(
        setting="in shadows where ancient fears take physical form",
        conflict="the bravest must confront what they fear most",
        resolution="courage and unity triumph over darkness",
    ),
    Genre.COMEDY: GenreElements(
        setting="in everyday situations where life takes delightfully unexpected turns",
        conflict="mishaps and misunderstandings create comic chaos",
        resolution="laughter and friendship transform obstacles into joyful memories",
    ),
    Genre.DRAMA: GenreElements(
        setting="where deep challenges reveal the most profound truths",
        conflict="characters face trials that test their values and relationships",
        resolution="growth and understanding emerge from struggle",
    ),
    Genre.THRILLER: GenreElements(
        setting="where every moment counts and danger lurks around every corner",
        conflict="time runs short as stakes grow higher",
        resolution="quick thinking and decisive action save the day",
    ),
}

GENRE_ENHANCEMENTS: dict[Genre, str] = {
    Genre.FANTASY: (
        "Set in a magical world where ancient magic meets modern wonder, featuring mystical "
        "creatures, enchanted locations, and a young hero discovering their magical heritage "
        "while facing an epic quest to save both the magical and mundane realms."
    ),
    Genre.ADVENTURE: (
        "An epic journey through uncharted territories where courage, friendship, and "
        "determination are tested. The protagonist faces physical and emotional challenges "
        "while discovering hidden strengths and forming unbreakable bonds with companions."
    ),
    Genre.MYSTERY: (
        "A puzzling tale where every clue leads to deeper secrets. The investigator must use "
        "wit, observation, and intuition to unravel a complex mystery that challenges their "
        "assumptions and reveals unexpected truths."
    ),
    Genre.ROMANCE: (
        "A heartwarming love story where two souls find each other despite seemingly "
        "impossible circumstances. Their journey involves overcoming misunderstandings and "
        "learning that true love means supporting each other's dreams."
    ),
    Genre.SCI_FI: (
        "Set in a future where advanced technology and human nature collide. The story "
        "explores artificial intelligence, space exploration, or time travel while questioning "
        "what it means to be human in an increasingly digital world."
    ),
    Genre.HORROR: (
        "A spine-chilling tale that builds tension through atmosphere and psychological "
        "elements. The protagonist faces their deepest fears while uncovering ancient secrets "
        "that threaten the very fabric of reality."
    ),
    Genre.COMEDY: (
        "A light-hearted adventure filled with humorous situations, misunderstandings, and "
        "comedic mishaps. The story finds humor in everyday life while celebrating the joy of "
        "friendship and the laughter that comes from life's unexpected moments."
    ),
    Genre.DRAMA: (
        "An emotionally powerful story that explores deep themes of family, friendship, loss, "
        "and personal growth. Characters face real challenges that test their values while "
        "discovering the strength that comes from human connection."
    ),
    Genre.THRILLER: (
        "A pulse-pounding adventure where every second counts and danger lurks around every "
        "corner. The protagonist must use quick thinking to stay ahead of threats while "
        "uncovering a conspiracy that threatens everything they hold dear."
    ),
}

TITLE_ADJECTIVES: dict[Genre, tuple[str, ...]] = {
    Genre.FANTASY: ("Enchanted", "Mystical", "Magical", "Legendary", "Ancient", "Secret", "Hidden"),
    Genre.ADVENTURE: ("Epic", "Incredible", "Thrilling", "Daring", "Brave", "Bold", "Fearless"),
    Genre.MYSTERY: ("Secret", "Hidden", "Mysterious", "Puzzling", "Intriguing", "Strange", "Unknown"),
    Genre.ROMANCE: ("Love", "Heart", "Passionate", "Sweet", "Tender", "Beautiful", "Romantic"),
    Genre.SCI_FI: ("Future", "Cosmic", "Digital", "Cyber", "Stellar", "Galactic", "Advanced"),
    Genre.HORROR: ("Dark", "Shadow", "Nightmare", "Haunted", "Twisted", "Creepy", "Eerie"),
    Genre.COMEDY: ("Funny", "Hilarious", "Silly", "Amusing", "Playful", "Cheerful", "Joyful"),
    Genre.DRAMA: ("Deep", "Emotional", "Powerful", "Touching", "Moving", "Profound", "Intense"),
    Genre.THRILLER: ("Dangerous", "Edge", "Suspenseful", "Tense", "Thrilling", "Urgent", "Critical"),
}

TITLE_SUBJECTS = ("Journey", "Quest", "Story", "Tale", "Adventure", "Experience", "Legend", "Mystery")

STORY_SYSTEM_PROMPT = "You are a creative and engaging storyteller."
ENHANCE_SYSTEM_PROMPT = (
    "You are an expert story enhancer and writing coach. "
    "Enhance story prompts to be more detailed and compelling."
)


def word_count(text: str) -> int:
    """Count whitespace-separated words."""

    return len(text.split())


def story_prompt(subject_text: str, genre: Genre, length: StoryLength) -> str:
    """Build the story-generation prompt shared by every text provider."""

    return (
        f"Write a {length.label} story (approximately {length.target_words} words) "
        f"in the {genre.value} genre.\n\n"
        f'Story prompt: "{subject_text}"\n\n'
        "Requirements:\n"
        "- Create an engaging, well-structured narrative\n"
        "- Include vivid descriptions and compelling characters\n"
        "- Develop a clear beginning, middle, and end\n"
        "- Make it age-appropriate and family-friendly\n"
        "- Include dialogue where appropriate\n\n"
        "Please write the complete story now:"
    )


def enhancement_prompt(subject_text: str, genre: Genre, length: StoryLength) -> str:
    """Build the prompt-enhancement request shared by every text provider."""

    return (
        f"Enhance this {genre.value} story prompt for a {length.label} story "
        f"({length.target_words} words):\n\n"
        f'Original prompt: "{subject_text}"\n\n'
        "Please enhance it by adding:\n"
        "1. Narrative structure guidance (beginning, middle, end)\n"
        "2. Character development suggestions\n"
        "3. Dialogue and interaction prompts\n"
        "4. Atmospheric and environmental descriptions\n"
        "5. Plot development elements\n"
        "6. Themes and meaningful messages\n"
        "7. Age-appropriate content guidelines\n\n"
        f"Make the enhanced prompt detailed enough to guide the creation of a compelling "
        f"{genre.value} story."
    )


def template_enhancement(subject_text: str, genre: Genre) -> str:
    """Return the deterministic genre-based prompt enhancement."""

    return (
        f"{subject_text}\n\n"
        f"Enhanced narrative direction: {GENRE_ENHANCEMENTS[genre]}\n\n"
        "Additional story elements: Include rich character development with dialogue that "
        "reveals personality, vivid environmental descriptions that set the mood, unexpected "
        "plot twists that keep readers engaged, and a satisfying resolution that ties together "
        "all story threads."
    )


def template_story(subject_text: str, genre: Genre, length: StoryLength) -> str:
    """Grow a genre-specific template story until it reaches the target word count.

    Conflict and resolution paragraphs alternate until 70% of the target is
    reached; closing paragraphs then fill the remainder.
    """

    elements = GENRE_ELEMENTS[genre]
    target = length.target_words
    paragraphs = [
        f"Once upon a time, in a world not far from our own, {subject_text} unfolded "
        f"{elements.setting}. This tale begins with great promise and adventure waiting "
        "to unfold."
    ]
    conflict = (
        f"{_capitalize(elements.conflict)} became the central challenge that would define "
        "our journey. Characters developed and changed as they discovered new strengths "
        "within themselves. The world around them seemed to respond to their growth, "
        "revealing hidden depths and new possibilities."
    )
    resolution = (
        f"{_capitalize(elements.resolution)} as the story reached its crescendo. Lessons were "
        "learned that would echo through time, and bonds were forged that would last beyond "
        "the final page."
    )
    closing = (
        "The journey continued with new wonders and challenges. Each step forward revealed "
        "more about the incredible nature of their world and the courage that dwelt within "
        "every heart."
    )

    words = word_count(paragraphs[0])
    use_conflict = True
    while words < target * 0.7:
        paragraph = conflict if use_conflict else resolution
        use_conflict = not use_conflict
        paragraphs.append(paragraph)
        words += word_count(paragraph)
    while words < target:
        paragraphs.append(closing)
        words += word_count(closing)
    return "\n\n".join(paragraphs)


def story_title(subject_text: str, genre: Genre) -> str:
    """Pick a deterministic `<Adjective> <Subject>` title keyed by the prompt text."""

    digest = hashlib.sha256(f"{genre.value}\n{subject_text}".encode("utf-8")).digest()
    adjectives = TITLE_ADJECTIVES[genre]
    adjective = adjectives[digest[0] % len(adjectives)]
    subject = TITLE_SUBJECTS[digest[1] % len(TITLE_SUBJECTS)]
    return f"{adjective} {subject}"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]
