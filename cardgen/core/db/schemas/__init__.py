# Import models so Base metadata is aware of them
from .flashcards import FlashcardGeneration, GenerationLog, Flashcard  # noqa: F401
