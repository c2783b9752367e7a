"""cardwise: SM-2 flashcard scheduling and review sessions."""
