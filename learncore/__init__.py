"""
learncore - Adaptive Learning Core.

Components:
- processing: Parent/child chunking and grounding-context retrieval
- generation: Structured data recovery from generated text
- delivery: SM-2 flashcard scheduling and keyed state persistence
- adaptive: Mastery loop state machine
"""

__version__ = "1.0.0"
