"""
Global settings for PDF Study Quiz.
"""

import os

# App
APP_TITLE = "PDF Study Quiz"

# Persistence
STORAGE_KEY = "pdfQuizRecords"

# LLM
LLM_MODEL = "gpt-4o"
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
QUIZ_MIN_QUESTIONS = 20
QUIZ_MAX_QUESTIONS = 25
MAX_DOCUMENT_CHARS = 120000
MAX_SNIPPET_CHARS = 12000

# Provenance labels for questions not produced by the full generation pass
SOURCE_MANUAL = "Added manually"
SOURCE_AI_SNIPPET = "Generated by AI from user text"

# Loading / error messages shown by the controller
MSG_EXTRACTING = "Extracting text from PDF..."
MSG_GENERATING = "Generating quiz and summary with AI..."
MSG_GENERATION_FAILED = "Failed to generate quiz. Please try again with a different PDF."
MSG_QUESTION_FAILED = "Failed to generate question from text. Please try again."
MSG_EMPTY_QUIZ = "There are no questions in this quiz. Add some before starting."
MSG_EMPTY_FIELDS = "Question and answer cannot be empty."
MSG_EMPTY_AI_TEXT = "The text for the AI cannot be empty."
MSG_EXTRACTION_FAILED = "Could not read text from this PDF. Please try again with a different file."
