"""
Response schemas for controlled generation.

Passed as ``responseSchema`` so Gemini returns JSON matching the domain
models' camelCase wire shape. Exercises share one object shape: choice
questions carry ``options``, open questions omit it.
"""

from __future__ import annotations

STATUS_ENUM = ["locked", "unlocked", "completed"]

LESSON_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "title": {"type": "STRING"},
        "content": {
            "type": "STRING",
            "description": "Extensive lesson text, at least 200-300 words",
        },
    },
    "required": ["id", "title", "content"],
}

EXERCISE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "question": {"type": "STRING"},
        "options": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "nullable": True,
            "description": "Four options for a multiple-choice question; omit for a one-line question",
        },
        "correctAnswer": {
            "type": "STRING",
            "description": "For multiple choice, the exact text of the correct option",
        },
    },
    "required": ["id", "question", "correctAnswer"],
}

SUB_MODULE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "title": {"type": "STRING"},
        "content": {"type": "STRING"},
        "status": {"type": "STRING", "enum": STATUS_ENUM},
        "lessons": {"type": "ARRAY", "items": LESSON_SCHEMA},
        "exercises": {"type": "ARRAY", "items": EXERCISE_SCHEMA},
    },
    "required": ["id", "title", "content", "lessons", "exercises", "status"],
}

MODULE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "title": {"type": "STRING"},
        "description": {"type": "STRING"},
        "status": {"type": "STRING", "enum": STATUS_ENUM},
        "subModules": {"type": "ARRAY", "items": SUB_MODULE_SCHEMA},
    },
    "required": ["id", "title", "description", "subModules", "status"],
}

LEARNING_PATH_SCHEMA = {"type": "ARRAY", "items": MODULE_SCHEMA}

MODULE_DETAIL_SCHEMA = {"type": "ARRAY", "items": SUB_MODULE_SCHEMA}

EXERCISE_LIST_SCHEMA = {"type": "ARRAY", "items": EXERCISE_SCHEMA}

SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]
