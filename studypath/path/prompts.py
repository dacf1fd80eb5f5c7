"""
Prompts for learning-path generation.

Each builder returns the user prompt; structure is enforced separately by
the response schemas in ``studypath.path.schemas``.
"""
from __future__ import annotations

EXERCISE_RULES = (
    "Each exercise is either a multiple-choice question with 4 options and one "
    "correct answer (the correctAnswer must repeat the exact option text) or a "
    "one-line question with a single short correct answer. Do not include options "
    "for one-line questions."
)

SUB_MODULE_RULES = (
    "Each sub-module should have a title, a detailed content overview, an array of "
    "multiple lessons, and an array of exercises mixing multiple-choice and one-line "
    "questions. Each lesson should have a title and extensive content (at least "
    "200-300 words)."
)


def build_learning_path_prompt(topic: str) -> str:
    """Prompt for the full module list with details for the first module only."""
    return (
        f'Generate a highly detailed and extensive structured learning path for the topic: "{topic}".\n\n'
        "Provide the content as an array of learning modules, ordered from foundations to advanced "
        "material. For the first module, provide extensive details for its sub-modules. "
        f"{SUB_MODULE_RULES} {EXERCISE_RULES} "
        "For subsequent modules, provide only the title and a brief description with an empty "
        "subModules array, marking them as 'locked'. Ensure all IDs are unique strings."
    )


def build_module_detail_prompt(module_title: str, topic: str) -> str:
    """Prompt for the sub-modules of one module that is being unlocked."""
    return (
        f'Generate highly detailed and extensive sub-modules for the module titled "{module_title}" '
        f'within the broader topic of "{topic}". '
        f"{SUB_MODULE_RULES} {EXERCISE_RULES} Ensure all IDs are unique strings."
    )


def build_exercise_prompt(content: str) -> str:
    """Prompt for a fresh exercise set grounded in sub-module content."""
    return (
        "Based on the following content, generate a mix of 3-5 multiple-choice questions and "
        "2-3 one-line questions that cover its key concepts and require a good understanding. "
        f"{EXERCISE_RULES} Ensure all IDs are unique strings.\n\n"
        f"---\n{content}\n---"
    )


def build_assistant_instruction(context: str) -> str:
    """System instruction restricting the chat assistant to the open sub-module."""
    return (
        "You are a helpful learning assistant. Answer questions based only on the provided "
        "module context and chat history. If the answer cannot be found in the context, "
        "state that clearly. Do not use any external knowledge. Here is the current module "
        f"context:\n\n---\n{context}\n---"
    )
