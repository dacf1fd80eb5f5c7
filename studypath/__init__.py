"""
studypath: learning-path progression engine.

Turns a free-form topic into an ordered path of modules whose sub-modules
unlock as the learner passes their exercises.
"""

__version__ = "0.1.0"
